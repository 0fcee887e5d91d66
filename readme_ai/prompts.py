"""Prompt templates for the ranking, tagging and quiz oracle calls."""

from __future__ import annotations

from readme_ai.models import Candidate
from readme_ai.vocabulary import Vocabulary

# Tagging sees at most this much of the (already capped) extracted text.
TAGGING_EXCERPT_CHARS = 2000

# Quiz prompts embed a longer excerpt than tagging prompts.
QUIZ_EXCERPT_CHARS = 3000

QUIZ_QUESTION_COUNT = 5
QUIZ_OPTION_COUNT = 4

RECOMMEND_SYSTEM_PROMPT = (
    "You are an expert children's book recommendation specialist. "
    "Return only valid JSON."
)

TAGGING_SYSTEM_PROMPT = (
    "You are an expert children's book classifier. "
    "Return only valid JSON with no additional text."
)

RECOMMEND_USER_TEMPLATE = (
    "You are recommending books for a child with these personality traits: {traits}.\n"
    "{tag_line}"
    "\n"
    "Match books whose traits align with the child's personality.\n"
    "\n"
    "Available Books:\n"
    "{books}\n"
    "\n"
    "Instructions:\n"
    "1. Recommend 3-5 books from the available list that best match the child's traits\n"
    "2. Prioritize books that align with the child's preferred traits: {traits}\n"
    "3. Only recommend books from the provided list\n"
    "4. Order recommendations by relevance (best match first)\n"
    "5. IMPORTANT: Return the book IDs (the codes after \"ID:\"), NOT the titles\n"
    "\n"
    "Return ONLY a valid JSON array of book IDs in order of recommendation:\n"
    "Example: [\"1401v39Y2u55ILCuHtDk\", \"21v8kQj1tnVtqOdXKuvc\", \"3MbYQantsdJkyGI6jRb5\"]"
)

TAGGING_USER_TEMPLATE = (
    "Analyze this children's book and suggest tags, personality traits, and age rating.\n"
    "\n"
    "Title: {title}\n"
    "Author: {author}\n"
    "Description: {description}\n"
    "Content excerpt: {excerpt}\n"
    "\n"
    "Based on the book's ACTUAL content and themes:\n"
    "1. Select 3-5 TAGS that categorize the book's themes/genre from: {tags}\n"
    "2. Select 3-5 TRAITS that match children who would enjoy this book from: {traits}\n"
    "{dimensions}"
    "3. Suggest an appropriate age rating from: {ages}\n"
    "\n"
    "Return ONLY a JSON object with this exact format:\n"
    "{{\n"
    "  \"tags\": [\"tag1\", \"tag2\", \"tag3\"],\n"
    "  \"traits\": [\"trait1\", \"trait2\", \"trait3\"],\n"
    "  \"ageRating\": \"{default_age}\"\n"
    "}}"
)


def _format_candidate(candidate: Candidate) -> str:
    return (
        f"ID: {candidate.book_id} | \"{candidate.title}\" by {candidate.author} | "
        f"Age: {candidate.age_rating or 'n/a'} | Traits: [{', '.join(candidate.traits)}]"
    )


def build_recommendation_prompt(
    top_traits: tuple[str, ...] | list[str],
    candidates: list[Candidate],
    top_tags: tuple[str, ...] | list[str] = (),
) -> str:
    traits = ", ".join(top_traits) if top_traits else "not yet known"
    tag_line = f"They are interested in topics: {', '.join(top_tags)}.\n" if top_tags else ""
    return RECOMMEND_USER_TEMPLATE.format(
        traits=traits,
        tag_line=tag_line,
        books="\n".join(_format_candidate(c) for c in candidates),
    )


def build_tagging_prompt(
    vocabulary: Vocabulary,
    title: str,
    author: str,
    excerpt: str,
    description: str = "",
) -> str:
    dimensions = ""
    if vocabulary.trait_dimensions:
        lines = [
            f"   - {name}: {', '.join(traits)}"
            for name, traits in vocabulary.trait_dimensions
        ]
        dimensions = (
            "   Choose traits based on what the story ACTUALLY emphasizes, not defaults:\n"
            + "\n".join(lines)
            + "\n"
        )
    return TAGGING_USER_TEMPLATE.format(
        title=title,
        author=author,
        description=description or "",
        excerpt=excerpt[:TAGGING_EXCERPT_CHARS],
        tags=", ".join(vocabulary.tags),
        traits=", ".join(vocabulary.traits),
        dimensions=dimensions,
        ages=", ".join(vocabulary.ages),
        default_age=vocabulary.default_age,
    )


QUIZ_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates educational quiz questions for "
    "children. Always respond with valid JSON."
)

QUIZ_USER_TEMPLATE = (
    "You are creating a fun, engaging reading comprehension quiz for children "
    "who just finished reading a book.\n"
    "\n"
    "Book Title: {title}\n"
    "Author: {author}\n"
    "Content excerpt: {excerpt}\n"
    "\n"
    "Create {count} multiple-choice questions that test understanding of the story. "
    "Questions should be:\n"
    "- Fun and engaging for children\n"
    "- Test comprehension of plot, characters, and themes\n"
    "- Have {options} answer options (A, B, C, D)\n"
    "- Only ONE correct answer per question\n"
    "- Age-appropriate language\n"
    "\n"
    "Return ONLY a JSON array with this exact format:\n"
    "[\n"
    "  {{\n"
    "    \"question\": \"What was the main character's name?\",\n"
    "    \"options\": [\"Alice\", \"Bob\", \"Charlie\", \"Diana\"],\n"
    "    \"correctAnswer\": 0\n"
    "  }}\n"
    "]\n"
    "\n"
    "The correctAnswer should be the index (0-{last_index}) of the correct option."
)


def build_quiz_prompt(title: str, author: str, excerpt: str) -> str:
    return QUIZ_USER_TEMPLATE.format(
        title=title,
        author=author,
        excerpt=excerpt[:QUIZ_EXCERPT_CHARS],
        count=QUIZ_QUESTION_COUNT,
        options=QUIZ_OPTION_COUNT,
        last_index=QUIZ_OPTION_COUNT - 1,
    )
