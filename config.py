"""Application configuration driven by environment variables.

All settings have sensible defaults for local development.
Copy ``.env.example`` to ``.env`` and adjust values for your environment.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Firestore (signal store + book catalogue)
# ---------------------------------------------------------------------------

# Service-account JSON.  When unset, application default credentials are used.
FIREBASE_CREDENTIALS_PATH: str | None = os.getenv("FIREBASE_CREDENTIALS_PATH") or None
FIREBASE_PROJECT_ID: str | None = os.getenv("FIREBASE_PROJECT_ID") or None

# ---------------------------------------------------------------------------
# Oracle (OpenAI chat completions)
# ---------------------------------------------------------------------------

OPENAI_MODEL_TAGGING: str = os.getenv("OPENAI_MODEL_TAGGING", "gpt-4")
OPENAI_MODEL_RECOMMEND: str = os.getenv("OPENAI_MODEL_RECOMMEND", "gpt-3.5-turbo")

# A timed-out call is treated like any other oracle failure.
ORACLE_TIMEOUT_SECONDS: float = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "30"))

TAGGING_TEMPERATURE: float = float(os.getenv("TAGGING_TEMPERATURE", "0.7"))
TAGGING_MAX_TOKENS: int = int(os.getenv("TAGGING_MAX_TOKENS", "200"))
RECOMMEND_TEMPERATURE: float = float(os.getenv("RECOMMEND_TEMPERATURE", "0.7"))
RECOMMEND_MAX_TOKENS: int = int(os.getenv("RECOMMEND_MAX_TOKENS", "500"))

OPENAI_MODEL_QUIZ: str = os.getenv("OPENAI_MODEL_QUIZ", "gpt-4o-mini")
QUIZ_TEMPERATURE: float = float(os.getenv("QUIZ_TEMPERATURE", "0.7"))
QUIZ_MAX_TOKENS: int = int(os.getenv("QUIZ_MAX_TOKENS", "1000"))

# ---------------------------------------------------------------------------
# Signal aggregation
# ---------------------------------------------------------------------------

TOP_TRAITS_LIMIT: int = int(os.getenv("TOP_TRAITS_LIMIT", "5"))

# Thread pool used for the concurrent signal reads and per-book lookups
# inside a single aggregation pass.
AGGREGATOR_MAX_WORKERS: int = int(os.getenv("AGGREGATOR_MAX_WORKERS", "8"))

# ---------------------------------------------------------------------------
# Batch jobs
# ---------------------------------------------------------------------------

# Users (or books) processed concurrently by one batch run.
JOB_MAX_WORKERS: int = int(os.getenv("JOB_MAX_WORKERS", "4"))
