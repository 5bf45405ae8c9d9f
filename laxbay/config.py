# laxbay/config.py
"""Environment-driven settings.

Values come from the process environment, with a local `.env` file loaded
first so development setups need no exports.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _int(name, default):
    return int(os.getenv(name, default))


def _float(name, default):
    return float(os.getenv(name, default))


def _flag(name, default="1"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"

# sessions / http
SESSION_SECRET = os.getenv("SESSION_SECRET", "laxbay-dev-secret")
SESSION_MAX_AGE = _int("SESSION_MAX_AGE", 60 * 60 * 24 * 7)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:5174,http://localhost:5175",
    ).split(",")
    if o.strip()
]

# generation
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
LLM_TIMEOUT_SECONDS = _float("LLM_TIMEOUT_SECONDS", 30)
LLM_MAX_RETRIES = _int("LLM_MAX_RETRIES", 3)
LLM_RETRY_DELAY_SECONDS = _float("LLM_RETRY_DELAY_SECONDS", 1.0)
LLM_RETRY_AFTER_SECONDS = _int("LLM_RETRY_AFTER_SECONDS", 30)

# embeddings
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
EMBEDDING_DIM = _int("EMBEDDING_DIM", 768)
EMBED_ON_WRITE = _flag("EMBED_ON_WRITE")
EMBEDDING_SWEEP_MINUTES = _int("EMBEDDING_SWEEP_MINUTES", 60)

# chat pipeline
CHAT_RESULT_LIMIT = _int("CHAT_RESULT_LIMIT", 12)
CHAT_RELATED_THRESHOLD = _float("CHAT_RELATED_THRESHOLD", 0.58)
CHAT_RELATED_LIMIT = _int("CHAT_RELATED_LIMIT", 6)
CHAT_SNIPPET_CHARS = _int("CHAT_SNIPPET_CHARS", 160)

# object storage (any S3-compatible provider)
S3_BUCKET = os.getenv("S3_BUCKET")
S3_REGION = os.getenv("S3_REGION", "auto")
S3_ENDPOINT = os.getenv("S3_ENDPOINT", "")
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID")
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY")
S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL", "")
S3_PRESIGN_EXPIRES = _int("S3_PRESIGN_EXPIRES", 900)
