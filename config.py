"""Configuration module for the scripture ingestion pipeline."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Configuration
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))  # Low for structured extraction
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "16000"))

# Retry on transient provider errors (rate limit, overload)
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "5"))
RETRY_BACKOFF_MULTIPLIER = 2

# Chunking Configuration (characters, not tokens)
MAX_CHUNK_SIZE = int(os.getenv("MAX_CHUNK_SIZE", "25000"))

# Storage Configuration
DB_PATH = Path(os.getenv("DB_PATH", "./output/scripture.db"))

# Ensure output directories exist
DB_PATH.parent.mkdir(parents=True, exist_ok=True)

# Remote fetch
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "60"))
ERROR_BODY_PREVIEW_CHARS = 500

# Upload validation
ALLOWED_FILE_TYPES = {
    ".txt": "text/plain",
    ".pdf": "application/pdf",
    ".json": "application/json",
}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Processing logs
LOG_FETCH_LIMIT = int(os.getenv("LOG_FETCH_LIMIT", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
