"""
Configuration for the Eval Wizard API.

Model backends, provider credentials, run tuning and server settings.
Loads from .env file if present (via python-dotenv).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str):
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


# --- Provider credentials ---
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
ANTHROPIC_BASE_URL = os.environ.get("ANTHROPIC_BASE_URL", "https://api.anthropic.com")

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_API_BASE_URL = os.environ.get("OPENAI_API_BASE_URL", "https://api.openai.com")

# --- Model backends ---
# Provider is "anthropic" or "openai" for each role.
# Subject: the assistant under test, driven by the project's system prompt
SUBJECT_PROVIDER = os.environ.get("EVAL_WIZARD_SUBJECT_PROVIDER", "openai")
SUBJECT_MODEL = os.environ.get("EVAL_WIZARD_SUBJECT_MODEL", "gpt-4o")
SUBJECT_TEMPERATURE = float(os.environ.get("EVAL_WIZARD_SUBJECT_TEMPERATURE", "0.7"))

# Judge: scores checkpoints and derives calibration criteria
JUDGE_PROVIDER = os.environ.get("EVAL_WIZARD_JUDGE_PROVIDER", "anthropic")
JUDGE_MODEL = os.environ.get("EVAL_WIZARD_JUDGE_MODEL", "claude-sonnet-4-5-20250929")
JUDGE_TEMPERATURE = float(os.environ.get("EVAL_WIZARD_JUDGE_TEMPERATURE", "0"))

# Generator: drafts personas, test scenarios and calibration conversations
GENERATOR_PROVIDER = os.environ.get("EVAL_WIZARD_GENERATOR_PROVIDER", "openai")
GENERATOR_MODEL = os.environ.get("EVAL_WIZARD_GENERATOR_MODEL", "gpt-4o")
GENERATOR_TEMPERATURE = float(os.environ.get("EVAL_WIZARD_GENERATOR_TEMPERATURE", "0.8"))

# --- Run tuning ---
# Request timeout (seconds) for every model call
REQUEST_TIMEOUT = int(os.environ.get("EVAL_WIZARD_REQUEST_TIMEOUT", "120"))

# Max tokens for model responses
MAX_TOKENS = int(os.environ.get("EVAL_WIZARD_MAX_TOKENS", "2000"))

# Scenarios evaluated per chunk in a background eval run
BATCH_SIZE = int(os.environ.get("EVAL_WIZARD_BATCH_SIZE", "3"))

# Scenarios evaluated concurrently within a chunk (1 = sequential)
MAX_CONCURRENT_SCENARIOS = int(os.environ.get("EVAL_WIZARD_MAX_CONCURRENT_SCENARIOS", "1"))

# Most recent messages sent to the subject model; unset sends the whole transcript
MAX_CONTEXT_MESSAGES = _optional_int("EVAL_WIZARD_MAX_CONTEXT_MESSAGES")

# --- API Configuration ---
API_HOST = os.environ.get("EVAL_WIZARD_API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("EVAL_WIZARD_API_PORT", "8000"))

# CORS origins, comma separated (defaults to the local frontend dev server)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "EVAL_WIZARD_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]

PROVIDER_CREDENTIALS = {
    "anthropic": (ANTHROPIC_API_KEY, ANTHROPIC_BASE_URL),
    "openai": (OPENAI_API_KEY, OPENAI_API_BASE_URL),
}
