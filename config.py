"""
VoiceCast Configuration
"""

import os
from pathlib import Path

# Base paths
BASE_DIR = Path(__file__).parent
STORAGE_DIR = os.environ.get("STORAGE_DIR", str(BASE_DIR / "storage"))
DB_PATH = os.environ.get("DB_PATH", str(Path(STORAGE_DIR) / "voicecast.db"))

# Server config
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "9000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Casting proposer
# Set to "ollama" for a local model, or "minimax" for the hosted API
CASTING_BACKEND = os.environ.get("CASTING_BACKEND", "ollama")
OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
LLM_MODEL = os.environ.get("LLM_MODEL", "minimax-m2.5:cloud")
MINIMAX_API_KEY = os.environ.get("MINIMAX_API_KEY", "")
MINIMAX_BASE_URL = os.environ.get("MINIMAX_BASE_URL", "https://api.minimax.chat/v1")
MINIMAX_MODEL = os.environ.get("MINIMAX_MODEL", "MiniMax-Text-01")
CASTING_TEMPERATURE = float(os.environ.get("CASTING_TEMPERATURE", "0.4"))
CASTING_MAX_TOKENS = int(os.environ.get("CASTING_MAX_TOKENS", "2000"))
PROPOSER_TIMEOUT = float(os.environ.get("PROPOSER_TIMEOUT", "60"))  # seconds

# Voice rules
DEFAULT_NARRATOR_VOICE_ID = os.environ.get("DEFAULT_NARRATOR_VOICE_ID", "JBFqnCBsd6RMkjVDRZzb")
# Gender mismatch blocks the cast when true, otherwise it is only logged
STRICT_GENDER_MATCH = os.environ.get("STRICT_GENDER_MATCH", "true").lower() in ("1", "true", "yes")

# CORS - allow all for local development
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")

# Security - API password (optional - leave empty for no auth)
API_PASSWORD = os.environ.get("API_PASSWORD", "")

# Create settings object for easy import
class Settings:
    host = HOST
    port = PORT
    log_level = LOG_LEVEL
    storage_dir = STORAGE_DIR
    db_path = DB_PATH
    casting_backend = CASTING_BACKEND
    ollama_url = OLLAMA_URL
    llm_model = LLM_MODEL
    minimax_api_key = MINIMAX_API_KEY
    minimax_base_url = MINIMAX_BASE_URL
    minimax_model = MINIMAX_MODEL
    casting_temperature = CASTING_TEMPERATURE
    casting_max_tokens = CASTING_MAX_TOKENS
    proposer_timeout = PROPOSER_TIMEOUT
    default_narrator_voice_id = DEFAULT_NARRATOR_VOICE_ID
    strict_gender_match = STRICT_GENDER_MATCH
    cors_origins = CORS_ORIGINS
    api_password = API_PASSWORD

settings = Settings()
