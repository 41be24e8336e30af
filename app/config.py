import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ============================================================================#
# ENVIRONMENT / SERVICES
# ============================================================================#
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")  # Gemini via OpenRouter (default)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")  # Used when no OpenRouter key is set
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1" if OPENROUTER_API_KEY else None)
REDIS_URL = os.getenv("REDIS_URL")

SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")

# ============================================================================#
# MODEL CONFIGURATION
# ============================================================================#
LLM_MODEL_DIAGNOSIS = os.getenv("LLM_MODEL_DIAGNOSIS", "google/gemini-2.5-flash")
LLM_MODEL_TREATMENT = os.getenv("LLM_MODEL_TREATMENT", LLM_MODEL_DIAGNOSIS)
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))

# Language the model writes names and narratives in
RESPONSE_LANGUAGE = os.getenv("RESPONSE_LANGUAGE", "English")

# Timeout configuration for API calls (seconds)
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "60"))
API_CONNECT_TIMEOUT = float(os.getenv("API_CONNECT_TIMEOUT", "15"))

# ============================================================================#
# WORKFLOW / PRESENTATION
# ============================================================================#
# Confidence badges: > high -> "high", > medium -> "medium", else "low"
CONFIDENCE_HIGH_THRESHOLD = float(os.getenv("CONFIDENCE_HIGH_THRESHOLD", "0.85"))
CONFIDENCE_MEDIUM_THRESHOLD = float(os.getenv("CONFIDENCE_MEDIUM_THRESHOLD", "0.60"))

# Advisory only: larger uploads are logged, not rejected
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))

# Request treatment as soon as a diagnosis arrives
AUTO_RECOMMEND = os.getenv("AUTO_RECOMMEND", "1") == "1"

# In-process workflows kept per browser session (oldest evicted first)
MAX_ACTIVE_WORKFLOWS = int(os.getenv("MAX_ACTIVE_WORKFLOWS", "1000"))

# ============================================================================#
# HISTORY
# ============================================================================#
HISTORY_ENABLED = os.getenv("HISTORY_ENABLED", "1") == "1"
HISTORY_KEY = os.getenv("HISTORY_KEY", "plant-doctor:history")
HISTORY_MAX_ENTRIES = int(os.getenv("HISTORY_MAX_ENTRIES", "50"))

# ============================================================================#
# RATE LIMITING
# ============================================================================#
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "1") == "1"
DIAGNOSE_RATE_LIMIT = os.getenv("DIAGNOSE_RATE_LIMIT", "10/minute")
DEFAULT_RATE_LIMIT = os.getenv("DEFAULT_RATE_LIMIT", "60/minute")
