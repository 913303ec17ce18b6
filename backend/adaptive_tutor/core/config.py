import os
from dotenv import load_dotenv

# Load .env from the backend directory
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "..", ".env"))

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(BASE_DIR, "..", ".."))

# Database: stored in backend/data/
DATABASE_PATH: str = os.getenv(
    "DATABASE_PATH",
    os.path.join(BACKEND_DIR, "data", "tutor.db"),
)

# Requests without an X-User-Id header act as this learner
DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "demo-user")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# External LLM collaborators (OpenAI-compatible chat completions)
OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "").strip()
OPENROUTER_URL: str = os.getenv("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Question bank
QUESTIONS_PER_CONCEPT: int = int(os.getenv("QUESTIONS_PER_CONCEPT", "5"))
GENERATION_WORKERS: int = int(os.getenv("GENERATION_WORKERS", "2"))
GENERATION_POLL_ATTEMPTS: int = int(os.getenv("GENERATION_POLL_ATTEMPTS", "3"))
GENERATION_POLL_INTERVAL_SECONDS: float = float(os.getenv("GENERATION_POLL_INTERVAL_SECONDS", "1.0"))

# Sessions
DEFAULT_SESSION_LENGTH: int = int(os.getenv("DEFAULT_SESSION_LENGTH", "20"))
MAX_SESSION_LENGTH: int = int(os.getenv("MAX_SESSION_LENGTH", "100"))

# Tuning constants
SESSION_TYPE_CAP_FRACTION: float = float(os.getenv("SESSION_TYPE_CAP_FRACTION", "0.4"))
PER_CONCEPT_CAP: int = int(os.getenv("PER_CONCEPT_CAP", "3"))
LOW_PROFICIENCY_THRESHOLD: float = float(os.getenv("LOW_PROFICIENCY_THRESHOLD", "0.3"))
PREREQUISITE_BOOST: float = float(os.getenv("PREREQUISITE_BOOST", "2.0"))
QUALITY_FAST_MS: int = int(os.getenv("QUALITY_FAST_MS", "10000"))
QUALITY_MEDIUM_MS: int = int(os.getenv("QUALITY_MEDIUM_MS", "30000"))
ELO_K_FACTOR: float = float(os.getenv("ELO_K_FACTOR", "0.3"))
GAP_PATTERN_THRESHOLD: int = int(os.getenv("GAP_PATTERN_THRESHOLD", "2"))
PROFICIENCY_MASTERED: float = float(os.getenv("PROFICIENCY_MASTERED", "0.7"))

# Graph layout: "layered" (tiers top to bottom) or "force" (tier rings around the centre)
LAYOUT_STYLE: str = os.getenv("LAYOUT_STYLE", "layered")
