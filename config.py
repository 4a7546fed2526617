# config.py
from dotenv import load_dotenv
import os
load_dotenv() # Load variables from .env file into environment variables

PROJECT_ROOT_PATH = os.path.dirname(os.path.abspath(__file__)) # Base path for logs, database, etc.
LOG_DIRECTORY = os.environ.get("LOG_DIRECTORY", os.path.join(PROJECT_ROOT_PATH, "logs"))
DATABASE_PATH = os.environ.get("DATABASE_PATH", os.path.join(PROJECT_ROOT_PATH, "data", "engine.db"))

# API Configuration
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "5001"))
API_DEBUG_MODE = False # Flask debug mode
API_USE_RELOADER = False # Flask use_reloader
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5001") # Used to build Telegram webhook URLs

# Shared secrets. Empty means the endpoint is unauthenticated (local development).
WEBHOOK_TOKEN = os.environ.get("WEBHOOK_TOKEN", "")
CRON_SECRET = os.environ.get("CRON_SECRET", "")
API_ADMIN_TOKEN = os.environ.get("API_ADMIN_TOKEN", "") # Owner-only endpoints

# Telegram Bot API
TELEGRAM_API_BASE = os.environ.get("TELEGRAM_API_BASE", "https://api.telegram.org")
TELEGRAM_REQUEST_TIMEOUT = 15 # seconds
TELEGRAM_MAX_MESSAGE_LENGTH = 4000 # Bot API hard limit is 4096, keep headroom for markdown

# LLM Configuration (Ollama-compatible chat endpoint)
LOCAL_LLM_API_BASE_URL = os.environ.get("LOCAL_LLM_API_BASE_URL", "http://localhost:11434/api/chat") # Default Ollama chat endpoint
LOCAL_LLM_DEFAULT_MODEL = os.environ.get("LOCAL_LLM_DEFAULT_MODEL", "mistral")
LOCAL_LLM_REQUEST_TIMEOUT = 180 # Default timeout in seconds for local LLM requests
LOCAL_LLM_MAX_RETRIES = 2       # Number of retries for LLM calls
LOCAL_LLM_RETRY_DELAY = 5       # Seconds to wait between LLM call retries
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI agent on the Celo blockchain."

# Agents served by this process (JSON list of agent records), loaded at startup
AGENTS_FILE = os.environ.get("AGENTS_FILE", os.path.join(PROJECT_ROOT_PATH, "agents.json"))

# Capability execution
DEFAULT_TEMPLATE = "custom" # Allow-list used when an agent's template is unknown
HANDLER_TIMEOUT_SECONDS = float(os.environ.get("HANDLER_TIMEOUT_SECONDS", "30"))
READ_ONLY_RETRY_ATTEMPTS = 1 # Extra attempts for read-only capabilities in a retryable category
READ_ONLY_RETRY_DELAY_SECONDS = 0.5
RETRYABLE_CATEGORIES = frozenset({"oracle"})
MESSAGE_UNIT_TIMEOUT_SECONDS = float(os.environ.get("MESSAGE_UNIT_TIMEOUT_SECONDS", "120"))

# Pairing
PAIRING_CODE_PREFIX = "AF"
PAIRING_CODE_LENGTH = 4
PAIRING_CODE_ALPHABET = "0123456789ABCDEFGHJKLMNPQRSTUVWXYZ" # No I or O
PAIRING_CODE_EXPIRY_HOURS = 24
PAIRING_CODE_MAX_ATTEMPTS = 10
ROUTER_LOCK_STRIPES = 64 # Fixed pool of per-sender routing locks, picked by hash

# Session history
SESSION_HISTORY_LIMIT = 20 # Messages loaded as context for a bound sender
SESSION_MAX_MESSAGES_PER_BINDING = 100

# Cron
CRON_TICK_INTERVAL_SECONDS = 60
CRON_MIN_RERUN_SECONDS = 55 # Guards against double firing within the same minute
SCHEDULE_LAST_RESULT_MAX_CHARS = 200

# Price tracking
PRICE_HISTORY_MAX_SNAPSHOTS = 288 # 24h at 5-minute resolution
DEFAULT_TREND_PERIOD_MINUTES = 60
DEFAULT_ALERT_THRESHOLD_PERCENT = 2.0

# Optional "package.module:function" returning a DataSources bundle for the handlers
DATA_SOURCES_FACTORY = os.environ.get("DATA_SOURCES_FACTORY", "")
