"""
Centralized constants for the Babellion translation pipeline.
All magic numbers live here.
"""

# ===========================================
# STORE RETRY (Resilient Store Accessor)
# ===========================================
STORE_RETRY_MAX_ATTEMPTS = 3
STORE_RETRY_DELAYS = (5.0, 10.0, 10.0)   # seconds, one entry per retry
STORE_RETRY_JITTER = 0.25                # +/- 25% per delay

# Driver error codes that denote an administrative disconnect or unavailability.
# 57P01 admin shutdown, 57P02 crash shutdown, 57P03 cannot connect now.
RETRYABLE_STORE_ERROR_CODES = frozenset({
    "57P01",
    "57P02",
    "57P03",
    "SQLITE_BUSY",
    "SQLITE_LOCKED",
})

RETRYABLE_STORE_ERROR_MESSAGES = (
    "terminating connection",
    "connection terminated",
    "connection closed",
    "connection refused",
    "connection reset",
    "econnrefused",
    "econnreset",
    "database is locked",
)

# ===========================================
# GENERATION
# ===========================================
GENERATION_TIMEOUT_SECONDS = 900.0    # 15 minutes, long documents stream for a while
GENERATION_MAX_TOKENS = 30000
GENERATION_TEMPERATURE = 0.3
REASONING_MODEL_PREFIXES = ("gpt-5", "o")
REASONING_EFFORT = "medium"

# ===========================================
# PROGRESS POLLING
# ===========================================
STALE_AFTER_MINUTES = 30
POLL_INTERVAL_SECONDS = 2.0

# ===========================================
# SETTINGS KEYS
# ===========================================
TRANSLATION_PROMPT_SETTING = "translation_system_prompt"
PROOFREADING_PROMPT_SETTING = "proofreading_system_prompt"

# ===========================================
# API / SERVER
# ===========================================
API_RATE_LIMIT = "60/minute"
TRIGGER_RATE_LIMIT = "20/minute"

# ===========================================
# STORAGE
# ===========================================
DATABASE_PATH = "data/babellion.db"
SQLITE_TIMEOUT_SECONDS = 5.0

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/babellion.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
