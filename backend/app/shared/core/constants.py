"""
Centralized Constants for the Outreach CRM Backend.
All hardcoded values should be defined here for easy maintenance.
"""

# ============================================
# API TIMEOUTS (in seconds)
# ============================================
TIMEOUT_PHANTOMBUSTER_API = 30.0       # Launch / fetch container
TIMEOUT_OPENAI = 60.0                  # Chat completion
TIMEOUT_SENDGRID = 30.0                # Single email send

# ============================================
# EXTERNAL API URLS
# ============================================
PHANTOMBUSTER_API_URL = "https://api.phantombuster.com/api/v2"
SENDGRID_API_URL = "https://api.sendgrid.com/v3"

# ============================================
# PHANTOMBUSTER POLLING
# ============================================
PHANTOM_POLL_INTERVAL_SECONDS = 10     # Between container status checks
PHANTOM_MAX_WAIT_MINUTES = 10          # Give up waiting after this long

# Retry settings for PhantomBuster API calls
MAX_RETRY_ATTEMPTS = 3
RETRY_MIN_WAIT_SECONDS = 2
RETRY_MAX_WAIT_SECONDS = 10

# ============================================
# MESSAGE CSV HAND-OFF
# ============================================
MESSAGE_CSV_TTL_SECONDS = 30 * 60      # PhantomBuster may fetch the CSV several times
MESSAGE_CSV_MAX_ENTRIES = 1000

# ============================================
# AI MODEL CONFIGURATION
# ============================================
AI_DEFAULT_MAX_TOKENS = 300
AI_DEFAULT_TEMPERATURE = 0.8
CONNECTION_NOTE_MAX_CHARS = 300        # LinkedIn invitation note limit

# ============================================
# CONTENT / TEMPLATES
# ============================================
DEFAULT_STEP_TEMPLATE = "Hi {firstName}, I'd like to connect."
MESSAGE_PREVIEW_CHARS = 100
GENERATION_DELAY_SECONDS = 2           # Between leads during bulk AI generation

# ============================================
# PAGINATION
# ============================================
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

# ============================================
# DATABASE POOL SETTINGS
# ============================================
DB_POOL_SIZE = 5
DB_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 300
