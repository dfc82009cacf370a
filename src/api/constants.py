"""API-related constants."""

# Security
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds

# OAuth callbacks land on these dashboard pages
OAUTH_SUCCESS_PATH = "/tents/{tent_id}/settings"
OAUTH_FAILURE_PATH = "/dashboard"

# Header a manager uses to read or edit a tent member's rates
TARGET_USER_HEADER = "X-Target-User-Id"
