"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Process exit statuses
EXIT_SUCCESS = 0
EXIT_FAILURE = 1

# Security and redaction
REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "x-csrf-token",
        "set-cookie",
        "proxy-authorization",
    }
)
