"""API-related constants."""

# HTTP Headers
REQUEST_ID_HEADER = "X-Request-ID"
RETRY_AFTER_HEADER = "Retry-After"
RATE_LIMIT_LIMIT_HEADER = "X-RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"

# Error envelopes
GENERIC_SERVER_ERROR_MESSAGE = "internal server error"
GENERIC_REQUEST_ERROR_MESSAGE = "Request error"
VALIDATION_FAILED_MESSAGE = "Request validation failed"
# Statuses whose message is shown to callers in production
CLIENT_VISIBLE_STATUSES = frozenset({400, 401, 403, 404})

# CORS
CORS_ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
CORS_ALLOWED_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "Accept",
    "Origin",
)
CORS_EXPOSED_HEADERS = ("Content-Type", "Authorization")
CORS_MAX_AGE_SECONDS = 86400  # 24 hours
PLATFORM_DOMAIN_SUFFIXES = (".railway.app",)
DEFAULT_ALLOWED_ORIGINS = (
    "https://app.dannig-optica.freeddns.org",
    "https://dannig-optica.freeddns.org",
    "https://api.dannig-optica.freeddns.org",
    "http://localhost:5180",
    "http://localhost:3000",
    "http://localhost:5173",
)

# Content-security policy
DEFAULT_API_BASE_URL = "http://localhost:3001"
KNOWN_APPLICATION_ORIGINS = (
    "https://api.dannig-optica.freeddns.org",
    "https://dannig-optica.freeddns.org",
    "https://app.dannig-optica.freeddns.org",
)
DEFAULT_HSTS_MAX_AGE = 15552000  # 180 days in seconds

# Rate limiting
RATE_LIMIT_ERROR = "Too Many Requests"
DEFAULT_RETRY_AFTER_SECONDS = 60

# Domain route prefixes served by external handler packages
DOMAIN_ROUTE_PREFIXES = (
    "/auth",
    "/leads",
    "/appointments",
    "/clientes",
    "/fichas-clinicas",
    "/recetas",
    "/productos",
    "/reportes",
    "/ventas",
    "/garantias",
    "/alertas",
)
