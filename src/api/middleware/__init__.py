"""FastAPI middleware package for cross-cutting request/response concerns.

This package contains the ingress policies every request passes through
before reaching a domain handler:

- **RequestLoggingMiddleware**: Request ids and structured request logging
- **OriginPolicyMiddleware**: Cross-origin admission gate
- **PolicyCORSMiddleware**: Starlette CORS handling driven by the same policy
- **SecurityHeadersMiddleware**: Content-security policy and protective headers
- **RateLimitMiddleware**: Fixed-window request budget per client
- **error_handler**: Centralized exception handling with consistent error responses

Middleware are executed in a fixed order:
1. Request logging (outermost, sees every outcome)
2. Origin policy (rejects untrusted browser origins first)
3. CORS preflights and response headers
4. Security headers
5. Rate limiting
6. Unexpected errors (innermost, right before the handler)
"""
