"""HTTP API layer built on FastAPI.

Key components:
- **main**: Application factory and lifespan
- **middleware**: Ingress policies applied to every request
  - Request logging with request ids
  - Origin admission and CORS headers
  - Content-security policy and protective headers
  - Fixed-window rate limiting
  - Centralized error handling with consistent responses
- **routes**: Liveness and health endpoints, domain router mounting
- **schemas**: Pydantic models for error, rate-limit and health bodies
- **utils**: Client identification and orjson responses
"""
