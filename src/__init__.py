"""Optica API - HTTP gateway of the optical clinic management system.

Architecture Overview:
- **API Layer**: FastAPI application, ingress middleware and service routes
- **Core Layer**: Configuration, logging, exceptions and redaction helpers
- **Infrastructure Layer**: Database engine and background alert scheduling
- **Lifecycle**: Process startup, serving and fatal-failure handling

Business endpoints (clients, clinical records, sales, warranties...) are
provided by separate domain packages and mounted by the application factory.
"""
