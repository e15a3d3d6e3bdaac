"""Infrastructure layer for external system integrations.

Key responsibilities:
- **Database access**: Shared async PostgreSQL engine and liveness probe
- **Background work**: Periodic alert scheduling alongside the HTTP server
"""
