"""Core infrastructure package for shared application functionality.

This package provides the foundational components used across all layers
of the Optica API:

- **config**: Settings resolution and validation (fails fast at startup)
- **exceptions**: Structured exception hierarchy carrying HTTP status codes
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Loguru setup with console and JSON formatters
- **types**: Type aliases for better code clarity
"""
