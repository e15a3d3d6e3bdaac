"""Type aliases for dynamic data structures throughout the application.

All types defined here should be JSON-serializable to support logging
and API responses.
"""

from typing import Any

# Context dictionary for logging additional information
# Values must be JSON-serializable for structured logging
type LogContext = dict[str, Any]
