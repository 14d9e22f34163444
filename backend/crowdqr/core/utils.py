"""
Utility functions for the application.
"""
from typing import Any, Dict
from datetime import datetime, timezone

# Largest value a 64-bit signed INTEGER id column holds
MAX_ID = 2 ** 63 - 1


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_error(message: str, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {"error": message}
    if details:
        response["details"] = details
    return response
