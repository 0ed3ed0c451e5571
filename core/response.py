"""
Standardized API error bodies
"""
from typing import Any, Dict, Optional
from datetime import datetime


def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create an error response.

    ``error`` is the field clients read; ``message`` mirrors it for callers
    that expect the success/error envelope shape.
    """
    return {
        "success": False,
        "error": message,
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": datetime.utcnow().isoformat()
    }
