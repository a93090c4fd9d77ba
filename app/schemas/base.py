"""
Base schemas and response utilities.
"""

from typing import Any, Dict, Optional


class BaseResponse:
    """Base response format for consistent API responses."""

    @staticmethod
    def success(data: Any, message: str = "Success") -> Dict[str, Any]:
        """Create a success response."""
        return {
            "success": True,
            "message": message,
            "data": data
        }

    @staticmethod
    def error(
        message: str,
        details: Any = None,
        status_code: int = 400,
        correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an error response."""
        response = {
            "success": False,
            "message": message,
            "status_code": status_code
        }
        if details:
            response["details"] = details
        if correlation_id:
            response["correlation_id"] = correlation_id
        return response
