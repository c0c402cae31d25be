"""
Error taxonomy shared by handlers, routes and the app boundary.
"""

from __future__ import annotations

from typing import Iterable


class ApiError(Exception):
    """Base error rendered as ``{"error": message, "success": false}``."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"error": self.message, "success": False}

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(ApiError):
    status_code = 400


class NotFound(ApiError):
    status_code = 404

    def __init__(self, message: str = "Not Found"):
        super().__init__(message)


class MethodNotAllowed(ApiError):
    status_code = 405

    def __init__(self, method: str, allowed: Iterable[str] = ()):
        super().__init__(f"Method {method} Not Allowed")
        self.method = method
        self.allowed = tuple(allowed)

    def headers(self) -> dict[str, str] | None:
        if not self.allowed:
            return None
        return {"Allow": ", ".join(self.allowed)}


class StoreError(ApiError):
    """A key-value backend call failed; carries the backend's message."""

    status_code = 500
