from __future__ import annotations

from typing import Optional

from fastapi import HTTPException


class Unauthenticated(HTTPException):
    """Missing, malformed, expired or unknown credential."""

    def __init__(self, detail: str = "unauthenticated"):
        super().__init__(status_code=401, detail=detail)


class Forbidden(HTTPException):
    """Valid credential, insufficient scope."""

    def __init__(self, detail: str = "forbidden"):
        super().__init__(status_code=403, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "not found"):
        super().__init__(status_code=404, detail=detail)


class ValidationFailed(HTTPException):
    def __init__(self, detail: str = "invalid request"):
        super().__init__(status_code=400, detail=detail)


class InvalidTransition(HTTPException):
    def __init__(self, current: str, requested: Optional[str]):
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=409,
            detail=f"invalid status transition from {current} to {requested}",
        )
