"""
schemas/errors.py — Structured error response body

Returned by the HTTPException and RequestValidationError handlers in
main.py. Activity failures never reach this shape: they are logged and
swallowed so the user's save still succeeds.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list | None = None
