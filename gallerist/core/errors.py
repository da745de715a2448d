# gallerist/core/errors.py
# Error taxonomy shared by adapters, services and routes.
# Each error carries the HTTP status it maps to; one handler in main.py turns
# them into plain-text responses (same shape the original server sent).

from typing import Optional

from fastapi import Request
from fastapi.responses import PlainTextResponse


class GalleryError(Exception):
    status_code = 500
    default_detail = "Internal server error."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BackendConnectionError(GalleryError):
    """Transport/auth failure talking to a backend."""
    status_code = 500
    default_detail = "Storage backend unavailable."


class NotFoundError(GalleryError):
    status_code = 404
    default_detail = "File not found."


class AlreadyExistsError(GalleryError):
    status_code = 400
    default_detail = "Folder already exists."


class ValidationError(GalleryError):
    """Missing or unusable request field (not pydantic's ValidationError)."""
    status_code = 400
    default_detail = "Bad request."


class ForbiddenError(GalleryError):
    status_code = 403
    default_detail = "Forbidden: You are not allowed to perform this action."


class PayloadTooLargeError(GalleryError):
    status_code = 413
    default_detail = "File too large."


class RangeNotSatisfiableError(GalleryError):
    status_code = 416
    default_detail = "Range not satisfiable."

    def __init__(self, size: int, detail: Optional[str] = None):
        self.size = size
        super().__init__(detail)


async def gallery_error_handler(request: Request, exc: GalleryError) -> PlainTextResponse:
    headers = {}
    if isinstance(exc, RangeNotSatisfiableError):
        headers["Content-Range"] = f"bytes */{exc.size}"
    return PlainTextResponse(exc.detail, status_code=exc.status_code, headers=headers)
