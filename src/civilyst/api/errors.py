"""Error responses for the Civilyst API.

Every failure is rendered as a Result holding one or more Messages:

    {"messages": [{"code": "NotFound", "messageType": "Error",
                   "text": "Campaign with identifier 'x' not found",
                   "timestamp": "2026-01-10T12:34:56+00:00"}]}

Request validation failures (bad coordinates, radius out of range, missing
fields) become 400 ``ValidationFailed`` before any cache key is derived.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    EXCEPTION = "Exception"


class Message(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    code: str
    message_type: MessageType = Field(alias="messageType")
    text: str
    timestamp: str | None = None

    @classmethod
    def now(cls, code: str, text: str, message_type: MessageType = MessageType.ERROR) -> Message:
        return cls(
            code=code,
            message_type=message_type,
            text=text,
            timestamp=datetime.now(UTC).isoformat(),
        )


class Result(BaseModel):
    model_config = ConfigDict(extra="forbid")

    messages: list[Message]


def _render(status_code: int, *messages: Message) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Result(messages=list(messages)).model_dump(mode="json", by_alias=True),
    )


class ApiError(HTTPException):
    """Base class; subclasses fix the status code and message code."""

    status: int = 500
    code: str = "InternalServerError"
    message_type: MessageType = MessageType.ERROR

    def __init__(self, text: str):
        self.text = text
        super().__init__(status_code=self.status, detail=text)

    def to_result(self) -> Result:
        return Result(messages=[Message.now(self.code, self.text, self.message_type)])


class NotFoundError(ApiError):
    status = 404
    code = "NotFound"

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(f"{resource_type} with identifier '{identifier}' not found")


class BadRequestError(ApiError):
    status = 400
    code = "BadRequest"


class ValidationFailedError(ApiError):
    """Geographic or paging input rejected before any query runs."""

    status = 400
    code = "ValidationFailed"


class UnauthorizedError(ApiError):
    """No acting user."""

    status = 401
    code = "Unauthorized"

    def __init__(self, text: str = "Authentication required"):
        super().__init__(text)


class ForbiddenError(ApiError):
    """Acting user may not modify the resource."""

    status = 403
    code = "Forbidden"


class InternalServerError(ApiError):
    message_type = MessageType.EXCEPTION

    def __init__(self, text: str = "An unexpected error occurred"):
        super().__init__(text)


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _render(exc.status_code, *exc.to_result().messages)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """One ValidationFailed message per invalid field, status 400."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        text = f"{location}: {error.get('msg')}" if location else str(error.get("msg"))
        messages.append(Message.now("ValidationFailed", text))
    return _render(400, *messages)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = InternalServerError()
    return _render(error.status_code, *error.to_result().messages)
