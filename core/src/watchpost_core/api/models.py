from __future__ import annotations

from typing import Any, Generic, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel

from watchpost_core.messages import MessageCollector


class ApiError(BaseModel):
    code: str
    message: str
    details: Any | None = None


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    ok: bool
    data: T | None = None
    error: ApiError | None = None


def ok(data: T) -> ApiResponse[T]:
    return ApiResponse(ok=True, data=data)


def fail(*, code: str, message: str, details: Any | None = None) -> ApiResponse[None]:
    return ApiResponse(ok=False, error=ApiError(code=code, message=message, details=details))


class ServiceFailure(HTTPException):
    """A service call failed; its drained messages travel as error details."""

    def __init__(self, message: str, messages: MessageCollector, status_code: int = 400) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.messages = messages.drain_texts()
