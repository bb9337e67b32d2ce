"""Uniform response envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Every endpoint answers ``{success, data?, message?}``."""

    success: bool = True
    data: T | None = None
    message: str | None = None
