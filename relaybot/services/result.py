from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one send attempt against the messaging platform."""

    ok: bool
    error: Optional[str] = None
    media_id: Optional[str] = None

    @staticmethod
    def sent(media_id: Optional[str] = None) -> "DispatchResult":
        return DispatchResult(ok=True, media_id=media_id)

    @staticmethod
    def failed(error: str) -> "DispatchResult":
        return DispatchResult(ok=False, error=error)
