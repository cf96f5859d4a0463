from __future__ import annotations
"""Uniform result envelope returned by every client operation."""
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Union


class ResponseError(RuntimeError):
    """Raised when :meth:`Err.unwrap` is called on a failed response."""

    def __init__(self, response: "Err"):
        super().__init__(f"{response.code}: {response.message}")
        self.response = response


@dataclass(frozen=True)
class Ok:
    """Successful (or partially successful, 207) outcome."""

    status_code: int = 200
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    successful = True
    error_code = None

    def map(self, fn: Callable[[dict[str, Any]], dict[str, Any]]) -> "Ok":
        return replace(self, data=fn(self.data))

    def and_then(self, fn: Callable[["Ok"], "Response"]) -> "Response":
        return fn(self)

    def or_else(self, fn: Callable[["Err"], "Response"]) -> "Response":
        return self

    def unwrap(self) -> dict[str, Any]:
        return self.data

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": True,
            "status_code": self.status_code,
            "message": self.message,
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a machine-readable ``code`` slug."""

    status_code: int
    code: str
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    successful = False

    @property
    def error_code(self) -> str:
        return self.code

    def map(self, fn: Callable[[dict[str, Any]], dict[str, Any]]) -> "Err":
        return self

    def and_then(self, fn: Callable[[Ok], "Response"]) -> "Err":
        return self

    def or_else(self, fn: Callable[["Err"], "Response"]) -> "Response":
        return fn(self)

    def unwrap(self) -> dict[str, Any]:
        raise ResponseError(self)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": False,
            "status_code": self.status_code,
            "message": self.message,
            "error_code": self.code,
            "data": dict(self.data),
        }


Response = Union[Ok, Err]


def invalid_parameters(message: str, **data: Any) -> Err:
    return Err(400, "invalid_parameters", message, data)


def prevented(code: str, message: str, **data: Any) -> Err:
    return Err(403, code, message, data)


def multi_status(
    *,
    success_count: int,
    failure_count: int,
    success_message: str,
    partial_message: str,
    failure_message: str,
    failure_code: str,
    data: dict[str, Any],
) -> Response:
    """Collapse per-unit accounting into 200, 207 or an error response."""

    if failure_count == 0:
        return Ok(200, success_message, data)
    if success_count > 0:
        return Ok(207, partial_message, data)
    return Err(400, failure_code, failure_message, data)
