from __future__ import annotations
"""Typed middleware run around client operations.

A *before* hook receives the operation name and its parameters and returns
either (possibly rewritten) parameters or a :class:`Veto`.  An *after* hook
receives the operation name and the response and returns a response.
Hooks run in registration order; the first veto wins.
"""
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Union

from .responses import Response


@dataclass(frozen=True)
class Veto:
    """Returned by a before hook to stop an operation."""

    reason: str = ""


Params = dict[str, Any]
BeforeHook = Callable[[str, Params], Union[Params, Veto]]
AfterHook = Callable[[str, Response], Response]


class HookChain:
    """Ordered collection of before/after hooks."""

    def __init__(
        self,
        before: Iterable[BeforeHook] = (),
        after: Iterable[AfterHook] = (),
    ):
        self._before: list[BeforeHook] = list(before)
        self._after: list[AfterHook] = list(after)

    def add_before(self, hook: BeforeHook) -> None:
        self._before.append(hook)

    def add_after(self, hook: AfterHook) -> None:
        self._after.append(hook)

    def before(self, operation: str, params: Params) -> Params | Veto:
        current = dict(params)
        for hook in self._before:
            outcome = hook(operation, dict(current))
            if isinstance(outcome, Veto):
                return outcome
            current = outcome
        return current

    def after(self, operation: str, response: Response) -> Response:
        for hook in self._after:
            response = hook(operation, response)
        return response


def veto_operations(*operations: str, reason: str = "") -> BeforeHook:
    """Build a before hook that vetoes the named operations."""

    blocked = set(operations)

    def _hook(operation: str, params: Params) -> Params | Veto:
        if operation in blocked:
            return Veto(reason or f"{operation} is not allowed")
        return params

    return _hook
