"""Engine error taxonomy."""

from __future__ import annotations

from typing import Any, Iterable


class EngineError(Exception):
    """Base class for errors raised by the workflow engine."""


class InvalidInput(EngineError, ValueError):
    """Raised for malformed or out-of-range input values."""


class IllegalTransition(EngineError):
    """Raised when an action's guard does not hold at apply time.

    Callers should re-fetch the current snapshot and re-offer the legal
    actions; the error carries enough context to do so.
    """

    def __init__(
        self,
        action: Any,
        state: Any,
        *,
        accepted: bool | None = None,
        legal_actions: Iterable[Any] = (),
    ):
        self.action = _plain(action)
        self.state = _plain(state)
        self.accepted = accepted
        self.legal_actions = sorted(_plain(item) for item in legal_actions)
        super().__init__(
            f"Action {self.action!r} is not allowed from state {self.state!r}"
        )

    def __str__(self) -> str:  # pragma: no cover - trivial
        detail = f"Action {self.action!r} is not allowed from state {self.state!r}"
        if self.accepted is not None:
            detail += f" (accepted={self.accepted})"
        if self.legal_actions:
            detail += f"; legal actions: {self.legal_actions}"
        return detail


class WriteConflict(EngineError):
    """Raised by storage when a write would lose an update or duplicate a record."""


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


__all__ = ["EngineError", "InvalidInput", "IllegalTransition", "WriteConflict"]
