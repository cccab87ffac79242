from __future__ import annotations

class BabonusError(Exception):
    """Base class for errors raised by the bonus engine and its tooling."""

class ExpressionError(BabonusError):
    """A formula could not be evaluated to a number inside the sandbox."""

    def __init__(self, expr: str, reason: str):
        super().__init__(f"cannot evaluate {expr!r}: {reason}")
        self.expr = expr
        self.reason = reason

class ContentError(BabonusError):
    """Bonus or subject content on disk is unreadable or inconsistent."""
