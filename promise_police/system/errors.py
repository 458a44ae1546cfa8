# ============================================================
# SUPERVISION ERRORS
# ============================================================

from typing import Any, Optional


UNHANDLED_MESSAGE = "Unhandled asynchronous result detected"


class UnhandledFutureError(Exception):
    """A supervised future was never awaited, chained or caught before its deadline"""

    def __init__(self, creation_context, timeout: Optional[float] = None):
        self.creation_context = creation_context
        self.timeout = timeout
        self.creation_stack: str = creation_context.text
        self.tidy_stack: str = creation_context.tidy_text()
        super().__init__(f"{UNHANDLED_MESSAGE}\n{self.creation_stack}")


class RejectionError(Exception):
    """Carries a promise rejection reason that is not an exception"""

    def __init__(self, reason: Any):
        self.reason = reason
        super().__init__(f"Promise rejected with non-exception reason: {reason!r}")
