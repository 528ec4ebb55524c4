from __future__ import annotations


class HoldexError(Exception):
    """Base class for indexer failures."""


class RPCError(HoldexError, RuntimeError):
    """Upstream answered with a JSON-RPC error or kept rate limiting us. Transient."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransactionParseError(HoldexError, ValueError):
    """A fetched transaction payload does not have the shape we rely on. Permanent."""


class RetriesExhausted(HoldexError):
    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{label}: gave up after {attempts} attempts ({type(last_error).__name__}: {last_error})")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


class CommitError(HoldexError):
    """Storage transaction for one epoch failed and was rolled back."""

    def __init__(self, epoch: int, cause: BaseException) -> None:
        super().__init__(f"epoch {epoch}: commit failed ({type(cause).__name__}: {cause})")
        self.epoch = epoch
        self.cause = cause
