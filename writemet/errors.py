"""Exception types raised by the pipeline."""

from typing import Optional


class WriteMetError(Exception):
    """Base class for library errors."""


class ModelCallError(WriteMetError):
    """A language model call failed (transport error, non-2xx status, rate limit)."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        prefix = f"[{status}] " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class EmptyResultError(WriteMetError):
    """A pipeline stage produced no survivors, so there is nothing to analyze."""

    def __init__(self, stage: str, detail: str = ""):
        self.stage = stage
        message = f"No results after stage '{stage}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
