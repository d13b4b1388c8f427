from __future__ import annotations

"""Pipeline exception hierarchy.

InputError and VerificationError abort a process cycle without touching the
session state. Upload failures are not exceptions at this level: the uploader
turns them into a partial InsertReport.
"""

__all__ = [
    "ImportPipelineError",
    "InputError",
    "VerificationError",
    "SessionBusyError",
]


class ImportPipelineError(Exception):
    """Base exception for pipeline errors surfaced to the operator."""


class InputError(ImportPipelineError):
    """Operator input problem detected before any remote call."""


class VerificationError(ImportPipelineError):
    """A read-side chunk query failed; the whole stage is discarded.

    ``stage`` is ``dedup`` or ``lookup``; ``message`` is the remote error text,
    verbatim.
    """

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage
        self.message = message


class SessionBusyError(ImportPipelineError):
    """A process / insert call arrived while another one was running."""
