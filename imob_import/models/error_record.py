from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record is written per pipeline failure that the operator may need to look
at after the run: a failed duplicate check, a failed reference lookup or a
rejected insert batch. ``batch`` is the 1-based batch index for insert
failures and -1 when the failure is not tied to a batch (read-side stages).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        stage: pipeline stage (``dedup``, ``lookup``, ``insert``)
        batch: 1-based batch index, -1 when not applicable
        error_type: error classification in UPPER_SNAKE_CASE
        message: remote error message, verbatim
    """
    timestamp: str
    stage: str
    batch: int  # バッチ番号。該当なしは -1
    error_type: str
    message: str

    @staticmethod
    def create(stage: str, batch: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            stage=stage,
            batch=batch,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
