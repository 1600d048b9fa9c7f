from __future__ import annotations
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class StageResult:
    """
    Outcome of one pipeline stage: either `data` or a failure `reason`.
    """
    stage: str
    data: Any = None
    reason: str | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, stage: str, data: Any) -> "StageResult":
        return cls(stage=stage, data=data)

    @classmethod
    def failure(cls, stage: str, error: BaseException) -> "StageResult":
        return cls(stage=stage, reason=f"{type(error).__name__}: {error}", error=error)
