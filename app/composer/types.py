from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any


class Mode(str, Enum):
    SLOT = "slot"
    SPATIAL = "spatial"


class CommitStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    GENERATING = "generating"
    UPLOADING = "uploading"
    SAVING = "saving"


class ResultKind(str, Enum):
    USER_RECOVERABLE = "user_recoverable"
    INVARIANT = "invariant"


@dataclass(frozen=True)
class OpResult:
    """Outcome of a composition operation. No-ops carry a reason."""

    changed: bool
    reason: Optional[str] = None
    kind: Optional[ResultKind] = None

    @classmethod
    def ok(cls) -> "OpResult":
        return cls(changed=True)

    @classmethod
    def noop(cls, reason: str, kind: Optional[ResultKind] = None) -> "OpResult":
        return cls(changed=False, reason=reason, kind=kind)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "changed": self.changed,
            "reason": self.reason,
            "kind": self.kind.value if self.kind else None,
        }


@dataclass
class SaveProgress:
    stage: CommitStage = CommitStage.IDLE
    percent: int = 0

    @property
    def idle(self) -> bool:
        return self.stage is CommitStage.IDLE

    def set(self, stage: CommitStage, percent: int) -> None:
        self.stage = stage
        self.percent = max(0, min(100, int(percent)))

    def reset(self) -> None:
        self.stage = CommitStage.IDLE
        self.percent = 0

    def as_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage.value, "percent": self.percent}


@dataclass(frozen=True)
class RenderResult:
    image_bytes: bytes
    derived_composition: Dict[str, Any]
    content_type: str = "image/png"
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class UploadResult:
    url: str
    storage_id: str


@dataclass
class CommitOutcome:
    outfit_id: str
    preview: UploadResult
    payload: Dict[str, Any] = field(default_factory=dict)
