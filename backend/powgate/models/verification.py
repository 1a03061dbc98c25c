from dataclasses import dataclass, field
from enum import Enum


class VerificationReason(str, Enum):
    MALFORMED = "malformed"
    INVALID_TOKEN = "invalid-token"
    EXPIRED = "expired"
    INTERNAL_ERROR = "internal-error"


@dataclass(frozen=True)
class ResultMeta:
    request_id: str
    processing_time_ms: float

    def to_dict(self) -> dict:
        return {"requestId": self.request_id, "processingTimeMs": self.processing_time_ms}


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: VerificationReason | None = None
    meta: ResultMeta = field(default_factory=lambda: ResultMeta("unknown", 0.0))

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.reason is not None:
            data["reason"] = self.reason.value
        data["meta"] = self.meta.to_dict()
        return data
