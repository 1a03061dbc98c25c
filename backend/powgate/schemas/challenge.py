from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class ClientHints(BaseModel):
    # No coercion: only JSON integers are accepted
    difficulty: StrictInt | None = Field(
        None, description="Requested maxNumber, clamped to policy"
    )
    expires: StrictInt | None = Field(
        None, description="Requested TTL in seconds, clamped to policy"
    )


class ChallengeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    app_id: str = Field(..., alias="appId", min_length=1)
    client_hints: ClientHints | None = Field(None, alias="clientHints")


class ChallengeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    challenge: str
    algorithm: str
    salt: str
    signature: str
    target_hash: str = Field(..., alias="targetHash")
    expires: int
    max_number: int = Field(..., alias="maxNumber")


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    app_id: str = Field(..., alias="appId", min_length=1)
    token: dict[str, Any] | str = Field(
        ..., description="Echoed challenge fields plus number, or their base64 JSON form"
    )
    client_info: dict[str, Any] | None = Field(None, alias="clientInfo")


class ResultMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(..., alias="requestId")
    processing_time_ms: float = Field(..., alias="processingTimeMs")


class VerifyResponse(BaseModel):
    success: bool
    reason: str | None = None  # "malformed" | "invalid-token" | "expired" | "internal-error"
    meta: ResultMeta
