from powgate.schemas.challenge import (
    ChallengeCreate,
    ChallengeResponse,
    ClientHints,
    ResultMeta,
    VerifyRequest,
    VerifyResponse,
)

__all__ = [
    "ChallengeCreate",
    "ChallengeResponse",
    "ClientHints",
    "ResultMeta",
    "VerifyRequest",
    "VerifyResponse",
]
