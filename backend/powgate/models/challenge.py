from dataclasses import dataclass


@dataclass(frozen=True)
class Challenge:
    """An issued proof-of-work puzzle. Carries no server-side identity."""

    algorithm: str
    salt: str  # hex
    target_hash: str  # hex digest of salt || secret number
    max_number: int
    expires_at: int  # unix seconds
    signature: str  # hex HMAC over the canonical encoding


@dataclass(frozen=True)
class ChallengeHints:
    difficulty: int | None = None
    expires: int | None = None  # seconds from now
