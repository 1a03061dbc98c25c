import time
from collections.abc import Callable
from dataclasses import dataclass

from powgate.models.challenge import Challenge, ChallengeHints
from powgate.services import challenge_codec
from powgate.services.crypto_utils import SigningKey, hash_hex
from powgate.services.errors import InvalidHints
from powgate.services.random_source import RandomSource, SystemRandomSource


@dataclass(frozen=True)
class ChallengePolicy:
    algorithm: str = "SHA-256"
    salt_bytes: int = 16
    min_difficulty: int = 1_000
    max_difficulty: int = 1_000_000
    default_difficulty: int = 50_000
    min_ttl: int = 30
    max_ttl: int = 3600
    default_ttl: int = 600

    @classmethod
    def from_settings(cls, settings) -> "ChallengePolicy":
        return cls(
            algorithm=settings.pow_algorithm,
            salt_bytes=settings.pow_salt_bytes,
            min_difficulty=settings.pow_min_difficulty,
            max_difficulty=settings.pow_max_difficulty,
            default_difficulty=settings.pow_default_difficulty,
            min_ttl=settings.pow_min_ttl_seconds,
            max_ttl=settings.pow_max_ttl_seconds,
            default_ttl=settings.pow_default_ttl_seconds,
        )


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def _check_hint(name: str, value) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidHints(f"{name} must be an integer")
    if value < 1:
        raise InvalidHints(f"{name} must be positive")
    return value


class ChallengeGenerator:
    """Issues signed challenges. Nothing is stored; the signature carries the state."""

    def __init__(
        self,
        signing_key: SigningKey,
        policy: ChallengePolicy | None = None,
        random_source: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.signing_key = signing_key
        self.policy = policy or ChallengePolicy()
        self.random_source = random_source or SystemRandomSource()
        self.clock = clock

    def resolve_difficulty(self, requested: int | None) -> int:
        p = self.policy
        return _clamp(requested or p.default_difficulty, p.min_difficulty, p.max_difficulty)

    def resolve_ttl(self, requested: int | None) -> int:
        p = self.policy
        return _clamp(requested or p.default_ttl, p.min_ttl, p.max_ttl)

    def generate(self, hints: ChallengeHints | None = None) -> Challenge:
        """Generate a new proof-of-work challenge."""
        hints = hints or ChallengeHints()
        difficulty = _check_hint("difficulty", hints.difficulty)
        expires = _check_hint("expires", hints.expires)

        algorithm = self.policy.algorithm
        salt = self.random_source.token_bytes(self.policy.salt_bytes).hex()
        max_number = self.resolve_difficulty(difficulty)
        expires_at = int(self.clock()) + self.resolve_ttl(expires)

        # The secret number is hashed and discarded
        secret_number = self.random_source.randbelow(max_number)
        target_hash = hash_hex(algorithm, challenge_codec.proof_input(salt, secret_number))

        signature = self.signing_key.sign(
            challenge_codec.canonical_encoding(algorithm, salt, target_hash, max_number, expires_at)
        ).hex()

        return Challenge(
            algorithm=algorithm,
            salt=salt,
            target_hash=target_hash,
            max_number=max_number,
            expires_at=expires_at,
            signature=signature,
        )
