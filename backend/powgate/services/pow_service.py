import time
from collections.abc import Callable, Mapping

from starlette.requests import Request

from powgate.models.challenge import Challenge, ChallengeHints
from powgate.models.verification import VerificationResult
from powgate.services.challenge_generator import ChallengeGenerator, ChallengePolicy
from powgate.services.crypto_utils import KeyRing, SigningKey
from powgate.services.random_source import RandomSource, SystemRandomSource
from powgate.services.replay_guard import ReplayGuard
from powgate.services.solution_verifier import SolutionVerifier


class PowService:
    """Holds the process-wide collaborators and hands out per-app generators and verifiers."""

    def __init__(
        self,
        key_ring: KeyRing,
        policy: ChallengePolicy | None = None,
        random_source: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
        replay_guard: ReplayGuard | None = None,
    ):
        self.key_ring = key_ring
        self.policy = policy or ChallengePolicy()
        self.random_source = random_source or SystemRandomSource()
        self.clock = clock
        self.replay_guard = replay_guard

    def generator_for(self, app_id: str) -> ChallengeGenerator:
        return ChallengeGenerator(
            signing_key=self.key_ring.for_app(app_id),
            policy=self.policy,
            random_source=self.random_source,
            clock=self.clock,
        )

    def verifier_for(self, app_id: str) -> SolutionVerifier:
        return SolutionVerifier(
            signing_key=self.key_ring.for_app(app_id),
            algorithm=self.policy.algorithm,
            clock=self.clock,
            replay_guard=self.replay_guard,
        )

    def generate_challenge(self, app_id: str, hints: ChallengeHints | None = None) -> Challenge:
        """Generate a new proof-of-work challenge for app_id."""
        return self.generator_for(app_id).generate(hints)

    def verify_solution(
        self, app_id: str, token: Mapping | str, request_id: str = "unknown"
    ) -> VerificationResult:
        """Verify a submitted token. Never raises; failures come back as results."""
        return self.verifier_for(app_id).verify_token(token, request_id)

    def purge_consumed(self) -> int:
        """Drop expired replay ledger entries. Returns count of removed entries."""
        if self.replay_guard is None:
            return 0
        return self.replay_guard.purge_expired(self.clock())


def build_pow_service(settings) -> PowService:
    """Build the service from settings. Raises SigningKeyError if the secret is missing."""
    secret = settings.signing_secret.get_secret_value() if settings.signing_secret else None
    master = SigningKey.from_secret(secret)
    return PowService(
        key_ring=KeyRing(master, per_app_keys=settings.per_app_keys),
        policy=ChallengePolicy.from_settings(settings),
        replay_guard=ReplayGuard() if settings.replay_protection_enabled else None,
    )


def get_pow_service(request: Request) -> PowService:
    """Dependency for FastAPI endpoints to get the service built at startup."""
    return request.app.state.pow_service
