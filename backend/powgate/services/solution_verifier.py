import time
from collections.abc import Callable, Mapping

import structlog

from powgate.models.challenge import Challenge
from powgate.models.verification import ResultMeta, VerificationReason, VerificationResult
from powgate.services import challenge_codec
from powgate.services.crypto_utils import SigningKey, constant_time_equals, hash_hex
from powgate.services.errors import MalformedChallenge
from powgate.services.replay_guard import ReplayGuard

logger = structlog.get_logger()


class SolutionVerifier:
    """
    Verifies a submitted challenge plus number without any stored state.

    Every check is evaluated before a reason is picked, so a request does the
    same work whether the signature, the expiry, the range or the proof fails.
    """

    def __init__(
        self,
        signing_key: SigningKey,
        algorithm: str = "SHA-256",
        clock: Callable[[], float] = time.time,
        replay_guard: ReplayGuard | None = None,
    ):
        self.signing_key = signing_key
        self.algorithm = algorithm
        self.clock = clock
        self.replay_guard = replay_guard

    def _check(self, challenge: Challenge, number: int) -> VerificationReason | None:
        supported = constant_time_equals(challenge.algorithm, self.algorithm)
        signature_ok = self.signing_key.verify(
            challenge_codec.signing_input(challenge), challenge.signature
        )
        expired = self.clock() > challenge.expires_at
        in_range = 0 <= number < challenge.max_number

        # Out-of-range numbers may be arbitrarily large; hash a stand-in instead
        candidate = number if in_range else 0
        digest = hash_hex(self.algorithm, challenge_codec.proof_input(challenge.salt, candidate))
        proof_ok = constant_time_equals(digest, challenge.target_hash)

        if not (supported and signature_ok):
            return VerificationReason.INVALID_TOKEN
        if expired:
            return VerificationReason.EXPIRED
        if not (in_range and proof_ok):
            return VerificationReason.INVALID_TOKEN
        if self.replay_guard is not None and not self.replay_guard.consume(
            challenge.signature, challenge.expires_at
        ):
            return VerificationReason.INVALID_TOKEN
        return None

    def verify(
        self, challenge: Challenge, number: int, request_id: str = "unknown"
    ) -> VerificationResult:
        start_time = time.perf_counter()
        try:
            reason = self._check(challenge, number)
        except Exception:
            logger.error("verification_internal_error", request_id=request_id, exc_info=True)
            reason = VerificationReason.INTERNAL_ERROR
        return self._result(reason, request_id, start_time)

    def verify_token(self, token: Mapping | str, request_id: str = "unknown") -> VerificationResult:
        """Decode a submitted token, then verify it."""
        start_time = time.perf_counter()
        try:
            challenge, number = challenge_codec.decode_solution(token)
        except MalformedChallenge as e:
            logger.info("verification_malformed", request_id=request_id, error=str(e))
            return self._result(VerificationReason.MALFORMED, request_id, start_time)
        result = self.verify(challenge, number, request_id)
        # Report the full decode + verify duration
        return VerificationResult(
            success=result.success,
            reason=result.reason,
            meta=self._meta(request_id, start_time),
        )

    @staticmethod
    def _meta(request_id: str, start_time: float) -> ResultMeta:
        duration_ms = (time.perf_counter() - start_time) * 1000
        return ResultMeta(request_id=request_id, processing_time_ms=round(duration_ms, 2))

    def _result(
        self, reason: VerificationReason | None, request_id: str, start_time: float
    ) -> VerificationResult:
        return VerificationResult(
            success=reason is None,
            reason=reason,
            meta=self._meta(request_id, start_time),
        )
