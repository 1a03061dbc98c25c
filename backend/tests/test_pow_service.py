"""Tests for challenge generation and solution verification."""

from dataclasses import replace

import pytest

from powgate.models.challenge import ChallengeHints
from powgate.models.verification import VerificationReason
from powgate.services import challenge_codec
from powgate.services.challenge_generator import ChallengeGenerator, ChallengePolicy
from powgate.services.crypto_utils import KeyRing, SigningKey, hash_hex
from powgate.services.errors import InvalidHints
from powgate.services.pow_service import PowService
from powgate.services.random_source import SystemRandomSource
from powgate.services.replay_guard import ReplayGuard
from powgate.services.solution_verifier import SolutionVerifier
from tests.test_utils import FIXED_NOW, SECRET_NUMBER, FakeClock, FixedRandomSource, solve


class TestGenerateChallenge:
    def test_fields_populated(self, generator):
        challenge = generator.generate()
        assert challenge.algorithm == "SHA-256"
        assert len(challenge.salt) == 32  # 16 bytes as hex
        assert challenge.max_number == 50_000
        assert challenge.expires_at == int(FIXED_NOW) + 600
        assert len(challenge.signature) == 64
        assert len(challenge.target_hash) == 64

    def test_target_hash_commits_to_secret_number(self, generator):
        challenge = generator.generate()
        expected = hash_hex("SHA-256", f"{challenge.salt}{SECRET_NUMBER}".encode())
        assert challenge.target_hash == expected

    def test_difficulty_and_ttl_hints(self, generator):
        challenge = generator.generate(ChallengeHints(difficulty=1000, expires=60))
        assert challenge.max_number == 1000
        assert challenge.expires_at == int(FIXED_NOW) + 60

    def test_difficulty_clamped_to_max(self, generator, policy):
        challenge = generator.generate(ChallengeHints(difficulty=policy.max_difficulty * 10))
        assert challenge.max_number == policy.max_difficulty

    def test_difficulty_clamped_to_min(self, generator, policy):
        challenge = generator.generate(ChallengeHints(difficulty=1))
        assert challenge.max_number == policy.min_difficulty

    def test_ttl_clamped(self, generator, policy):
        long_lived = generator.generate(ChallengeHints(expires=10**9))
        short_lived = generator.generate(ChallengeHints(expires=1))
        assert long_lived.expires_at == int(FIXED_NOW) + policy.max_ttl
        assert short_lived.expires_at == int(FIXED_NOW) + policy.min_ttl

    @pytest.mark.parametrize(
        "hints",
        [
            ChallengeHints(expires=-5),
            ChallengeHints(expires=0),
            ChallengeHints(difficulty=-1000),
            ChallengeHints(difficulty="1000"),
            ChallengeHints(difficulty=True),
        ],
    )
    def test_invalid_hints(self, generator, hints):
        with pytest.raises(InvalidHints):
            generator.generate(hints)

    def test_salts_never_repeat(self, signing_key):
        generator = ChallengeGenerator(signing_key, random_source=SystemRandomSource())
        salts = {generator.generate().salt for _ in range(200)}
        assert len(salts) == 200

    def test_secret_number_below_max_number(self, signing_key, clock):
        generator = ChallengeGenerator(
            signing_key,
            ChallengePolicy(min_difficulty=1000),
            FixedRandomSource(secret_number=123_456),
            clock,
        )
        challenge = generator.generate(ChallengeHints(difficulty=1000))
        assert solve(challenge) == 123_456 % 1000

    def test_same_inputs_same_signature(self, signing_key, clock):
        a = ChallengeGenerator(signing_key, random_source=FixedRandomSource(), clock=clock)
        b = ChallengeGenerator(signing_key, random_source=FixedRandomSource(), clock=clock)
        assert a.generate() == b.generate()


class TestVerifySolution:
    def test_correct_number_succeeds(self, generator, verifier):
        challenge = generator.generate()
        result = verifier.verify(challenge, SECRET_NUMBER, request_id="req-1")
        assert result.success is True
        assert result.reason is None
        assert result.meta.request_id == "req-1"
        assert result.meta.processing_time_ms >= 0

    def test_wrong_number_fails(self, generator, verifier):
        challenge = generator.generate()
        result = verifier.verify(challenge, SECRET_NUMBER + 1)
        assert result.success is False
        assert result.reason == VerificationReason.INVALID_TOKEN

    @pytest.mark.parametrize(
        "changes",
        [
            {"salt": "f" * 32},
            {"max_number": 50_001},
            {"expires_at": int(FIXED_NOW) + 601},
            {"target_hash": "0" * 64},
            {"signature": "0" * 64},
            {"algorithm": "SHA-512"},
        ],
    )
    def test_tampered_field_is_invalid_token(self, generator, verifier, changes):
        challenge = replace(generator.generate(), **changes)
        result = verifier.verify(challenge, SECRET_NUMBER)
        assert result.success is False
        assert result.reason == VerificationReason.INVALID_TOKEN

    def test_expired_even_with_correct_number(self, generator, verifier, clock):
        challenge = generator.generate(ChallengeHints(expires=60))
        clock.advance(61)
        result = verifier.verify(challenge, SECRET_NUMBER)
        assert result.success is False
        assert result.reason == VerificationReason.EXPIRED

    def test_valid_at_exact_expiry(self, generator, verifier, clock):
        challenge = generator.generate(ChallengeHints(expires=60))
        clock.advance(60)
        assert verifier.verify(challenge, SECRET_NUMBER).success is True

    def test_signature_checked_before_expiry(self, generator, verifier, clock):
        """A forged challenge reports invalid-token, not expired."""
        challenge = replace(generator.generate(ChallengeHints(expires=60)), signature="0" * 64)
        clock.advance(61)
        assert verifier.verify(challenge, SECRET_NUMBER).reason == VerificationReason.INVALID_TOKEN

    @pytest.mark.parametrize("number", [-1, 50_000, 50_000 + SECRET_NUMBER, 2**64])
    def test_out_of_range_number(self, generator, verifier, number):
        challenge = generator.generate()
        result = verifier.verify(challenge, number)
        assert result.reason == VerificationReason.INVALID_TOKEN

    def test_other_key_rejects(self, generator, clock):
        challenge = generator.generate()
        other = SolutionVerifier(SigningKey(b"other-key"), clock=clock)
        assert other.verify(challenge, SECRET_NUMBER).reason == VerificationReason.INVALID_TOKEN

    def test_verification_is_repeatable_without_replay_guard(self, generator, verifier):
        challenge = generator.generate()
        assert verifier.verify(challenge, SECRET_NUMBER).success
        assert verifier.verify(challenge, SECRET_NUMBER).success

    def test_unexpected_error_is_internal_error(self, generator, verifier, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("digest backend exploded")

        monkeypatch.setattr(verifier.signing_key.__class__, "verify", boom)
        result = verifier.verify(generator.generate(), SECRET_NUMBER)
        assert result.success is False
        assert result.reason == VerificationReason.INTERNAL_ERROR

    def test_verify_token_malformed(self, verifier):
        result = verifier.verify_token({"salt": "abc"}, request_id="req-2")
        assert result.reason == VerificationReason.MALFORMED
        assert result.meta.request_id == "req-2"

    def test_verify_token_base64(self, generator, verifier):
        challenge = generator.generate()
        token = challenge_codec.encode_token(challenge, SECRET_NUMBER)
        assert verifier.verify_token(token).success is True

    def test_solver_finds_embedded_number(self, generator, verifier):
        challenge = generator.generate(ChallengeHints(difficulty=1000))
        number = solve(challenge)
        assert number == SECRET_NUMBER
        assert verifier.verify(challenge, number).success


class TestScenario:
    def test_difficulty_1000_expires_60(self, generator, verifier):
        challenge = generator.generate(ChallengeHints(difficulty=1000, expires=60))
        assert challenge.max_number == 1000
        assert challenge.expires_at == int(FIXED_NOW) + 60

        assert verifier.verify(challenge, SECRET_NUMBER).success is True

        wrong = verifier.verify(challenge, (SECRET_NUMBER + 1) % 1000)
        assert wrong.success is False
        assert wrong.reason == VerificationReason.INVALID_TOKEN


class TestPowService:
    def test_per_app_keys_isolate_apps(self):
        clock = FakeClock()
        service = PowService(
            key_ring=KeyRing(SigningKey(b"master"), per_app_keys=True),
            random_source=FixedRandomSource(),
            clock=clock,
        )
        challenge = service.generate_challenge("site-a")
        token = {**challenge_codec.encode(challenge), "number": SECRET_NUMBER}

        assert service.verify_solution("site-a", token).success is True
        other = service.verify_solution("site-b", token)
        assert other.reason == VerificationReason.INVALID_TOKEN

    def test_replay_guard_rejects_second_use(self):
        clock = FakeClock()
        service = PowService(
            key_ring=KeyRing(SigningKey(b"master")),
            random_source=FixedRandomSource(),
            clock=clock,
            replay_guard=ReplayGuard(),
        )
        challenge = service.generate_challenge("site-a")
        token = {**challenge_codec.encode(challenge), "number": SECRET_NUMBER}

        assert service.verify_solution("site-a", token).success is True
        second = service.verify_solution("site-a", token)
        assert second.success is False
        assert second.reason == VerificationReason.INVALID_TOKEN

    def test_failed_attempt_does_not_consume(self):
        service = PowService(
            key_ring=KeyRing(SigningKey(b"master")),
            random_source=FixedRandomSource(),
            clock=FakeClock(),
            replay_guard=ReplayGuard(),
        )
        challenge = service.generate_challenge("site-a")
        wire = challenge_codec.encode(challenge)

        wrong = service.verify_solution("site-a", {**wire, "number": SECRET_NUMBER + 1})
        assert wrong.success is False
        assert service.verify_solution("site-a", {**wire, "number": SECRET_NUMBER}).success is True

    def test_purge_consumed(self):
        clock = FakeClock()
        guard = ReplayGuard()
        service = PowService(
            key_ring=KeyRing(SigningKey(b"master")),
            random_source=FixedRandomSource(),
            clock=clock,
            replay_guard=guard,
        )
        challenge = service.generate_challenge("site-a", ChallengeHints(expires=60))
        token = {**challenge_codec.encode(challenge), "number": SECRET_NUMBER}
        service.verify_solution("site-a", token)
        assert len(guard) == 1

        assert service.purge_consumed() == 0
        clock.advance(61)
        assert service.purge_consumed() == 1
        assert len(guard) == 0

    def test_purge_without_guard(self, pow_service):
        assert pow_service.purge_consumed() == 0
