"""Tests for the challenge wire codec."""

import base64
import json

import pytest

from powgate.services import challenge_codec
from powgate.services.challenge_codec import canonical_encoding
from powgate.services.errors import MalformedChallenge


class TestCanonicalEncoding:
    def test_field_boundaries_are_unambiguous(self):
        """Shifting characters between adjacent fields changes the encoding."""
        a = canonical_encoding("SHA-256", "ab", "cd", 10, 100)
        b = canonical_encoding("SHA-256", "a", "bcd", 10, 100)
        assert a != b

    def test_numbers_are_unambiguous(self):
        a = canonical_encoding("SHA-256", "ab", "cd", 11, 100)
        b = canonical_encoding("SHA-256", "ab", "cd", 1, 1100)
        assert a != b

    def test_starts_with_length_prefixed_domain_tag(self):
        encoded = canonical_encoding("SHA-256", "ab", "cd", 10, 100)
        tag = challenge_codec.DOMAIN_TAG.encode()
        assert encoded[:4] == len(tag).to_bytes(4, "big")
        assert encoded[4 : 4 + len(tag)] == tag

    def test_proof_input_is_salt_then_number(self):
        assert challenge_codec.proof_input("abcd", 42) == b"abcd42"


class TestEncodeDecode:
    def test_round_trip(self, generator):
        challenge = generator.generate()
        assert challenge_codec.decode(challenge_codec.encode(challenge)) == challenge

    def test_wire_fields(self, generator):
        challenge = generator.generate()
        data = challenge_codec.encode(challenge)
        assert set(data) == {
            "challenge",
            "algorithm",
            "salt",
            "signature",
            "targetHash",
            "expires",
            "maxNumber",
        }
        assert data["challenge"] == data["targetHash"] == challenge.target_hash
        assert data["expires"] == challenge.expires_at
        assert data["maxNumber"] == challenge.max_number

    def test_decode_accepts_challenge_without_target_hash(self, generator):
        challenge = generator.generate()
        data = challenge_codec.encode(challenge)
        del data["targetHash"]
        assert challenge_codec.decode(data) == challenge

    def test_decode_rejects_disagreeing_target_fields(self, generator):
        data = challenge_codec.encode(generator.generate())
        data["challenge"] = "0" * 64
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode(data)

    @pytest.mark.parametrize("field", ["algorithm", "salt", "signature", "expires", "maxNumber"])
    def test_decode_rejects_missing_field(self, generator, field):
        data = challenge_codec.encode(generator.generate())
        del data[field]
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode(data)

    @pytest.mark.parametrize(
        "field,value",
        [("maxNumber", "1000"), ("expires", 1.5), ("maxNumber", True), ("salt", 123), ("salt", "")],
    )
    def test_decode_rejects_mistyped_field(self, generator, field, value):
        data = challenge_codec.encode(generator.generate())
        data[field] = value
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode(data)

    def test_decode_rejects_non_object(self):
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode(["not", "an", "object"])


class TestSolutionTokens:
    def test_object_token(self, generator):
        challenge = generator.generate()
        token = {**challenge_codec.encode(challenge), "number": 7}
        assert challenge_codec.decode_solution(token) == (challenge, 7)

    def test_base64_token(self, generator):
        challenge = generator.generate()
        token = challenge_codec.encode_token(challenge, 7)
        assert challenge_codec.decode_solution(token) == (challenge, 7)

    def test_negative_number_decodes(self, generator):
        challenge = generator.generate()
        token = {**challenge_codec.encode(challenge), "number": -1}
        assert challenge_codec.decode_solution(token)[1] == -1

    @pytest.mark.parametrize("number", [None, "7", 7.5, True])
    def test_bad_number_is_malformed(self, generator, number):
        token = {**challenge_codec.encode(generator.generate()), "number": number}
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode_solution(token)

    @pytest.mark.parametrize(
        "token",
        [
            "not base64!",
            "abc",
            base64.b64encode(b"not json").decode(),
            base64.b64encode(json.dumps([1, 2]).encode()).decode(),
        ],
    )
    def test_bad_base64_token_is_malformed(self, token):
        with pytest.raises(MalformedChallenge):
            challenge_codec.decode_solution(token)
