"""
Wire form of challenges and solutions.

Wire layout (never change without a new domain tag):

- Signature pre-image: length-prefixed fields
  ("powgate-challenge-v1", algorithm, salt, target_hash, max_number, expires_at),
  each UTF-8 encoded behind a 4-byte big-endian length.
- Proof hash input: salt || decimal(number), UTF-8.
- Token: either the echoed JSON object or base64 of that object (Altcha payload form).
"""

import base64
import binascii
import json
import re
import struct
from collections.abc import Mapping

from powgate.models.challenge import Challenge
from powgate.services.errors import MalformedChallenge

DOMAIN_TAG = "powgate-challenge-v1"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def canonical_encoding(
    algorithm: str, salt: str, target_hash: str, max_number: int, expires_at: int
) -> bytes:
    """Unambiguous byte encoding of the signed challenge fields."""
    parts = (DOMAIN_TAG, algorithm, salt, target_hash, str(max_number), str(expires_at))
    out = bytearray()
    for part in parts:
        raw = part.encode("utf-8")
        out.extend(struct.pack(">I", len(raw)))
        out.extend(raw)
    return bytes(out)


def signing_input(challenge: Challenge) -> bytes:
    return canonical_encoding(
        challenge.algorithm,
        challenge.salt,
        challenge.target_hash,
        challenge.max_number,
        challenge.expires_at,
    )


def proof_input(salt: str, number: int) -> bytes:
    return f"{salt}{number}".encode("utf-8")


def encode(challenge: Challenge) -> dict:
    """Challenge -> wire dict. `challenge` mirrors `targetHash` for Altcha widgets."""
    return {
        "challenge": challenge.target_hash,
        "algorithm": challenge.algorithm,
        "salt": challenge.salt,
        "signature": challenge.signature,
        "targetHash": challenge.target_hash,
        "expires": challenge.expires_at,
        "maxNumber": challenge.max_number,
    }


def _require_str(data: Mapping, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedChallenge(f"{key}: expected non-empty string")
    return value


def _require_int(data: Mapping, key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedChallenge(f"{key}: expected integer")
    return value


def decode(data: Mapping) -> Challenge:
    """Wire dict -> Challenge. Raises MalformedChallenge on missing or mistyped fields."""
    if not isinstance(data, Mapping):
        raise MalformedChallenge("challenge: expected object")

    target_hash = data.get("targetHash")
    echoed = data.get("challenge")
    if target_hash is None and echoed is None:
        raise MalformedChallenge("targetHash: missing")
    if target_hash is not None and echoed is not None and target_hash != echoed:
        raise MalformedChallenge("targetHash and challenge disagree")

    return Challenge(
        algorithm=_require_str(data, "algorithm"),
        salt=_require_str(data, "salt"),
        target_hash=_require_str(data, "targetHash" if target_hash is not None else "challenge"),
        max_number=_require_int(data, "maxNumber"),
        expires_at=_require_int(data, "expires"),
        signature=_require_str(data, "signature"),
    )


def _decode_base64_token(token: str) -> Mapping:
    token = token.strip()
    if not _BASE64_RE.match(token) or len(token) % 4 != 0:
        raise MalformedChallenge("token: invalid base64")
    try:
        payload = json.loads(base64.b64decode(token, validate=True))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise MalformedChallenge("token: invalid base64 JSON payload")
    if not isinstance(payload, Mapping):
        raise MalformedChallenge("token: expected JSON object")
    return payload


def decode_solution(token: Mapping | str) -> tuple[Challenge, int]:
    """
    Decode a submitted token into (challenge, number).

    Negative numbers decode fine; range is the verifier's call.
    """
    if isinstance(token, str):
        token = _decode_base64_token(token)
    challenge = decode(token)
    number = _require_int(token, "number")
    return challenge, number


def encode_token(challenge: Challenge, number: int) -> str:
    """Base64 JSON token, as a browser widget would submit it."""
    payload = {**encode(challenge), "number": number}
    return base64.b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()
