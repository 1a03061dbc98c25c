import hashlib
import hmac
from dataclasses import dataclass, field

from powgate.services.errors import SigningKeyError

# Wire identifier -> hashlib constructor name
DIGESTS = {
    "SHA-256": "sha256",
    "SHA-384": "sha384",
    "SHA-512": "sha512",
}

APP_KEY_LABEL = b"powgate/app-key/v1"


def hash_hex(algorithm: str, data: bytes) -> str:
    """Hex digest of data using a wire algorithm identifier."""
    name = DIGESTS.get(algorithm)
    if name is None:
        raise ValueError(f"Unsupported algorithm: {algorithm}")
    return hashlib.new(name, data).hexdigest()


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without leaking the position of the first mismatch."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


@dataclass(frozen=True)
class SigningKey:
    """
    Secret used for challenge signatures (HMAC-SHA256).

    Immutable once built. The secret never appears in repr or logs.
    """

    secret: bytes = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.secret, bytes) or not self.secret:
            raise SigningKeyError("Signing secret is missing or empty")

    @classmethod
    def from_secret(cls, secret: str | bytes | None) -> "SigningKey":
        if secret is None:
            raise SigningKeyError("Signing secret is not configured")
        if isinstance(secret, str):
            if not secret.strip():
                raise SigningKeyError("Signing secret is blank")
            secret = secret.encode("utf-8")
        return cls(secret)

    def sign(self, message: bytes) -> bytes:
        return hmac.new(self.secret, message, hashlib.sha256).digest()

    def verify(self, message: bytes, tag_hex: str) -> bool:
        """Check a hex tag against the expected signature in constant time."""
        return constant_time_equals(self.sign(message).hex(), tag_hex)

    def derive(self, label: bytes) -> "SigningKey":
        """Derive an independent sub-key bound to label."""
        return SigningKey(self.sign(label))


class KeyRing:
    """
    Resolves the signing key for an application id.

    With per-app keys disabled every app shares the master key; enabled, each
    app gets HMAC(master, label || app_id) so a leaked app key cannot sign
    for other apps.
    """

    def __init__(self, master: SigningKey, per_app_keys: bool = False):
        self._master = master
        self._per_app_keys = per_app_keys

    @property
    def per_app_keys(self) -> bool:
        return self._per_app_keys

    def for_app(self, app_id: str) -> SigningKey:
        if not self._per_app_keys:
            return self._master
        return self._master.derive(APP_KEY_LABEL + b"\x00" + app_id.encode("utf-8"))

    def __repr__(self) -> str:
        return f"KeyRing(per_app_keys={self._per_app_keys})"
