"""Errors raised by the challenge protocol core."""


class SigningKeyError(RuntimeError):
    """The signing secret is missing or unusable. Fatal at startup."""


class InvalidHints(ValueError):
    """Client hints failed validation (e.g. negative TTL)."""


class MalformedChallenge(ValueError):
    """A submitted challenge or token could not be decoded."""
