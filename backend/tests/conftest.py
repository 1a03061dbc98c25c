import os

# Must be set before powgate.config is imported
os.environ.setdefault("SIGNING_SECRET", "test-signing-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from powgate.main import app  # noqa: E402
from powgate.middleware.rate_limit import limiter  # noqa: E402
from powgate.services.challenge_generator import ChallengeGenerator, ChallengePolicy  # noqa: E402
from powgate.services.crypto_utils import KeyRing, SigningKey  # noqa: E402
from powgate.services.pow_service import PowService, get_pow_service  # noqa: E402
from powgate.services.solution_verifier import SolutionVerifier  # noqa: E402
from tests.test_utils import SECRET_NUMBER, FakeClock, FixedRandomSource  # noqa: E402


@pytest.fixture
def signing_key():
    return SigningKey(b"fixed-test-key")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def random_source():
    return FixedRandomSource(secret_number=SECRET_NUMBER)


@pytest.fixture
def policy():
    return ChallengePolicy()


@pytest.fixture
def generator(signing_key, policy, random_source, clock):
    return ChallengeGenerator(signing_key, policy, random_source, clock)


@pytest.fixture
def verifier(signing_key, policy, clock):
    return SolutionVerifier(signing_key, algorithm=policy.algorithm, clock=clock)


@pytest.fixture
def pow_service(signing_key, policy, random_source, clock):
    return PowService(
        key_ring=KeyRing(signing_key),
        policy=policy,
        random_source=random_source,
        clock=clock,
    )


@pytest.fixture
def client(pow_service):
    """Create a test client with a deterministic service and disabled rate limiting."""
    app.dependency_overrides[get_pow_service] = lambda: pow_service

    # Disable rate limiting for tests
    limiter.enabled = False

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
