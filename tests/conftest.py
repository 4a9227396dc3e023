"""
Pytest configuration and shared fixtures for hsmsigner tests.
"""

import base64

import pytest

from hsmsigner.retry.backoff import ExponentialBackoff, StatusCodeClassifier
from hsmsigner.retry.executor import RetryExecutor
from hsmsigner.signing.client import SigningClient
from hsmsigner.signing.config import SignerConfig
from tests.fakes import ChannelScript, RecordingSleep, http_response


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================


@pytest.fixture
def signer_config() -> SignerConfig:
    """Config matching the production retry bounds."""
    return SignerConfig(
        provider_uri="unix:///var/run/iotedge/workload.sock",
        max_attempts=3,
        min_backoff=2.0,
        max_backoff=30.0,
        delta_backoff=3.0,
    )


@pytest.fixture
def backoff() -> ExponentialBackoff:
    return ExponentialBackoff(min_delay=2.0, max_delay=30.0, delta_delay=3.0)


# =============================================================================
# RETRY FIXTURES
# =============================================================================


@pytest.fixture
def sleep() -> RecordingSleep:
    """Sleep that returns immediately and records delays."""
    return RecordingSleep()


@pytest.fixture
def retry_executor(backoff: ExponentialBackoff, sleep: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(
        backoff=backoff,
        classifier=StatusCodeClassifier(),
        max_attempts=3,
        sleep=sleep,
    )


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def make_client(signer_config: SignerConfig, retry_executor: RetryExecutor):
    """Build a SigningClient whose attempts are served by a ChannelScript."""

    def _make(*responses: bytes) -> tuple:
        script = ChannelScript(responses)
        client = SigningClient(
            config=signer_config,
            retry=retry_executor,
            channel_factory=script,
        )
        return client, script

    return _make


@pytest.fixture
def digest_response() -> bytes:
    """200 response carrying digest bytes [1, 2, 3]."""
    return http_response(
        200,
        {"digest": base64.b64encode(bytes([1, 2, 3])).decode("ascii")},
        reason="OK",
    )


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring a running security module"
    )
