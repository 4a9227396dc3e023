"""
hsmsigner Signing Configuration

Plain configuration values for the signing client. Values are resolved
by the caller (e.g. from environment variables); nothing here reads
process-global state.
"""

from __future__ import annotations

from typing import Any, Mapping

import attrs
from attrs import field, validators

from hsmsigner.retry.backoff import ExponentialBackoff
from hsmsigner.transport.channel import ProviderEndpoint

DEFAULT_API_VERSION = "2018-06-28"


@attrs.define(frozen=True, slots=True)
class SignerConfig:
    """
    Signing client configuration.

    Attributes:
        provider_uri: Module endpoint, ``unix://<socket path>`` or ``http://host:port``
        api_version: API version sent with every sign call
        max_attempts: Total attempts per sign call, including the first
        min_backoff: Delay before the first retry (seconds)
        max_backoff: Upper bound on any retry delay (seconds)
        delta_backoff: Exponential growth step (seconds)
        jitter_ratio: Random downward jitter fraction, 0 disables jitter
        timeout: Connection establishment timeout (seconds)
        buffer_size: Read buffer capacity (bytes)
    """

    provider_uri: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    api_version: str = field(
        default=DEFAULT_API_VERSION,
        validator=[validators.instance_of(str), validators.min_len(1)],
    )
    max_attempts: int = field(default=3, validator=[validators.instance_of(int), validators.ge(1)])
    min_backoff: float = 2.0
    max_backoff: float = 30.0
    delta_backoff: float = 3.0
    jitter_ratio: float = 0.0
    timeout: float = field(default=10.0, validator=validators.gt(0))
    buffer_size: int = field(default=2048, validator=validators.gt(0))

    @property
    def endpoint(self) -> ProviderEndpoint:
        """Parsed provider endpoint."""
        return ProviderEndpoint.parse(self.provider_uri)

    def backoff(self) -> ExponentialBackoff:
        """Build the backoff strategy described by this config."""
        return ExponentialBackoff(
            min_delay=self.min_backoff,
            max_delay=self.max_backoff,
            delta_delay=self.delta_backoff,
            jitter_ratio=self.jitter_ratio,
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SignerConfig":
        """
        Create config from a mapping of already-resolved values.

        Unknown keys are ignored; missing or None values take defaults.
        """
        names = {a.name for a in attrs.fields(cls)}
        kwargs = {k: v for k, v in values.items() if k in names and v is not None}
        return cls(**kwargs)
