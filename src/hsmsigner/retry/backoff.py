"""
hsmsigner Backoff Policy

Delay schedule between retries and transient error classification.

Schedule:
    delay(n) = min(max_delay, min_delay + delta_delay * (2**n - 1))

n is the retry index, starting at 0 for the first retry (the second
attempt). With jitter_ratio == 0 (the default) the schedule is
deterministic and non-decreasing.
"""

from __future__ import annotations

import random
from typing import Callable, Iterator, Protocol

import attrs
from attrs import field, validators

from hsmsigner.core.exceptions import HsmSignerError


# =============================================================================
# BACKOFF
# =============================================================================


def _max_not_below_min(instance: "ExponentialBackoff", attribute: attrs.Attribute, value: float) -> None:
    if value < instance.min_delay:
        raise ValueError(f"max_delay ({value}) must be >= min_delay ({instance.min_delay})")


@attrs.define(frozen=True, slots=True)
class ExponentialBackoff:
    """
    Exponential backoff strategy (seconds).

    INVARIANT: 0 <= min_delay <= max_delay, delta_delay >= 0
    INVARIANT: delay(n) <= max_delay for all n

    jitter_ratio scales each delay down by a random factor in
    [1 - jitter_ratio, 1]; it never pushes a delay above max_delay.
    """

    min_delay: float = field(default=2.0, validator=validators.ge(0))
    max_delay: float = field(default=30.0, validator=[validators.ge(0), _max_not_below_min])
    delta_delay: float = field(default=3.0, validator=validators.ge(0))
    jitter_ratio: float = field(default=0.0, validator=[validators.ge(0), validators.lt(1)])
    _random: Callable[[], float] = field(default=random.random, eq=False, repr=False)

    def delay(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        if retry_index < 0:
            raise ValueError("retry_index must be >= 0")

        # Past this point the exponential term alone exceeds any sane max
        if retry_index >= 62:
            base = self.max_delay
        else:
            base = min(self.max_delay, self.min_delay + self.delta_delay * (2**retry_index - 1))

        if self.jitter_ratio:
            base *= 1.0 - self.jitter_ratio * self._random()
        return base

    def schedule(self, retries: int) -> Iterator[float]:
        """Yield the delays for the first ``retries`` retries."""
        for n in range(retries):
            yield self.delay(n)


# =============================================================================
# CLASSIFIERS
# =============================================================================


class ErrorClassifier(Protocol):
    """Decides whether a failure may succeed if retried."""

    def is_transient(self, error: BaseException) -> bool:
        ...


@attrs.define(frozen=True, slots=True)
class StatusCodeClassifier:
    """
    Transient iff the error carries a response status >= threshold.

    Errors without a status code (validation, framing, connection
    failures) are never transient.
    """

    threshold: int = 500

    def is_transient(self, error: BaseException) -> bool:
        if not isinstance(error, HsmSignerError) or error.status_code is None:
            return False
        return error.status_code >= self.threshold

