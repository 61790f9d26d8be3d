from typing import Protocol

from ratewatch.models import RateLimitSnapshot


class RateLimitClient(Protocol):
    """
    RateLimitClient stands as the common protocol for anything that
    can query the account's current rate-limit state over the network.

    Implementations perform exactly one request per call and raise
    RateLimitFetchError on any failure.
    """

    @property
    def name(self) -> "str": ...

    async def fetch_rate_limits(self) -> "RateLimitSnapshot": ...

    async def close(self) -> "None": ...
