from typing import Protocol

from usagesync.models import UsageSnapshot


class UsageSource(Protocol):
    """
    UsageSource stands as the protocol the controller drives to
    obtain a rate-limit snapshot for a bearer token.

    Implementations raise AuthExpiredError, HttpFailureError or
    TransportFailureError; they never retry.
    """

    async def fetch_usage(self, token: "str") -> "UsageSnapshot": ...

    async def close(self) -> "None": ...
