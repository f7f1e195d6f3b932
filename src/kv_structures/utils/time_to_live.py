import math
import time
from numbers import Real
from typing import Any

from kv_structures.errors import InvalidTTLError


def now_as_epoch_ms() -> float:
    """Get the current time as epoch milliseconds."""
    return time.time() * 1000


def deadline_from_ttl(ttl_ms: float) -> float:
    """Get the absolute deadline (epoch milliseconds) for a TTL given in milliseconds."""
    return now_as_epoch_ms() + ttl_ms


def ms_until(deadline: float) -> float:
    """Get the number of milliseconds between now and an epoch-milliseconds deadline."""
    return deadline - now_as_epoch_ms()


def prepare_ttl(t: Any) -> int:
    """Validate a TTL in milliseconds and return it as a whole number of milliseconds.

    If the provided TTL is not a real number, or is a bool, an InvalidTTLError will be raised. A bool is
    rejected because `ttl=True` would become a 1ms TTL, which is likely not what the caller intended.
    Non-positive and NaN TTLs are rejected as well. Fractional milliseconds are rounded up.
    """
    if not isinstance(t, Real) or isinstance(t, bool):
        raise InvalidTTLError(ttl=t, extra_info={"type": type(t).__name__})

    ttl = float(t)

    if math.isnan(ttl) or ttl <= 0:
        raise InvalidTTLError(ttl=t)

    if math.isinf(ttl):
        raise InvalidTTLError(ttl=t)

    return math.ceil(ttl)
