import math

import pytest
from dirty_equals import IsFloat

from kv_structures.errors import InvalidTTLError
from kv_structures.utils.time_to_live import deadline_from_ttl, ms_until, now_as_epoch_ms, prepare_ttl


def test_prepare_ttl():
    assert prepare_ttl(100) == 100
    assert prepare_ttl(1.2) == 2


@pytest.mark.parametrize("ttl", [0, -1, -0.5, math.nan, math.inf])
def test_prepare_ttl_rejects_out_of_range(ttl: float):
    with pytest.raises(InvalidTTLError):
        prepare_ttl(ttl)


@pytest.mark.parametrize("ttl", [True, "100", None])
def test_prepare_ttl_rejects_non_numbers(ttl: object):
    with pytest.raises(InvalidTTLError, match="type"):
        prepare_ttl(ttl)


def test_deadline_round_trip():
    deadline = deadline_from_ttl(ttl_ms=1000)

    assert deadline == IsFloat(approx=now_as_epoch_ms() + 1000, delta=50)
    assert ms_until(deadline) == IsFloat(approx=1000, delta=50)
