import pytest
from pydantic import ValidationError

from meddelivery.config import Settings
from meddelivery.fees import compute_fee


def test_defaults():
    s = Settings(_env_file=None)
    assert s.base_fee == 5000
    assert s.per_km_rate == 2000
    assert s.log_level == "INFO"


@pytest.mark.parametrize("rate", [0, -5, 50, 99])
def test_per_km_rate_below_distance_resolution_rejected(rate):
    with pytest.raises(ValidationError, match="per_km_rate"):
        Settings(_env_file=None, per_km_rate=rate)


def test_lowest_accepted_rate_keeps_fee_increasing():
    s = Settings(_env_file=None, per_km_rate=100)
    fees = [compute_fee(d, base_fee=s.base_fee, per_km_rate=s.per_km_rate) for d in (0, 0.01, 0.02, 0.03)]
    assert all(a < b for a, b in zip(fees, fees[1:]))


def test_negative_base_fee_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, base_fee=-1)


def test_log_level_normalized_and_checked():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="verbose")
