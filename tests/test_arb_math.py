import math

import pytest

from CORE.arb_math import ArbMath


def test_price_divergence():
    assert ArbMath.price_divergence(100.0, 101.0) == pytest.approx(0.01)
    assert ArbMath.price_divergence(100.0, 99.0) == pytest.approx(0.01)


def test_price_divergence_undefined():
    assert ArbMath.price_divergence(None, 101.0) is None
    assert ArbMath.price_divergence(100.0, None) is None
    assert ArbMath.price_divergence(0.0, 101.0) is None
    assert ArbMath.price_divergence(math.nan, 101.0) is None


def test_funding_divergence():
    assert ArbMath.funding_divergence(0.0001, -0.0002) == pytest.approx(0.0003)
    assert ArbMath.funding_divergence(0.0001, None) is None


def test_convert_base_volume():
    assert ArbMath.convert_base_volume(100.0, 56.78) == pytest.approx(5678.0)
    assert ArbMath.convert_base_volume(100.0, None) is None
    assert ArbMath.convert_base_volume(None, 56.78) is None
