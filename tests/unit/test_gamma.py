"""
Unit tests for the sRGB gamma codec
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from density import gamma


class TestGammaCodec:
    """Scalar and array behaviour of decode/encode"""

    def test_round_trip_within_one_step(self):
        """encode(decode(b)) stays within 1 of b over the whole byte range"""
        for b in range(256):
            assert abs(gamma.encode(gamma.decode(b)) - b) <= 1

    def test_array_round_trip_within_one_step(self):
        """Array form agrees with the scalar contract"""
        b = np.arange(256, dtype=np.uint8)
        back = gamma.encode(gamma.decode(b)).astype(int)
        assert np.max(np.abs(back - b.astype(int))) <= 1

    def test_decode_monotonic(self):
        """decode never decreases"""
        lin = gamma.decode(np.arange(256, dtype=np.uint8))
        assert np.all(np.diff(lin) >= 0)

    def test_endpoints(self):
        """Black and white map to 0 and 1 exactly"""
        assert gamma.decode(0) == 0.0
        assert gamma.decode(255) == pytest.approx(1.0)
        assert gamma.encode(0.0) == 0
        assert gamma.encode(1.0) == 255

    def test_encode_clamps(self):
        """Out-of-range and NaN inputs are clamped before quantizing"""
        assert gamma.encode(-0.5) == 0
        assert gamma.encode(3.0) == 255
        assert gamma.encode(float("nan")) == 0
        out = gamma.encode(np.array([-1.0, 0.5, 2.0], dtype=np.float32))
        assert out.dtype == np.uint8
        assert out[0] == 0 and out[2] == 255

    def test_mid_grey_is_not_linear(self):
        """Half linear intensity encodes well above 128 (sRGB ~188)"""
        assert gamma.encode(0.5) == pytest.approx(188, abs=1)
        assert gamma.decode(128) == pytest.approx(0.2158, abs=1e-3)

    def test_scalar_types(self):
        """Scalars come back as plain Python numbers"""
        assert isinstance(gamma.decode(10), float)
        assert isinstance(gamma.encode(0.1), int)
