import numpy as np
import pytest

from pysmd0.core.bitstream import SmdFrameData
from pysmd0.core.codec_data import SmdCodecData
from pysmd0.core.scaling_quantization import (
    compute_frequency_powers,
    compute_master_scale,
    compute_sub_scales,
    dead_zone_threshold,
    dequantize_frame,
    dequantize_magnitude,
    quantize_magnitude,
)


@pytest.fixture
def codec_data():
    return SmdCodecData(1, 32, 32, 8)


class TestScaleFactors:
    def test_master_scale_is_in_band_peak(self):
        """Only coefficients below the upper limit count."""
        coeffs = np.array([0.5, -3.0, 2.0, 100.0])
        assert compute_master_scale(coeffs, 3) == 3.0

    def test_master_scale_floor(self):
        """Quiet blocks use a master scale of 1."""
        assert compute_master_scale(np.full(8, 0.25), 8) == 1.0
        assert compute_master_scale(np.zeros(8), 8) == 1.0

    def test_sub_scales_count_half_octaves(self, codec_data):
        """Sub scales are floor(-2 log2(band peak / master)), clamped to 15."""
        coeffs = np.zeros(32)
        coeffs[0] = 1024.0
        coeffs[1] = -256.0
        coeffs[3] = 512.0
        coeffs[10] = 128.0
        assert compute_sub_scales(coeffs, 1024.0, codec_data) == [0, 4, 2, 15, 6, 15]

    def test_sub_scales_of_silence(self, codec_data):
        """A silent block has every sub scale at 0."""
        assert compute_sub_scales(np.zeros(32), 1.0, codec_data) == [0] * 6

    def test_dead_zone_threshold(self):
        """The threshold is 2^(-7 - sub/2)."""
        assert dead_zone_threshold(0) == 2.0 ** -7
        assert dead_zone_threshold(4) == 2.0 ** -9
        assert dead_zone_threshold(3) == pytest.approx(2.0 ** -8.5)


class TestFrequencyPowers:
    def test_dead_zone_zeroes_small_coefficients(self, codec_data):
        """Values at or below the band threshold get zero power."""
        coeffs = np.zeros(32)
        coeffs[0] = -1024.0
        coeffs[4] = 1.0
        coeffs[5] = -4.0
        coeffs[6] = 2.0
        sub_scales = [0, 0, 0, 4, 0, 0]

        powers = compute_frequency_powers(coeffs, 1024.0, sub_scales, codec_data)

        assert powers.shape == (32,)
        assert powers[0] == 1.0
        assert powers[4] == 0.0
        assert powers[5] == 2.0 ** -8
        assert powers[6] == 0.0
        assert np.all(powers >= 0.0)

    def test_powers_stop_at_upper_limit(self):
        """Coefficients above the upper limit are not candidates."""
        codec_data = SmdCodecData(1, 64, 40, 8)
        coeffs = np.ones(64)
        powers = compute_frequency_powers(coeffs, 1.0, [0] * codec_data.sub_scale_count, codec_data)
        assert powers.shape == (40,)


class TestMagnitudeCodes:
    @pytest.mark.parametrize(
        "value,sub_scale,expected",
        [
            (1.0, 0, 0x0),
            (-0.25, 0, 0x8 | 2),
            (0.3, 1, 0x2),
            (2.0 ** -20, 0, 0x7),
            (-(2.0 ** -20), 0, 0xF),
            (1.0, 4, 0x0),
            (0.0, 0, 0x7),
        ],
    )
    def test_quantize(self, value, sub_scale, expected):
        """Codes hold a sign bit and a clamped 3-bit mantissa."""
        assert quantize_magnitude(value, sub_scale) == expected

    def test_dequantize(self):
        """Codes decode to +/-2^(-mantissa - sub/2) * master."""
        assert dequantize_magnitude(0x2, 1, 100.0) == pytest.approx(100.0 * 2.0 ** -2.5)
        assert dequantize_magnitude(0x8 | 2, 0, 4.0) == -1.0
        assert dequantize_magnitude(0x0, 0, 7.0) == 7.0

    def test_error_within_one_octave(self):
        """Unclamped values decode to between half and all of their magnitude."""
        rng = np.random.default_rng(3)
        values = rng.uniform(2.0 ** -6, 1.0, 200) * rng.choice([-1.0, 1.0], 200)
        for value in values:
            decoded = dequantize_magnitude(quantize_magnitude(value, 0), 0, 1.0)
            assert np.sign(decoded) == np.sign(value)
            assert abs(value) / 2 < abs(decoded) <= abs(value) * (1 + 1e-12)

    def test_dequantize_frame(self, codec_data):
        """Selected coefficients are placed at their indices, the rest stay zero."""
        frame_data = SmdFrameData()
        frame_data.master_scale = 8
        frame_data.sub_scales = [0, 2, 0, 0, 0, 0]
        frame_data.selected_indices = [1, 5]
        frame_data.magnitude_codes = [0x1, 0x8]

        coeffs = dequantize_frame(frame_data, codec_data)

        expected = np.zeros(32)
        expected[1] = 2.0
        expected[5] = -8.0
        np.testing.assert_allclose(coeffs, expected)
