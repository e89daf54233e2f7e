"""
Scale factor computation and logarithmic magnitude quantization for SMD0.

Every block carries a master scale (the largest in-band coefficient
magnitude) and one sub-band scale factor per band, counted in half-octave
steps below the master scale. Each transmitted coefficient is a 4-bit code:
a sign bit and a 3-bit mantissa giving further whole octaves below its
sub-band scale.
"""

import math
from typing import List, TYPE_CHECKING

import numpy as np

from pysmd0.common import constants

if TYPE_CHECKING:
    from .bitstream import SmdFrameData
    from .codec_data import SmdCodecData


def compute_master_scale(coeffs: np.ndarray, frequency_upper_limit: int) -> float:
    """Largest |coefficient| below the upper limit, never less than 1."""
    in_band = np.abs(coeffs[:frequency_upper_limit])
    return max(1.0, float(np.max(in_band))) if in_band.size else 1.0


def compute_sub_scales(
    coeffs: np.ndarray, master_scale: float, codec_data: "SmdCodecData"
) -> List[int]:
    """
    Computes the 4-bit sub-band scale factors of a block.

    For each band the peak magnitude (at least 1) is compared with the
    master scale; the factor is the number of half-octave steps between
    them, floored and clamped to 15.
    """
    sub_scales: List[int] = []
    for _, start, stop in codec_data.bands():
        band_max = max(1.0, float(np.max(np.abs(coeffs[start:stop])))) if stop > start else 1.0
        power = math.floor(
            min(-math.log2(band_max / master_scale) * 2, constants.SUB_SCALE_MAX)
        )
        sub_scales.append(max(0, power))
    return sub_scales


def dead_zone_threshold(sub_scale: int) -> float:
    """Smallest relative magnitude the 3-bit mantissa can represent in a band."""
    return 2.0 ** (constants.DEAD_ZONE_EXPONENT - sub_scale * 0.5)


def compute_frequency_powers(
    coeffs: np.ndarray,
    master_scale: float,
    sub_scales: List[int],
    codec_data: "SmdCodecData",
) -> np.ndarray:
    """
    Relative magnitudes |coef| / master for every in-band coefficient,
    with values at or below their band's dead-zone threshold zeroed.
    """
    powers = np.abs(coeffs[: codec_data.frequency_upper_limit]) / master_scale
    thresholds = np.array(
        [dead_zone_threshold(sub_scales[band]) for band in codec_data.band_index],
        dtype=np.float64,
    )
    powers[powers <= thresholds] = 0.0
    return powers


def quantize_magnitude(value: float, sub_scale: int) -> int:
    """
    Encodes a relative coefficient value (coef / master) as a 4-bit code:
    sign bit 0x8 for negative values, plus
    ceil(min(-log2(|value|) - sub_scale / 2, 7)) in the low 3 bits.
    """
    signed = constants.SIGN_BIT if value < 0 else 0
    magnitude = abs(value)
    if magnitude == 0:
        return signed | constants.MANTISSA_MAX
    mantissa = math.ceil(
        min(-math.log2(magnitude) - sub_scale * 0.5, constants.MANTISSA_MAX)
    )
    return signed | min(max(mantissa, 0), constants.MANTISSA_MAX)


def dequantize_magnitude(code: int, sub_scale: int, master_scale: float) -> float:
    """Inverse of quantize_magnitude, scaled back by the master scale."""
    power = 2.0 ** (-(code & constants.MANTISSA_MAX) - sub_scale * 0.5) * master_scale
    return -power if code & constants.SIGN_BIT else power


def dequantize_frame(frame_data: "SmdFrameData", codec_data: "SmdCodecData") -> np.ndarray:
    """Rebuilds the sparse coefficient array of one block."""
    coeffs = np.zeros(codec_data.frequency_range, dtype=np.float64)
    for index, code in zip(frame_data.selected_indices, frame_data.magnitude_codes):
        sub_scale = frame_data.sub_scales[codec_data.band_index[index]]
        coeffs[index] = dequantize_magnitude(code, sub_scale, frame_data.master_scale)
    return coeffs
