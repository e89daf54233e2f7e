"""
Window function table for the SMD0 codec.
The same window is applied before the forward transform and after the
inverse transform so that 50% overlap-add cancels time-domain aliasing.
"""

import math
import numpy as np


def generate_vorbis_window(frequency_range: int) -> np.ndarray:
    """
    Generates the Vorbis (raised sine) window of length 2 * frequency_range.
    Formula: w[i] = sin(pi / 2 * sin^2(pi * i / (2L - 1))) for i < L,
    mirrored so that w[2L - 1 - i] = w[i], where L is frequency_range.
    """
    size = frequency_range << 1
    window = np.zeros(size, dtype=np.float64)
    for i in range(frequency_range):
        value = math.sin(math.pi / 2 * math.sin(math.pi * (i / (size - 1))) ** 2)
        window[i] = value
        window[size - 1 - i] = value
    return window
