"""
Implements the Modified Discrete Cosine Transform (MDCT) and its inverse (IMDCT)
used by the SMD0 codec. A block of 2N windowed time samples maps to N
coefficients and back; consecutive inverse blocks overlapped by N samples
cancel each other's time-domain aliasing (TDAC).
"""

from functools import lru_cache

import numpy as np


@lru_cache(maxsize=None)
def _mdct_basis(n: int) -> np.ndarray:
    """
    Cosine basis of shape (n, 2n):
    basis[k, i] = cos(pi / n * (i + 1/2 + n/2) * (k + 1/2))
    """
    time_index = np.arange(2 * n, dtype=np.float64) + 0.5 + n / 2.0
    freq_index = np.arange(n, dtype=np.float64) + 0.5
    basis = np.cos(np.pi / n * np.outer(freq_index, time_index))
    basis.setflags(write=False)
    return basis


class NMDCTBase:
    def __init__(self, n: int):
        if n <= 0 or n % 2:
            raise ValueError(f"Transform size must be a positive even number, got {n}")
        self.N = n
        self.basis = _mdct_basis(n)


class MDCT(NMDCTBase):
    """Forward transform: 2N time samples -> N coefficients."""

    def __call__(self, input_signal: np.ndarray) -> np.ndarray:
        input_signal = np.asarray(input_signal, dtype=np.float64)
        if input_signal.shape != (2 * self.N,):
            raise ValueError(
                f"MDCT input must have {2 * self.N} samples, got shape {input_signal.shape}"
            )
        return self.basis @ input_signal


class IMDCT(NMDCTBase):
    """
    Inverse transform: N coefficients -> 2N time samples, scaled by 2/N.

    With a window satisfying w[n]^2 + w[n + N]^2 = 1 applied on both sides,
    overlap-adding consecutive outputs restores the input.
    """

    def __call__(self, input_coeffs: np.ndarray) -> np.ndarray:
        input_coeffs = np.asarray(input_coeffs, dtype=np.float64)
        if input_coeffs.shape != (self.N,):
            raise ValueError(
                f"IMDCT input must have {self.N} coefficients, got shape {input_coeffs.shape}"
            )
        return (self.basis.T @ input_coeffs) * (2.0 / self.N)
