"""
Codec Data Initialization for SMD0.
This module defines the SmdCodecData class, which validates a stream's
geometry and holds everything derived from it: the window table, the
selector mode, the sub-band layout and the frame block offsets.
The encoder and the decoder each own one instance.

Sub-bands: with b = index_bit_size there are min(b, 7) + 1 bands and the
last one always ends at the upper limit. Layouts that use min(b, 8) bands
instead end their last band at half the upper limit whenever b <= 7, so
their sub-scale nibbles are not interchangeable with these.
"""

from enum import Enum
from typing import Iterator, List, Tuple

import numpy as np

from pysmd0.common import constants
from pysmd0.common.utils import ceil_log2, round_up
from pysmd0.tables.window_table import generate_vorbis_window


class SmdConfigError(ValueError):
    """Raised when a stream geometry or encoder configuration is invalid."""

    pass


class SelectorMode(Enum):
    """How a frame block records which coefficients were kept."""

    BITMAP = "bitmap"
    INDEX = "index"


class SmdCodecData:
    """
    Manages and provides access to the per-stream geometry of SMD0.

    All values are pure functions of (num_channels, frequency_range,
    frequency_upper_limit, frequency_table_size), so an encoder and a decoder
    reading its output derive identical layouts.
    """

    def __init__(
        self,
        num_channels: int,
        frequency_range: int,
        frequency_upper_limit: int,
        frequency_table_size: int,
    ):
        """
        Validates the geometry and computes the derived tables.

        Raises:
            SmdConfigError: if any value is out of range or misaligned.
        """
        if num_channels <= 0:
            raise SmdConfigError(f"Channel count must be positive, got {num_channels}")
        if num_channels > constants.UINT16_MAX:
            raise SmdConfigError(f"Channel count {num_channels} does not fit 16 bits")
        if frequency_range <= 0 or frequency_range % constants.FREQUENCY_RANGE_ALIGNMENT != 0:
            raise SmdConfigError(
                f"Frequency range must be a positive multiple of "
                f"{constants.FREQUENCY_RANGE_ALIGNMENT}, got {frequency_range}"
            )
        if frequency_range > constants.UINT16_MAX:
            raise SmdConfigError(f"Frequency range {frequency_range} does not fit 16 bits")
        if not 0 < frequency_upper_limit <= frequency_range:
            raise SmdConfigError(
                f"Frequency upper limit must be in [1, {frequency_range}], got {frequency_upper_limit}"
            )
        if (
            frequency_table_size <= 0
            or frequency_table_size % constants.FREQUENCY_TABLE_ALIGNMENT != 0
        ):
            raise SmdConfigError(
                f"Frequency table size must be a positive multiple of "
                f"{constants.FREQUENCY_TABLE_ALIGNMENT}, got {frequency_table_size}"
            )
        if frequency_table_size > constants.UINT16_MAX:
            raise SmdConfigError(f"Frequency table size {frequency_table_size} does not fit 16 bits")

        self.num_channels = num_channels
        self.frequency_range = frequency_range
        self.frequency_upper_limit = frequency_upper_limit
        self.frequency_table_size = frequency_table_size

        self.index_bit_size = ceil_log2(frequency_upper_limit)
        self.indices_size = round_up(
            self.index_bit_size * frequency_table_size, constants.SELECTOR_WORD_BITS
        )
        self.bitmap_bits = round_up(frequency_upper_limit, constants.SELECTOR_WORD_BITS)

        # 2^index_bit_size is the bitmap cost estimate
        if (1 << self.index_bit_size) <= self.indices_size:
            self.selector_mode = SelectorMode.BITMAP
            self.selector_bytes = self.bitmap_bits // 8
        else:
            self.selector_mode = SelectorMode.INDEX
            self.selector_bytes = self.indices_size // 8

        self.block_size = (
            constants.FRAME_OFFSET_DATA + self.selector_bytes + (frequency_table_size >> 1)
        )

        shift = min(self.index_bit_size, constants.MAX_SUB_SCALE_SHIFT)
        self.sub_scale_count = shift + 1
        self.band_edges: List[int] = [0] + [
            (frequency_upper_limit << j) >> shift for j in range(self.sub_scale_count)
        ]
        self.band_index = np.zeros(frequency_upper_limit, dtype=np.int64)
        for band, start, stop in self.bands():
            self.band_index[start:stop] = band

        self.window = generate_vorbis_window(frequency_range)

    @property
    def is_index_mode(self) -> bool:
        return self.selector_mode is SelectorMode.INDEX

    def bands(self) -> Iterator[Tuple[int, int, int]]:
        """Yields (band, start, stop) for each sub-band, in ascending frequency order."""
        for band in range(self.sub_scale_count):
            yield band, self.band_edges[band], self.band_edges[band + 1]

    def frame_offset(self, frame: int, channel: int) -> int:
        """Byte offset of the block holding `channel` of `frame`."""
        return constants.HEADER_SIZE + self.block_size * (
            self.num_channels * frame + channel
        )

    def data_size(self, frame_count: int) -> int:
        """Total stream size in bytes for `frame_count` frames."""
        return self.frame_offset(frame_count, 0)
