"""
Main SMD0 Encoder class, orchestrating all sub-components.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from pysmd0.common import constants
from pysmd0.common.debug_logger import log_debug, log_bitstream
from pysmd0.core.bitstream import SmdFrameData, SmdFrameWriter
from pysmd0.core.codec_data import SmdCodecData, SmdConfigError
from pysmd0.core.frequency_selection import pad_selection, select_frequencies
from pysmd0.core.mdct import MDCT
from pysmd0.core.scaling_quantization import (
    compute_frequency_powers,
    compute_master_scale,
    compute_sub_scales,
    quantize_magnitude,
)
from pysmd0.smd.header import SmdHeader


class SmdEncoder:
    """
    Encodes multichannel PCM into an SMD0 stream held in a growable buffer.

    Samples are accepted in any amount per call; they are grouped into
    blocks of `frequency_range` samples per channel and each block is
    written as one frame.
    """

    def __init__(
        self,
        sample_rate: int,
        num_channels: int,
        frequency_range: int = constants.DEFAULT_FREQUENCY_RANGE,
        frequency_upper_limit: Optional[int] = None,
        frequency_table_size: Optional[int] = None,
        init_sample_count: int = constants.DEFAULT_INIT_SAMPLE_COUNT,
    ):
        """
        Validates the configuration and writes the initial stream header.

        Args:
            sample_rate: Sample rate recorded in the header.
            num_channels: Number of channels passed to every write().
            frequency_range: Block size in samples (half the window length).
            frequency_upper_limit: Coefficients at or above this index are never
                encoded. Defaults to frequency_range.
            frequency_table_size: Coefficients kept per block and channel.
                Defaults to frequency_range / 4.
            init_sample_count: Sizing hint for the initial buffer.

        Raises:
            SmdConfigError: if any argument is out of range.
        """
        if frequency_upper_limit is None:
            frequency_upper_limit = frequency_range
        if frequency_table_size is None:
            frequency_table_size = frequency_range >> 2

        if sample_rate <= 0 or sample_rate > constants.UINT32_MAX:
            raise SmdConfigError(f"Sample rate must be a positive 32-bit value, got {sample_rate}")
        if init_sample_count < 0:
            raise SmdConfigError(f"Initial sample count must not be negative, got {init_sample_count}")

        self.codec_data = SmdCodecData(
            num_channels, frequency_range, frequency_upper_limit, frequency_table_size
        )
        self.sample_rate = sample_rate
        self.mdct_processor = MDCT(frequency_range)
        self.frame_writer = SmdFrameWriter(self.codec_data)
        self.frame_count = 0

        init_buffer_size = constants.HEADER_SIZE + (
            constants.FRAME_OFFSET_DATA + (frequency_range // 32) * 4 + frequency_table_size
        ) * num_channels * math.ceil(init_sample_count / frequency_range)
        self.data = bytearray(max(init_buffer_size, constants.HEADER_SIZE))

        self.header = SmdHeader(
            sample_rate=sample_rate,
            num_channels=num_channels,
            frequency_range=frequency_range,
            frequency_upper_limit=frequency_upper_limit,
            frequency_table_size=frequency_table_size,
        )
        self.header.pack_into(self.data)

        # Scaled input of the previous block, the first half of the next window
        self.prev_inputs = [np.zeros(frequency_range, dtype=np.float64) for _ in range(num_channels)]
        # Samples waiting for a full block
        self.work_buffers = [np.zeros(frequency_range, dtype=np.float64) for _ in range(num_channels)]
        self.work_buffer_offset = 0

    @property
    def num_channels(self) -> int:
        return self.codec_data.num_channels

    @property
    def frequency_range(self) -> int:
        return self.codec_data.frequency_range

    def ensure_capacity(self, size: int):
        """Grows the backing buffer by doubling until it holds `size` bytes."""
        capacity = len(self.data)
        if size <= capacity:
            return
        while capacity < size:
            capacity <<= 1
        self.data.extend(bytes(capacity - len(self.data)))

    def _next_frame(self):
        self.frame_count += 1
        self.ensure_capacity(self.get_data_size())

    def _encode_single_channel(self, current: np.ndarray, channel_idx: int, frame_idx: int) -> SmdFrameData:
        """
        Analyzes one channel of the current block, given its scaled samples.
        Encoder state is left untouched.
        """
        codec_data = self.codec_data

        log_debug("PCM_INPUT", "samples", current,
                  channel=channel_idx, frame=frame_idx, algorithm="overlap_assembly")

        samples = np.concatenate((self.prev_inputs[channel_idx], current)) * codec_data.window

        coeffs = self.mdct_processor(samples)
        log_debug("MDCT_COEFFS", "coeffs", coeffs,
                  channel=channel_idx, frame=frame_idx, algorithm="mdct")

        master_scale = compute_master_scale(coeffs, codec_data.frequency_upper_limit)
        if master_scale > constants.UINT32_MAX:
            raise ValueError(
                f"Channel {channel_idx} peak coefficient {master_scale:.6g} does not fit the "
                f"32-bit master scale; input samples must lie within [-1, 1]"
            )
        sub_scales = compute_sub_scales(coeffs, master_scale, codec_data)
        log_debug("MASTER_SCALE", "value", master_scale,
                  channel=channel_idx, frame=frame_idx, stored=int(master_scale))
        log_debug("SUB_SCALES", "scales", sub_scales,
                  channel=channel_idx, frame=frame_idx, bands=codec_data.sub_scale_count)

        powers = compute_frequency_powers(coeffs, master_scale, sub_scales, codec_data)
        selected = select_frequencies(powers, codec_data.frequency_table_size)
        if codec_data.is_index_mode:
            selected = pad_selection(
                selected, codec_data.frequency_upper_limit, codec_data.frequency_table_size
            )
        log_debug("FREQUENCY_SELECTION", "indices", selected,
                  channel=channel_idx, frame=frame_idx,
                  selector_mode=codec_data.selector_mode.value, count=len(selected))

        frame_data = SmdFrameData()
        frame_data.master_scale = int(master_scale)
        frame_data.sub_scales = sub_scales
        frame_data.selected_indices = selected
        frame_data.magnitude_codes = [
            quantize_magnitude(
                coeffs[index] / master_scale, sub_scales[codec_data.band_index[index]]
            )
            for index in selected
        ]
        return frame_data

    def _check_input(self, input_data: Sequence[np.ndarray], start: int, length: int) -> List[np.ndarray]:
        """Returns the first num_channels inputs as float arrays holding start + length samples each."""
        if len(input_data) < self.num_channels:
            raise ValueError(
                f"Expected {self.num_channels} channels of input, got {len(input_data)}"
            )
        if length < 0 or start < 0:
            raise ValueError(f"Invalid sample range: start={start}, length={length}")
        sources = [
            np.asarray(input_data[channel_idx], dtype=np.float64)
            for channel_idx in range(self.num_channels)
        ]
        for channel_idx, source in enumerate(sources):
            if len(source) < start + length:
                raise ValueError(
                    f"Channel {channel_idx} holds {len(source)} samples, "
                    f"expected at least {start + length}"
                )
        return sources

    def write_frame(self, input_data: Sequence[np.ndarray], start: int = 0, length: Optional[int] = None):
        """
        Encodes exactly one block: `length` samples per channel from `start`,
        zero-padded to a full block.

        Every channel is analyzed before anything is written, so a rejected
        block leaves the stream and the encoder state unchanged.
        """
        frequency_range = self.frequency_range
        if length is None:
            length = frequency_range
        if not 0 <= length <= frequency_range:
            raise ValueError(
                f"Block length must be between 0 and {frequency_range}, got {length}"
            )
        sources = self._check_input(input_data, start, length)

        frame_idx = self.frame_count
        blocks = []
        frames = []
        for channel_idx, source in enumerate(sources):
            current = np.zeros(frequency_range, dtype=np.float64)
            current[:length] = source[start:start + length] * constants.SAMPLE_SCALE
            blocks.append(current)
            frames.append(self._encode_single_channel(current, channel_idx, frame_idx))

        self._next_frame()
        codec_data = self.codec_data
        for channel_idx, frame_data in enumerate(frames):
            offset = codec_data.frame_offset(frame_idx, channel_idx)
            self.frame_writer.write_frame(self.data, offset, frame_data)
            log_bitstream("FRAME_BYTES", self.data[offset: offset + codec_data.block_size],
                          channel=channel_idx, frame=frame_idx, algorithm="frame_writer")
            # Scaled current half becomes the first half of the next window
            self.prev_inputs[channel_idx] = blocks[channel_idx]

    def write(self, input_data: Sequence[np.ndarray], start: int = 0, length: Optional[int] = None):
        """
        Appends samples to the stream.

        Args:
            input_data: One 1-D array-like per channel (at least num_channels).
            start: Index of the first sample to consume in every channel.
            length: Number of samples to consume; defaults to the rest of the
                first channel.
        """
        if len(input_data) < self.num_channels:
            raise ValueError(
                f"Expected {self.num_channels} channels of input, got {len(input_data)}"
            )
        if length is None:
            length = len(input_data[0]) - start
        sources = self._check_input(input_data, start, length)

        frequency_range = self.frequency_range

        # Top up the pending block first
        if self.work_buffer_offset > 0:
            write_size = min(frequency_range - self.work_buffer_offset, length)
            end = self.work_buffer_offset + write_size
            for work_buffer, source in zip(self.work_buffers, sources):
                work_buffer[self.work_buffer_offset:end] = source[start:start + write_size]
            if end >= frequency_range:
                self.write_frame(self.work_buffers)
                self.work_buffer_offset = 0
            else:
                self.work_buffer_offset = end
            start += write_size
            length -= write_size

        while length >= frequency_range:
            self.write_frame(sources, start)
            start += frequency_range
            length -= frequency_range

        if length > 0:
            for work_buffer, source in zip(self.work_buffers, sources):
                work_buffer[:length] = source[start:start + length]
            self.work_buffer_offset = length

    def flush(self):
        """Zero-pads and encodes a pending partial block, if any."""
        if self.work_buffer_offset > 0:
            for work_buffer in self.work_buffers:
                work_buffer[self.work_buffer_offset:] = 0.0
            self.write_frame(self.work_buffers)
            self.work_buffer_offset = 0

    def get_data_size(self) -> int:
        """Size in bytes of the header plus every frame written so far."""
        return self.codec_data.data_size(self.frame_count)

    def get_buffer(self) -> bytes:
        """
        Refreshes the header's size and count fields and returns a snapshot
        of the finished stream.
        """
        data_size = self.get_data_size()
        self.header.data_size = data_size
        self.header.sample_count = self.frequency_range * self.frame_count
        self.header.frame_count = self.frame_count
        self.header.pack_into(self.data)
        return bytes(self.data[:data_size])
