"""
Main SMD0 Decoder class, orchestrating all sub-components for playback.
"""

from typing import Optional, Sequence, Union

import numpy as np

from pysmd0.common import constants
from pysmd0.common.debug_logger import log_debug, log_bitstream
from pysmd0.core.bitstream import SmdFrameReader
from pysmd0.core.codec_data import SmdCodecData, SmdConfigError
from pysmd0.core.mdct import IMDCT
from pysmd0.core.scaling_quantization import dequantize_frame
from pysmd0.smd.header import SmdHeader, SmdHeaderError


class SmdDecoder:
    """
    Decodes an SMD0 stream back into PCM.

    The frame cursor wraps around after the last frame, so read() can be
    called indefinitely for looped playback. Callers wanting a finite
    rendition stop after frame_count blocks.
    """

    def __init__(self, buffer: Union[bytes, bytearray, memoryview]):
        """
        Parses and validates the stream header.

        Args:
            buffer: The complete stream. It is borrowed read-only for the
                decoder's lifetime.

        Raises:
            SmdHeaderError: if the header is malformed or inconsistent.
        """
        self.data = memoryview(buffer).toreadonly()
        self.header = SmdHeader.unpack(self.data)
        self.header.validate(len(self.data))

        try:
            self.codec_data = SmdCodecData(
                self.header.num_channels,
                self.header.frequency_range,
                self.header.frequency_upper_limit,
                self.header.frequency_table_size,
            )
        except SmdConfigError as e:
            raise SmdHeaderError(f"Unsupported stream geometry: {e}") from e

        if self.header.frame_count == 0:
            raise SmdHeaderError("Stream holds no frames")
        required_size = self.codec_data.data_size(self.header.frame_count)
        if self.header.data_size < required_size:
            raise SmdHeaderError(
                f"Declared data size {self.header.data_size} is smaller than the "
                f"{required_size} bytes {self.header.frame_count} frames occupy"
            )

        self.imdct_processor = IMDCT(self.codec_data.frequency_range)
        self.frame_reader = SmdFrameReader(self.codec_data)

        frequency_range = self.codec_data.frequency_range
        # Windowed second half of the previous block, already scaled to [-1, 1]
        self.prev_outputs = [
            np.zeros(frequency_range, dtype=np.float64) for _ in range(self.num_channels)
        ]
        self.current_frame = 0
        # Decoded samples not yet handed to the caller
        self.work_buffers = [
            np.zeros(frequency_range, dtype=np.float64) for _ in range(self.num_channels)
        ]
        self.work_buffer_offset = frequency_range

    @staticmethod
    def probe(buffer: Union[bytes, bytearray, memoryview]) -> bool:
        """True when the buffer starts with the SMD0 magic number."""
        return SmdHeader.probe(buffer)

    @property
    def sample_rate(self) -> int:
        return self.header.sample_rate

    @property
    def num_channels(self) -> int:
        return self.header.num_channels

    @property
    def frame_count(self) -> int:
        return self.header.frame_count

    @property
    def sample_count(self) -> int:
        return self.header.sample_count

    @property
    def frequency_range(self) -> int:
        return self.header.frequency_range

    def _decode_single_channel(self, channel_idx: int, frame_idx: int) -> np.ndarray:
        """Decodes one channel of a frame into 2 * frequency_range windowed samples."""
        codec_data = self.codec_data
        offset = codec_data.frame_offset(frame_idx, channel_idx)
        log_bitstream("FRAME_BYTES", self.data[offset: offset + codec_data.block_size],
                      channel=channel_idx, frame=frame_idx, algorithm="frame_reader")

        frame_data = self.frame_reader.read_frame(self.data, offset)
        coeffs = dequantize_frame(frame_data, codec_data)
        log_debug("DEQUANTIZED", "coeffs", coeffs,
                  channel=channel_idx, frame=frame_idx,
                  master_scale=frame_data.master_scale,
                  selected=len(frame_data.selected_indices))

        return self.imdct_processor(coeffs) * codec_data.window

    def read_frame(self, output_data: Sequence[np.ndarray], start: int = 0, length: Optional[int] = None):
        """
        Decodes the current frame and overlap-adds it with the previous one,
        writing `length` samples per channel at `start`, then advances the
        frame cursor.
        """
        frequency_range = self.frequency_range
        if length is None:
            length = frequency_range
        if len(output_data) < self.num_channels:
            raise ValueError(
                f"Expected {self.num_channels} output channels, got {len(output_data)}"
            )
        if not 0 <= length <= frequency_range:
            raise ValueError(
                f"Block length must be between 0 and {frequency_range}, got {length}"
            )

        for channel_idx in range(self.num_channels):
            samples = self._decode_single_channel(channel_idx, self.current_frame)
            samples /= constants.SAMPLE_SCALE

            output = output_data[channel_idx]
            prev_output = self.prev_outputs[channel_idx]
            output[start:start + length] = prev_output[:length] + samples[:length]
            self.prev_outputs[channel_idx] = samples[frequency_range:].copy()

            log_debug("PCM_OUTPUT", "samples", output[start:start + length],
                      channel=channel_idx, frame=self.current_frame, algorithm="overlap_add")

        self._next_frame()

    def _next_frame(self):
        self.current_frame = (self.current_frame + 1) % self.frame_count

    def read(self, output_data: Sequence[np.ndarray], start: int = 0, length: Optional[int] = None):
        """
        Fills the output arrays with decoded samples.

        Args:
            output_data: One writable 1-D float array per channel.
            start: Index of the first sample to write in every channel.
            length: Number of samples to produce; defaults to the rest of the
                first output array.
        """
        if len(output_data) < self.num_channels:
            raise ValueError(
                f"Expected {self.num_channels} output channels, got {len(output_data)}"
            )
        if length is None:
            length = len(output_data[0]) - start
        if length < 0 or start < 0:
            raise ValueError(f"Invalid sample range: start={start}, length={length}")

        frequency_range = self.frequency_range

        # Hand out what the previous partial read left behind
        if self.work_buffer_offset < frequency_range:
            write_size = min(length, frequency_range - self.work_buffer_offset)
            for channel_idx in range(self.num_channels):
                output_data[channel_idx][start:start + write_size] = self.work_buffers[channel_idx][
                    self.work_buffer_offset: self.work_buffer_offset + write_size
                ]
            start += write_size
            length -= write_size
            self.work_buffer_offset += write_size

        while length >= frequency_range:
            self.read_frame(output_data, start)
            start += frequency_range
            length -= frequency_range

        if length > 0:
            self.read_frame(self.work_buffers, 0)
            for channel_idx in range(self.num_channels):
                output_data[channel_idx][start:start + length] = self.work_buffers[channel_idx][:length]
            self.work_buffer_offset = length
