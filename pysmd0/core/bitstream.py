"""
Implements bitstream handling for SMD0 frame blocks.
This includes the bit cursor shared by every sub-byte field, nibble access,
and reading/writing a frame block: master scale, sub-band scale factors,
the frequency selector and the packed magnitude codes.
"""

import struct
from typing import List, TYPE_CHECKING, Union

from ..common import constants

if TYPE_CHECKING:
    from .codec_data import SmdCodecData

Buffer = Union[bytes, bytearray, memoryview]


class SmdFrameData:
    """Holds the unpacked data of a single channel's frame block."""

    def __init__(self):
        self.master_scale: int = 0
        self.sub_scales: List[int] = []
        self.selected_indices: List[int] = []
        self.magnitude_codes: List[int] = []


class BitCursor:
    """
    A read/write position over a byte buffer.
    Bits are addressed least-significant first within each byte and bytes in
    ascending order, so a field that crosses a byte boundary continues at bit
    0 of the next byte.
    """

    def __init__(self, buffer: Buffer, byte_position: int = 0, bit_position: int = 0):
        """
        Initializes the cursor.

        Args:
            buffer: The bytes to read from; must be writable (bytearray) for writing.
            byte_position: Starting byte offset.
            bit_position: Starting bit inside that byte (0-7).
        """
        if not 0 <= bit_position < 8:
            raise ValueError(f"Bit position must be between 0 and 7, got {bit_position}")
        self.buffer = buffer
        self.byte_position: int = byte_position
        self.bit_position: int = bit_position

    def tell(self) -> int:
        """Returns the absolute position in bits."""
        return self.byte_position * 8 + self.bit_position

    def skip_bits(self, num_bits: int):
        """Advances the cursor without touching the buffer."""
        if num_bits < 0:
            raise ValueError("Cannot skip a negative number of bits")
        position = self.tell() + num_bits
        self.byte_position, self.bit_position = divmod(position, 8)

    def _bits_available(self) -> int:
        return (len(self.buffer) - self.byte_position) * 8 - self.bit_position

    def write_bits(self, value: int, num_bits: int):
        """
        Writes the low 'num_bits' of 'value', least-significant bit first.
        Bits outside the written field are preserved.
        """
        if num_bits < 0 or num_bits > 32:
            raise ValueError("Number of bits must be between 0 and 32")
        if num_bits == 0:
            return
        if self._bits_available() < num_bits:
            raise EOFError("Not enough room in buffer to write")

        value &= (1 << num_bits) - 1
        remaining = num_bits
        while remaining > 0:
            take = min(8 - self.bit_position, remaining)
            mask = ((1 << take) - 1) << self.bit_position
            current = self.buffer[self.byte_position]
            self.buffer[self.byte_position] = (current & ~mask & 0xFF) | (
                (value << self.bit_position) & mask
            )
            value >>= take
            remaining -= take
            self.skip_bits(take)

    def read_bits(self, num_bits: int) -> int:
        """
        Reads 'num_bits' from the stream, least-significant bit first.
        """
        if num_bits < 0 or num_bits > 32:
            raise ValueError("Number of bits must be between 0 and 32")
        if num_bits == 0:
            return 0
        if self._bits_available() < num_bits:
            raise EOFError("Not enough bits in stream to read")

        value = 0
        read = 0
        while read < num_bits:
            take = min(8 - self.bit_position, num_bits - read)
            chunk = (self.buffer[self.byte_position] >> self.bit_position) & ((1 << take) - 1)
            value |= chunk << read
            read += take
            self.skip_bits(take)
        return value


def read_nibble(buffer: Buffer, byte_offset: int, which: int) -> int:
    """Reads the low (which=0) or high (which=1) 4 bits of a byte."""
    return BitCursor(buffer, byte_offset, (which & 0x1) << 2).read_bits(4)


def write_nibble(buffer: bytearray, byte_offset: int, which: int, value: int):
    """Writes the low (which=0) or high (which=1) 4 bits of a byte, keeping the other half."""
    BitCursor(buffer, byte_offset, (which & 0x1) << 2).write_bits(value, 4)


class SmdFrameWriter:
    """Writes SMD0 frame data into the stream buffer."""

    def __init__(self, codec_data: "SmdCodecData"):
        self.codec_data: "SmdCodecData" = codec_data

    def write_frame(self, buffer: bytearray, offset: int, frame_data: SmdFrameData):
        """
        Packs an SmdFrameData object into the block starting at `offset`.

        Block layout:
        1. Bytes 0-3: master scale (u32, little-endian)
        2. Bytes 4-7: sub-band scale factors, one nibble per band
        3. Selector field: packed indices or per-bin bitmap
        4. Magnitude codes: one nibble per selected coefficient, ascending index order
        """
        codec_data = self.codec_data
        if len(frame_data.sub_scales) != codec_data.sub_scale_count:
            raise ValueError(
                f"Expected {codec_data.sub_scale_count} sub scales, got {len(frame_data.sub_scales)}"
            )
        if len(frame_data.magnitude_codes) != len(frame_data.selected_indices):
            raise ValueError("Magnitude code count does not match selected index count")
        if not 0 <= frame_data.master_scale <= constants.UINT32_MAX:
            raise ValueError(
                f"Master scale {frame_data.master_scale} does not fit an unsigned 32-bit field"
            )
        if len(frame_data.selected_indices) > codec_data.frequency_table_size:
            raise ValueError(
                f"Too many selected frequencies: {len(frame_data.selected_indices)} > "
                f"{codec_data.frequency_table_size}"
            )

        struct.pack_into(
            "<I", buffer, offset + constants.FRAME_OFFSET_MASTER_SCALE, frame_data.master_scale
        )

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_SUB_SCALE)
        for sub_scale in frame_data.sub_scales:
            cursor.write_bits(sub_scale, constants.BITS_PER_SUB_SCALE)
        for _ in range(constants.MAX_SUB_SCALES - len(frame_data.sub_scales)):
            cursor.write_bits(0, constants.BITS_PER_SUB_SCALE)

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_DATA)
        if codec_data.is_index_mode:
            bits = codec_data.index_bit_size
            for index in frame_data.selected_indices:
                cursor.write_bits(index, bits)
            # Unused fields read back as index 0
            for _ in range(codec_data.frequency_table_size - len(frame_data.selected_indices)):
                cursor.write_bits(0, bits)
        else:
            selected = set(frame_data.selected_indices)
            for index in range(codec_data.bitmap_bits):
                cursor.write_bits(1 if index in selected else 0, 1)

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_DATA + codec_data.selector_bytes)
        for code in frame_data.magnitude_codes:
            cursor.write_bits(code, constants.BITS_PER_MAGNITUDE)
        for _ in range(codec_data.frequency_table_size - len(frame_data.magnitude_codes)):
            cursor.write_bits(0, constants.BITS_PER_MAGNITUDE)


class SmdFrameReader:
    """Reads SMD0 frame data from the stream buffer."""

    def __init__(self, codec_data: "SmdCodecData"):
        self.codec_data: "SmdCodecData" = codec_data

    def read_frame(self, buffer: Buffer, offset: int) -> SmdFrameData:
        """
        Unpacks the block starting at `offset` into an SmdFrameData object.
        """
        codec_data = self.codec_data
        frame_data = SmdFrameData()

        (frame_data.master_scale,) = struct.unpack_from(
            "<I", buffer, offset + constants.FRAME_OFFSET_MASTER_SCALE
        )

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_SUB_SCALE)
        frame_data.sub_scales = [
            cursor.read_bits(constants.BITS_PER_SUB_SCALE)
            for _ in range(codec_data.sub_scale_count)
        ]

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_DATA)
        if codec_data.is_index_mode:
            bits = codec_data.index_bit_size
            indices = {cursor.read_bits(bits) for _ in range(codec_data.frequency_table_size)}
            frame_data.selected_indices = sorted(
                index for index in indices if index < codec_data.frequency_upper_limit
            )
        else:
            frame_data.selected_indices = [
                index
                for index in range(codec_data.bitmap_bits)
                if cursor.read_bits(1) and index < codec_data.frequency_upper_limit
            ]

        cursor = BitCursor(buffer, offset + constants.FRAME_OFFSET_DATA + codec_data.selector_bytes)
        frame_data.magnitude_codes = [
            cursor.read_bits(constants.BITS_PER_MAGNITUDE)
            for _ in frame_data.selected_indices
        ]
        return frame_data
