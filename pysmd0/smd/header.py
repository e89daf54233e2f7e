"""
Handles the SMD0 stream header.
A fixed 36-byte little-endian header opens every stream and describes the
geometry needed to locate and decode its frame blocks.
"""

import struct
from typing import Union

from ..common import constants

HEADER_FORMAT = "<IIIIIIIHHHH"


class SmdHeaderError(Exception):
    """Custom exception for malformed or unsupported SMD0 headers."""

    pass


class SmdHeader:
    """
    Represents and handles the SMD0 stream header.
    """

    def __init__(
        self,
        sample_rate: int = 0,
        num_channels: int = 0,
        frequency_range: int = 0,
        frequency_upper_limit: int = 0,
        frequency_table_size: int = 0,
        data_size: int = 0,
        sample_count: int = 0,
        frame_count: int = 0,
        magic_number: int = constants.MAGIC_NUMBER,
        file_type: int = constants.FILE_TYPE_SMD0,
        version: int = constants.SMD0_VERSION,
    ):
        self.magic_number = magic_number
        self.data_size = data_size
        self.file_type = file_type
        self.version = version
        self.sample_rate = sample_rate
        self.sample_count = sample_count
        self.frame_count = frame_count
        self.num_channels = num_channels
        self.frequency_range = frequency_range
        self.frequency_upper_limit = frequency_upper_limit
        self.frequency_table_size = frequency_table_size

    def _fields(self):
        return (
            self.magic_number,
            self.data_size,
            self.file_type,
            self.version,
            self.sample_rate,
            self.sample_count,
            self.frame_count,
            self.num_channels,
            self.frequency_range,
            self.frequency_upper_limit,
            self.frequency_table_size,
        )

    def pack(self) -> bytes:
        """
        Packs the header into its 36-byte form.
        """
        try:
            return struct.pack(HEADER_FORMAT, *self._fields())
        except struct.error as e:
            raise SmdHeaderError(f"Header field out of range: {e}") from e

    def pack_into(self, buffer: bytearray, offset: int = 0):
        """Packs the header in place at `offset` of a writable buffer."""
        try:
            struct.pack_into(HEADER_FORMAT, buffer, offset, *self._fields())
        except struct.error as e:
            raise SmdHeaderError(f"Header field out of range: {e}") from e

    @classmethod
    def unpack(cls, buffer: Union[bytes, bytearray, memoryview]) -> "SmdHeader":
        """
        Unpacks the header at the start of `buffer`. Field values are not
        checked here; see validate().
        """
        if len(buffer) < constants.HEADER_SIZE:
            raise SmdHeaderError(
                f"Buffer must hold at least {constants.HEADER_SIZE} header bytes, got {len(buffer)}"
            )
        (
            magic_number,
            data_size,
            file_type,
            version,
            sample_rate,
            sample_count,
            frame_count,
            num_channels,
            frequency_range,
            frequency_upper_limit,
            frequency_table_size,
        ) = struct.unpack_from(HEADER_FORMAT, buffer, 0)
        return cls(
            sample_rate=sample_rate,
            num_channels=num_channels,
            frequency_range=frequency_range,
            frequency_upper_limit=frequency_upper_limit,
            frequency_table_size=frequency_table_size,
            data_size=data_size,
            sample_count=sample_count,
            frame_count=frame_count,
            magic_number=magic_number,
            file_type=file_type,
            version=version,
        )

    def validate(self, buffer_length: int):
        """
        Checks the header against the format and the length of the buffer it
        came from.

        Raises:
            SmdHeaderError: on the first inconsistency found.
        """
        if self.magic_number != constants.MAGIC_NUMBER:
            raise SmdHeaderError(
                f"Invalid magic number. Expected {constants.MAGIC_BYTES!r}, "
                f"got {self.magic_number.to_bytes(4, 'little')!r}"
            )
        if self.data_size > buffer_length:
            raise SmdHeaderError(
                f"Declared data size {self.data_size} exceeds buffer length {buffer_length}"
            )
        if self.file_type != constants.FILE_TYPE_SMD0:
            raise SmdHeaderError(
                f"Unsupported file type {self.file_type.to_bytes(4, 'little')!r}, "
                f"expected {constants.FILE_TYPE_BYTES!r}"
            )
        if self.version != constants.SMD0_VERSION:
            raise SmdHeaderError(
                f"Unsupported version {self.version}, expected {constants.SMD0_VERSION}"
            )
        if self.sample_rate <= 0:
            raise SmdHeaderError(f"Invalid sample rate in header: {self.sample_rate}")
        if self.sample_count > self.frequency_range * self.frame_count:
            raise SmdHeaderError(
                f"Sample count {self.sample_count} exceeds "
                f"{self.frame_count} frames of {self.frequency_range} samples"
            )
        if self.num_channels <= 0:
            raise SmdHeaderError(f"Invalid channel count in header: {self.num_channels}")
        if self.frequency_range <= 0:
            raise SmdHeaderError(f"Invalid frequency range in header: {self.frequency_range}")
        if self.frequency_upper_limit > self.frequency_range:
            raise SmdHeaderError(
                f"Frequency upper limit {self.frequency_upper_limit} exceeds "
                f"frequency range {self.frequency_range}"
            )
        if self.frequency_table_size <= 0:
            raise SmdHeaderError(
                f"Invalid frequency table size in header: {self.frequency_table_size}"
            )

    @staticmethod
    def probe(buffer: Union[bytes, bytearray, memoryview]) -> bool:
        """True when the buffer starts with the SMD0 stream magic number."""
        return len(buffer) >= 4 and bytes(buffer[:4]) == constants.MAGIC_BYTES
