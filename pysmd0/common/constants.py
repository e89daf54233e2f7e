"""
Global codec constants for the SMD0 codec.
These constants define the stream header layout, the per-channel frame
block layout and the fixed parameters of the logarithmic quantizer.
"""

# "ORPH" sound data stream, file type "SMD0" (Simple MDCT Data)
MAGIC_BYTES = b"ORPH"
FILE_TYPE_BYTES = b"SMD0"
MAGIC_NUMBER = int.from_bytes(MAGIC_BYTES, "little")
FILE_TYPE_SMD0 = int.from_bytes(FILE_TYPE_BYTES, "little")
SMD0_VERSION = 0

HEADER_OFFSET_MAGIC_NUMBER = 0
HEADER_OFFSET_DATA_SIZE = 4
HEADER_OFFSET_FILE_TYPE = 8
HEADER_OFFSET_VERSION = 12
HEADER_OFFSET_SAMPLE_RATE = 16
HEADER_OFFSET_SAMPLE_COUNT = 20
HEADER_OFFSET_FRAME_COUNT = 24
HEADER_OFFSET_NUM_CHANNELS = 28
HEADER_OFFSET_FREQUENCY_RANGE = 30
HEADER_OFFSET_FREQUENCY_UPPER_LIMIT = 32
HEADER_OFFSET_FREQUENCY_TABLE_SIZE = 34
HEADER_SIZE = 36

FRAME_OFFSET_MASTER_SCALE = 0
FRAME_OFFSET_SUB_SCALE = 4
FRAME_OFFSET_DATA = 8

MAX_SUB_SCALES = 8
MAX_SUB_SCALE_SHIFT = 7
SUB_SCALE_MAX = 15
BITS_PER_SUB_SCALE = 4
BITS_PER_MAGNITUDE = 4
MANTISSA_MAX = 7
SIGN_BIT = 0x8
DEAD_ZONE_EXPONENT = -7

SELECTOR_WORD_BITS = 32
FREQUENCY_RANGE_ALIGNMENT = 32
FREQUENCY_TABLE_ALIGNMENT = 8

# [-1, 1] PCM is carried through the transform as 16-bit integer range
SAMPLE_SCALE = (1 << 16) - 1

DEFAULT_FREQUENCY_RANGE = 1024
DEFAULT_INIT_SAMPLE_COUNT = 4096

UINT16_MAX = 0xFFFF
UINT32_MAX = 0xFFFFFFFF
