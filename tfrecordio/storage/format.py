"""TFRecord wire format constants.

Every record on disk is framed as (all integers little-endian):

    length            : uint64, payload size in bytes
    length_checksum   : uint32, masked CRC32C of the 8 length bytes
    payload           : `length` bytes
    payload_checksum  : uint32, masked CRC32C of the payload

A file is zero or more records back to back, with no header or trailer.
"""

import struct

# Struct layouts
LENGTH_FORMAT = struct.Struct("<Q")
CHECKSUM_FORMAT = struct.Struct("<I")
HEADER_FORMAT = struct.Struct("<QI")

# Byte sizes of the framing fields
LENGTH_SIZE = LENGTH_FORMAT.size  # 8
CHECKSUM_SIZE = CHECKSUM_FORMAT.size  # 4
HEADER_SIZE = HEADER_FORMAT.size  # 12
FOOTER_SIZE = CHECKSUM_SIZE
FRAME_OVERHEAD = HEADER_SIZE + FOOTER_SIZE  # 16

# Checksum masking, must match the reference format bit for bit
MASK_DELTA = 0xA282EAD8
UINT32_MASK = 0xFFFFFFFF
UINT64_MAX = 0xFFFFFFFFFFFFFFFF

# Largest payload accepted when decoding or encoding. Protobuf messages cannot
# exceed 2 GiB, so any larger length field is treated as corruption.
DEFAULT_MAX_RECORD_LENGTH = 2**31 - 1

# Payloads are read in chunks of at most this size so a corrupted length field
# never causes an allocation larger than the bytes actually present.
READ_CHUNK_SIZE = 16 * 1024 * 1024

# File extension
FILE_EXTENSION = ".tfrecord"

# Text index: one "<offset> <frame_size>" line per record
INDEX_EXTENSION = ".idx"

# Version of this library's on-disk conventions (the record format itself is fixed)
FORMAT_VERSION = "1.0.0"
