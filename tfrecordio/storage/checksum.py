"""Masked CRC32C checksums used to protect record lengths and payloads."""

from __future__ import annotations

import crcmod.predefined

from tfrecordio.storage.format import MASK_DELTA, UINT32_MASK

# Table-driven CRC-32C (Castagnoli). Built once at import, read-only afterwards.
crc32c = crcmod.predefined.mkPredefinedCrcFun("crc-32c")


def mask(crc: int) -> int:
    """Rotate right by 15 bits and add the format's mask delta, modulo 2**32."""
    crc &= UINT32_MASK
    return (((crc >> 15) | (crc << 17)) + MASK_DELTA) & UINT32_MASK


def unmask(masked: int) -> int:
    """Invert :func:`mask`."""
    rot = (masked - MASK_DELTA) & UINT32_MASK
    return ((rot >> 17) | (rot << 15)) & UINT32_MASK


def masked_crc32c(data: bytes) -> int:
    """Masked CRC32C of ``data``, as stored in the record framing."""
    return mask(crc32c(data))
