"""
decoder.py - Reinterpret raw Pixel Data bytes as numeric samples.

Only native (uncompressed, little-endian) encodings are handled:

    BitsAllocated  PixelRepresentation  dtype
    8              any                  uint8
    16             0                    little-endian uint16
    16             1                    little-endian int16 (two's complement)
"""

import logging
from typing import Optional

import numpy as np

from dicomview.errors import UnsupportedBitDepth

logger = logging.getLogger(__name__)


def sample_dtype(bits_allocated: int, pixel_representation: int = 0) -> np.dtype:
    """Return the numpy dtype for one stored sample."""
    if bits_allocated == 8:
        return np.dtype("<u1")
    if bits_allocated == 16:
        return np.dtype("<i2" if pixel_representation == 1 else "<u2")
    raise UnsupportedBitDepth(
        f"Unsupported Bits Allocated: {bits_allocated}. Expected 8 or 16."
    )


def decode_samples(
    raw: bytes,
    bits_allocated: int,
    pixel_representation: int = 0,
    count: Optional[int] = None,
) -> np.ndarray:
    """
    View *raw* as a flat, read-only array of samples.

    Parameters
    ----------
    raw : bytes
        Pixel Data bytes.  The array shares this immutable buffer.
    bits_allocated : int
        8 or 16.
    pixel_representation : int
        0 = unsigned, 1 = two's complement.  Ignored for 8-bit data.
    count : int, optional
        Number of samples to decode.  Trailing bytes (e.g. the DICOM
        odd-length pad byte) are ignored.  Defaults to as many whole
        samples as *raw* holds.

    Returns
    -------
    np.ndarray
        1-D array with dtype from ``sample_dtype``.
    """
    dtype = sample_dtype(bits_allocated, pixel_representation)
    available = len(raw) // dtype.itemsize
    if count is None:
        count = available
    elif count > available:
        raise ValueError(f"Requested {count} samples, buffer holds {available}.")

    if count == 0:
        samples = np.empty(0, dtype=dtype)
    else:
        samples = np.frombuffer(bytes(raw), dtype=dtype, count=count)
    samples.flags.writeable = False
    logger.debug("Decoded %d samples as %s", samples.size, dtype)
    return samples
