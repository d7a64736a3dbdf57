"""
dataset.py - Narrow adapter over pydicom for the render pipeline.

pydicom does the tag-level parsing; this module only exposes what the
pipeline needs:

- typed reads of a fixed set of tags (``Tag``), returning ``None`` for
  absent or empty elements instead of raising;
- the byte offset and length of the Pixel Data element inside the
  original buffer, so the pixel bytes can be sliced verbatim.

The Pixel Data position is captured from the undecoded (raw) element
right after parsing, before anything converts it.
"""

import io
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

import pydicom
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue

from dicomview.errors import ParseError, UnsupportedTransferSyntax

logger = logging.getLogger(__name__)

_UNDEFINED_LENGTH = 0xFFFFFFFF


class Tag(IntEnum):
    """DICOM attributes read during descriptor extraction."""
    SAMPLES_PER_PIXEL = 0x00280002
    PHOTOMETRIC_INTERPRETATION = 0x00280004
    ROWS = 0x00280010
    COLUMNS = 0x00280011
    BITS_ALLOCATED = 0x00280100
    BITS_STORED = 0x00280101
    PIXEL_REPRESENTATION = 0x00280103
    WINDOW_CENTER = 0x00281050
    WINDOW_WIDTH = 0x00281051
    PIXEL_DATA = 0x7FE00010

    def __str__(self) -> str:
        return f"({self.value >> 16:04X},{self.value & 0xFFFF:04X}) {self.name}"


@dataclass(frozen=True)
class PixelDataElement:
    """Location of the Pixel Data value inside ``DicomDataset.raw_bytes``."""
    offset: int
    length: int


def _first(value: Any) -> Any:
    # WindowCenter / WindowWidth and friends may be multi-valued
    if isinstance(value, (list, tuple, MultiValue)):
        return value[0] if len(value) else None
    return value


class DicomDataset:
    """
    A parsed DICOM file plus the buffer it was parsed from.

    Parameters
    ----------
    ds : Dataset
        pydicom Dataset read from *raw_bytes*.
    raw_bytes : bytes
        The complete file contents.
    """

    def __init__(self, ds: Dataset, raw_bytes: bytes):
        self._ds = ds
        self._raw_bytes = raw_bytes
        self._pixel_data_element = self._locate_pixel_data()

    @property
    def raw_bytes(self) -> bytes:
        return self._raw_bytes

    @property
    def pixel_data_element(self) -> Optional[PixelDataElement]:
        return self._pixel_data_element

    def _locate_pixel_data(self) -> Optional[PixelDataElement]:
        if int(Tag.PIXEL_DATA) not in self._ds:
            return None

        elem = self._ds.get_item(int(Tag.PIXEL_DATA))
        if elem is None:
            return None

        length = elem.length
        if length == _UNDEFINED_LENGTH or getattr(elem, "is_undefined_length", False):
            raise UnsupportedTransferSyntax(
                "Encapsulated (compressed) pixel data is not supported."
            )
        if not getattr(elem, "is_little_endian", True):
            raise UnsupportedTransferSyntax(
                "Big-endian pixel data is not supported."
            )

        offset = getattr(elem, "value_tell", None)
        if offset is None:
            raise ParseError("Pixel Data element position is unknown.")

        logger.debug("Pixel Data at offset %d, length %d", offset, length)
        return PixelDataElement(offset=offset, length=length)

    def _value(self, tag: Tag) -> Any:
        elem = self._ds.get(int(tag))
        if elem is None:
            return None
        value = _first(elem.value)
        if value is None or value == "" or value == b"":
            return None
        return value

    def read_uint16(self, tag: Tag) -> Optional[int]:
        value = self._value(tag)
        if value is None:
            return None
        value = int(value)
        if not 0 <= value <= 0xFFFF:
            raise ParseError(f"{tag} value {value} is not an unsigned 16-bit integer.")
        return value

    def read_string(self, tag: Tag) -> Optional[str]:
        value = self._value(tag)
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        value = str(value).strip()
        return value or None

    def read_float_string(self, tag: Tag) -> Optional[float]:
        """Read a Decimal String; malformed values count as absent."""
        value = self._value(tag)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed %s value %r.", tag, value)
            return None


def _is_compressed(transfer_syntax) -> bool:
    # Deflated datasets are inflated into a separate stream, so element
    # offsets no longer point into the original buffer.
    try:
        return transfer_syntax.is_compressed or transfer_syntax.is_deflated
    except ValueError:
        # Private or unknown UID; the Pixel Data element check still applies
        logger.warning("Unrecognised transfer syntax %s.", transfer_syntax)
        return False


def parse(raw_bytes: bytes, force: bool = False) -> DicomDataset:
    """
    Parse a complete DICOM file held in memory.

    Parameters
    ----------
    raw_bytes : bytes
        File contents.
    force : bool
        Passed to ``pydicom.dcmread``: accept files without the
        preamble / DICM prefix.

    Returns
    -------
    DicomDataset

    Raises
    ------
    ParseError
        If pydicom cannot read the structure.
    UnsupportedTransferSyntax
        If the dataset is deflated or the pixel data is encapsulated or
        big-endian.
    """
    raw_bytes = bytes(raw_bytes)
    try:
        ds = pydicom.dcmread(io.BytesIO(raw_bytes), force=force)
    except Exception as exc:
        raise ParseError(f"Could not parse DICOM data: {exc}") from exc

    file_meta = getattr(ds, "file_meta", None)
    transfer_syntax = getattr(file_meta, "TransferSyntaxUID", None) if file_meta else None
    if transfer_syntax is not None and _is_compressed(transfer_syntax):
        raise UnsupportedTransferSyntax(
            f"Compressed transfer syntax {transfer_syntax.name} is not supported."
        )

    return DicomDataset(ds, raw_bytes)
