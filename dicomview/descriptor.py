"""
descriptor.py - Pull the render-relevant metadata out of a dataset.

The descriptor is the only thing later stages know about the file: the
image geometry, how samples are stored, how they map to brightness, the
default window, and the raw Pixel Data bytes sliced verbatim from the
original buffer.

References
----------
- DICOM PS3.3 C.7.6.3 Image Pixel Module
- DICOM PS3.3 C.11.2 VOI LUT Module (WindowCenter / WindowWidth)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dicomview.dataset import DicomDataset, Tag
from dicomview.errors import (
    MissingImageAttribute,
    MissingPixelData,
    TruncatedPixelData,
    UnsupportedPhotometricInterpretation,
)

logger = logging.getLogger(__name__)


class PhotometricInterpretation(str, Enum):
    """Photometric interpretations the compositor can render."""
    MONOCHROME1 = "MONOCHROME1"   # minimum sample displays white
    MONOCHROME2 = "MONOCHROME2"   # minimum sample displays black
    RGB = "RGB"

    @property
    def is_grayscale(self) -> bool:
        return self is not PhotometricInterpretation.RGB

    @classmethod
    def from_value(cls, value: Optional[str]) -> "PhotometricInterpretation":
        """Map a raw (0028,0004) value, raising for anything unsupported."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedPhotometricInterpretation(
                f"Unsupported photometric interpretation: {value!r}. "
                f"Choose from: {[p.value for p in cls]}"
            ) from None


@dataclass(frozen=True)
class ImageDescriptor:
    """
    Geometry, storage layout and default window of one image.

    Construction validates that the declared dimensions fit inside
    *raw_pixel_bytes* and raises ``TruncatedPixelData`` otherwise.
    """
    width: int
    height: int
    bits_allocated: int
    bits_stored: int
    pixel_representation: int
    raw_pixel_bytes: bytes
    samples_per_pixel: int = 1
    photometric_interpretation: Optional[str] = None
    default_window_center: Optional[float] = None
    default_window_width: Optional[float] = None

    def __post_init__(self):
        available = len(self.raw_pixel_bytes)
        if self.required_bytes > available:
            raise TruncatedPixelData(
                f"{self.width}x{self.height} image with {self.samples_per_pixel} "
                f"sample(s) of {self.bits_allocated} bits needs "
                f"{self.required_bytes} bytes, pixel data has {available}."
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def bytes_per_sample(self) -> int:
        return math.ceil(self.bits_allocated / 8)

    @property
    def sample_count(self) -> int:
        return self.pixel_count * self.samples_per_pixel

    @property
    def required_bytes(self) -> int:
        return self.sample_count * self.bytes_per_sample


def _require(dataset: DicomDataset, tag: Tag) -> int:
    value = dataset.read_uint16(tag)
    if value is None:
        raise MissingImageAttribute(f"Required attribute {tag} is missing.")
    return value


def extract_descriptor(dataset: DicomDataset) -> ImageDescriptor:
    """
    Build an ``ImageDescriptor`` from a parsed dataset.

    Optional attributes fall back as follows: SamplesPerPixel -> 1,
    PixelRepresentation -> 0 (unsigned), BitsStored -> BitsAllocated,
    WindowCenter / WindowWidth -> unset (``None``, never zero).

    Parameters
    ----------
    dataset : DicomDataset
        Output of ``dicomview.dataset.parse``.

    Returns
    -------
    ImageDescriptor

    Raises
    ------
    MissingPixelData
        If there is no Pixel Data element.
    MissingImageAttribute
        If Rows, Columns or BitsAllocated is absent.
    TruncatedPixelData
        If the pixel bytes are shorter than the declared image.
    """
    element = dataset.pixel_data_element
    if element is None:
        raise MissingPixelData("Pixel Data (7FE0,0010) not found in DICOM file.")

    height = _require(dataset, Tag.ROWS)
    width = _require(dataset, Tag.COLUMNS)
    bits_allocated = _require(dataset, Tag.BITS_ALLOCATED)

    bits_stored = dataset.read_uint16(Tag.BITS_STORED)
    pixel_representation = dataset.read_uint16(Tag.PIXEL_REPRESENTATION)
    samples_per_pixel = dataset.read_uint16(Tag.SAMPLES_PER_PIXEL)

    # No bounds check on the collaborator side; a short slice is caught
    # by the descriptor invariant.
    raw = dataset.raw_bytes[element.offset:element.offset + element.length]

    descriptor = ImageDescriptor(
        width=width,
        height=height,
        bits_allocated=bits_allocated,
        bits_stored=bits_stored if bits_stored is not None else bits_allocated,
        pixel_representation=pixel_representation or 0,
        samples_per_pixel=samples_per_pixel or 1,
        photometric_interpretation=dataset.read_string(Tag.PHOTOMETRIC_INTERPRETATION),
        default_window_center=dataset.read_float_string(Tag.WINDOW_CENTER),
        default_window_width=dataset.read_float_string(Tag.WINDOW_WIDTH),
        raw_pixel_bytes=raw,
    )
    logger.debug(
        "Descriptor: %dx%d, %d-bit (%d stored), repr=%d, spp=%d, %s",
        width, height, descriptor.bits_allocated, descriptor.bits_stored,
        descriptor.pixel_representation, descriptor.samples_per_pixel,
        descriptor.photometric_interpretation,
    )
    return descriptor
