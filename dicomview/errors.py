"""
errors.py - Failure taxonomy for the DICOM render pipeline.

Every stage fails fast with one of these exceptions and produces no
partial output.  Callers that only care whether a file could be shown
can catch ``DicomViewError``; the more specific classes exist so the
viewer can report a meaningful diagnostic.
"""


class DicomViewError(Exception):
    """Base class for every error raised by the render pipeline."""


class ParseError(DicomViewError, ValueError):
    """The byte buffer is not a readable DICOM structure."""


class UnsupportedTransferSyntax(DicomViewError, ValueError):
    """Pixel data is compressed or not little-endian."""


class MissingPixelData(DicomViewError, ValueError):
    """The dataset has no Pixel Data (7FE0,0010) element."""


class MissingImageAttribute(DicomViewError, ValueError):
    """A tag needed to lay out the image (Rows, Columns, ...) is absent."""


class TruncatedPixelData(DicomViewError, ValueError):
    """Declared dimensions need more bytes than the pixel data holds."""


class UnsupportedBitDepth(DicomViewError, ValueError):
    """BitsAllocated is not 8 or 16."""


class UnsupportedPhotometricInterpretation(DicomViewError, ValueError):
    """Photometric interpretation outside MONOCHROME1, MONOCHROME2 and RGB."""


class FileReadError(DicomViewError, OSError):
    """The selected file could not be read."""
