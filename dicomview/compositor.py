"""
compositor.py - Build the final RGBA raster.

Grayscale intensities are replicated into R, G and B; RGB pixel data is
copied through untouched (no windowing).  Alpha is always opaque.  The
interpretation is dispatched once per call, never per pixel.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from dicomview.descriptor import ImageDescriptor, PhotometricInterpretation
from dicomview.errors import UnsupportedPhotometricInterpretation
from dicomview.windowing import WindowParameters, apply_window, to_uint8

logger = logging.getLogger(__name__)

OPAQUE = 255


@dataclass(frozen=True)
class RGBAImage:
    """Row-major 8-bit RGBA pixels, ``len(data) == width * height * 4``."""
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(
                f"RGBA buffer for {self.width}x{self.height} needs {expected} bytes, "
                f"got {len(self.data)}."
            )

    def to_array(self) -> np.ndarray:
        """Read-only (height, width, 4) uint8 view of the pixels."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


def _pack(rgb: np.ndarray, width: int, height: int) -> RGBAImage:
    rgba = np.empty((width * height, 4), dtype=np.uint8)
    rgba[:, :3] = rgb
    rgba[:, 3] = OPAQUE
    return RGBAImage(width=width, height=height, data=rgba.tobytes())


def grayscale_to_rgba(intensities: np.ndarray, width: int, height: int) -> RGBAImage:
    """Replicate one intensity per pixel into R, G and B."""
    gray = to_uint8(np.asarray(intensities).reshape(-1)[: width * height])
    return _pack(gray[:, np.newaxis], width, height)


def rgb_to_rgba(
    raw: bytes,
    width: int,
    height: int,
    samples_per_pixel: int = 3,
    bits_allocated: int = 8,
) -> RGBAImage:
    """
    Copy interleaved (color-by-pixel) RGB bytes into an RGBA raster.

    For pixel *i* the three bytes at ``i * bytes_per_pixel`` are taken as
    R, G, B, where ``bytes_per_pixel = samples_per_pixel * bits_allocated / 8``.
    """
    if samples_per_pixel != 3:
        raise UnsupportedPhotometricInterpretation(
            f"RGB needs 3 samples per pixel, got {samples_per_pixel}."
        )
    bytes_per_pixel = samples_per_pixel * bits_allocated // 8
    npix = width * height
    if npix == 0:
        return RGBAImage(width=width, height=height, data=b"")
    buf = np.frombuffer(bytes(raw), dtype=np.uint8, count=npix * bytes_per_pixel)
    rgb = buf.reshape(npix, bytes_per_pixel)[:, :3]
    return _pack(rgb, width, height)


def composite(
    descriptor: ImageDescriptor,
    samples: Optional[np.ndarray] = None,
    window: Optional[WindowParameters] = None,
) -> RGBAImage:
    """
    Render one image according to its photometric interpretation.

    Parameters
    ----------
    descriptor : ImageDescriptor
        Geometry, layout and raw pixel bytes.
    samples : np.ndarray, optional
        Decoded samples; required for MONOCHROME1 / MONOCHROME2.
    window : WindowParameters, optional
        Grayscale window; unset parts are derived from the samples.

    Returns
    -------
    RGBAImage

    Raises
    ------
    UnsupportedPhotometricInterpretation
        For anything other than MONOCHROME1, MONOCHROME2 or RGB.
    """
    photometric = PhotometricInterpretation.from_value(descriptor.photometric_interpretation)
    width, height = descriptor.width, descriptor.height

    if photometric is PhotometricInterpretation.RGB:
        image = rgb_to_rgba(
            descriptor.raw_pixel_bytes,
            width,
            height,
            samples_per_pixel=descriptor.samples_per_pixel,
            bits_allocated=descriptor.bits_allocated,
        )
    else:
        if samples is None:
            raise ValueError("Grayscale compositing needs decoded samples.")
        pixels = samples[: descriptor.pixel_count]
        image = grayscale_to_rgba(apply_window(pixels, window, photometric), width, height)

    logger.debug("Composited %dx%d %s image", width, height, photometric.value)
    return image
