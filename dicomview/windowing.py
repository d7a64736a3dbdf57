"""
windowing.py - Window center / width (leveling) for grayscale samples.

WHY THIS MATTERS
----------------
Stored samples usually span far more values (12 or 16 bits) than a
display can show (8 bits).  A *window* picks the slice of that range a
reader cares about: samples between

    center - width/2   and   center + width/2

are spread linearly over 0-255 and everything outside saturates to black
or white.  Pick the wrong window and the anatomy is invisible.

MONOCHROME2 maps the low end of the window to black.  MONOCHROME1 is
the inverted convention (low end is white), used by many CR/DX devices.

When the file does not supply a window, it is derived from the sample
extremes so that the full stored range is visible:

    center = (max + min) / 2
    width  = max - min          (forced to 1 for a constant image)

References
----------
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- DICOM PS3.3 C.7.6.3.1.2: MONOCHROME1 / MONOCHROME2
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional, Union

import numpy as np

from dicomview.descriptor import PhotometricInterpretation
from dicomview.errors import UnsupportedPhotometricInterpretation

logger = logging.getLogger(__name__)

# Width used when the auto-computed range collapses to zero
MIN_AUTO_WIDTH = 1.0


@dataclass(frozen=True)
class WindowParameters:
    """
    Window center and width.  ``None`` means "derive from the samples".

    A width of exactly 0 is treated like ``None``.
    """
    center: Optional[float] = None
    width: Optional[float] = None

    def __post_init__(self):
        for name in ("center", "width"):
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                raise ValueError(f"Window {name} must be finite, got {value}.")

    @property
    def is_resolved(self) -> bool:
        return self.center is not None and self.width is not None and self.width != 0

    def with_center(self, center: float) -> "WindowParameters":
        return replace(self, center=center)

    def with_width(self, width: float) -> "WindowParameters":
        return replace(self, width=width)

    @property
    def bounds(self) -> tuple[float, float]:
        """(minPixelValue, maxPixelValue) of a resolved window."""
        if not self.is_resolved:
            raise ValueError("Window is not resolved; call resolve_window first.")
        return self.center - self.width / 2.0, self.center + self.width / 2.0


def sample_range(samples: np.ndarray) -> tuple[float, float]:
    """
    Return ``(min, max)`` of *samples* as floats.

    Uses numpy reductions so large images never go through Python-level
    argument lists.  An empty buffer yields ``(0.0, 0.0)``.
    """
    if samples.size == 0:
        return 0.0, 0.0
    return float(samples.min()), float(samples.max())


def resolve_window(
    samples: np.ndarray,
    window: Optional[WindowParameters] = None,
) -> WindowParameters:
    """
    Fill in any unset part of *window* from the sample extremes.

    Parameters
    ----------
    samples : np.ndarray
        Decoded grayscale samples.
    window : WindowParameters, optional
        Partially or fully specified window.  ``None`` = fully automatic.

    Returns
    -------
    WindowParameters
        A window with both center and a non-zero width set.
    """
    window = window or WindowParameters()
    if window.is_resolved:
        return window

    lo, hi = sample_range(samples)
    center = window.center if window.center is not None else (hi + lo) / 2.0
    width = window.width
    if width is None or width == 0:
        width = hi - lo
        if width == 0:
            logger.debug("Constant image (value %.1f); forcing width to %.0f.", lo, MIN_AUTO_WIDTH)
            width = MIN_AUTO_WIDTH

    resolved = WindowParameters(center=center, width=width)
    logger.debug("Resolved window: centre=%.1f, width=%.1f", resolved.center, resolved.width)
    return resolved


def apply_window(
    samples: np.ndarray,
    window: Optional[WindowParameters] = None,
    photometric: Union[PhotometricInterpretation, str] = PhotometricInterpretation.MONOCHROME2,
) -> np.ndarray:
    """
    Map grayscale samples to display intensities in [0, 255].

    MONOCHROME2:  (sample - lower) / (upper - lower) * 255
    MONOCHROME1:  (upper - sample) / (upper - lower) * 255

    Samples outside the window saturate at 0 / 255.

    Parameters
    ----------
    samples : np.ndarray
        Decoded samples (any integer dtype).
    window : WindowParameters, optional
        Unset parts are derived via ``resolve_window``.
    photometric : PhotometricInterpretation or str
        MONOCHROME1 or MONOCHROME2.

    Returns
    -------
    np.ndarray
        Float array in [0, 255], same shape as *samples*.
    """
    photometric = PhotometricInterpretation.from_value(photometric)
    if not photometric.is_grayscale:
        raise UnsupportedPhotometricInterpretation(
            f"Windowing applies to grayscale images only, not {photometric.value}."
        )

    lower, upper = resolve_window(samples, window).bounds
    span = upper - lower
    values = samples.astype(np.float64)

    if photometric is PhotometricInterpretation.MONOCHROME1:
        intensity = (upper - values) / span * 255.0
    else:
        intensity = (values - lower) / span * 255.0

    return np.clip(intensity, 0.0, 255.0)


def to_uint8(intensities: np.ndarray) -> np.ndarray:
    """Round intensities to the nearest 8-bit display value."""
    return np.rint(np.clip(intensities, 0.0, 255.0)).astype(np.uint8)
