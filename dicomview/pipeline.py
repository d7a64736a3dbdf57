"""
pipeline.py - Load and render orchestration.

Two entry points mirror the two triggers a viewer reacts to:

    load_image(raw)         parse -> extract descriptor -> decode samples
                            -> seed the window          (new file)
    render(loaded, window)  window -> composite          (slider moved)

A slider change only re-runs ``render``; the file is never re-parsed or
re-decoded.  Every stage raises a ``DicomViewError`` subclass on failure
and nothing partial is returned.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from dicomview.compositor import RGBAImage, composite
from dicomview.config import CONFIG
from dicomview.dataset import parse
from dicomview.decoder import decode_samples
from dicomview.descriptor import ImageDescriptor, PhotometricInterpretation, extract_descriptor
from dicomview.errors import FileReadError
from dicomview.windowing import WindowParameters, resolve_window

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class LoadedImage:
    """Everything a loaded file contributes to rendering.  Compared by identity."""
    descriptor: ImageDescriptor
    samples: np.ndarray
    window: WindowParameters
    source: Optional[str] = None

    @property
    def is_grayscale(self) -> bool:
        return self.descriptor.photometric_interpretation != PhotometricInterpretation.RGB.value


# ---------------------------------------------------------------------------
# File acquisition
# ---------------------------------------------------------------------------

def read_file(path: PathLike) -> bytes:
    """
    Return the full contents of *path*.

    Raises
    ------
    FileReadError
        If the file cannot be opened or read.
    """
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as exc:
        raise FileReadError(f"Could not read {path}: {exc.strerror or exc}") from exc


async def read_file_async(path: PathLike) -> bytes:
    """``read_file`` in a worker thread, so an event loop is not blocked."""
    return await asyncio.to_thread(read_file, path)


# ---------------------------------------------------------------------------
# Core pipeline
# ---------------------------------------------------------------------------

def initial_window(descriptor: ImageDescriptor, samples: np.ndarray) -> WindowParameters:
    """Seed the window from the file defaults, deriving anything unset."""
    window = WindowParameters(
        center=descriptor.default_window_center,
        width=descriptor.default_window_width,
    )
    if descriptor.photometric_interpretation == PhotometricInterpretation.RGB.value:
        # Not used for RGB; kept so the sliders still have a value.
        return window
    return resolve_window(samples[: descriptor.pixel_count], window)


def load_image(
    raw_bytes: bytes,
    source: Optional[str] = None,
    force: Optional[bool] = None,
) -> LoadedImage:
    """
    Parse a DICOM file held in memory and decode its pixels.

    Parameters
    ----------
    raw_bytes : bytes
        Complete file contents.
    source : str, optional
        Label used in log messages (usually the file name).
    force : bool, optional
        Accept files without the DICM prefix.  Defaults to config value.

    Returns
    -------
    LoadedImage
    """
    force = force if force is not None else CONFIG["parser"]["force"]
    start = time.time()

    dataset = parse(raw_bytes, force=force)
    descriptor = extract_descriptor(dataset)
    samples = decode_samples(
        descriptor.raw_pixel_bytes,
        descriptor.bits_allocated,
        descriptor.pixel_representation,
        count=descriptor.sample_count,
    )
    window = initial_window(descriptor, samples)

    logger.info(
        "Loaded %s: %dx%d %s, %d-bit in %.3fs",
        source or "<memory>", descriptor.width, descriptor.height,
        descriptor.photometric_interpretation, descriptor.bits_allocated,
        time.time() - start,
    )
    return LoadedImage(descriptor=descriptor, samples=samples, window=window, source=source)


def load_file(path: PathLike, force: Optional[bool] = None) -> LoadedImage:
    """``read_file`` followed by ``load_image``."""
    return load_image(read_file(path), source=os.fspath(path), force=force)


def render(loaded: LoadedImage, window: Optional[WindowParameters] = None) -> RGBAImage:
    """
    Produce the RGBA raster for *loaded* under *window*.

    Pure: the same (samples, window, interpretation) always yields the
    same bytes.  *window* defaults to the window seeded at load time.
    """
    window = window if window is not None else loaded.window
    return composite(loaded.descriptor, loaded.samples, window)
