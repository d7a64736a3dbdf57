"""
session.py - State owned by the interactive viewer.

``ViewerSession`` holds the currently loaded image, its live window and
the last rendered raster, and pushes every new raster to a display
surface.  It is deliberately backend-free: anything with ``resize`` and
``blit`` methods can be a surface, which keeps the pipeline testable
without a GUI.

Rules the session enforces:

- A new file replaces image, window and raster together, and only if the
  whole load + render succeeded.  On failure the previous raster stays
  on screen and the error is reported through ``last_error``.
- Slider changes re-render from the cached samples; nothing is re-read.
- Every load takes a generation token when it starts.  A load that
  finishes after a newer one has started is dropped.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from dicomview.compositor import RGBAImage
from dicomview.config import CONFIG
from dicomview.descriptor import ImageDescriptor
from dicomview.errors import DicomViewError
from dicomview.pipeline import (
    LoadedImage,
    PathLike,
    load_image,
    read_file,
    read_file_async,
    render,
)
from dicomview.windowing import WindowParameters

logger = logging.getLogger(__name__)


class DisplaySurface(Protocol):
    """Anything an ``RGBAImage`` can be drawn onto."""

    def resize(self, width: int, height: int) -> None:
        ...

    def blit(self, image: RGBAImage) -> None:
        ...


def present(image: RGBAImage, surface: DisplaySurface) -> None:
    """Size *surface* to the image, then draw it."""
    surface.resize(image.width, image.height)
    surface.blit(image)


# ---------------------------------------------------------------------------
# Slider bounds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WindowBounds:
    """Clamp ranges for the center / width sliders (UI only)."""
    center: tuple[float, float]
    width: tuple[float, float]

    @staticmethod
    def _clamp(value: float, bounds: tuple[float, float]) -> float:
        lo, hi = bounds
        return min(max(value, lo), hi)

    def clamp_center(self, value: float) -> float:
        return self._clamp(value, self.center)

    def clamp_width(self, value: float) -> float:
        return self._clamp(value, self.width)


def ui_bounds(
    descriptor: Optional[ImageDescriptor] = None,
    config: Optional[dict[str, Any]] = None,
) -> WindowBounds:
    """
    Slider bounds for *descriptor*.

    By default these are the fixed ``viewer.center_range`` and
    ``viewer.width_range`` config values.  With
    ``viewer.bounds_from_bit_depth`` enabled they follow the stored
    sample range instead (e.g. 12-bit unsigned -> center [0, 4095],
    width [1, 4096]).
    """
    viewer_cfg = (config if config is not None else CONFIG)["viewer"]
    if viewer_cfg["bounds_from_bit_depth"] and descriptor is not None:
        levels = 2 ** descriptor.bits_stored
        if descriptor.pixel_representation == 1:
            center = (-levels / 2.0, levels / 2.0 - 1)
        else:
            center = (0.0, levels - 1.0)
        return WindowBounds(center=center, width=(1.0, float(levels)))

    c_lo, c_hi = viewer_cfg["center_range"]
    w_lo, w_hi = viewer_cfg["width_range"]
    return WindowBounds(center=(float(c_lo), float(c_hi)), width=(float(w_lo), float(w_hi)))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class ViewerSession:
    """
    Current image, window and raster of one viewer.

    Parameters
    ----------
    surface : DisplaySurface, optional
        Receives every successfully rendered raster.
    config : dict, optional
        Configuration dictionary.  Defaults to ``CONFIG``.
    """

    def __init__(
        self,
        surface: Optional[DisplaySurface] = None,
        config: Optional[dict[str, Any]] = None,
    ):
        self.surface = surface
        self.config = config if config is not None else CONFIG
        self.loaded: Optional[LoadedImage] = None
        self.window: Optional[WindowParameters] = None
        self.image: Optional[RGBAImage] = None
        self.bounds = ui_bounds(config=self.config)
        self.last_error: Optional[str] = None
        self._generation = 0

    # -- generations -------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    def begin_load(self) -> int:
        """Start a load and return its token; older tokens become stale."""
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    # -- loading -------------------------------------------------------------

    def apply_load(self, token: int, loaded: LoadedImage) -> bool:
        """
        Install *loaded* if *token* is still current.

        Returns True when the new image is on screen.
        """
        if not self.is_current(token):
            logger.info(
                "Discarding stale load of %s (generation %d, current %d).",
                loaded.source or "<memory>", token, self._generation,
            )
            return False
        try:
            image = render(loaded, loaded.window)
        except DicomViewError as exc:
            self._fail(exc, loaded.source)
            return False

        self.loaded = loaded
        self.window = loaded.window
        self.bounds = ui_bounds(loaded.descriptor, self.config)
        self._show(image)
        return True

    def load_bytes(self, raw_bytes: bytes, source: Optional[str] = None) -> bool:
        """Load a file already held in memory.  Returns True on success."""
        token = self.begin_load()
        try:
            loaded = load_image(raw_bytes, source=source, force=self.config["parser"]["force"])
        except DicomViewError as exc:
            if self.is_current(token):
                self._fail(exc, source)
            return False
        return self.apply_load(token, loaded)

    def load_path(self, path: PathLike) -> bool:
        token = self.begin_load()
        try:
            raw = read_file(path)
        except DicomViewError as exc:
            self._fail(exc, os.fspath(path))
            return False
        return self._finish(token, raw, os.fspath(path))

    async def load_path_async(self, path: PathLike) -> bool:
        """
        Load *path* with the file read off the event loop.

        If another load starts while this one awaits I/O, this result is
        discarded.
        """
        token = self.begin_load()
        try:
            raw = await read_file_async(path)
        except DicomViewError as exc:
            if self.is_current(token):
                self._fail(exc, os.fspath(path))
            return False
        return self._finish(token, raw, os.fspath(path))

    def _finish(self, token: int, raw: bytes, source: str) -> bool:
        if not self.is_current(token):
            logger.info("Discarding stale load of %s.", source)
            return False
        try:
            loaded = load_image(raw, source=source, force=self.config["parser"]["force"])
        except DicomViewError as exc:
            self._fail(exc, source)
            return False
        return self.apply_load(token, loaded)

    # -- leveling ------------------------------------------------------------

    def set_center(self, value: float) -> bool:
        if self.window is None:
            return False
        return self.set_window(self.window.with_center(self.bounds.clamp_center(value)))

    def set_width(self, value: float) -> bool:
        if self.window is None:
            return False
        return self.set_window(self.window.with_width(self.bounds.clamp_width(value)))

    def set_window(self, window: WindowParameters) -> bool:
        """Re-render the current image under *window* (no clamping)."""
        if self.loaded is None:
            return False
        try:
            image = render(self.loaded, window)
        except (DicomViewError, ValueError) as exc:
            self._fail(exc, self.loaded.source)
            return False
        self.window = window
        self._show(image)
        return True

    # -- internals -----------------------------------------------------------

    def _show(self, image: RGBAImage) -> None:
        self.image = image
        self.last_error = None
        if self.surface is not None:
            present(image, self.surface)

    def _fail(self, exc: Exception, source: Optional[str]) -> None:
        self.last_error = f"{type(exc).__name__}: {exc}"
        logger.error("Could not display %s: %s", source or "<memory>", self.last_error)
