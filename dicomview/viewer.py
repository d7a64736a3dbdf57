"""
viewer.py - Interactive matplotlib viewer.

Opens one or more DICOM files and shows them with two sliders for window
center and width.  ``n`` / ``p`` step through the files given on the
command line.  Failed files leave the previous image on screen and the
reason in the figure title.

Usage
-----
    dicomview scan1.dcm scan2.dcm
    python -m dicomview.viewer --config my_config.yaml scan.dcm
"""

import argparse
import logging
import os
from typing import Any, Optional, Sequence

import matplotlib.pyplot as plt
from matplotlib.widgets import Slider

from dicomview.compositor import RGBAImage
from dicomview.config import CONFIG, load_config
from dicomview.session import ViewerSession

logger = logging.getLogger(__name__)


class MatplotlibSurface:
    """Display surface backed by a matplotlib ``AxesImage``."""

    def __init__(self, ax: plt.Axes):
        self.ax = ax
        self.size = (0, 0)
        self.artist = None

    def resize(self, width: int, height: int) -> None:
        if (width, height) == self.size:
            return
        self.size = (width, height)
        if self.artist is not None:
            self.artist.remove()
            self.artist = None

    def blit(self, image: RGBAImage) -> None:
        pixels = image.to_array()
        if self.artist is None:
            self.artist = self.ax.imshow(pixels, interpolation="nearest")
        else:
            self.artist.set_data(pixels)
        self.ax.figure.canvas.draw_idle()


class DicomViewerApp:
    """
    Figure, sliders and key bindings around a ``ViewerSession``.

    Parameters
    ----------
    paths : sequence of str
        Files to cycle through.  The first one is opened immediately.
    config : dict, optional
        Configuration dictionary.  Defaults to ``CONFIG``.
    """

    def __init__(self, paths: Sequence[str], config: Optional[dict[str, Any]] = None):
        self.paths = list(paths)
        self.index = 0
        self.config = config if config is not None else CONFIG

        self.fig = plt.figure(figsize=tuple(self.config["viewer"]["figure_size"]))
        self.ax = self.fig.add_axes([0.05, 0.18, 0.9, 0.75])
        self.ax.axis("off")

        self.surface = MatplotlibSurface(self.ax)
        self.session = ViewerSession(surface=self.surface, config=self.config)

        bounds = self.session.bounds
        ax_center = self.fig.add_axes([0.25, 0.09, 0.6, 0.03])
        ax_width = self.fig.add_axes([0.25, 0.04, 0.6, 0.03])
        self.center_slider = Slider(ax_center, "Window Center", *bounds.center, valinit=sum(bounds.center) / 2.0)
        self.width_slider = Slider(ax_width, "Window Width", *bounds.width, valinit=sum(bounds.width) / 2.0)
        self.center_slider.on_changed(self._on_center)
        self.width_slider.on_changed(self._on_width)

        self.fig.canvas.mpl_connect("key_press_event", self._on_key)
        self._syncing = False

        if self.paths:
            self.open(0)

    # -- file handling -----------------------------------------------------

    def open(self, index: int) -> bool:
        self.index = index % len(self.paths)
        path = self.paths[self.index]
        ok = self.session.load_path(path)
        if ok:
            self._sync_sliders()
        self._update_title()
        return ok

    def _on_key(self, event) -> None:
        if not self.paths:
            return
        if event.key == "n":
            self.open(self.index + 1)
        elif event.key == "p":
            self.open(self.index - 1)

    # -- sliders -------------------------------------------------------------

    def _on_center(self, value: float) -> None:
        if not self._syncing:
            self.session.set_center(value)
            self._update_title()

    def _on_width(self, value: float) -> None:
        if not self._syncing:
            self.session.set_width(value)
            self._update_title()

    @staticmethod
    def _set_range(slider: Slider, lo: float, hi: float) -> None:
        slider.valmin, slider.valmax = lo, hi
        slider.ax.set_xlim(lo, hi)

    def _sync_sliders(self) -> None:
        """Move both sliders to the session window without re-rendering."""
        bounds = self.session.bounds
        window = self.session.window
        self._syncing = True
        try:
            self._set_range(self.center_slider, *bounds.center)
            self._set_range(self.width_slider, *bounds.width)
            if window is not None and window.center is not None:
                self.center_slider.set_val(bounds.clamp_center(window.center))
            if window is not None and window.width is not None:
                self.width_slider.set_val(bounds.clamp_width(window.width))
        finally:
            self._syncing = False

    def _update_title(self) -> None:
        parts = []
        if self.session.loaded is not None:
            parts.append(os.path.basename(self.session.loaded.source or ""))
        window = self.session.window
        if window is not None and window.is_resolved:
            parts.append(f"C={window.center:.0f}, W={window.width:.0f}")
        if self.session.last_error:
            parts.append(f"\n{self.session.last_error}")
        self.ax.set_title("  ".join(parts), fontsize=10)
        self.fig.canvas.draw_idle()

    def show(self) -> None:
        plt.show()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="DICOM viewer with window/level sliders.")
    parser.add_argument("paths", nargs="+", help="DICOM file(s) to display")
    parser.add_argument("--config", default=None, help="Path to a config.yaml")
    args = parser.parse_args(argv)

    config = load_config(args.config) if args.config else CONFIG
    logging.basicConfig(
        level=config["logging"]["level"],
        format=config["logging"]["format"],
    )

    app = DicomViewerApp(args.paths, config=config)
    if app.session.image is None:
        logger.warning("Nothing could be displayed from %s.", app.paths[app.index])
    app.show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
