"""Tests for dicomview/session.py."""

import asyncio
import io

import numpy as np
import pytest
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

from dicomview.compositor import RGBAImage
from dicomview.config import load_config
from dicomview.descriptor import ImageDescriptor
from dicomview.pipeline import load_image
from dicomview.session import ViewerSession, WindowBounds, present, ui_bounds
from dicomview.windowing import WindowParameters


def _dicom_bytes(pixels: np.ndarray, photometric: str = "MONOCHROME2", window=None) -> bytes:
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.7")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(filename_or_obj=None, dataset={}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.Rows, ds.Columns = pixels.shape[:2]
    ds.SamplesPerPixel = 1 if pixels.ndim == 2 else pixels.shape[2]
    ds.PhotometricInterpretation = photometric
    ds.BitsAllocated = pixels.dtype.itemsize * 8
    ds.BitsStored = 12 if ds.BitsAllocated == 16 else 8
    ds.HighBit = ds.BitsStored - 1
    ds.PixelRepresentation = 1 if pixels.dtype.kind == "i" else 0
    if window is not None:
        ds.WindowCenter, ds.WindowWidth = window
    ds.PixelData = pixels.tobytes()
    buf = io.BytesIO()
    ds.save_as(buf)
    return buf.getvalue()


class RecordingSurface:
    """Display surface that remembers every call."""

    def __init__(self):
        self.calls = []

    def resize(self, width, height):
        self.calls.append(("resize", width, height))

    def blit(self, image):
        self.calls.append(("blit", image))


GRADIENT = np.arange(0, 4096, 256, dtype="<u2").reshape(4, 4)


class TestPresent:
    def test_resize_before_blit(self):
        surface = RecordingSurface()
        image = RGBAImage(width=2, height=1, data=bytes(8))
        present(image, surface)
        assert surface.calls == [("resize", 2, 1), ("blit", image)]


class TestBounds:
    def test_default_bounds_from_config(self):
        bounds = ui_bounds(config=load_config(None))
        assert bounds == WindowBounds(center=(-1024.0, 3071.0), width=(1.0, 4096.0))

    def test_clamp(self):
        bounds = WindowBounds(center=(-1024.0, 3071.0), width=(1.0, 4096.0))
        assert bounds.clamp_center(-5000) == -1024.0
        assert bounds.clamp_center(100) == 100
        assert bounds.clamp_width(0) == 1.0
        assert bounds.clamp_width(10000) == 4096.0

    def _descriptor(self, bits_stored, pixel_representation):
        return ImageDescriptor(
            width=1, height=1, bits_allocated=16, bits_stored=bits_stored,
            pixel_representation=pixel_representation, raw_pixel_bytes=bytes(2),
        )

    def test_bit_depth_bounds_unsigned(self):
        config = load_config(None)
        config["viewer"]["bounds_from_bit_depth"] = True
        bounds = ui_bounds(self._descriptor(12, 0), config)
        assert bounds == WindowBounds(center=(0.0, 4095.0), width=(1.0, 4096.0))

    def test_bit_depth_bounds_signed(self):
        config = load_config(None)
        config["viewer"]["bounds_from_bit_depth"] = True
        bounds = ui_bounds(self._descriptor(16, 1), config)
        assert bounds == WindowBounds(center=(-32768.0, 32767.0), width=(1.0, 65536.0))

    def test_explicit_config_is_used(self):
        config = load_config(None)
        config["viewer"]["width_range"] = [5, 50]
        session = ViewerSession(config=config)
        assert session.config is config
        assert session.bounds.width == (5.0, 50.0)

    def test_empty_config_not_replaced_by_global(self):
        with pytest.raises(KeyError):
            ui_bounds(config={})
        with pytest.raises(KeyError):
            ViewerSession(config={})

    def test_bit_depth_ignored_when_disabled(self):
        bounds = ui_bounds(self._descriptor(8, 0), load_config(None))
        assert bounds.center == (-1024.0, 3071.0)


class TestLoading:
    def test_successful_load_presents_image(self):
        surface = RecordingSurface()
        session = ViewerSession(surface=surface, config=load_config(None))
        assert session.load_bytes(_dicom_bytes(GRADIENT), source="a.dcm")
        assert session.image is not None
        assert session.window == session.loaded.window
        assert surface.calls[0] == ("resize", 4, 4)
        assert surface.calls[1] == ("blit", session.image)
        assert session.last_error is None

    def test_failed_load_keeps_previous_image(self):
        surface = RecordingSurface()
        session = ViewerSession(surface=surface, config=load_config(None))
        session.load_bytes(_dicom_bytes(GRADIENT), source="good.dcm")
        image, loaded, window = session.image, session.loaded, session.window
        calls = len(surface.calls)

        assert not session.load_bytes(b"garbage", source="bad.dcm")

        assert session.image is image
        assert session.loaded is loaded
        assert session.window is window
        assert len(surface.calls) == calls
        assert session.last_error.startswith("ParseError")

    def test_unsupported_interpretation_keeps_previous_image(self):
        session = ViewerSession(surface=RecordingSurface(), config=load_config(None))
        session.load_bytes(_dicom_bytes(GRADIENT))
        image = session.image

        ybr = np.zeros((2, 2, 3), dtype=np.uint8)
        assert not session.load_bytes(_dicom_bytes(ybr, photometric="YBR_FULL"))

        assert session.image is image
        assert "UnsupportedPhotometricInterpretation" in session.last_error

    def test_missing_file(self, tmp_path):
        session = ViewerSession(config=load_config(None))
        assert not session.load_path(tmp_path / "nope.dcm")
        assert session.last_error.startswith("FileReadError")

    def test_load_path(self, tmp_path):
        path = tmp_path / "scan.dcm"
        path.write_bytes(_dicom_bytes(GRADIENT))
        session = ViewerSession(config=load_config(None))
        assert session.load_path(path)
        assert session.loaded.source == str(path)

    def test_stale_load_discarded(self):
        session = ViewerSession(config=load_config(None))
        old_token = session.begin_load()
        stale = load_image(_dicom_bytes(GRADIENT), source="old.dcm")
        session.load_bytes(_dicom_bytes(GRADIENT[:2]), source="new.dcm")

        assert not session.apply_load(old_token, stale)
        assert session.loaded.source == "new.dcm"

    def test_async_load_superseded_by_newer_load(self, tmp_path):
        old_path = tmp_path / "old.dcm"
        old_path.write_bytes(_dicom_bytes(GRADIENT))
        session = ViewerSession(config=load_config(None))

        async def scenario():
            task = asyncio.create_task(session.load_path_async(old_path))
            await asyncio.sleep(0)  # let the task reach its file read
            assert session.load_bytes(_dicom_bytes(GRADIENT[:2]), source="new.dcm")
            return await task

        assert asyncio.run(scenario()) is False
        assert session.loaded.source == "new.dcm"
        assert session.image.height == 2

    def test_async_load(self, tmp_path):
        path = tmp_path / "scan.dcm"
        path.write_bytes(_dicom_bytes(GRADIENT))
        session = ViewerSession(config=load_config(None))
        assert asyncio.run(session.load_path_async(path))
        assert session.image is not None


class TestLeveling:
    def _session(self):
        surface = RecordingSurface()
        session = ViewerSession(surface=surface, config=load_config(None))
        session.load_bytes(_dicom_bytes(GRADIENT, window=(1024.0, 2048.0)))
        return session, surface

    def test_nothing_loaded(self):
        session = ViewerSession(config=load_config(None))
        assert not session.set_center(10)
        assert not session.set_width(10)

    def test_set_center_rerenders(self):
        session, surface = self._session()
        before = session.image
        assert session.set_center(3000)
        assert session.window == WindowParameters(center=3000, width=2048.0)
        assert session.image.data != before.data
        assert surface.calls[-1] == ("blit", session.image)

    def test_set_width_clamped_to_ui_bounds(self):
        session, _ = self._session()
        session.set_width(0)
        assert session.window.width == 1.0
        session.set_width(1e9)
        assert session.window.width == 4096.0

    def test_set_center_clamped_to_ui_bounds(self):
        session, _ = self._session()
        session.set_center(-99999)
        assert session.window.center == -1024.0

    def test_set_window_accepts_values_outside_ui_bounds(self):
        session, _ = self._session()
        assert session.set_window(WindowParameters(center=-50000, width=100000))
        assert session.window.center == -50000

    def test_rerender_keeps_samples(self):
        session, _ = self._session()
        samples = session.loaded.samples
        session.set_center(10)
        session.set_width(20)
        assert session.loaded.samples is samples

    def test_same_window_same_bytes(self):
        session, _ = self._session()
        session.set_center(500)
        first = session.image.data
        session.set_center(900)
        session.set_center(500)
        assert session.image.data == first
