"""
generate_sample_data.py - Create synthetic DICOM files for the viewer.

Writes one small file per supported pixel encoding to data/samples/ so
the viewer can be tried without real patient data.

Usage
-----
    python scripts/generate_sample_data.py

Then open them with:
    dicomview data/samples/*.dcm
"""

import os
import sys
from typing import Optional

import numpy as np
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

OUTPUT_FOLDER = os.path.join(_REPO_ROOT, "data", "samples")


def _phantom(size: int, low: float, high: float, seed: int) -> np.ndarray:
    """Noisy background with a bright disc, values in [low, high]."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[:size, :size]
    disc = (yy - size / 2) ** 2 + (xx - size / 2) ** 2 < (size / 4) ** 2
    pixels = rng.normal(low + (high - low) * 0.25, (high - low) * 0.05, size=(size, size))
    pixels[disc] = high
    return pixels.clip(low, high)


def _make_dicom(
    path: str,
    pixels: np.ndarray,
    photometric: str,
    bits_allocated: int,
    pixel_representation: int = 0,
    window: Optional[tuple[float, float]] = None,
) -> None:
    """Write one uncompressed little-endian DICOM file."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.7")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.PatientName = "Synthetic^Phantom"
    ds.Modality = "OT"

    ds.Rows, ds.Columns = pixels.shape[:2]
    ds.SamplesPerPixel = 3 if photometric == "RGB" else 1
    ds.PhotometricInterpretation = photometric
    ds.BitsAllocated = bits_allocated
    ds.BitsStored = bits_allocated if bits_allocated == 8 else 12
    ds.HighBit = ds.BitsStored - 1
    ds.PixelRepresentation = pixel_representation
    if photometric == "RGB":
        ds.PlanarConfiguration = 0
    if window is not None:
        ds.WindowCenter, ds.WindowWidth = window
    ds.PixelData = pixels.tobytes()

    ds.save_as(path)


def generate(output_folder: str = OUTPUT_FOLDER) -> list[str]:
    """Generate every sample file into *output_folder*; return their paths."""
    os.makedirs(output_folder, exist_ok=True)
    size = 128

    rgb = np.zeros((size, size, 3), dtype=np.uint8)
    rgb[..., 0] = np.linspace(0, 255, size, dtype=np.uint8)[np.newaxis, :]
    rgb[..., 1] = np.linspace(0, 255, size, dtype=np.uint8)[:, np.newaxis]
    rgb[..., 2] = 128

    samples = [
        ("mono2_u16.dcm", _phantom(size, 0, 4095, 1).astype("<u2"), "MONOCHROME2", 16, 0, (1024.0, 2048.0)),
        ("mono1_s16.dcm", _phantom(size, -1024, 2047, 2).astype("<i2"), "MONOCHROME1", 16, 1, None),
        ("mono2_u8.dcm", _phantom(size, 0, 255, 3).astype(np.uint8), "MONOCHROME2", 8, 0, None),
        ("rgb_u8.dcm", rgb, "RGB", 8, 0, None),
    ]

    paths = []
    print(f"Writing {len(samples)} synthetic DICOM files to: {output_folder}")
    print("-" * 60)
    for i, (name, pixels, photometric, bits, representation, window) in enumerate(samples, start=1):
        path = os.path.join(output_folder, name)
        _make_dicom(path, pixels, photometric, bits, representation, window)
        paths.append(path)
        print(f"  [{i:02d}/{len(samples)}] {name}  ({photometric}, {bits}-bit)")

    print("-" * 60)
    print("Done.  View them with:")
    print(f"  dicomview {os.path.join(output_folder, '*.dcm')}")
    return paths


if __name__ == "__main__":
    generate()
