# tests/conftest.py

import pytest
import numpy as np
import tifffile

from georaster.io import DecodedTiff

# GeoKeyDirectory for EPSG:4326 (model geographic, pixel-is-area)
WGS84_GEOKEYS = (1, 1, 0, 3, 1024, 0, 1, 2, 1025, 0, 1, 1, 2048, 0, 1, 4326)

# user-defined geographic CRS carrying a TOWGS84 shift
USER_DEFINED_GEOKEYS = (
    1, 1, 0, 7,
    1024, 0, 1, 2,
    1025, 0, 1, 1,
    2048, 0, 1, 32767,
    2049, 34737, 7, 0,
    2050, 0, 1, 32767,
    2056, 0, 1, 7030,
    2062, 34736, 3, 0,
)
USER_DEFINED_DOUBLES = (598.1, 73.7, 418.2)
USER_DEFINED_ASCII = "Custom|"

@pytest.fixture
def geotiff_factory(tmp_path):
    """
    Fixture: Returns a function that writes a GeoTIFF with explicit geo tags.

    Geo tags are written as raw extratags, the way a GeoTIFF writer lays them out.
    """
    def _create(
        filename="test.tif",
        data=None,
        pixel_scale=(10.0, 10.0, 0.0),
        tie_point=(0.0, 0.0, 0.0, 500000.0, 4000000.0, 0.0),
        transformation=None,
        geokeys=WGS84_GEOKEYS,
        doubles=None,
        ascii=None,
        nodata=None,
        colormap=None,
        planar=False
    ):
        if data is None:
            data = np.arange(20 * 30, dtype=np.uint16).reshape(20, 30)

        extratags = []
        if pixel_scale is not None:
            extratags.append((33550, 'd', 3, tuple(pixel_scale), True))
        if tie_point is not None:
            extratags.append((33922, 'd', len(tie_point), tuple(tie_point), True))
        if transformation is not None:
            extratags.append((34264, 'd', 16, tuple(transformation), True))
        if geokeys is not None:
            extratags.append((34735, 'H', len(geokeys), tuple(geokeys), True))
        if doubles is not None:
            extratags.append((34736, 'd', len(doubles), tuple(doubles), True))
        if ascii is not None:
            extratags.append((34737, 's', 0, ascii, True))
        if nodata is not None:
            extratags.append((42113, 's', 0, str(nodata), True))

        path = tmp_path / filename
        if colormap is not None:
            tifffile.imwrite(path, data, photometric='palette', colormap=colormap, extratags=extratags)
        elif planar:
            tifffile.imwrite(path, data, photometric='minisblack', planarconfig='separate', extratags=extratags)
        elif data.ndim == 3:
            tifffile.imwrite(path, data, photometric='rgb', extratags=extratags)
        else:
            tifffile.imwrite(path, data, photometric='minisblack', extratags=extratags)
        return path

    return _create

@pytest.fixture
def gradient_bands():
    """Two 6x8 bands where each sample encodes its own (row, col)."""
    rows, cols = np.indices((6, 8))
    first = (rows * 10 + cols).astype(np.int32)
    return np.stack([first, first + 100])

@pytest.fixture
def decoded_factory(gradient_bands):
    """
    Fixture: Returns a function building a DecodedTiff as the decoder would hand it over.
    """
    def _create(**overrides):
        fields = dict(
            rasters=gradient_bands,
            width=gradient_bands.shape[2],
            height=gradient_bands.shape[1],
            sample_format=2,
            bits_per_sample=32,
            geokeys={1024: 1, 3072: 32616},
            pixel_scale=(30.0, 30.0, 0.0),
            tie_point=(0.0, 0.0, 0.0, 189600.0, 4904100.0, 0.0),
        )
        fields.update(overrides)
        return DecodedTiff(**fields)

    return _create

@pytest.fixture
def palette_colormap():
    """256-entry 16-bit TIFF colormap; entry i is (i, 255 - i, i // 2) scaled by 257."""
    index = np.arange(256, dtype=np.uint16)
    return np.stack([index, 255 - index, index // 2]).astype(np.uint16) * 257
