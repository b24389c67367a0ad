# tests/unit/test_layer.py

import pytest
import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine

from georaster import GeoRaster, ParseConfig
from georaster.layer import ValueKind, palette_from_color_map, parse_nodata
from georaster.georef import CRSStatus
from georaster.window import PixelWindow, GeoWindow
from georaster.exceptions import (
    GeoRasterError, GeoReferenceError, RasterValidationError, ShapeMismatchError
)
from helpers import nearest_reference, assert_bounds_match, assert_fresh_copy

# --- Construction ---

def test_from_decoded_metadata(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    assert raster.shape == (2, 6, 8)
    assert raster.number_of_rasters == 2
    assert raster.projection == 32616
    assert raster.crs_status is CRSStatus.REGISTERED
    assert raster.pixel_width == 30.0
    assert raster.pixel_height == 30.0
    assert raster.pixel_depth == 4
    assert raster.sample_format == 2
    assert raster.value_kind is ValueKind.SCALAR
    assert raster.transform == Affine(30.0, 0.0, 189600.0, 0.0, -30.0, 4904100.0)
    assert_bounds_match(raster, (189600.0, 4903920.0, 189840.0, 4904100.0))

def test_landsat_sized_bounds(decoded_factory):
    # zero-stride view adopted as is: no 8031x7921 allocation
    rasters = np.broadcast_to(np.zeros((1, 1, 1), dtype=np.uint16), (1, 8031, 7921))
    decoded = decoded_factory(rasters=rasters, width=7921, height=8031, sample_format=1,
                              bits_per_sample=16, owned=True)

    raster = GeoRaster.from_decoded(decoded)

    assert raster.width == 7921
    assert raster.height == 8031
    assert raster.pixel_depth == 2
    assert_bounds_match(raster, (189600.0, 4663170.0, 427230.0, 4904100.0))

def test_crs_object(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    assert raster.crs == CRS.from_epsg(32616)

def test_missing_affine_tags_degrade(decoded_factory, caplog):
    raster = GeoRaster.from_decoded(decoded_factory(pixel_scale=None))

    assert raster.transform is None
    assert raster.bounds is None
    assert raster.xmin is None and raster.pixel_width is None
    assert raster.projection == 32616
    assert raster.get_values(PixelWindow(0, 0, 2, 2)).shape == (2, 2, 2)
    assert "not georeferenced" in caplog.text

def test_no_geokeys_is_absent(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory(geokeys={}))

    assert raster.projection is None
    assert raster.crs_status is CRSStatus.ABSENT
    assert raster.crs is None

def test_dimension_mismatch_rejected(decoded_factory):
    with pytest.raises(RasterValidationError):
        GeoRaster.from_decoded(decoded_factory(width=9))

def test_no_data_parsed_from_ascii(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory(no_data="-9999\x00"))

    assert raster.no_data_value == -9999.0

@pytest.mark.parametrize("raw, expected", [
    ("0", 0.0),
    (b"-3.5", -3.5),
    (255, 255.0),
    ("", None),
    ("nodata", None),
    (None, None),
])
def test_parse_nodata(raw, expected):
    assert parse_nodata(raw) == expected

def test_calc_stats_fills_extrema(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory(), config=ParseConfig(calc_stats=True))

    assert raster.mins == [0, 100]
    assert raster.maxs == [57, 157]
    assert raster.ranges == [57, 57]

def test_extrema_not_computed_by_default(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    assert raster.mins is None
    assert raster.ranges is None

def test_from_arrays_placement():
    values = [np.zeros((4, 5), dtype=np.float32)]
    raster = GeoRaster.from_arrays(
        values,
        no_data_value=-1,
        projection=4326,
        xmin=-125.57865783690451,
        ymax=49.0,
        pixel_width=0.0002695191463334988,
        pixel_height=0.0002695191463334988
    )

    assert raster.pixel_width == 0.0002695191463334988
    assert raster.xmin == -125.57865783690451
    assert raster.ymax == 49.0
    assert raster.xmax == pytest.approx(-125.57865783690451 + 5 * 0.0002695191463334988)
    assert raster.projection == 4326
    assert raster.no_data_value == -1

def test_from_arrays_without_placement():
    raster = GeoRaster.from_arrays(np.ones((3, 3), dtype=np.uint8))

    assert raster.shape == (1, 3, 3)
    assert raster.transform is None
    assert raster.projection is None

@pytest.mark.parametrize("bands", [
    [],
    [np.zeros((2, 2)), np.zeros((3, 2))],
    np.zeros((2, 2, 2, 2)),
    np.zeros((1, 0, 4)),
])
def test_invalid_bands_rejected(bands):
    with pytest.raises(RasterValidationError):
        GeoRaster(bands)

def test_bands_are_read_only(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    assert not raster.bands.flags.writeable
    with pytest.raises(ValueError):
        raster.bands[0, 0, 0] = 1

def test_construction_copies_by_default(gradient_bands):
    raster = GeoRaster(gradient_bands)
    gradient_bands[0, 0, 0] = 999

    assert raster.bands[0, 0, 0] == 0

def test_from_decoded_copies_shared_buffers(decoded_factory, gradient_bands):
    base = gradient_bands.copy()
    raster = GeoRaster.from_decoded(decoded_factory(rasters=base[:]))

    base[0, 0, 0] = 777

    assert raster.bands[0, 0, 0] == 0
    assert not np.shares_memory(raster.bands, base)

def test_from_decoded_adopts_owned_buffers(decoded_factory, gradient_bands):
    rasters = gradient_bands.copy()
    raster = GeoRaster.from_decoded(decoded_factory(rasters=rasters, owned=True))

    assert np.shares_memory(raster.bands, rasters)
    assert not rasters.flags.writeable

# --- Windowed reads ---

def test_full_read_is_a_fresh_copy(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())

    values = raster.get_values()

    assert np.array_equal(values, gradient_bands)
    assert_fresh_copy(values, raster)

def test_inset_window(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())

    values = raster.get_values(left=1, top=2, right=3, bottom=1)

    assert values.shape == (2, 3, 4)
    assert np.array_equal(values, gradient_bands[:, 2:5, 1:5])

def test_pixel_window(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())

    values = raster.get_values(PixelWindow(2, 1, 5, 4))

    assert np.array_equal(values, gradient_bands[:, 1:4, 2:5])

def test_geo_window(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())
    geo = GeoWindow(xmin=189600 + 30, ymin=4904100 - 90, xmax=189600 + 90, ymax=4904100)

    values = raster.get_values(geo)

    assert np.array_equal(values, gradient_bands[:, 0:3, 1:3])

def test_geo_window_without_transform(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory(pixel_scale=None))

    with pytest.raises(GeoReferenceError):
        raster.get_values(GeoWindow(0, 0, 1, 1))

def test_window_and_insets_are_exclusive(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    with pytest.raises(ValueError):
        raster.get_values(PixelWindow(0, 0, 2, 2), left=1)

def test_outside_window_is_empty(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    values = raster.get_values(PixelWindow(20, 20, 30, 30), width=4, height=4)

    assert values.size == 0

def test_resampled_read(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())

    values = raster.get_values(width=3, height=4)

    assert values.shape == (2, 4, 3)
    for b in range(2):
        assert np.array_equal(values[b], nearest_reference(gradient_bands[b], 4, 3))

def test_landsat_sized_inset_resample():
    band = np.add.outer(np.arange(8031, dtype=np.uint16), np.arange(7921, dtype=np.uint16))
    raster = GeoRaster.from_arrays(band, projection=32616, xmin=189600.0, ymax=4904100.0,
                                   pixel_width=30.0, pixel_height=30.0)

    values = raster.get_values(left=0, top=0, right=4000, bottom=4000, width=10, height=10)

    assert values.shape == (1, 10, 10)
    assert np.array_equal(values[0], nearest_reference(band[:4031, :3921], 10, 10))

    native = raster.get_values(left=0, top=0, right=4000, bottom=4000, width=10, height=10, resample=False)
    assert native.shape == (1, 4031, 3921)

def test_only_width_given(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    with pytest.raises(ShapeMismatchError):
        raster.get_values(width=5)

def test_non_positive_target(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    with pytest.raises(ShapeMismatchError):
        raster.get_values(width=0, height=3)

# --- Palette rasters ---

def test_palette_from_color_map(palette_colormap):
    palette = palette_from_color_map(palette_colormap.ravel())

    assert len(palette) == 256
    assert palette[0] == (0, 255, 0, 255)
    assert palette[200] == (200, 55, 100, 255)

def test_palette_from_bad_color_map():
    with pytest.raises(RasterValidationError):
        palette_from_color_map([1, 2])

def test_palette_raster_values(palette_colormap):
    palette = palette_from_color_map(palette_colormap.ravel())
    indices = np.array([[0, 1], [254, 255]], dtype=np.uint8)
    raster = GeoRaster.from_arrays(indices, palette=palette)

    values = raster.get_values()

    assert raster.value_kind is ValueKind.PALETTE_COLOR
    assert values.shape == (1, 2, 2, 4)
    assert values[0, 1, 1].tolist() == [255, 0, 127, 255]

def test_palette_raster_has_no_stats(palette_colormap):
    palette = palette_from_color_map(palette_colormap.ravel())
    raster = GeoRaster.from_arrays(np.zeros((2, 2), dtype=np.uint8), palette=palette)

    with pytest.raises(GeoRasterError):
        raster.stats()

def test_palette_is_a_copy():
    raster = GeoRaster.from_arrays(np.zeros((1, 1), dtype=np.uint8), palette=[(1, 2, 3, 255)])

    raster.palette.append((0, 0, 0, 0))

    assert len(raster.palette) == 1

# --- Statistics, cropping ---

def test_band_stats(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    stats = raster.stats(band=0)

    assert stats.min == 0
    assert stats.max == 57
    assert stats.mean == pytest.approx(28.5)
    assert stats.median == 28.5
    assert stats.count == 48

def test_band_stats_skip_no_data(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory(no_data="0"))

    stats = raster.stats(band=0, window=PixelWindow(0, 0, 2, 1))

    assert stats.count == 1
    assert stats.modes == [1]

def test_band_out_of_range(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    with pytest.raises(IndexError):
        raster.stats(band=5)

def test_window_transform(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    transform = raster.window_transform(PixelWindow(2, 1, 5, 4))

    assert transform.c == 189660.0
    assert transform.f == 4904070.0

def test_crop(decoded_factory, gradient_bands):
    raster = GeoRaster.from_decoded(decoded_factory())

    cropped = raster.crop(PixelWindow(2, 1, 5, 4))

    assert cropped.shape == (2, 3, 3)
    assert np.array_equal(cropped.bands, gradient_bands[:, 1:4, 2:5])
    assert cropped.projection == 32616
    assert_bounds_match(cropped, (189660.0, 4903980.0, 189750.0, 4904070.0))

def test_crop_outside_raises(decoded_factory):
    raster = GeoRaster.from_decoded(decoded_factory())

    with pytest.raises(GeoRasterError):
        raster.crop(PixelWindow(50, 50, 60, 60))

def test_to_dict(decoded_factory):
    report = GeoRaster.from_decoded(decoded_factory()).to_dict()

    assert report["projection"] == 32616
    assert report["crs_status"] == "registered"
    assert report["width"] == 8
    assert report["palette_size"] is None
