import pytest

from hudcam.core.geometry import (
    compute_display_transform,
    scaled_size,
    to_display_bbox,
    to_display_point,
    to_source_point,
)


def test_fit_wider_surface_centers_horizontally():
    t = compute_display_transform(800, 600, 1600, 900)
    assert t.scale == 1.5
    assert t.offset_x == 200
    assert t.offset_y == 0


def test_source_box_maps_to_display_box():
    t = compute_display_transform(800, 600, 1600, 900)
    assert to_display_bbox(t, (100, 100, 300, 300)) == (350, 100, 650, 550)


def test_fit_taller_surface_centers_vertically():
    t = compute_display_transform(800, 600, 400, 1000)
    assert t.scale == 0.5
    assert t.offset_x == 0
    assert t.offset_y == pytest.approx((1000 - 300) / 2)
    assert scaled_size(t, 800, 600) == (400, 300)


@pytest.mark.parametrize("dims", [(0, 600, 100, 100), (800, 600, 0, 900), (800, -1, 10, 10)])
def test_degenerate_dimensions_yield_empty_transform(dims):
    t = compute_display_transform(*dims)
    assert t.scale == 0.0
    assert t.is_empty


def test_round_trip_recovers_source_point():
    t = compute_display_transform(800, 600, 1333, 777)
    for p in [(0.0, 0.0), (123.4, 567.8), (800.0, 600.0), (399.5, 1.25)]:
        back = to_source_point(t, to_display_point(t, p))
        assert back[0] == pytest.approx(p[0])
        assert back[1] == pytest.approx(p[1])


def test_inverse_of_empty_transform_raises():
    t = compute_display_transform(0, 0, 10, 10)
    with pytest.raises(ValueError):
        to_source_point(t, (1, 1))
