import numpy as np
import pytest
from rawview.features.export.logic import resize_rgba8, resolve_export_size


@pytest.mark.parametrize(
    "source,target,upscale,expected",
    [
        ((4000, 2000), (1000, 1000), True, (1000, 500)),
        ((3000, 2000), (6000, 6000), False, (3000, 2000)),
        ((3000, 2000), (6000, 6000), True, (6000, 4000)),
        ((3000, 2000), (-10, 0), True, (1, 1)),
        ((3000, 2000), (1500, 9999), False, (1500, 1000)),
    ],
)
def test_resolve_export_size(source, target, upscale, expected):
    assert resolve_export_size(*source, *target, upscale) == expected


def test_resolve_export_size_keeps_aspect():
    w, h = resolve_export_size(1500.4, 2000.2, 600, 0, False)
    assert (w, h) == (600, 800)


def test_resize_rgba8_downscale_keeps_alpha_opaque():
    rgba = np.full((40, 60, 4), 200, dtype=np.uint8)
    rgba[..., 3] = 255
    res = resize_rgba8(rgba, 30, 20)
    assert res.shape == (20, 30, 4)
    assert res.dtype == np.uint8
    assert np.all(res[..., 3] == 255)
    assert np.all(res[..., :3] == 200)


def test_resize_rgba8_upscale():
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    res = resize_rgba8(rgba, 8, 8)
    assert res.shape == (8, 8, 4)
    assert np.all(res[..., 3] == 255)


def test_resize_rgba8_same_size_is_noop():
    rgba = np.zeros((3, 5, 4), dtype=np.uint8)
    assert resize_rgba8(rgba, 5, 3) is rgba
