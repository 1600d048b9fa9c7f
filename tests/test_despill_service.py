import numpy as np
import pytest

from models.image import Image
from models.key_color import KeyColor
from models.matte import Matte
from services.despill_service import DespillService

GREEN_KEY = KeyColor(0, 255, 0)


@pytest.mark.parametrize("fg, alpha, key", [
    ((200, 50, 30), 0.6, GREEN_KEY),
    ((10, 10, 10), 0.25, GREEN_KEY),
    ((255, 255, 255), 0.9, KeyColor(11, 242, 10)),
    ((90, 120, 60), 0.05, KeyColor(20, 30, 240)),
])
def test_unmix_inverts_the_compositing_equation(fg, alpha, key):
    fg_arr = np.array(fg, dtype=np.float32)
    observed = alpha * fg_arr + (1 - alpha) * key.as_array()
    recovered = DespillService.unmix_colors(observed[None, None, :], np.array([[alpha]]), key)
    np.testing.assert_allclose(recovered[0, 0], fg_arr, atol=1e-2)


def test_unmix_recovers_through_uint8_rounding():
    key = GREEN_KEY
    fg = np.array([180, 40, 90], dtype=np.float32)
    alpha = 200 / 255
    observed = np.rint(alpha * fg + (1 - alpha) * key.as_array()).astype(np.uint8)
    recovered = DespillService.unmix_colors(observed[None, None, :], np.array([[alpha]]), key)
    np.testing.assert_allclose(recovered[0, 0], fg, atol=1.0)


def test_unmix_guards_zero_alpha():
    observed = np.full((2, 2, 3), 128, dtype=np.uint8)
    alpha = np.array([[0.0, 1.0], [0.0, 0.5]], dtype=np.float32)
    with np.errstate(all="raise"):
        out = DespillService.unmix_colors(observed, alpha, GREEN_KEY)
    assert np.isfinite(out).all()
    assert (out[alpha == 0] == 0).all()
    np.testing.assert_allclose(out[0, 1], [128, 128, 128])


def test_despill_clamps_green_to_mean_of_red_and_blue():
    rgb = np.array([[[100, 220, 60], [100, 50, 60]]], dtype=np.float32)
    out = DespillService.despill_colors(rgb, channel=1)
    assert out[0, 0].tolist() == [100, 80, 60]
    assert out[0, 1].tolist() == [100, 50, 60]


def test_despill_follows_the_key_hue():
    img = Image(np.array([[[10, 20, 200]]], dtype=np.uint8))
    out = DespillService().despill(img, KeyColor(0, 0, 255))
    assert out.pixels[0, 0].tolist() == [10, 20, 15]


def test_despill_is_idempotent():
    rng = np.random.default_rng(5)
    img = Image(rng.integers(0, 256, size=(32, 32, 3)).astype(np.uint8))
    service = DespillService()
    once = service.despill(img, GREEN_KEY)
    twice = service.despill(once, GREEN_KEY)
    np.testing.assert_array_equal(once.pixels, twice.pixels)


def test_unmix_returns_new_rgb_image(blue_square_on_green):
    values = np.zeros((200, 200), dtype=np.uint8)
    values[50:150, 50:150] = 255
    before = blue_square_on_green.pixels.copy()
    out = DespillService().unmix(blue_square_on_green, Matte(values), GREEN_KEY)
    assert out.pixels.shape == (200, 200, 3)
    np.testing.assert_array_equal(blue_square_on_green.pixels, before)
    assert (out.pixels[50:150, 50:150] == [0, 0, 255]).all()


def test_unmix_rejects_mismatched_matte(blue_square_on_green):
    with pytest.raises(ValueError):
        DespillService().unmix(blue_square_on_green, Matte(np.zeros((10, 10), np.uint8)), GREEN_KEY)
