import numpy as np
import pytest

from models.image import Image
from models.key_color import KeyColor
from models.keying_config import KeyingConfig, SOFT, COLORKEY
from services.matte_service import (
    ColorkeyExtractor,
    MatteService,
    SoftDifferenceExtractor,
    color_distance,
    max_channel_difference,
)
from tests.helpers import GREEN, solid

KEY = KeyColor(*GREEN)


@pytest.fixture
def matte_service(backend, config):
    return MatteService(backend, config)


def test_color_distance_metric():
    rgb = np.array([[[0, 255, 0], [0, 0, 255], [255, 0, 255]]], dtype=np.uint8)
    d = color_distance(rgb, KEY)
    assert d[0, 0] == pytest.approx(0.0)
    assert d[0, 1] == pytest.approx(np.sqrt(2 / 3), rel=1e-5)
    assert d[0, 2] == pytest.approx(1.0, rel=1e-5)


def test_max_channel_difference():
    rgb = np.array([[[10, 200, 30]]], dtype=np.uint8)
    assert max_channel_difference(rgb, KEY)[0, 0] == pytest.approx(55.0)


@pytest.mark.parametrize("strategy", [SOFT, COLORKEY])
def test_uniform_key_image_is_all_background(matte_service, strategy):
    matte = matte_service.build_matte(Image(solid(30, 40, GREEN)), KEY, strategy)
    assert matte.shape == (30, 40)
    assert matte.is_all_background()


@pytest.mark.parametrize("strategy", [SOFT, COLORKEY])
def test_image_without_key_pixels_is_all_foreground(matte_service, strategy):
    rng = np.random.default_rng(3)
    pixels = rng.integers(0, 256, size=(40, 40, 3)).astype(np.uint8)
    pixels[:, :, 1] = 0          # nothing green anywhere
    matte = matte_service.build_matte(Image(pixels), KEY, strategy)
    assert matte.is_all_foreground()


def test_soft_flat_non_key_image_is_foreground(backend, config):
    extractor = SoftDifferenceExtractor(backend, config)
    matte = extractor.extract_alpha(Image(solid(8, 8, (200, 10, 10))), KEY)
    assert matte.is_all_foreground()


def test_soft_matte_keeps_hard_edges_hard(matte_service, blue_square_on_green):
    matte = matte_service.build_matte(blue_square_on_green, KEY, SOFT)
    values = matte.values
    assert values[:50].max() == 0
    assert values[:, 150:].max() == 0
    # everything but the four outer corners of the square is fully opaque
    inside = values[50:150, 50:150].copy()
    for y, x in ((0, 0), (0, -1), (-1, 0), (-1, -1)):
        inside[y, x] = 255
    assert inside.min() == 255


def test_soft_matte_preserves_soft_transition(matte_service):
    # horizontal ramp from key green to magenta
    width = 64
    t = np.linspace(0.0, 1.0, width)
    row = (1 - t)[:, None] * np.array(GREEN) + t[:, None] * np.array([255, 0, 255])
    pixels = np.repeat(row[None, :, :], 16, axis=0).round().astype(np.uint8)
    values = matte_service.build_matte(Image(pixels), KEY, SOFT).values[8]
    assert values[0] == 0
    assert values[-1] == 255
    assert np.all(np.diff(values.astype(int)) >= 0)
    assert ((values > 0) & (values < 255)).sum() > 10


def test_colorkey_ramp_between_similarity_and_blend():
    config = KeyingConfig(colorkey_similarity=0.25, colorkey_blend=0.08)
    extractor = ColorkeyExtractor(config)
    black_key = KeyColor(0, 0, 0)
    # gray 74 → distance 0.2902 → halfway up the 0.25..0.33 ramp
    pixels = np.array([[[0, 0, 0], [50, 50, 50], [74, 74, 74], [120, 120, 120]]], dtype=np.uint8)
    values = extractor.extract_alpha(Image(pixels), black_key).values[0]
    assert values.tolist() == [0, 0, 128, 255]


def test_colorkey_without_blend_is_binary():
    config = KeyingConfig(colorkey_similarity=0.25, colorkey_blend=0.0)
    pixels = np.array([[[0, 0, 0], [60, 60, 60], [70, 70, 70]]], dtype=np.uint8)
    values = ColorkeyExtractor(config).extract_alpha(Image(pixels), KeyColor(0, 0, 0)).values[0]
    assert values.tolist() == [0, 0, 255]


def test_unknown_strategy_rejected(matte_service, blue_square_on_green):
    with pytest.raises(ValueError):
        matte_service.build_matte(blue_square_on_green, KEY, "neural")


def _noisy_key_raster(seed=11, size=100, spread=3):
    rng = np.random.default_rng(seed)
    noise = rng.integers(-spread, spread + 1, size=(size, size, 3))
    return np.clip(np.array(GREEN) + noise, 0, 255).astype(np.uint8)


@pytest.mark.parametrize("strategy", [SOFT, COLORKEY])
def test_noisy_key_only_raster_is_all_background(matte_service, strategy):
    matte = matte_service.build_matte(Image(_noisy_key_raster()), KEY, strategy)
    assert matte.is_all_background()


def test_soft_matte_does_not_stretch_small_differences(backend, config):
    # a near-key patch 12 levels off the key on an exact key canvas
    pixels = solid(40, 40, GREEN)
    pixels[15:25, 15:25] = (0, 243, 0)
    values = SoftDifferenceExtractor(backend, config).extract_alpha(Image(pixels), KEY).values
    assert values[:10].max() == 0
    # 12 / 25.5 of the tolerance band, not full opacity
    assert abs(int(values[20, 20]) - 119) <= 1
