import numpy as np
import pytest

from models.image import Image
from models.key_color import KeyColor
from services.color_sampler_service import ColorSamplerService
from tests.helpers import solid


def _distance(a: KeyColor, b: KeyColor) -> float:
    return float(np.linalg.norm(a.as_array() - b.as_array()))


@pytest.fixture
def sampler(backend, config):
    return ColorSamplerService(backend, config)


def test_detects_near_green_instead_of_default(sampler):
    pixels = solid(200, 200, (0x0B, 0xF2, 0x0A))
    pixels[60:140, 60:140] = (200, 30, 40)
    key = sampler.sample(Image(pixels))
    assert _distance(key, KeyColor.from_hex("#0BF20A")) < 2.0
    assert key != KeyColor(0, 255, 0)


def test_noisy_corner_uses_dominant_cluster(sampler):
    rng = np.random.default_rng(7)
    noise = rng.integers(-3, 4, size=(200, 200, 3))
    pixels = np.clip(np.array([11, 242, 10]) + noise, 0, 255).astype(np.uint8)
    # a bit of subject poking into the corner patch
    pixels[:3, :3] = (250, 250, 250)
    pixels[5, 5] = (0, 0, 0)
    key = sampler.sample(Image(pixels))
    assert _distance(key, KeyColor(11, 242, 10)) < 5.0


def test_corner_patch_size(sampler):
    img = Image(solid(300, 120, (0, 255, 0)))
    assert sampler.corner_patch(img).shape == (30, 12, 3)
    tiny = Image(solid(2, 3, (0, 255, 0)))
    assert sampler.corner_patch(tiny).shape == (2, 3, 3)


def test_histogram_used_when_clustering_fails(sampler, monkeypatch):
    pixels = solid(100, 100, (5, 249, 4))
    pixels[0, 0] = (255, 0, 0)

    def broken(_patch):
        raise RuntimeError("no clustering today")

    monkeypatch.setattr(sampler, "_cluster", broken)
    assert sampler.sample(Image(pixels)) == KeyColor(5, 249, 4)


def test_top_left_pixel_when_statistics_fail(sampler, monkeypatch):
    def boom(_patch):
        raise ValueError("nope")

    pixels = solid(50, 50, (1, 2, 3))
    monkeypatch.setattr(sampler, "_cluster", boom)
    monkeypatch.setattr(sampler, "_histogram", boom)
    assert sampler.sample(Image(pixels)) == KeyColor(1, 2, 3)


def test_default_when_everything_fails(sampler, monkeypatch):
    def boom(*_args):
        raise ValueError("nope")

    monkeypatch.setattr(sampler, "_cluster", boom)
    monkeypatch.setattr(sampler, "_histogram", boom)
    monkeypatch.setattr(sampler, "_top_left", boom)
    fallback = KeyColor(1, 200, 3)
    assert sampler.sample(Image(solid(10, 10, (9, 9, 9))), default=fallback) == fallback
    assert sampler.sample(Image(solid(10, 10, (9, 9, 9)))) == KeyColor(0, 255, 0)
