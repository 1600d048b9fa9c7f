import numpy as np
import pytest

from models.key_color import KeyColor, DEFAULT_KEY_COLOR


@pytest.mark.parametrize("text", ["#0BF20A", "0BF20A", "0x0bf20a", "  #0bf20a "])
def test_from_hex_accepts_common_spellings(text):
    assert KeyColor.from_hex(text) == KeyColor(11, 242, 10)


@pytest.mark.parametrize("text", ["", "#12345", "#GGGGGG", "00FF00FF"])
def test_from_hex_rejects_garbage(text):
    with pytest.raises(ValueError):
        KeyColor.from_hex(text)


def test_to_hex_round_trip():
    assert KeyColor.from_hex(DEFAULT_KEY_COLOR.to_hex()) == DEFAULT_KEY_COLOR
    assert DEFAULT_KEY_COLOR.to_hex() == "#00FF00"


def test_channel_out_of_range_rejected():
    with pytest.raises(ValueError):
        KeyColor(0, 256, 0)


def test_from_array_rounds_and_clips():
    assert KeyColor.from_array(np.array([10.6, 300.0, -4.0])) == KeyColor(11, 255, 0)


@pytest.mark.parametrize("key, channel, name", [
    (KeyColor(0, 255, 0), 1, "green"),
    (KeyColor(20, 40, 230), 2, "blue"),
    (KeyColor(250, 10, 10), 0, "red"),
    (KeyColor(0, 200, 200), 1, "green"),   # tie goes to green
    (KeyColor(200, 0, 200), 2, "blue"),    # tie goes to blue before red
])
def test_dominant_channel(key, channel, name):
    assert key.dominant_channel == channel
    assert key.hue_name == name
