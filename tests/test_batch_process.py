from PIL import Image as PILImage

from cli import batch_process
from models.errors import BackendUnavailableError


def test_main_keys_listed_files(tmp_path, monkeypatch, blue_square_on_green, capsys):
    out_dir = tmp_path / "transparent"
    monkeypatch.setattr(batch_process, "OUTPUT_DIR", str(out_dir))
    monkeypatch.setenv("RASTER_BACKEND", "opencv")
    src = tmp_path / "product.png"
    PILImage.fromarray(blue_square_on_green.pixels).save(src)

    assert batch_process.main([str(src)]) == 0

    with PILImage.open(out_dir / "product.png") as out:
        assert out.size == (100, 100)
    assert "Keyed 1/1 image(s), 0 degraded, 0 failed" in capsys.readouterr().out


def test_main_fails_on_bad_input(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(batch_process, "OUTPUT_DIR", str(tmp_path / "out"))
    bad = tmp_path / "junk.png"
    bad.write_bytes(b"nope")

    assert batch_process.main([str(bad)]) == 1
    assert "x junk.png" in capsys.readouterr().out


def test_main_missing_input_folder(tmp_path, monkeypatch):
    monkeypatch.setattr(batch_process, "INPUT_DIR", str(tmp_path / "missing"))
    assert batch_process.main([]) == 1


def test_main_reports_unavailable_backend(tmp_path, monkeypatch, capsys):
    def unavailable(*_args, **_kwargs):
        raise BackendUnavailableError("ImageMagick (magick)")

    monkeypatch.setattr(batch_process, "remove_backgrounds", unavailable)
    assert batch_process.main([str(tmp_path / "a.png")]) == 1
    assert "ImageMagick" in capsys.readouterr().err


def test_log_batch_results_empty(capsys):
    batch_process.log_batch_results([])
    assert "No images to key." in capsys.readouterr().out
