"""
Chroma-key background removal pipeline.

Sampler → matte → refine → unmix/despill → composite, each stage consuming
the previous stage's raster. The first stage failure drops the whole image
onto the threshold fallback, which starts again from the original pixels.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Union
import logging
import os

import numpy as np
from dotenv import load_dotenv
from tqdm import tqdm

from models.errors import BackendUnavailableError, InvalidImageError, KeyingError, StageError
from models.image import Image
from models.key_color import KeyColor
from models.keying_config import KeyingConfig, SOFT, COLORKEY
from models.keying_result import (
    BatchOutcome,
    KeyingResult,
    COLORKEY_METHOD,
    FALLBACK_METHOD,
    PASSTHROUGH_METHOD,
    SOFT_METHOD,
)
from models.stage_result import StageResult
from repositories.ffmpeg_repository import FfmpegColorkeyRepository
from repositories.image_repository import ImageRepository
from repositories.raster_backend import RasterBackend, get_backend
from services.color_sampler_service import ColorSamplerService
from services.compositor_service import CompositorService
from services.despill_service import DespillService
from services.fallback_service import FallbackService
from services.matte_refiner_service import MatteRefinerService
from services.matte_service import MatteService

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
BATCH_WORKERS = int(os.getenv("BATCH_WORKERS", "4"))

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def _run_stage(stage: str, fn: Callable, *args) -> StageResult:
    try:
        return StageResult.success(stage, fn(*args))
    except InvalidImageError:
        raise
    except Exception as err:
        if not isinstance(err, KeyingError):
            err = StageError(f"{type(err).__name__}: {err}", stage)
        logger.warning(f"Stage '{stage}' failed: {err}")
        return StageResult.failure(stage, err)


def _validate(img: Image) -> None:
    pixels = img.pixels
    if pixels is None or pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise InvalidImageError("Expected an (H, W, 3) or (H, W, 4) raster")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise InvalidImageError(f"Image has zero size: {pixels.shape[1]}x{pixels.shape[0]}")
    if pixels.dtype != np.uint8:
        raise InvalidImageError(f"Expected uint8 pixels, got {pixels.dtype}")


def _downgrade(
    img: Image,
    key: KeyColor,
    failed: StageResult,
    fallback_service: FallbackService,
    tolerance: float,
) -> KeyingResult:
    name = img.path.name if img.path else "image"
    print(f"⚠️  {name}: stage '{failed.stage}' failed ({failed.reason}); "
          f"falling back to threshold keying")
    logger.warning(f"Downgrading {name} to fallback keying after '{failed.stage}' failure")
    keyed = fallback_service.fallback(img, key, tolerance)
    return KeyingResult(image=keyed, key_color=key, method=FALLBACK_METHOD,
                        failed_stage=failed.stage, reason=failed.reason)


def _passthrough(img: Image, key: KeyColor) -> KeyingResult:
    name = img.path.name if img.path else "image"
    logger.warning(f"{name}: no background matching {key} within tolerance; returning it opaque")
    rgba = np.dstack([img.rgb, img.alpha]).astype(np.uint8)
    return KeyingResult(image=Image(pixels=rgba, path=img.path), key_color=key,
                        method=PASSTHROUGH_METHOD)


# ------------------------------------------------------------------
def remove_background(
    img: Image,
    *,
    key_color: KeyColor | str | None = None,
    tolerance: float | None = None,
    strategy: str | None = None,
    config: KeyingConfig | None = None,
    backend: RasterBackend | None = None,
    fallback_backend: RasterBackend | None = None,
) -> KeyingResult:
    """
    Key one image.

    • key_color given → used as is; otherwise sampled from the top-left corner
    • strategy 'soft'     → difference matte, refine, unmix + despill, trim
    • strategy 'colorkey' → similarity/blend colorkey, despill, trim
    • any stage failure   → whole image redone by the threshold fallback

    Only InvalidImageError escapes, plus the BackendUnavailableError or
    BackendError the fallback itself raises.
    """
    _validate(img)
    config = (config or KeyingConfig.from_env()).with_overrides(tolerance=tolerance, strategy=strategy)
    backend = backend or get_backend(config.raster_backend, binary=config.magick_binary)
    fallback_backend = fallback_backend or get_backend(config.fallback_backend,
                                                       binary=config.magick_binary)
    fallback_service = FallbackService(fallback_backend, config)

    if isinstance(key_color, str):
        key_color = KeyColor.from_hex(key_color)

    # 1. key color
    if key_color is None:
        sampled = _run_stage("sample", ColorSamplerService(backend, config).sample,
                             img, config.default_key_color)
        key = sampled.data if sampled.ok else config.default_key_color
    else:
        key = key_color

    if config.strategy == COLORKEY:
        return _colorkey_pipeline(img, key, config, backend, fallback_service)
    return _soft_pipeline(img, key, config, backend, fallback_service)


def _soft_pipeline(img, key, config, backend, fallback_service) -> KeyingResult:
    matte_service = MatteService(backend, config)
    refiner = MatteRefinerService(backend, config)
    despill_service = DespillService()
    compositor = CompositorService(backend, config)
    source_alpha = img.alpha if img.has_alpha else None

    # 2. raw matte
    raw = _run_stage("matte", matte_service.build_matte, img, key, SOFT)
    if not raw.ok:
        return _downgrade(img, key, raw, fallback_service, config.tolerance)
    if raw.data.is_all_foreground():
        return _passthrough(img, key)

    # 3. refined matte (raw one is dropped from here on)
    refined = _run_stage("refine", refiner.refine, raw.data)
    if not refined.ok:
        return _downgrade(img, key, refined, fallback_service, config.tolerance)

    # 4. unmix + despill
    unmixed = _run_stage("unmix", despill_service.unmix, img, refined.data, key)
    if not unmixed.ok:
        return _downgrade(img, key, unmixed, fallback_service, config.tolerance)

    # 5. alpha + trim
    composited = _run_stage("composite", compositor.composite, unmixed.data, refined.data, source_alpha)
    if not composited.ok:
        return _downgrade(img, key, composited, fallback_service, config.tolerance)

    return KeyingResult(image=composited.data, key_color=key, method=SOFT_METHOD)


def _colorkey_pipeline(img, key, config, backend, fallback_service) -> KeyingResult:
    matte_service = MatteService(backend, config)
    compositor = CompositorService(backend, config)
    source_alpha = img.alpha if img.has_alpha else None

    if not matte_service.key_pixel_mask(img, key).any():
        return _passthrough(img, key)

    if config.colorkey_engine == "ffmpeg":
        ffmpeg = FfmpegColorkeyRepository(config.ffmpeg_binary)
        keyed = _run_stage("colorkey", ffmpeg.colorkey, img, key,
                           config.colorkey_similarity, config.colorkey_blend)
        if not keyed.ok:
            return _downgrade(img, key, keyed, fallback_service, config.tolerance)
        rgba = keyed.data
        if source_alpha is not None:
            rgba[:, :, 3] = np.minimum(rgba[:, :, 3], source_alpha)
        trimmed = _run_stage("composite", compositor.trim, Image(pixels=rgba, path=img.path))
    else:
        matte = _run_stage("colorkey", matte_service.build_matte, img, key, COLORKEY)
        if not matte.ok:
            return _downgrade(img, key, matte, fallback_service, config.tolerance)
        despilled = _run_stage("despill", DespillService().despill, img, key)
        if not despilled.ok:
            return _downgrade(img, key, despilled, fallback_service, config.tolerance)
        trimmed = _run_stage("composite", compositor.composite, despilled.data, matte.data, source_alpha)

    if not trimmed.ok:
        return _downgrade(img, key, trimmed, fallback_service, config.tolerance)
    return KeyingResult(image=trimmed.data, key_color=key, method=COLORKEY_METHOD)


# ------------------------------------------------------------------
def default_output_path(input_path: Union[str, Path], output_dir: Union[str, Path, None] = None) -> Path:
    """<dir>/<stem>.png, or <stem>_transparent.png when that would overwrite the input."""
    input_path = Path(input_path)
    folder = Path(output_dir) if output_dir else input_path.parent
    candidate = folder / f"{input_path.stem}.png"
    if candidate.resolve() == input_path.resolve():
        candidate = folder / f"{input_path.stem}_transparent.png"
    return candidate


def remove_background_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path, None] = None,
    *,
    image_repository: ImageRepository | None = None,
    **kwargs,
) -> KeyingResult:
    """
    Load → key → save as PNG. Returns the result with `image.path` set to
    the written file. InvalidImageError propagates.
    """
    repo = image_repository or ImageRepository()
    img = repo.load(input_path)
    result = remove_background(img, **kwargs)

    target = Path(output_path) if output_path else default_output_path(input_path)
    saved = repo.save(result.image, target)
    return KeyingResult(
        image=Image(pixels=result.image.pixels, path=saved),
        key_color=result.key_color,
        method=result.method,
        failed_stage=result.failed_stage,
        reason=result.reason,
    )


def remove_backgrounds(
    paths: Iterable[Union[str, Path]],
    *,
    output_dir: Union[str, Path, None] = None,
    workers: int | None = None,
    show_progress: bool = True,
    **kwargs,
) -> List[BatchOutcome]:
    """
    Key many files independently. Runs are embarrassingly parallel: each
    worker loads, keys and saves its own image. A bad input, or a fallback
    backend that rejects one image, is reported in its BatchOutcome and does
    not stop the others. A missing fallback tool aborts the whole batch.
    Output order follows input.
    """
    paths = [Path(p) for p in paths]
    if not paths:
        return []
    if output_dir:
        Path(output_dir).mkdir(parents=True, exist_ok=True)

    def _one(path: Path) -> BatchOutcome:
        try:
            result = remove_background_file(path, default_output_path(path, output_dir), **kwargs)
            return BatchOutcome(source=path, result=result)
        except BackendUnavailableError:
            raise
        except KeyingError as err:
            logger.error(f"Skipping {path.name}: {err}")
            return BatchOutcome(source=path, error=str(err))

    workers = max(1, workers or BATCH_WORKERS)
    with ThreadPoolExecutor(max_workers=min(workers, len(paths))) as pool:
        iterator = pool.map(_one, paths)
        if show_progress:
            iterator = tqdm(iterator, total=len(paths), desc="keying", ncols=70)
        return list(iterator)
