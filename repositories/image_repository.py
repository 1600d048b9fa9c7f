from pathlib import Path
from typing import Union, Iterable, Iterator
from io import BytesIO
import os
import logging

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from models.image import Image
from models.errors import InvalidImageError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles file I/O for Image entities (decode any common format, encode PNG).
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.webp,.gif")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def _from_pil(pil_img: PILImage.Image, path: Path | None = None) -> Image:
        # Palette/LA/etc. images carrying transparency keep it as RGBA.
        has_alpha = pil_img.mode in ("RGBA", "LA", "PA") or "transparency" in pil_img.info
        arr = np.asarray(pil_img.convert("RGBA" if has_alpha else "RGB"), dtype=np.uint8)
        if arr.ndim != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
            raise InvalidImageError(f"Image has zero size: {path or '<bytes>'}")
        return Image(pixels=np.ascontiguousarray(arr), path=path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Image:
        path = Path(path)
        if not path.is_file():
            raise InvalidImageError(f"Image not found: {path}")
        try:
            with PILImage.open(path) as pil_img:
                pil_img.load()
                return cls._from_pil(pil_img, path)
        except (UnidentifiedImageError, OSError) as err:
            raise InvalidImageError(f"Image not readable: {path} ({err})") from err

    @staticmethod
    def save(image: Image, path: Union[str, Path, None] = None) -> Path:
        """Always writes PNG so the alpha channel survives."""
        target = Path(path or image.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(target, format="PNG")
        return target

    @staticmethod
    def to_png_bytes(image: Image) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(buffer, format="PNG")
        return buffer.getvalue()

    def iter_paths(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Path]:
        """
        Yield image paths one at a time; decoding is left to the caller.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if not p.is_file():
                continue
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            yield p
