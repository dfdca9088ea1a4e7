# swatch_catalog/utils/images.py
import io
import os
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from swatch_catalog.core.errors import ProductValidationError

# safe image extensions we allow
ALLOWED_EXT = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
WEBP_CONTENT_TYPE = "image/webp"


def _safe_ext(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lower()


async def read_image_upload(upload_file, max_bytes: int) -> bytes:
    """
    Read a starlette UploadFile and check it is an image we accept.
    Raises ProductValidationError keyed on "image" otherwise.
    """
    contents = await upload_file.read()
    if not contents:
        raise ProductValidationError({"image": "image file is empty"})
    if len(contents) > max_bytes:
        raise ProductValidationError({"image": f"image larger than {max_bytes} bytes"})
    ext = _safe_ext(upload_file.filename or "")
    if ext and ext not in ALLOWED_EXT:
        raise ProductValidationError({"image": f"unsupported file type {ext}"})
    try:
        with Image.open(io.BytesIO(contents)) as im:
            im.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ProductValidationError({"image": "file is not a readable image"})
    return contents


def to_webp(contents: bytes, max_size: Optional[Tuple[int, int]] = (1600, 1600), quality: int = 85) -> bytes:
    """Re-encode image bytes as WebP, shrinking to fit max_size."""
    with Image.open(io.BytesIO(contents)) as im:
        has_alpha = im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info)
        im = im.convert("RGBA" if has_alpha else "RGB")
        if max_size:
            im.thumbnail(max_size)
        out = io.BytesIO()
        im.save(out, format="WEBP", quality=quality)
        return out.getvalue()


def to_png_thumbnail(contents: bytes, size: Tuple[int, int] = (150, 150)) -> bytes:
    """PNG thumbnail for spreadsheets (openpyxl cannot embed WebP)."""
    with Image.open(io.BytesIO(contents)) as im:
        im = im.convert("RGBA")
        im.thumbnail(size)
        out = io.BytesIO()
        im.save(out, format="PNG", optimize=True)
        return out.getvalue()
