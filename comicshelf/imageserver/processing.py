# comicshelf/imageserver/processing.py
"""
Image pipeline for everything the image service stores.

    width > MAX_WIDTH           -> downscale (LANCZOS), keep aspect ratio
    CONVERT_TO_WEBP and not an animated GIF -> .webp at WEBP_QUALITY
    GIF                         -> original bytes, .gif
    anything else               -> .jpg at JPEG_QUALITY
"""
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from comicshelf import config
from comicshelf.errors import AssetValidationError

ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}


@dataclass
class ProcessedImage:
    data: bytes
    extension: str  # without dot


def validate_upload(data: bytes, content_type: Optional[str], max_size: Optional[int] = None) -> None:
    max_size = config.MAX_FILE_SIZE if max_size is None else max_size
    if (content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise AssetValidationError("Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed.")
    if not data:
        raise AssetValidationError("Empty file")
    if len(data) > max_size:
        raise AssetValidationError(
            f"File too large. Maximum size is {max_size / 1024 / 1024:g}MB"
        )


def _fit_width(img: Image.Image, max_width: int) -> Image.Image:
    if img.width <= max_width:
        return img
    height = max(1, round(img.height * max_width / img.width))
    return img.resize((max_width, height), Image.Resampling.LANCZOS)


def _flatten(img: Image.Image) -> Image.Image:
    """JPEG has no alpha: composite transparent images onto white."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def process_image(
    data: bytes,
    *,
    max_width: Optional[int] = None,
    convert_to_webp: Optional[bool] = None,
    webp_quality: Optional[int] = None,
    jpeg_quality: Optional[int] = None,
) -> ProcessedImage:
    max_width = config.MAX_WIDTH if max_width is None else max_width
    convert_to_webp = config.CONVERT_TO_WEBP if convert_to_webp is None else convert_to_webp
    webp_quality = config.WEBP_QUALITY if webp_quality is None else webp_quality
    jpeg_quality = config.JPEG_QUALITY if jpeg_quality is None else jpeg_quality

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError):
        raise AssetValidationError("Invalid image file")

    is_gif = img.format == "GIF"
    animated = bool(getattr(img, "is_animated", False))

    if is_gif and (animated or not convert_to_webp):
        # written through untouched so animations survive
        return ProcessedImage(data=data, extension="gif")

    img = ImageOps.exif_transpose(img)
    img = _fit_width(img, max_width)
    out = io.BytesIO()

    if convert_to_webp:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "transparency" in img.info or img.mode in ("LA", "P") else "RGB")
        img.save(out, format="WEBP", quality=webp_quality)
        return ProcessedImage(data=out.getvalue(), extension="webp")

    _flatten(img).save(out, format="JPEG", quality=jpeg_quality, optimize=True)
    return ProcessedImage(data=out.getvalue(), extension="jpg")
