import io
import logging
from typing import Optional

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from .errors import ImageDecodeError, PreprocessingError, UnsupportedImageError
from .models import PixelBuffer, PreprocessingVariant

# Register HEIC/HEIF with Pillow if available
try:
	import pillow_heif  # type: ignore
	pillow_heif.register_heif_opener()
except Exception:
	pillow_heif = None  # type: ignore

logger = logging.getLogger(__name__)

# Upscaling only helps small captures; larger images are left alone
UPSCALE_LIMIT = 1200


def load_image(image_bytes: bytes) -> Image.Image:
	"""Open encoded image bytes as an RGB image.

	Multi-frame sources (animated GIF/WebP, multi-page TIFF) yield their first frame.
	"""
	if not image_bytes:
		raise ImageDecodeError("empty image data")
	try:
		img = Image.open(io.BytesIO(image_bytes))
		if getattr(img, "n_frames", 1) > 1:
			img.seek(0)
		img.load()
	except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as exc:
		raise ImageDecodeError(f"unreadable image data: {exc}") from exc
	w, h = img.size
	if w <= 0 or h <= 0:
		raise ImageDecodeError(f"zero-area image: {w}x{h}")
	if img.mode == "RGB":
		return img
	try:
		if img.mode in ("I", "I;16", "I;16B", "I;16L", "F"):
			# High bit-depth grayscale: stretch to 8 bits before RGB
			arr = np.array(img, dtype=np.float64)
			lo, hi = float(arr.min()), float(arr.max())
			arr = (arr - lo) * (255.0 / max(hi - lo, 1.0))
			return Image.fromarray(arr.astype(np.uint8)).convert("RGB")
		if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
			# Flatten onto white so transparent quiet zones stay light
			rgba = img.convert("RGBA")
			canvas = Image.new("RGB", rgba.size, (255, 255, 255))
			canvas.paste(rgba, mask=rgba.getchannel("A"))
			return canvas
		return img.convert("RGB")
	except ValueError as exc:
		raise UnsupportedImageError(f"unsupported color space {img.mode!r}") from exc


def _resize(img: Image.Image, size) -> Image.Image:
	w, h = size
	if w <= 0 or h <= 0:
		raise PreprocessingError(f"resize to zero area: {w}x{h}")
	return img.resize((w, h), Image.Resampling.LANCZOS)


def apply_variant(img: Image.Image, variant: PreprocessingVariant) -> Image.Image:
	"""Apply the operations present in `variant`; the source image is not modified."""
	out = img
	if variant.grayscale:
		out = out.convert("L")
	if variant.normalize:
		out = ImageOps.autocontrast(out)
	if variant.contrast is not None:
		out = ImageEnhance.Contrast(out).enhance(variant.contrast)
	if variant.blur_radius:
		out = out.filter(ImageFilter.GaussianBlur(radius=variant.blur_radius))
	for _ in range(variant.sharpen):
		out = out.filter(ImageFilter.SHARPEN)
	if variant.threshold is not None:
		level = variant.threshold
		out = out.convert("L").point(lambda p: 255 if p >= level else 0)
	w, h = out.size
	if variant.resize_width is not None:
		target = min(variant.resize_width, w)
		if target != w:
			out = _resize(out, (target, int(h * target / float(w))))
	elif variant.upscale is not None and max(w, h) < UPSCALE_LIMIT:
		out = _resize(out, (int(w * variant.upscale), int(h * variant.upscale)))
	return out


def to_pixel_buffer(img: Image.Image) -> PixelBuffer:
	if img.mode not in ("L", "RGB"):
		img = img.convert("RGB")
	return PixelBuffer.from_array(np.array(img, dtype=np.uint8))


def normalize_image(img: Image.Image, variant: PreprocessingVariant) -> PixelBuffer:
	"""Produce one decoder buffer from an already-loaded image."""
	buf = to_pixel_buffer(apply_variant(img, variant))
	logger.debug("variant %s: %dx%d, channels=%d", variant.name, buf.width, buf.height, buf.channels)
	return buf


def normalize(image_bytes: bytes, variant: PreprocessingVariant, preloaded_image: Optional[Image.Image] = None) -> PixelBuffer:
	img = preloaded_image if preloaded_image is not None else load_image(image_bytes)
	return normalize_image(img, variant)
