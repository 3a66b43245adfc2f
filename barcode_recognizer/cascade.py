import logging
from typing import List, Optional, Sequence, Tuple

from PIL import Image

from .errors import DecoderInvocationError, PixelBufferError, PreprocessingError
from .models import DecodedCode, PreprocessingVariant
from .raster import load_image, normalize_image

logger = logging.getLogger(__name__)


def map_quad(quad, offset: Tuple[int, int] = (0, 0), scale: Tuple[float, float] = (1.0, 1.0)) -> List[Tuple[int, int]]:
	"""Map corner points from a transformed buffer back onto the source image."""
	ox, oy = offset
	sx, sy = scale
	inv_x = 1.0 / sx if sx else 1.0
	inv_y = 1.0 / sy if sy else 1.0
	return [(ox + int(round(x * inv_x)), oy + int(round(y * inv_y))) for x, y in quad]


# Ordered by priority: as-is first, corrective last. Each entry costs one full
# transform plus one decode, so this list is the latency/accuracy knob.
DEFAULT_VARIANTS: Tuple[PreprocessingVariant, ...] = (
	PreprocessingVariant(name="original"),
	PreprocessingVariant(name="normalize_sharpen", normalize=True, sharpen=1),
	PreprocessingVariant(name="grayscale_normalize", grayscale=True, normalize=True),
	PreprocessingVariant(name="grayscale_threshold_128", grayscale=True, threshold=128),
	PreprocessingVariant(name="resize_600", resize_width=600),
	PreprocessingVariant(name="contrast_boost", contrast=1.6),
	PreprocessingVariant(name="upscale_2x", upscale=2.0),
	PreprocessingVariant(name="blur_threshold_150", grayscale=True, blur_radius=1.0, threshold=150),
)


def try_all_variants(
	image_bytes: Optional[bytes] = None,
	decoder=None,
	variants: Sequence[PreprocessingVariant] = DEFAULT_VARIANTS,
	preloaded_image: Optional[Image.Image] = None,
) -> Optional[DecodedCode]:
	"""Run normalize -> decode for each variant in order and return the first hit.

	`decoder` is anything with a `decode(PixelBuffer)` method. A variant whose
	preprocessing fails is skipped; a decoder that raises counts as no match.
	Malformed `image_bytes` raise ImageDecodeError before any variant runs.
	"""
	if decoder is None:
		raise ValueError("decoder is required")
	img = preloaded_image if preloaded_image is not None else load_image(image_bytes)
	decoder_failures = 0
	for variant in variants:
		try:
			buffer = normalize_image(img, variant)
		except PreprocessingError as exc:
			logger.debug("variant %s skipped: %s", variant.name, exc)
			continue
		except PixelBufferError as exc:
			logger.warning("variant %s produced an inconsistent buffer: %s", variant.name, exc)
			continue
		try:
			code = decoder.decode(buffer)
		except DecoderInvocationError as exc:
			decoder_failures += 1
			logger.debug("variant %s: decoder failed: %s", variant.name, exc)
			continue
		if code is not None:
			logger.debug("variant %s decoded %s", variant.name, code.symbology)
			quad = code.metadata.get("quad")
			if quad:
				# Resize variants decode a scaled copy
				scale = (buffer.width / float(img.width), buffer.height / float(img.height))
				return code.with_metadata(variant=variant.name, quad=map_quad(quad, scale=scale))
			return code.with_metadata(variant=variant.name)
	if variants and decoder_failures == len(variants):
		logger.warning("decoder raised on all %d variants; reporting no match", decoder_failures)
	return None
