import logging
from typing import List, Optional, Sequence

from PIL import Image

from .cascade import DEFAULT_VARIANTS, map_quad, try_all_variants
from .models import DecodedCode, PreprocessingVariant, Region
from .raster import load_image

logger = logging.getLogger(__name__)

# Crops smaller than this on either side are not worth a cascade
MIN_REGION_SIDE = 40
CENTER_FRACTION = 0.7


def region_boxes(w: int, h: int, include_center: bool = True) -> List[Region]:
	"""Fixed, ordered set of sub-rectangles: halves first, then a centred crop."""
	hw, hh = w // 2, h // 2
	boxes = [
		Region("left", 0, 0, w - hw, h),
		Region("right", w - hw, 0, w, h),
		Region("top", 0, 0, w, h - hh),
		Region("bottom", 0, h - hh, w, h),
	]
	if include_center:
		cw, ch = int(w * CENTER_FRACTION), int(h * CENTER_FRACTION)
		cl, ct = (w - cw) // 2, (h - ch) // 2
		boxes.append(Region("center", cl, ct, cl + cw, ct + ch))
	return [b for b in boxes if b.width >= MIN_REGION_SIDE and b.height >= MIN_REGION_SIDE]


def scan_regions(
	image_bytes: Optional[bytes] = None,
	decoder=None,
	variants: Sequence[PreprocessingVariant] = DEFAULT_VARIANTS,
	preloaded_image: Optional[Image.Image] = None,
	include_center: bool = True,
) -> List[DecodedCode]:
	"""Run the full cascade on each region and collect every hit, in region order.

	Hits carry `metadata.region` with the crop's box, and any `metadata.quad`,
	in source coordinates.
	"""
	img = preloaded_image if preloaded_image is not None else load_image(image_bytes)
	W, H = img.size
	found: List[DecodedCode] = []
	for region in region_boxes(W, H, include_center=include_center):
		crop = img.crop(region.box)
		code = try_all_variants(decoder=decoder, variants=variants, preloaded_image=crop)
		if code is None:
			continue
		logger.debug("region %s decoded %s", region.name, code.symbology)
		extra = {"region": region.as_dict()}
		quad = code.metadata.get("quad")
		if quad:
			extra["quad"] = map_quad(quad, offset=(region.left, region.top))
		found.append(code.with_metadata(**extra))
	return found
