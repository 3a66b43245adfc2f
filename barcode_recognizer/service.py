"""
Scan service - wires the recognition pipeline together.

Strategy:
- Whole image through the retry cascade
- Region partitioning to pick up further (or smaller) codes
- Heuristic classification only if nothing decoded
- Merge and de-duplicate by value
"""

import logging
from typing import List, Optional, Sequence

from .aggregator import aggregate
from .cascade import DEFAULT_VARIANTS, try_all_variants
from .classifier import classify
from .config import Settings
from .decoder import DirectDecoder
from .errors import NoCodeDetectedError
from .models import DecodedCode, PreprocessingVariant
from .raster import load_image
from .regions import scan_regions

logger = logging.getLogger(__name__)


class BarcodeScanner:
	"""Holds construction-time configuration only; safe to share across requests."""

	def __init__(
		self,
		decoder: Optional[DirectDecoder] = None,
		variants: Sequence[PreprocessingVariant] = DEFAULT_VARIANTS,
		heuristic_fallback: bool = True,
		include_center_region: bool = True,
	):
		self._decoder = decoder or DirectDecoder()
		self._variants = tuple(variants)
		self._heuristic_fallback = heuristic_fallback
		self._include_center_region = include_center_region

	@classmethod
	def from_settings(cls, settings: Settings) -> "BarcodeScanner":
		return cls(
			decoder=DirectDecoder(try_harder=settings.try_harder),
			heuristic_fallback=settings.heuristic_fallback,
			include_center_region=settings.include_center_region,
		)

	def recognize(self, image_bytes: bytes, exhaustive: bool = True) -> List[DecodedCode]:
		"""Run the pipeline and return every distinct result in priority order.

		With `exhaustive=False` a whole-image decode ends the search early.
		Raises ImageDecodeError for unreadable bytes; an empty list means nothing found.
		"""
		img = load_image(image_bytes)
		w, h = img.size
		logger.debug("Processing image: %dx%d", w, h)

		direct = try_all_variants(decoder=self._decoder, variants=self._variants, preloaded_image=img)
		if direct is not None and not exhaustive:
			return [direct]

		region_results = scan_regions(
			decoder=self._decoder,
			variants=self._variants,
			preloaded_image=img,
			include_center=self._include_center_region,
		)

		heuristic = None
		if direct is None and not region_results and self._heuristic_fallback:
			heuristic = classify(preloaded_image=img)

		results = aggregate(direct, region_results, heuristic)
		logger.info("recognized %d code(s) in %dx%d image", len(results), w, h)
		return results

	def scan(self, image_bytes: bytes) -> DecodedCode:
		results = self.recognize(image_bytes, exhaustive=False)
		if not results:
			raise NoCodeDetectedError()
		return results[0]

	def scan_all(self, image_bytes: bytes) -> List[DecodedCode]:
		results = self.recognize(image_bytes, exhaustive=True)
		if not results:
			raise NoCodeDetectedError()
		return results
