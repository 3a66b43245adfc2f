"""
Heuristic symbology classification from pixel statistics.

Used only when no decoder produced a payload. The result names the likely
barcode family and the measurement that triggered it; the value is a labelled
placeholder, never payload bytes, and confidence stays below 0.9.

Rules (first match wins, thresholds tried in order):
1. square, 30-70% black, dense transitions, plus a
   strong, relaxed or finder-border sub-rule       -> DATA_MATRIX
2. wide, many horizontal and few vertical changes  -> CODE_128 / LINEAR_BARCODE
3. wide, horizontal dominant but rows also change  -> PDF_417
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image

from .models import CODE_128, DATA_MATRIX, LINEAR_BARCODE, PDF_417, DecodedCode
from .raster import load_image

logger = logging.getLogger(__name__)

THRESHOLDS = (80, 100, 128, 150, 180, 200)
HEURISTIC_CONFIDENCE_CEILING = 0.89
INFERRED_PREFIX = "[inferred]"
INFERRED_NOTE = (
	"Structural inference from pixel statistics, not a verified decode. "
	"The symbology is a best guess and the payload could not be extracted."
)

# Matrix rule
MATRIX_ASPECT = (0.8, 1.2)
MATRIX_BLACK = (0.30, 0.70)
MATRIX_MIN_DENSITY = 0.10
MATRIX_STRONG_DENSITY = 0.12
MATRIX_STRONG_BLACK = (0.50, 0.65)
MATRIX_RELAXED_MIN_BLACK = 0.45

# Linear rule
LINEAR_MIN_ASPECT = 2.0
LINEAR_BLACK = (0.20, 0.70)
LINEAR_MIN_TRANSITIONS = 10
HIGH_DENSITY_LINEAR_TRANSITIONS = 40

# Stacked rule
STACKED_ASPECT = (2.0, 6.0)
STACKED_BLACK = (0.25, 0.75)
STACKED_MIN_HORIZONTAL = 20
STACKED_MIN_VERTICAL = 5

# Finder border: share of a solid edge, and centre transition density
BORDER_SOLID_FRACTION = 0.7
BORDER_CENTER_DENSITY = 0.3


@dataclass(frozen=True)
class PatternSignals:
	width: int
	height: int
	threshold: int
	black_ratio: float  # 0..1
	transition_density: float  # horizontal changes per pixel
	horizontal_transitions: int  # max over middle-band rows
	vertical_transitions: int  # max over middle-band columns
	finder_border: bool = False

	@property
	def aspect_ratio(self) -> float:
		return self.width / float(self.height)

	def as_metadata(self) -> Dict[str, Any]:
		return {
			"aspect_ratio": round(self.aspect_ratio, 4),
			"black_pixel_ratio": round(self.black_ratio * 100.0, 2),
			"transition_density": round(self.transition_density, 4),
			"horizontal_transitions": self.horizontal_transitions,
			"vertical_transitions": self.vertical_transitions,
			"threshold": self.threshold,
		}


@dataclass(frozen=True)
class Classification:
	symbology: str
	confidence: float
	rule: str
	signal: str  # human-readable trigger, used in the placeholder value


def _within(value: float, bounds) -> bool:
	lo, hi = bounds
	return lo <= value <= hi


def _scanline_positions(n: int) -> range:
	start, stop = int(n * 0.3), int(n * 0.7)
	step = max(1, int(n * 0.1))
	return range(start, stop + 1, step)


def horizontal_transitions(black: np.ndarray) -> int:
	rows = black[list(_scanline_positions(black.shape[0])), :]
	if rows.shape[1] < 2:
		return 0
	return int(np.count_nonzero(rows[:, 1:] != rows[:, :-1], axis=1).max())


def vertical_transitions(black: np.ndarray) -> int:
	return horizontal_transitions(black.T)


def has_finder_border(black: np.ndarray) -> bool:
	"""Solid left or bottom edge plus a busy centre, as on a Data Matrix finder."""
	h, w = black.shape
	whites = black.size - np.count_nonzero(black)
	if whites == 0:
		return False
	bw_ratio = np.count_nonzero(black) / float(whites)
	if bw_ratio < 0.3 or bw_ratio > 2.0:
		return False
	left = np.count_nonzero(black[:, 0]) / float(h)
	bottom = np.count_nonzero(black[-1, :]) / float(w)
	if left <= BORDER_SOLID_FRACTION and bottom <= BORDER_SOLID_FRACTION:
		return False
	center = black[int(h * 0.2):int(h * 0.8), int(w * 0.2):int(w * 0.8)]
	if center.size == 0 or center.shape[1] < 2:
		return False
	density = np.count_nonzero(center[:, 1:] != center[:, :-1]) / float(center.size)
	return density > BORDER_CENTER_DENSITY


def measure(gray: np.ndarray, threshold: int) -> PatternSignals:
	"""Binarize `gray` at `threshold` (below is black) and collect the signals."""
	black = gray < threshold
	h, w = black.shape
	total = float(black.size)
	changes = np.count_nonzero(black[:, 1:] != black[:, :-1]) if w > 1 else 0
	return PatternSignals(
		width=w,
		height=h,
		threshold=threshold,
		black_ratio=np.count_nonzero(black) / total,
		transition_density=changes / total,
		horizontal_transitions=horizontal_transitions(black),
		vertical_transitions=vertical_transitions(black),
		finder_border=has_finder_border(black),
	)


def classify_signals(s: PatternSignals) -> Optional[Classification]:
	aspect = s.aspect_ratio
	h_tr, v_tr = s.horizontal_transitions, s.vertical_transitions

	if _within(aspect, MATRIX_ASPECT) and _within(s.black_ratio, MATRIX_BLACK) and s.transition_density >= MATRIX_MIN_DENSITY:
		signal = f"{s.black_ratio * 100:.1f}% black, transition density {s.transition_density:.3f}"
		if s.transition_density >= MATRIX_STRONG_DENSITY and _within(s.black_ratio, MATRIX_STRONG_BLACK):
			return Classification(DATA_MATRIX, 0.75, "matrix_strong", signal)
		if s.black_ratio >= MATRIX_RELAXED_MIN_BLACK:
			return Classification(DATA_MATRIX, 0.6, "matrix_relaxed", signal)
		if s.finder_border:
			return Classification(DATA_MATRIX, 0.55, "matrix_finder_border", signal)
		# Square texture without a finder pattern is not a matrix code

	if (
		aspect >= LINEAR_MIN_ASPECT
		and _within(s.black_ratio, LINEAR_BLACK)
		and h_tr >= LINEAR_MIN_TRANSITIONS
		and h_tr > 2 * v_tr
	):
		signal = f"{h_tr} horizontal vs {v_tr} vertical transitions"
		if h_tr >= HIGH_DENSITY_LINEAR_TRANSITIONS:
			return Classification(CODE_128, 0.6, "linear_high_density", signal)
		return Classification(LINEAR_BARCODE, 0.5, "linear", signal)

	if (
		_within(aspect, STACKED_ASPECT)
		and _within(s.black_ratio, STACKED_BLACK)
		and h_tr >= STACKED_MIN_HORIZONTAL
		and v_tr >= STACKED_MIN_VERTICAL
		and h_tr > v_tr
	):
		signal = f"{h_tr} horizontal and {v_tr} vertical transitions"
		return Classification(PDF_417, 0.7, "stacked", signal)

	return None


def classify(image_bytes: Optional[bytes] = None, preloaded_image: Optional[Image.Image] = None) -> Optional[DecodedCode]:
	img = preloaded_image if preloaded_image is not None else load_image(image_bytes)
	gray = np.array(img.convert("L"), dtype=np.uint8)
	h, w = gray.shape
	for threshold in THRESHOLDS:
		signals = measure(gray, threshold)
		match = classify_signals(signals)
		logger.debug(
			"threshold %d: %.1f%% black, density %.3f, h=%d v=%d -> %s",
			threshold,
			signals.black_ratio * 100,
			signals.transition_density,
			signals.horizontal_transitions,
			signals.vertical_transitions,
			match.rule if match else "none",
		)
		if match is None:
			continue
		metadata = signals.as_metadata()
		metadata.update({"note": INFERRED_NOTE, "inferred": True, "rule": match.rule})
		return DecodedCode(
			value=f"{INFERRED_PREFIX} {match.symbology} pattern in {w}x{h} image ({match.signal})",
			symbology=match.symbology,
			confidence=min(match.confidence, HEURISTIC_CONFIDENCE_CEILING),
			metadata=metadata,
		)
	return None
