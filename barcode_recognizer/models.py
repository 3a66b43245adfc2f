from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from .errors import PixelBufferError


QR_CODE = "QR_CODE"
DATA_MATRIX = "DATA_MATRIX"
PDF_417 = "PDF_417"
CODE_128 = "CODE_128"
CODE_39 = "CODE_39"
EAN_13 = "EAN_13"
EAN_8 = "EAN_8"
UPC_A = "UPC_A"
UPC_E = "UPC_E"
LINEAR_BARCODE = "LINEAR_BARCODE"

VERIFIED_CONFIDENCE = 1.0


@dataclass(frozen=True)
class DecodedCode:
	value: str  # payload, or a labelled placeholder for inferred results
	symbology: str
	confidence: float
	metadata: Dict[str, Any] = field(default_factory=dict)

	def __post_init__(self) -> None:
		if not self.value:
			raise ValueError("DecodedCode.value must not be empty")
		if not 0.0 <= self.confidence <= 1.0:
			raise ValueError(f"confidence out of range: {self.confidence}")

	@property
	def verified(self) -> bool:
		return self.confidence == VERIFIED_CONFIDENCE

	def with_metadata(self, **extra: Any) -> "DecodedCode":
		"""Return a copy with `extra` merged into metadata."""
		merged = dict(self.metadata)
		merged.update(extra)
		return DecodedCode(value=self.value, symbology=self.symbology, confidence=self.confidence, metadata=merged)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"value": self.value,
			"symbology": self.symbology,
			"confidence": self.confidence,
			"metadata": dict(self.metadata),
		}


@dataclass(frozen=True)
class PixelBuffer:
	"""Decoder input: a uint8 raster of shape (height, width) or (height, width, channels).

	The array is flagged read-only on construction so decoders only ever see a view.
	"""
	width: int
	height: int
	channels: int
	data: np.ndarray

	def __post_init__(self) -> None:
		if self.width <= 0 or self.height <= 0:
			raise PixelBufferError(f"zero-area buffer: {self.width}x{self.height}")
		if self.channels not in (1, 3, 4):
			raise PixelBufferError(f"unsupported channel count: {self.channels}")
		expected = self.width * self.height * self.channels
		if self.data.size != expected:
			raise PixelBufferError(
				f"sample count mismatch: expected {expected} for {self.width}x{self.height}x{self.channels}, got {self.data.size}"
			)
		shape = (self.height, self.width) if self.channels == 1 else (self.height, self.width, self.channels)
		if tuple(self.data.shape) != shape:
			raise PixelBufferError(f"shape mismatch: expected {shape}, got {tuple(self.data.shape)}")
		if self.data.dtype != np.uint8:
			raise PixelBufferError(f"expected uint8 samples, got {self.data.dtype}")
		self.data.setflags(write=False)

	@classmethod
	def from_array(cls, arr: np.ndarray) -> "PixelBuffer":
		if arr.ndim == 2:
			h, w = arr.shape
			return cls(width=w, height=h, channels=1, data=arr)
		if arr.ndim == 3:
			h, w, c = arr.shape
			return cls(width=w, height=h, channels=c, data=arr)
		raise PixelBufferError(f"expected a 2D or 3D array, got {arr.ndim} dimensions")


@dataclass(frozen=True)
class PreprocessingVariant:
	"""One deterministic recipe of image transforms applied before a decode attempt.

	Operations run in a fixed order: grayscale, normalize, contrast, blur,
	sharpen, threshold, resize. Unset fields are skipped.
	"""
	name: str
	grayscale: bool = False
	normalize: bool = False
	contrast: Optional[float] = None
	blur_radius: Optional[float] = None
	sharpen: int = 0  # number of SHARPEN passes
	threshold: Optional[int] = None
	resize_width: Optional[int] = None  # downscale only
	upscale: Optional[float] = None  # applied to small images only


@dataclass(frozen=True)
class Region:
	name: str
	left: int
	top: int
	right: int
	bottom: int

	@property
	def box(self):
		return (self.left, self.top, self.right, self.bottom)

	@property
	def width(self) -> int:
		return self.right - self.left

	@property
	def height(self) -> int:
		return self.bottom - self.top

	def as_dict(self) -> Dict[str, Any]:
		return {"name": self.name, "left": self.left, "top": self.top, "width": self.width, "height": self.height}
