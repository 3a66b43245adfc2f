"""
Direct decoding of normalized buffers.

Backends, tried in order until one returns a payload:
1. OpenCV QRCodeDetector - dense-matrix path, reliable for QR codes
2. zxing-cpp - multi-format reader over a fixed allow-list of symbologies
3. ZBar (pyzbar) - linear rescue for Code 128 / Code 39 / EAN / UPC, when libzbar is installed

Every hit is a verified decode (confidence 1.0). A backend that raises counts as
"no match"; only when all of them raise does `decode` raise DecoderInvocationError.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import zxingcpp

from .errors import DecoderInvocationError
from .models import (
	CODE_128,
	CODE_39,
	DATA_MATRIX,
	EAN_13,
	EAN_8,
	PDF_417,
	QR_CODE,
	UPC_A,
	UPC_E,
	VERIFIED_CONFIDENCE,
	DecodedCode,
	PixelBuffer,
)

# Optional linear fallback; needs the system zbar library at import time
try:
	from pyzbar.pyzbar import ZBarSymbol, decode as zbar_decode  # type: ignore
except Exception:
	ZBarSymbol = None  # type: ignore
	zbar_decode = None  # type: ignore

logger = logging.getLogger(__name__)

VERIFIED_NOTE = "Verified decode"

# zxing-cpp format names -> canonical symbology
ZXING_CANONICAL = {
	"QRCode": QR_CODE,
	"DataMatrix": DATA_MATRIX,
	"PDF417": PDF_417,
	"Code128": CODE_128,
	"Code39": CODE_39,
	"EAN13": EAN_13,
	"EAN8": EAN_8,
	"UPCA": UPC_A,
	"UPCE": UPC_E,
}

ZBAR_CANONICAL = {
	"CODE128": CODE_128,
	"CODE39": CODE_39,
	"EAN13": EAN_13,
	"EAN8": EAN_8,
	"UPCA": UPC_A,
	"UPCE": UPC_E,
}

DEFAULT_FORMATS: Tuple[str, ...] = tuple(ZXING_CANONICAL)


def _format_set(names: Sequence[str]) -> tuple:
	return tuple(getattr(zxingcpp.BarcodeFormat, n) for n in names)


def _format_name(fmt_obj) -> str:
	name = getattr(fmt_obj, "name", None)
	if not name:
		name = str(fmt_obj).replace("BarcodeFormat.", "")
	return name


def _canonical_zxing(fmt_obj) -> str:
	name = _format_name(fmt_obj)
	return ZXING_CANONICAL.get(name, name.upper())


def _extract_quad(position) -> List[Tuple[int, int]]:
	"""Corner points of a zxing-cpp result, whichever attribute style the binding uses."""
	if position is None:
		return []
	for names in (
		("top_left", "top_right", "bottom_right", "bottom_left"),
		("topLeft", "topRight", "bottomRight", "bottomLeft"),
	):
		pts = []
		for n in names:
			p = getattr(position, n, None)
			if p is not None and hasattr(p, "x") and hasattr(p, "y"):
				pts.append((int(p.x), int(p.y)))
		if pts:
			return pts
	return []


def _read_barcodes_with_opts(arr, formats=None, try_harder: bool = True):
	try:
		if formats is not None:
			return zxingcpp.read_barcodes(arr, formats=formats, try_harder=try_harder)
		return zxingcpp.read_barcodes(arr, try_harder=try_harder)
	except TypeError:
		# Older bindings without try_harder
		if formats is not None:
			return zxingcpp.read_barcodes(arr, formats=formats)
		return zxingcpp.read_barcodes(arr)


def _to_gray(arr: np.ndarray) -> np.ndarray:
	if arr.ndim == 2:
		return arr
	if arr.shape[2] == 4:
		return cv2.cvtColor(arr, cv2.COLOR_RGBA2GRAY)
	return cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)


def _qr_version(straight) -> Optional[int]:
	"""QR version from the rectified module grid (21 modules for v1, +4 per version)."""
	if straight is None:
		return None
	size = int(np.asarray(straight).shape[0])
	if size < 21 or (size - 17) % 4:
		return None
	version = (size - 17) // 4
	return version if 1 <= version <= 40 else None


def _verified(value: str, symbology: str, metadata: Dict[str, Any]) -> DecodedCode:
	metadata.setdefault("note", VERIFIED_NOTE)
	return DecodedCode(value=value, symbology=symbology, confidence=VERIFIED_CONFIDENCE, metadata=metadata)


class DirectDecoder:
	"""Stateless wrapper around the decoder backends.

	Configuration is fixed at construction. OpenCV detector objects are created per
	call, so one instance can be shared across requests.
	"""

	def __init__(
		self,
		formats: Sequence[str] = DEFAULT_FORMATS,
		try_harder: bool = True,
		use_opencv: bool = True,
		use_zbar: bool = True,
	):
		unknown = [f for f in formats if f not in ZXING_CANONICAL]
		if unknown:
			raise ValueError(f"unsupported formats: {unknown}")
		if not formats:
			raise ValueError("at least one format is required")
		self._formats: Tuple[str, ...] = tuple(formats)
		self._format_set = _format_set(self._formats)
		self._try_harder = try_harder
		backends: List[Tuple[str, Callable[[np.ndarray], Optional[DecodedCode]]]] = []
		if use_opencv and QR_CODE in {ZXING_CANONICAL[f] for f in self._formats}:
			backends.append(("opencv-qr", self._decode_opencv_qr))
		backends.append(("zxing-cpp", self._decode_zxing))
		if use_zbar and zbar_decode is not None:
			backends.append(("zbar", self._decode_zbar))
		self._backends = tuple(backends)

	@property
	def formats(self) -> Tuple[str, ...]:
		return self._formats

	@property
	def backend_names(self) -> Tuple[str, ...]:
		return tuple(name for name, _ in self._backends)

	def decode(self, buffer: PixelBuffer) -> Optional[DecodedCode]:
		# Backends get their own copy; the buffer itself is read-only
		arr = np.array(buffer.data)
		failures: List[str] = []
		for name, backend in self._backends:
			try:
				code = backend(arr)
			except Exception as exc:
				logger.debug("%s raised on %dx%d buffer: %s", name, buffer.width, buffer.height, exc)
				failures.append(f"{name}: {exc}")
				continue
			if code is not None:
				return code
		if len(failures) == len(self._backends):
			raise DecoderInvocationError("; ".join(failures))
		logger.debug("no decode: %dx%d, channels=%d", buffer.width, buffer.height, buffer.channels)
		return None

	def _decode_opencv_qr(self, arr: np.ndarray) -> Optional[DecodedCode]:
		detector = cv2.QRCodeDetector()
		text, points, straight = detector.detectAndDecode(_to_gray(arr))
		if not text:
			return None
		metadata: Dict[str, Any] = {"decoder": "opencv-qr"}
		version = _qr_version(straight)
		if version is not None:
			metadata["version"] = version
		if points is not None:
			metadata["quad"] = [(int(x), int(y)) for x, y in np.asarray(points).reshape(-1, 2)]
		return _verified(text, QR_CODE, metadata)

	def _decode_zxing(self, arr: np.ndarray) -> Optional[DecodedCode]:
		results = _read_barcodes_with_opts(arr, formats=self._format_set, try_harder=self._try_harder)
		for r in results:
			text = r.text or ""
			if not text:
				continue
			metadata: Dict[str, Any] = {"decoder": "zxing-cpp"}
			ec_level = getattr(r, "ec_level", None)
			if ec_level:
				metadata["error_correction_level"] = ec_level
			symbology_id = getattr(r, "symbology_identifier", None)
			if symbology_id:
				metadata["symbology_identifier"] = symbology_id
			quad = _extract_quad(getattr(r, "position", None))
			if quad:
				metadata["quad"] = quad
			return _verified(text, _canonical_zxing(r.format), metadata)
		return None

	def _decode_zbar(self, arr: np.ndarray) -> Optional[DecodedCode]:
		symbols = [getattr(ZBarSymbol, name) for name in ZBAR_CANONICAL]
		for r in zbar_decode(_to_gray(arr), symbols=symbols):
			symbology = ZBAR_CANONICAL.get(r.type)
			if not symbology:
				continue
			val = r.data.decode("utf-8", errors="replace")
			if not val:
				continue
			metadata: Dict[str, Any] = {"decoder": "zbar"}
			(x, y, w, h) = r.rect
			metadata["quad"] = [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
			return _verified(val, symbology, metadata)
		return None
