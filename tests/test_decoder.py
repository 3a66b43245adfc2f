import warnings

import numpy as np
import pytest
from PIL import Image

from barcode_recognizer import decoder as decoder_module
from barcode_recognizer.decoder import DEFAULT_FORMATS, DirectDecoder, _qr_version
from barcode_recognizer.errors import DecoderInvocationError
from barcode_recognizer.models import QR_CODE, PixelBuffer
from barcode_recognizer.raster import to_pixel_buffer


class _Boom:
	def __init__(self, *args, **kwargs):
		raise RuntimeError("backend exploded")


def _raise(*args, **kwargs):
	raise RuntimeError("backend exploded")


class TestDirectDecoder:
	def test_decodes_qr_verbatim(self, decoder, make_qr):
		code = decoder.decode(to_pixel_buffer(make_qr("Hello World Test QR")))

		assert code is not None
		assert code.value == "Hello World Test QR"
		assert code.symbology == QR_CODE
		assert code.confidence == 1.0
		assert code.metadata["decoder"] in ("opencv-qr", "zxing-cpp")
		assert "note" in code.metadata

	def test_decodes_grayscale_buffer(self, decoder, make_qr):
		code = decoder.decode(to_pixel_buffer(make_qr("gray payload").convert("L")))
		assert code is not None
		assert code.value == "gray payload"

	def test_blank_returns_none(self, decoder):
		assert decoder.decode(to_pixel_buffer(Image.new("RGB", (200, 200), (255, 255, 255)))) is None

	def test_buffer_left_untouched(self, decoder, make_qr):
		buf = to_pixel_buffer(make_qr("untouched"))
		before = buf.data.copy()
		decoder.decode(buf)
		assert np.array_equal(buf.data, before)

	def test_falls_through_to_zxing_when_opencv_raises(self, decoder, make_qr, monkeypatch):
		monkeypatch.setattr(decoder_module.cv2, "QRCodeDetector", _Boom)
		code = decoder.decode(to_pixel_buffer(make_qr("via zxing")))

		assert code is not None
		assert code.value == "via zxing"
		assert code.metadata["decoder"] == "zxing-cpp"

	def test_all_backends_raising(self, decoder, make_qr, monkeypatch):
		monkeypatch.setattr(decoder_module.cv2, "QRCodeDetector", _Boom)
		monkeypatch.setattr(decoder_module.zxingcpp, "read_barcodes", _raise)

		with pytest.raises(DecoderInvocationError):
			decoder.decode(to_pixel_buffer(make_qr("never")))

	def test_configuration_is_fixed(self):
		dec = DirectDecoder(formats=("QRCode", "Code128"), use_zbar=False)
		assert dec.formats == ("QRCode", "Code128")
		assert dec.backend_names == ("opencv-qr", "zxing-cpp")

	def test_no_opencv_backend_without_qr(self):
		dec = DirectDecoder(formats=("Code128", "EAN13"), use_zbar=False)
		assert dec.backend_names == ("zxing-cpp",)

	def test_formats_passed_as_tuple(self, make_qr, monkeypatch):
		seen = {}

		def fake_read(arr, formats=None, try_harder=True):
			seen["formats"] = formats
			return []

		monkeypatch.setattr(decoder_module.zxingcpp, "read_barcodes", fake_read)
		dec = DirectDecoder(formats=("QRCode", "Code128"), use_opencv=False, use_zbar=False)

		assert dec.decode(to_pixel_buffer(make_qr("ignored"))) is None
		assert isinstance(seen["formats"], tuple)
		assert len(seen["formats"]) == 2

	def test_zxing_decode_without_deprecation_warnings(self, make_qr):
		dec = DirectDecoder(use_opencv=False, use_zbar=False)
		with warnings.catch_warnings():
			warnings.simplefilter("error", DeprecationWarning)
			code = dec.decode(to_pixel_buffer(make_qr("no warnings")))
		assert code.value == "no warnings"

	def test_unknown_format_rejected(self):
		with pytest.raises(ValueError):
			DirectDecoder(formats=("QRCode", "NotAFormat"))

	def test_default_allow_list(self):
		for name in ("QRCode", "DataMatrix", "PDF417", "Code128", "EAN13", "EAN8", "UPCA", "UPCE"):
			assert name in DEFAULT_FORMATS


@pytest.mark.parametrize("modules,expected", [(21, 1), (25, 2), (177, 40), (22, None), (10, None)])
def test_qr_version(modules, expected):
	assert _qr_version(np.zeros((modules, modules), dtype=np.uint8)) == expected


def test_qr_version_missing_grid():
	assert _qr_version(None) is None
