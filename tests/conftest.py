import io

import numpy as np
import pytest
import qrcode
from PIL import Image

from barcode_recognizer.decoder import DirectDecoder
from barcode_recognizer.service import BarcodeScanner


def _qr_image(payload: str, box_size: int = 8, border: int = 4) -> Image.Image:
	qr = qrcode.QRCode(box_size=box_size, border=border)
	qr.add_data(payload)
	qr.make(fit=True)
	buf = io.BytesIO()
	qr.make_image(fill_color="black", back_color="white").save(buf)
	buf.seek(0)
	return Image.open(buf).convert("RGB")


def _png_bytes(img: Image.Image) -> bytes:
	buf = io.BytesIO()
	img.save(buf, format="PNG")
	return buf.getvalue()


@pytest.fixture
def make_qr():
	return _qr_image


@pytest.fixture
def png_bytes():
	return _png_bytes


@pytest.fixture
def blank_png():
	return _png_bytes(Image.new("RGB", (300, 300), (255, 255, 255)))


@pytest.fixture
def bars_image():
	"""400x100 image of evenly spaced vertical bars; no real symbology."""
	arr = np.full((100, 400), 255, dtype=np.uint8)
	for x in range(20, 380, 10):
		arr[:, x:x + 4] = 0
	return Image.fromarray(arr).convert("RGB")


@pytest.fixture(scope="session")
def decoder():
	return DirectDecoder(use_zbar=False)


@pytest.fixture(scope="session")
def scanner():
	return BarcodeScanner()
