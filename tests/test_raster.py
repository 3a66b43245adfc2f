import io

import numpy as np
import pytest
from PIL import Image

from barcode_recognizer.errors import ImageDecodeError, PreprocessingError
from barcode_recognizer.models import PreprocessingVariant
from barcode_recognizer.raster import UPSCALE_LIMIT, load_image, normalize, normalize_image


class TestLoadImage:
	def test_garbage_bytes(self):
		with pytest.raises(ImageDecodeError):
			load_image(b"definitely not an image")

	def test_empty_bytes(self):
		with pytest.raises(ImageDecodeError):
			load_image(b"")

	def test_truncated_png(self, png_bytes):
		noise = np.random.default_rng(3).integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
		data = png_bytes(Image.fromarray(noise))
		with pytest.raises(ImageDecodeError):
			load_image(data[: len(data) // 2])

	def test_returns_rgb(self, png_bytes):
		img = load_image(png_bytes(Image.new("L", (10, 10), 128)))
		assert img.mode == "RGB"

	def test_multi_frame_uses_first_frame(self):
		frames = [Image.new("RGB", (20, 20), (255, 255, 255)), Image.new("RGB", (20, 20), (0, 0, 0))]
		buf = io.BytesIO()
		frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:])

		img = load_image(buf.getvalue())

		assert img.getpixel((5, 5)) == (255, 255, 255)

	def test_transparency_flattened_to_white(self, png_bytes):
		img = load_image(png_bytes(Image.new("RGBA", (10, 10), (0, 0, 0, 0))))
		assert img.getpixel((0, 0)) == (255, 255, 255)

	def test_16bit_grayscale(self, png_bytes):
		arr = np.linspace(0, 65535, 64 * 64).reshape(64, 64).astype(np.uint16)
		img = load_image(png_bytes(Image.fromarray(arr)))
		assert img.mode == "RGB"
		assert img.size == (64, 64)


class TestNormalize:
	@pytest.fixture
	def source(self):
		arr = np.tile(np.arange(0, 200, dtype=np.uint8), (50, 1))
		return Image.fromarray(arr).convert("RGB")

	def test_original_keeps_rgb(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="original"))
		assert (buf.width, buf.height, buf.channels) == (200, 50, 3)

	def test_grayscale_single_channel(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="gray", grayscale=True))
		assert buf.channels == 1
		assert buf.data.shape == (50, 200)

	def test_threshold_is_binary(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="bin", grayscale=True, threshold=128))
		assert set(np.unique(buf.data)) <= {0, 255}
		assert buf.data[0, 127] == 0
		assert buf.data[0, 128] == 255

	def test_resize_width_downscales(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="small", resize_width=100))
		assert (buf.width, buf.height) == (100, 25)

	def test_resize_width_never_upscales(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="wide", resize_width=600))
		assert buf.width == 200

	def test_upscale_small_images_only(self, source):
		buf = normalize_image(source, PreprocessingVariant(name="up", upscale=2.0))
		assert (buf.width, buf.height) == (400, 100)

		big = Image.new("RGB", (UPSCALE_LIMIT, 10), (255, 255, 255))
		buf = normalize_image(big, PreprocessingVariant(name="up", upscale=2.0))
		assert buf.width == UPSCALE_LIMIT

	def test_zero_area_resize_raises(self):
		img = Image.new("RGB", (100, 5), (255, 255, 255))
		with pytest.raises(PreprocessingError):
			normalize_image(img, PreprocessingVariant(name="squash", resize_width=10))

	def test_source_not_modified(self, source):
		before = np.array(source).copy()
		normalize_image(source, PreprocessingVariant(name="all", grayscale=True, normalize=True, sharpen=2, threshold=100))
		assert np.array_equal(np.array(source), before)

	def test_normalize_from_bytes(self, source, png_bytes):
		variant = PreprocessingVariant(name="gray", grayscale=True)
		from_bytes = normalize(png_bytes(source), variant)
		from_image = normalize_image(source, variant)
		assert np.array_equal(from_bytes.data, from_image.data)
