from PIL import Image

from barcode_recognizer.models import QR_CODE, DecodedCode
from barcode_recognizer.regions import MIN_REGION_SIDE, region_boxes, scan_regions


class SizeDecoder:
	"""Decodes every buffer to its own size, so each crop is identifiable."""

	def decode(self, buffer):
		return DecodedCode(value=f"{buffer.width}x{buffer.height}", symbology=QR_CODE, confidence=1.0)


class TestRegionBoxes:
	def test_order_and_geometry(self):
		boxes = region_boxes(200, 100)

		assert [b.name for b in boxes] == ["left", "right", "top", "bottom", "center"]
		assert [b.box for b in boxes] == [
			(0, 0, 100, 100),
			(100, 0, 200, 100),
			(0, 0, 200, 50),
			(0, 50, 200, 100),
			(30, 15, 170, 85),
		]

	def test_odd_sizes_cover_the_image(self):
		left, right, top, bottom, _center = region_boxes(201, 101)
		assert left.right == right.left
		assert right.right == 201
		assert top.bottom == bottom.top
		assert bottom.bottom == 101

	def test_center_optional(self):
		assert [b.name for b in region_boxes(200, 200, include_center=False)] == ["left", "right", "top", "bottom"]

	def test_small_regions_skipped(self):
		boxes = region_boxes(60, 60)
		assert [b.name for b in boxes] == ["center"]
		assert all(b.width >= MIN_REGION_SIDE and b.height >= MIN_REGION_SIDE for b in boxes)

	def test_tiny_image_has_no_regions(self):
		assert region_boxes(20, 20) == []


class TestScanRegions:
	def test_each_region_runs_and_is_tagged(self):
		img = Image.new("RGB", (200, 100), (255, 255, 255))
		codes = scan_regions(decoder=SizeDecoder(), preloaded_image=img)

		assert [c.value for c in codes] == ["100x100", "100x100", "200x50", "200x50", "140x70"]
		assert codes[0].metadata["region"] == {"name": "left", "left": 0, "top": 0, "width": 100, "height": 100}
		assert codes[4].metadata["region"]["name"] == "center"
		assert all(c.metadata["variant"] == "original" for c in codes)

	def test_nothing_found(self, decoder, blank_png):
		assert scan_regions(blank_png, decoder=decoder) == []

	def test_finds_code_in_half(self, decoder, make_qr):
		canvas = Image.new("RGB", (800, 400), (255, 255, 255))
		canvas.paste(make_qr("right side only"), (450, 70))

		codes = scan_regions(decoder=decoder, preloaded_image=canvas)

		names = [c.metadata["region"]["name"] for c in codes]
		assert "right" in names
		assert "left" not in names
		assert {c.value for c in codes} == {"right side only"}

	def test_quad_in_source_coordinates(self, decoder, make_qr):
		qr = make_qr("located on the right")
		canvas = Image.new("RGB", (800, 400), (255, 255, 255))
		canvas.paste(qr, (450, 70))

		codes = scan_regions(decoder=decoder, preloaded_image=canvas, include_center=False)

		assert [c.metadata["region"]["name"] for c in codes] == ["right"]
		xs = [x for x, _ in codes[0].metadata["quad"]]
		ys = [y for _, y in codes[0].metadata["quad"]]
		assert min(xs) >= 450 and max(xs) <= 450 + qr.width
		assert min(ys) >= 70 and max(ys) <= 70 + qr.height
