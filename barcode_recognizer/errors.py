"""Exception hierarchy for the recognition pipeline.

`ImageDecodeError` is the caller's fault (bad upload); `NoCodeDetectedError`
is an expected negative outcome. Everything else stays inside the pipeline.
"""


class RecognitionError(Exception):
	pass


class ImageDecodeError(RecognitionError):
	"""Image bytes could not be opened as a raster image."""


class UnsupportedImageError(ImageDecodeError):
	"""Image opened but its colour space cannot be converted for decoding."""


class PreprocessingError(RecognitionError):
	"""A preprocessing variant could not be applied (e.g. resize to zero area)."""


class PixelBufferError(RecognitionError):
	"""Buffer dimensions, channel count and sample count disagree."""


class DecoderInvocationError(RecognitionError):
	"""Every decoder backend raised instead of reporting 'no match'."""


class NoCodeDetectedError(RecognitionError):
	"""Well-formed image, nothing recognizable."""

	def __init__(self, message: str = "No barcode or QR code detected in the image."):
		super().__init__(message)
