import os
import tempfile
import zipfile
from contextlib import contextmanager
from typing import Iterator, List

SUPPORTED_EXT = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp", ".heic", ".heif"}


def is_image_name(path: str) -> bool:
	"""Supported extension, not hidden, not under a __MACOSX metadata folder."""
	parts = path.replace("\\", "/").split("/")
	if "__MACOSX" in parts or parts[-1].startswith("."):
		return False
	return os.path.splitext(parts[-1])[1].lower() in SUPPORTED_EXT


def _walk_images(root_dir: str) -> List[str]:
	found = [
		os.path.join(root, name)
		for root, _dirs, files in os.walk(root_dir)
		for name in files
		if is_image_name(os.path.relpath(os.path.join(root, name), root_dir))
	]
	return sorted(found)


@contextmanager
def discovered_images(src_path: str) -> Iterator[List[str]]:
	"""Yield sorted image paths for a single file, a folder or a .zip archive.

	Only image members of an archive are extracted, into a temporary
	directory that is removed when the block exits, so read the files
	inside the `with` body.
	"""
	abspath = os.path.abspath(src_path)
	if not os.path.exists(abspath):
		raise FileNotFoundError(f"Source path not found: {abspath}")

	if zipfile.is_zipfile(abspath):
		with tempfile.TemporaryDirectory(prefix="barcode_zip_") as tmpdir:
			with zipfile.ZipFile(abspath) as zf:
				members = [m for m in zf.namelist() if not m.endswith("/") and is_image_name(m)]
				zf.extractall(tmpdir, members=members)
			yield _walk_images(tmpdir)
	elif os.path.isfile(abspath):
		yield [abspath] if is_image_name(abspath) else []
	else:
		yield _walk_images(abspath)
