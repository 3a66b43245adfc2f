import argparse
import dataclasses
import json
import logging
import os
from typing import Dict, List

from tqdm import tqdm

from .config import load_settings
from .errors import ImageDecodeError, NoCodeDetectedError
from .image_discovery import discovered_images
from .service import BarcodeScanner


def parse_args(argv=None) -> argparse.Namespace:
	p = argparse.ArgumentParser(prog="barcode-recognizer", description="Recognize barcodes and QR codes in images")
	sub = p.add_subparsers(dest="command", required=True)

	s = sub.add_parser("scan", help="Scan a file, folder or .zip of images")
	s.add_argument("--src", required=True, help="Image file, folder or .zip containing images")
	s.add_argument("--all", dest="scan_all", action="store_true", help="Report every distinct code, not just the best one")
	s.add_argument("--json", action="store_true", help="Print results as JSON lines")
	s.add_argument("--limit", type=int, default=0, help="Process only first N images")
	s.add_argument("--no-heuristic", dest="heuristic", action="store_false", default=None, help="Disable the structural fallback classifier")
	s.add_argument("--verbose", action="store_true", help="Log pipeline diagnostics")

	v = sub.add_parser("serve", help="Run the HTTP API")
	v.add_argument("--host", default="127.0.0.1")
	v.add_argument("--port", type=int, default=8000)
	return p.parse_args(argv)


def _scan_paths(scanner: BarcodeScanner, paths: List[str], scan_all: bool) -> List[Dict]:
	rows: List[Dict] = []
	for path in tqdm(paths, desc="Scanning images"):
		with open(path, "rb") as f:
			data = f.read()
		name = os.path.basename(path)
		try:
			codes = scanner.scan_all(data) if scan_all else [scanner.scan(data)]
		except ImageDecodeError as exc:
			rows.append({"file": name, "error": str(exc)})
			continue
		except NoCodeDetectedError:
			rows.append({"file": name, "results": []})
			continue
		rows.append({"file": name, "results": [c.to_dict() for c in codes]})
	return rows


def _print_rows(rows: List[Dict], as_json: bool) -> None:
	for row in rows:
		if as_json:
			print(json.dumps(row))
			continue
		if "error" in row:
			print(f"{row['file']}\terror={row['error']}")
		elif not row["results"]:
			print(f"{row['file']}\tno code detected")
		for r in row.get("results", []):
			print(f"{row['file']}\ttype={r['symbology']}\tconfidence={r['confidence']:.2f}\tvalue={r['value']}")


def main(argv=None) -> None:
	args = parse_args(argv)
	settings = load_settings()

	if args.command == "serve":
		import uvicorn

		from .api import create_app

		uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)
		return

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(message)s")
	if args.heuristic is False:
		settings = dataclasses.replace(settings, heuristic_fallback=False)
	scanner = BarcodeScanner.from_settings(settings)

	with discovered_images(args.src) as paths:
		if args.limit:
			paths = paths[: args.limit]
		if not paths:
			raise SystemExit("No images found.")
		rows = _scan_paths(scanner, paths, args.scan_all)
	_print_rows(rows, args.json)


if __name__ == "__main__":
	main()
