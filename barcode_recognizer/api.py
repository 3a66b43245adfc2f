import asyncio
import json
import logging
import secrets
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .errors import ImageDecodeError, NoCodeDetectedError
from .service import BarcodeScanner

logger = logging.getLogger("barcode_recognizer.api")

NOT_FOUND_MESSAGE = "No barcode or QR code detected in the image."


def _not_found(message: str = NOT_FOUND_MESSAGE) -> JSONResponse:
	return JSONResponse({"error": message, "code": "not_found"}, status_code=404)


def _bad_image(message: str) -> JSONResponse:
	return JSONResponse({"error": message, "code": "invalid_image"}, status_code=400)


def create_app(scanner: Optional[BarcodeScanner] = None, settings: Optional[Settings] = None) -> FastAPI:
	"""Build the API around one shared scanner instance."""
	settings = settings or load_settings()
	scanner = scanner or BarcodeScanner.from_settings(settings)

	logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format="%(message)s")

	app = FastAPI(title="Barcode Recognizer API")
	app.state.scanner = scanner
	app.state.settings = settings
	executor = ThreadPoolExecutor(max_workers=settings.workers, thread_name_prefix="scan")
	app.state.executor = executor

	@app.exception_handler(Exception)
	async def generic_exception_handler(request: Request, exc: Exception):
		logger.error(json.dumps({"event": "error", "path": str(request.url.path), "error": str(exc)}))
		return JSONResponse({"error": "Internal server error."}, status_code=500)

	@app.exception_handler(RequestValidationError)
	async def validation_exception_handler(request: Request, exc: RequestValidationError):
		return JSONResponse({"error": "Invalid request.", "detail": exc.errors()}, status_code=422)

	@app.middleware("http")
	async def request_log(request: Request, call_next):
		request_id = secrets.token_hex(8)
		request.state.request_id = request_id
		start_time = time.time()
		response = await call_next(request)
		duration = round((time.time() - start_time) * 1000, 2)
		logger.info(json.dumps({
			"event": "request",
			"request_id": request_id,
			"path": request.url.path,
			"method": request.method,
			"status": response.status_code,
			"duration_ms": duration,
		}))
		response.headers["X-Request-ID"] = request_id
		return response

	async def _read_upload(image: UploadFile):
		data = await image.read()
		if not data:
			return None, _bad_image("Uploaded image is empty.")
		if len(data) > settings.max_upload_bytes:
			return None, JSONResponse(
				{"error": f"Image exceeds {settings.max_upload_bytes} bytes.", "code": "too_large"},
				status_code=413,
			)
		return data, None

	async def _run(fn, data: bytes):
		# CPU-bound; a blown budget is reported as "not found"
		loop = asyncio.get_running_loop()
		return await asyncio.wait_for(loop.run_in_executor(executor, fn, data), timeout=settings.scan_timeout_s)

	@app.get("/health")
	async def health():
		return {"status": "ok"}

	@app.post("/api/barcode/scan")
	async def scan(image: UploadFile = File(...)):
		data, error = await _read_upload(image)
		if error is not None:
			return error
		try:
			code = await _run(scanner.scan, data)
		except ImageDecodeError as exc:
			return _bad_image(str(exc))
		except NoCodeDetectedError as exc:
			return _not_found(str(exc))
		except asyncio.TimeoutError:
			logger.warning(json.dumps({"event": "scan_timeout", "budget_s": settings.scan_timeout_s}))
			return _not_found()
		return code.to_dict()

	@app.post("/api/barcode/scan-all")
	async def scan_all(image: UploadFile = File(...)):
		data, error = await _read_upload(image)
		if error is not None:
			return error
		try:
			codes = await _run(scanner.scan_all, data)
		except ImageDecodeError as exc:
			return _bad_image(str(exc))
		except NoCodeDetectedError as exc:
			return _not_found(str(exc))
		except asyncio.TimeoutError:
			logger.warning(json.dumps({"event": "scan_timeout", "budget_s": settings.scan_timeout_s}))
			return _not_found()
		count = len(codes)
		return {
			"results": [c.to_dict() for c in codes],
			"count": count,
			"message": f"Found {count} code{'s' if count != 1 else ''} in the image.",
		}

	return app
