import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv


@dataclass(frozen=True)
class Settings:
	scan_timeout_s: float = 20.0
	max_upload_bytes: int = 10 * 1024 * 1024
	workers: int = 2
	heuristic_fallback: bool = True
	include_center_region: bool = True
	try_harder: bool = True
	log_level: str = "INFO"


def load_env_chain() -> None:
	load_dotenv(find_dotenv(usecwd=True))
	if os.path.exists(".env.local"):
		load_dotenv(dotenv_path=".env.local", override=True)
	elif os.path.exists("env.local"):
		load_dotenv(dotenv_path="env.local", override=True)


def _env_flag(name: str, default: bool) -> bool:
	raw = os.environ.get(name, "").strip().lower()
	if not raw:
		return default
	return raw in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast):
	raw = os.environ.get(name, "").strip()
	if not raw:
		return default
	try:
		value = cast(raw)
	except ValueError:
		raise ValueError(f"{name} must be a number, got {raw!r}") from None
	if value <= 0:
		raise ValueError(f"{name} must be positive, got {raw!r}")
	return value


def load_settings() -> Settings:
	"""Build Settings from the environment (.env, then .env.local / env.local)."""
	load_env_chain()
	return Settings(
		scan_timeout_s=_env_number("BARCODE_SCAN_TIMEOUT_S", Settings.scan_timeout_s, float),
		max_upload_bytes=_env_number("BARCODE_MAX_UPLOAD_BYTES", Settings.max_upload_bytes, int),
		workers=_env_number("BARCODE_WORKERS", Settings.workers, int),
		heuristic_fallback=_env_flag("BARCODE_HEURISTIC_FALLBACK", Settings.heuristic_fallback),
		include_center_region=_env_flag("BARCODE_CENTER_REGION", Settings.include_center_region),
		try_harder=_env_flag("BARCODE_TRY_HARDER", Settings.try_harder),
		log_level=os.environ.get("BARCODE_LOG_LEVEL", Settings.log_level).strip().upper() or Settings.log_level,
	)
