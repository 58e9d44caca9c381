from __future__ import annotations

from pathlib import Path


SCRIPTS_DIR = Path(__file__).resolve().parent


def _resolve_project_dir() -> Path:
	"""Prefer the current working directory when it already holds the data layout."""
	cwd = Path.cwd().resolve()
	if (cwd / "scripts").is_dir() and (cwd / "data").is_dir():
		return cwd
	return SCRIPTS_DIR.parent


PROJECT_DIR = _resolve_project_dir()

PUBLIC_DATA_DIR = PROJECT_DIR / "public" / "data"
WORK_DATA_DIR = PROJECT_DIR / "data"

DEFAULT_EXCHANGES_PATH = WORK_DATA_DIR / "exchanges.json"
DEFAULT_TERRITORY_DATA_PATH = WORK_DATA_DIR / "territories_verbose.json"
