from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path

from script_paths import PUBLIC_DATA_DIR


CONFLICT_MANIFEST_FILES = [
	"conflicts.msgpack",
	"wars.msgpack",
	"conflicts_summary.msgpack",
	"conflicts_flags.msgpack",
]
MANIFEST_NAME = "conflicts_manifest.json"


def _sha256_file(path: Path) -> str:
	return hashlib.sha256(path.read_bytes()).hexdigest()


def _canonical_json(value: object) -> str:
	return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def refresh_manifest(
	data_dir: Path = PUBLIC_DATA_DIR,
	required_files: list[str] | None = None,
	*,
	source_fingerprint: str | None = None,
) -> dict:
	"""Describe the published conflict artifacts; the dataset id changes whenever any of them does."""
	required = required_files or CONFLICT_MANIFEST_FILES
	data_dir.mkdir(parents=True, exist_ok=True)

	files_section: dict[str, dict[str, int | str]] = {}
	for name in required:
		path = data_dir / name
		if not path.exists():
			raise FileNotFoundError(f"Cannot build manifest; missing conflict artifact: {path}")
		files_section[name] = {
			"sizeBytes": int(path.stat().st_size),
			"sha256": _sha256_file(path),
		}

	manifest: dict[str, object] = {
		"generatedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
		"files": files_section,
	}
	if source_fingerprint:
		manifest["sourceFingerprint"] = source_fingerprint
	id_source = _canonical_json({"files": files_section, "source": source_fingerprint or ""})
	manifest["datasetId"] = hashlib.sha256(id_source.encode("utf-8")).hexdigest()[:16]

	manifest_path = data_dir / MANIFEST_NAME
	manifest_path.write_text(json.dumps(manifest, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
	return manifest
