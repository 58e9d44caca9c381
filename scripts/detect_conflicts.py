#!/usr/bin/env python3
"""Detect guild conflicts and wars from territory exchange history.

Inputs:
- exchanges payload (.json or .msgpack): territories/guilds/prefixes/events index arrays
- territories_verbose.json (optional): coordinates and resources per territory

Outputs (MessagePack, under public/data by default):
- conflicts.msgpack, wars.msgpack, conflicts_summary.msgpack, conflicts_flags.msgpack
- conflicts_manifest.json describing the four artifacts
"""

from __future__ import annotations

import argparse
import hashlib
import json
import sys
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import msgpack

from conflict_detection import detect_conflicts_with_flags
from conflict_filters import ALL_FILTER, SORT_MODES, confidence_label, filter_conflicts
from detection_config import FACTION_METHODS, DetectionConfig, load_config
from exchange_store import ExchangeStore, dt_to_iso, unix_to_iso
from manifest_utils import MANIFEST_NAME, refresh_manifest
from progress import ProgressReporter
from region_classifier import RegionClassifier
from script_paths import DEFAULT_EXCHANGES_PATH, DEFAULT_TERRITORY_DATA_PATH, PUBLIC_DATA_DIR
from war_grouping import War, group_conflicts_into_wars


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Detect guild conflicts and wars from territory exchanges")
	parser.add_argument("--exchanges", default=str(DEFAULT_EXCHANGES_PATH))
	parser.add_argument("--territory-data", default=str(DEFAULT_TERRITORY_DATA_PATH))
	parser.add_argument("--config", default=None, help="JSON object of detection constants")
	parser.add_argument("--output", default=str(PUBLIC_DATA_DIR / "conflicts.msgpack"))
	parser.add_argument("--wars-output", default=str(PUBLIC_DATA_DIR / "wars.msgpack"))
	parser.add_argument("--summary-output", default=str(PUBLIC_DATA_DIR / "conflicts_summary.msgpack"))
	parser.add_argument("--flags-output", default=str(PUBLIC_DATA_DIR / "conflicts_flags.msgpack"))

	parser.add_argument("--bucket-seconds", type=int, default=None)
	parser.add_argument("--rate-window-seconds", type=int, default=None)
	parser.add_argument("--threshold-floor", type=float, default=None)
	parser.add_argument("--mad-multiplier", type=float, default=None)
	parser.add_argument(
		"--no-rolling-threshold",
		dest="rolling_threshold",
		action="store_const",
		const=False,
		default=None,
		help="Always use the global threshold",
	)
	parser.add_argument("--merge-gap-hours", type=float, default=None)
	parser.add_argument("--overlap-merge-gap-hours", type=float, default=None)
	parser.add_argument("--faction-method", choices=FACTION_METHODS, default=None)
	parser.add_argument("--max-factions", type=int, default=None)
	parser.add_argument("--max-events", type=int, default=None)
	parser.add_argument("--max-conflicts", type=int, default=None)
	parser.add_argument("--war-max-gap-hours", type=float, default=None)
	parser.add_argument("--war-max-days", type=float, default=None)
	parser.add_argument("--war-min-overlap", type=float, default=None)

	parser.add_argument("--region", default=ALL_FILTER, help="Dry-run listing: region filter")
	parser.add_argument("--guild", default="", help="Dry-run listing: guild name/prefix search")
	parser.add_argument("--sort", choices=SORT_MODES, default="size", help="Dry-run listing order")
	parser.add_argument("--limit", type=int, default=20, help="Dry-run listing size")
	parser.add_argument("--skip-manifest", action="store_true")
	parser.add_argument("--dry-run", action="store_true")
	return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> DetectionConfig:
	return load_config(
		Path(args.config) if args.config else None,
		bucket_seconds=args.bucket_seconds,
		rate_window_seconds=args.rate_window_seconds,
		threshold_floor=args.threshold_floor,
		mad_multiplier=args.mad_multiplier,
		rolling_threshold=args.rolling_threshold,
		merge_gap_hours=args.merge_gap_hours,
		overlap_merge_gap_hours=args.overlap_merge_gap_hours,
		faction_method=args.faction_method,
		max_factions=args.max_factions,
		max_events=args.max_events,
		max_conflicts=args.max_conflicts,
		war_max_gap_hours=args.war_max_gap_hours,
		war_max_days=args.war_max_days,
		war_min_overlap=args.war_min_overlap,
	)


def load_payload(path: Path) -> Any:
	if path.suffix == ".msgpack":
		return msgpack.unpackb(path.read_bytes(), raw=False, strict_map_key=False)
	with path.open("r", encoding="utf-8") as handle:
		return json.load(handle)


def write_msgpack(path: Path, payload: Any) -> None:
	path.parent.mkdir(parents=True, exist_ok=True)
	packed = msgpack.packb(payload, use_bin_type=True)
	path.write_bytes(packed)


def load_classifier(path: Path | None, flags: list[dict[str, Any]]) -> RegionClassifier:
	if path is None or not path.exists():
		flags.append({"severity": "info", "flag": "territory_data_missing", "path": str(path) if path else None})
		return RegionClassifier()
	payload = load_payload(path)
	if not isinstance(payload, dict):
		raise ValueError(f"Territory data must be an object keyed by territory name: {path}")
	classifier = RegionClassifier(payload)
	if not classifier.has_territory_data:
		flags.append({"severity": "warning", "flag": "territory_data_empty", "path": str(path)})
	return classifier


def source_fingerprint(path: Path, config: DetectionConfig) -> str:
	digest = hashlib.sha256(path.read_bytes())
	digest.update(json.dumps(config.to_record(), sort_keys=True).encode("utf-8"))
	return digest.hexdigest()[:16]


def summarize(
	conflicts: list[dict[str, Any]],
	wars: list[War],
	flags: list[dict[str, Any]],
	counts: dict[str, int],
	config: DetectionConfig,
	args: argparse.Namespace,
) -> dict[str, Any]:
	counts_by_region: dict[str, int] = defaultdict(int)
	counts_by_confidence: dict[str, int] = defaultdict(int)
	for conflict in conflicts:
		counts_by_region[str(conflict.get("primaryRegion"))] += 1
		counts_by_confidence[confidence_label(float(conflict.get("confidence", 0.0)))] += 1

	return {
		"generated_at": dt_to_iso(datetime.now(timezone.utc)),
		"parameters": {
			"exchanges": args.exchanges,
			"territory_data": args.territory_data,
			"config_file": args.config,
			**config.to_record(),
		},
		**counts,
		"wars_total": len(wars),
		"flags_total": len(flags),
		"counts_by_region": dict(sorted(counts_by_region.items())),
		"counts_by_confidence": dict(sorted(counts_by_confidence.items())),
	}


def print_listing(conflicts: list[Any], limit: int) -> None:
	for conflict in conflicts[:limit]:
		print(
			f"[{confidence_label(conflict.confidence)}] {conflict.name} "
			f"{unix_to_iso(conflict.start_time)} -> {unix_to_iso(conflict.end_time)} "
			f"exchanges={conflict.total_exchanges} peak={conflict.peak_hourly}"
		)


def main(argv: list[str] | None = None) -> int:
	args = parse_args(argv)
	if int(args.limit) <= 0:
		raise ValueError("--limit must be > 0")
	config = config_from_args(args)

	exchanges_path = Path(args.exchanges)
	store = ExchangeStore.from_payload(load_payload(exchanges_path))
	load_flags: list[dict[str, Any]] = []
	classifier = load_classifier(Path(args.territory_data) if args.territory_data else None, load_flags)

	progress = ProgressReporter(label="[conflicts] characterizing", total=0, unit="runs")
	result = detect_conflicts_with_flags(store, config, classifier, progress=progress)
	wars = group_conflicts_into_wars(result.conflicts, config)

	conflict_records = [conflict.to_record() for conflict in result.conflicts]
	war_records = [war.to_record() for war in wars]
	all_flags = load_flags + result.flags
	summary = summarize(conflict_records, wars, all_flags, result.counts, config, args)

	if args.dry_run:
		listing = filter_conflicts(result.conflicts, region=args.region, guild_search=args.guild, sort_by=args.sort)
		print(f"Dry run complete. Conflicts: {len(result.conflicts)}")
		print(f"Wars: {len(wars)}")
		print(f"Flags: {len(all_flags)}")
		print_listing(listing, int(args.limit))
		print(json.dumps(summary, indent=2, ensure_ascii=True))
		return 0

	outputs = [Path(args.output), Path(args.wars_output), Path(args.summary_output), Path(args.flags_output)]
	write_msgpack(outputs[0], conflict_records)
	write_msgpack(outputs[1], war_records)
	write_msgpack(outputs[2], summary)
	write_msgpack(outputs[3], all_flags)

	print(f"Wrote conflicts: {args.output}")
	print(f"Wrote wars: {args.wars_output}")
	print(f"Wrote summary: {args.summary_output}")
	print(f"Wrote flags: {args.flags_output}")

	data_dirs = {path.resolve().parent for path in outputs}
	if len(data_dirs) != 1 and not args.skip_manifest:
		print("[conflicts] outputs span several directories; manifest not refreshed", file=sys.stderr)
	elif not args.skip_manifest:
		data_dir = data_dirs.pop()
		manifest = refresh_manifest(
			data_dir,
			[path.name for path in outputs],
			source_fingerprint=source_fingerprint(exchanges_path, config),
		)
		print(f"Updated manifest: {data_dir / MANIFEST_NAME}")
		print(f"Dataset ID: {manifest.get('datasetId')}")
	print(f"Conflicts total: {len(result.conflicts)}")
	print(f"Wars total: {len(wars)}")
	print(f"Flags total: {len(all_flags)}")
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
