from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any


DEFAULT_BUCKET_SECONDS = 3600
DEFAULT_RATE_WINDOW_SECONDS = 3600
DEFAULT_THRESHOLD_FLOOR = 6
DEFAULT_MAD_MULTIPLIER = 2.0
DEFAULT_ROLLING_WINDOW_DAYS = 3.5
DEFAULT_ROLLING_MIN_SAMPLES = 20
DEFAULT_MERGE_GAP_HOURS = 2.0
DEFAULT_OVERLAP_MERGE_GAP_HOURS = 4.0
DEFAULT_OVERLAP_MERGE_FRACTION = 0.5
DEFAULT_MAX_EVENTS = 600_000
DEFAULT_MAX_CONFLICTS = 200

MIN_BUCKET_SECONDS = 900
MAX_BUCKET_SECONDS = 3600
FACTION_METHODS = ("communities", "bipartite")


@dataclass(frozen=True)
class DetectionConfig:
	bucket_seconds: int = DEFAULT_BUCKET_SECONDS
	rate_window_seconds: int = DEFAULT_RATE_WINDOW_SECONDS
	threshold_floor: float = DEFAULT_THRESHOLD_FLOOR
	mad_multiplier: float = DEFAULT_MAD_MULTIPLIER
	rolling_threshold: bool = True
	rolling_window_days: float = DEFAULT_ROLLING_WINDOW_DAYS
	rolling_min_samples: int = DEFAULT_ROLLING_MIN_SAMPLES
	merge_gap_hours: float = DEFAULT_MERGE_GAP_HOURS
	overlap_merge_gap_hours: float = DEFAULT_OVERLAP_MERGE_GAP_HOURS
	overlap_merge_fraction: float = DEFAULT_OVERLAP_MERGE_FRACTION
	primary_region_share: float = 0.6
	multi_front_share: float = 0.15
	multi_front_regions: int = 3
	faction_method: str = "communities"
	max_factions: int = 4
	min_guild_interactions: int = 2
	spinoff_ratio: float = 0.7
	spinoff_min_interactions: int = 5
	display_guilds: int = 10
	max_events: int = DEFAULT_MAX_EVENTS
	max_conflicts: int = DEFAULT_MAX_CONFLICTS
	war_max_gap_hours: float = 12.0
	war_max_days: float = 7.0
	war_min_overlap: float = 0.5
	war_top_guilds: int = 5

	def __post_init__(self) -> None:
		if not MIN_BUCKET_SECONDS <= self.bucket_seconds <= MAX_BUCKET_SECONDS:
			raise ValueError(
				f"bucket_seconds must be between {MIN_BUCKET_SECONDS} and {MAX_BUCKET_SECONDS}, got {self.bucket_seconds}"
			)
		if self.rate_window_seconds < self.bucket_seconds:
			raise ValueError("rate_window_seconds must be >= bucket_seconds")
		if self.faction_method not in FACTION_METHODS:
			raise ValueError(f"faction_method must be one of {FACTION_METHODS}, got {self.faction_method!r}")
		if self.max_factions < 2:
			raise ValueError("max_factions must be >= 2")
		for name in ("max_events", "max_conflicts", "display_guilds", "war_top_guilds", "rolling_min_samples"):
			if getattr(self, name) <= 0:
				raise ValueError(f"{name} must be > 0")
		if self.merge_gap_hours < 0 or self.overlap_merge_gap_hours < self.merge_gap_hours:
			raise ValueError("overlap_merge_gap_hours must be >= merge_gap_hours >= 0")
		for name in ("threshold_floor", "mad_multiplier", "rolling_window_days"):
			if getattr(self, name) < 0:
				raise ValueError(f"{name} must be >= 0")
		for name in ("war_max_gap_hours", "war_max_days"):
			if getattr(self, name) <= 0:
				raise ValueError(f"{name} must be > 0")
		for name in (
			"overlap_merge_fraction",
			"war_min_overlap",
			"primary_region_share",
			"multi_front_share",
			"spinoff_ratio",
		):
			value = getattr(self, name)
			if not 0 < value <= 1:
				raise ValueError(f"{name} must be in (0, 1], got {value}")
		if self.multi_front_regions < 1:
			raise ValueError("multi_front_regions must be >= 1")

	@property
	def rate_window_buckets(self) -> int:
		return max(1, self.rate_window_seconds // self.bucket_seconds)

	@property
	def merge_gap_buckets(self) -> int:
		return int(self.merge_gap_hours * 3600 // self.bucket_seconds)

	@property
	def overlap_merge_gap_buckets(self) -> int:
		return int(self.overlap_merge_gap_hours * 3600 // self.bucket_seconds)

	@property
	def rolling_window_buckets(self) -> int:
		return int(self.rolling_window_days * 86400 // self.bucket_seconds)

	def with_overrides(self, **overrides: Any) -> "DetectionConfig":
		known = {item.name for item in fields(self)}
		unknown = sorted(set(overrides) - known)
		if unknown:
			raise ValueError(f"Unknown detection config keys: {', '.join(unknown)}")
		values = {key: value for key, value in overrides.items() if value is not None}
		return replace(self, **values)

	def to_record(self) -> dict[str, Any]:
		return asdict(self)


def load_config(path: Path | None, **overrides: Any) -> DetectionConfig:
	"""Defaults, then the JSON file at ``path``, then explicit (non-None) overrides."""
	config = DetectionConfig()
	if path is not None:
		with path.open("r", encoding="utf-8") as handle:
			payload = json.load(handle)
		if not isinstance(payload, dict):
			raise ValueError(f"Detection config must be a JSON object: {path}")
		config = config.with_overrides(**payload)
	return config.with_overrides(**overrides)
