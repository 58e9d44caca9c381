"""Conflict detection over territory exchange history.

Pipeline: bucket guild-vs-guild captures -> adaptive threshold -> merge active buckets into
runs -> replay each run to rebuild the capture graph -> factions, confidence and a name.
Everything is recomputed from the store on each call; nothing is cached between calls except
the classifier's region memo.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

from activity_buckets import ActivityThreshold, BucketSeries, RawConflictRun, bucketize, merge_runs
from detection_config import DetectionConfig
from exchange_store import Event, ExchangeStore, cap_events, event_lower_bound, ownership_at, unix_to_iso
from faction_detection import ConflictSide, HostilityGraph, build_side, faction_cleanliness, partition_guilds
from progress import ProgressReporter
from region_classifier import RegionClassifier
from territory_catalog import GLOBAL_REGION, OTHER_REGION


UNKNOWN_PREFIX = "???"
UNCLASSIFIED_SAMPLE_SIZE = 20


@dataclass
class ConflictEvent:
	id: str
	name: str
	start_time: int
	end_time: int
	total_exchanges: int
	peak_hourly: int
	primary_region: str
	region_breakdown: dict[str, int]
	factions: list[ConflictSide]
	territories_involved: int
	confidence: float
	is_multi_front: bool
	weighted_exchanges: int

	@property
	def sides(self) -> tuple[ConflictSide, ConflictSide]:
		"""First two factions, padded with empty sides."""
		first = self.factions[0] if self.factions else ConflictSide.empty()
		second = self.factions[1] if len(self.factions) > 1 else ConflictSide.empty()
		return first, second

	def to_record(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"name": self.name,
			"startTime": unix_to_iso(self.start_time),
			"endTime": unix_to_iso(self.end_time),
			"totalExchanges": self.total_exchanges,
			"peakHourly": self.peak_hourly,
			"primaryRegion": self.primary_region,
			"regionBreakdown": dict(self.region_breakdown),
			"factions": [side.to_record() for side in self.factions],
			"sides": [side.to_record() for side in self.sides],
			"territoriesInvolved": self.territories_involved,
			"confidence": self.confidence,
			"isMultiFront": self.is_multi_front,
			"weightedExchanges": self.weighted_exchanges,
		}


@dataclass
class ReplayStats:
	guild_taken: dict[int, int] = field(default_factory=dict)
	guild_lost: dict[int, int] = field(default_factory=dict)
	pair_attacks: dict[tuple[int, int], int] = field(default_factory=dict)
	exchanges: int = 0
	weighted_exchanges: float = 0.0

	@property
	def involved_guilds(self) -> set[int]:
		return set(self.guild_taken) | set(self.guild_lost)


@dataclass
class DetectionResult:
	conflicts: list[ConflictEvent]
	flags: list[dict[str, Any]]
	counts: dict[str, int]


def replay_run(
	store: ExchangeStore,
	events: Sequence[Event],
	start_sec: int,
	end_sec: int,
	classifier: RegionClassifier,
) -> ReplayStats:
	"""Replay ``[start_sec, end_sec)`` from the ownership state just before ``start_sec``."""
	stats = ReplayStats()
	owner = ownership_at(store, start_sec)

	for index in range(event_lower_bound(events, start_sec), len(events)):
		unix_sec, territory_index, guild_index = events[index]
		if unix_sec >= end_sec:
			break
		previous = owner.get(territory_index)
		attacker = store.combatant(guild_index)
		owner[territory_index] = attacker
		if attacker is None or previous is None or attacker == previous:
			continue
		stats.guild_taken[attacker] = stats.guild_taken.get(attacker, 0) + 1
		stats.guild_lost[previous] = stats.guild_lost.get(previous, 0) + 1
		pair = (attacker, previous)
		stats.pair_attacks[pair] = stats.pair_attacks.get(pair, 0) + 1
		stats.exchanges += 1
		stats.weighted_exchanges += 1 + classifier.territory_value(store.territories[territory_index])
	return stats


def region_profile(
	region_breakdown: dict[str, int],
	total_exchanges: int,
	config: DetectionConfig,
) -> tuple[str, list[tuple[str, int]], bool]:
	"""Return ``(primary_region, significant_regions, is_multi_front)``."""
	ranked = sorted(region_breakdown.items(), key=lambda item: (-item[1], item[0]))
	if not ranked or total_exchanges <= 0:
		return GLOBAL_REGION, [], False
	top_region, top_count = ranked[0]
	primary = top_region if top_count / total_exchanges >= config.primary_region_share else GLOBAL_REGION
	significant = [(region, count) for region, count in ranked if count / total_exchanges > config.multi_front_share]
	return primary, significant, len(significant) >= config.multi_front_regions


def score_confidence(
	guild_count: int,
	duration_hours: float,
	peak_hourly: int,
	territories_involved: int,
	cleanliness: float,
) -> float:
	"""Additive 0-1 heuristic; each structural signal adds a bounded increment."""
	score = 0.0
	if guild_count >= 4:
		score += 0.3
	elif guild_count >= 2:
		score += 0.15
	if duration_hours >= 2:
		score += 0.2
	elif duration_hours >= 1:
		score += 0.1
	if peak_hourly >= 20:
		score += 0.2
	elif peak_hourly >= 10:
		score += 0.1
	if territories_involved >= 10:
		score += 0.15
	elif territories_involved >= 5:
		score += 0.07
	score += min(1.0, max(0.0, cleanliness)) * 0.15
	return round(min(1.0, max(0.0, score)), 4)


def conflict_name(
	primary_region: str,
	is_multi_front: bool,
	significant_regions: Sequence[tuple[str, int]],
	factions: Sequence[ConflictSide],
) -> str:
	prefixes = []
	for index in range(2):
		side = factions[index] if index < len(factions) else None
		prefixes.append(side.guilds[0].prefix if side and side.guilds and side.guilds[0].prefix else UNKNOWN_PREFIX)

	if is_multi_front:
		regions = "/".join(region for region, _ in significant_regions[:2])
		return f"{regions} War: {prefixes[0]} vs {prefixes[1]}"
	return f"Battle of {primary_region}: {prefixes[0]} vs {prefixes[1]}"


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def characterize_run(
	index: int,
	run: RawConflictRun,
	series: BucketSeries,
	store: ExchangeStore,
	events: Sequence[Event],
	classifier: RegionClassifier,
	config: DetectionConfig,
) -> ConflictEvent | None:
	start_sec = run.start_bucket * series.bucket_seconds
	end_sec = (run.end_bucket + 1) * series.bucket_seconds

	total_exchanges = 0
	peak_hourly = 0
	region_breakdown: dict[str, int] = {}
	territories: set[int] = set()
	for key in run.active_buckets:
		bucket = series.buckets[key]
		total_exchanges += bucket.total
		peak_hourly = max(peak_hourly, series.rates[key])
		for region, count in bucket.by_region.items():
			region_breakdown[region] = region_breakdown.get(region, 0) + count
		territories.update(bucket.territories)
	if total_exchanges == 0:
		return None

	stats = replay_run(store, events, start_sec, end_sec, classifier)
	if stats.exchanges == 0:
		return None

	primary_region, significant_regions, is_multi_front = region_profile(region_breakdown, total_exchanges, config)

	members = partition_guilds(stats.guild_taken, stats.guild_lost, stats.pair_attacks, config)
	factions = [
		build_side(store, group, stats.guild_taken, stats.guild_lost, config.display_guilds) for group in members
	]
	graph = HostilityGraph.build(stats.guild_taken, stats.guild_lost, stats.pair_attacks)

	confidence = score_confidence(
		guild_count=len(stats.involved_guilds),
		duration_hours=(end_sec - start_sec) / 3600,
		peak_hourly=peak_hourly,
		territories_involved=len(territories),
		cleanliness=faction_cleanliness(graph, members),
	)

	return ConflictEvent(
		id=f"c_{index}_{start_sec}",
		name=conflict_name(primary_region, is_multi_front, significant_regions, factions),
		start_time=start_sec,
		end_time=end_sec,
		total_exchanges=total_exchanges,
		peak_hourly=peak_hourly,
		primary_region=primary_region,
		region_breakdown=dict(sorted(region_breakdown.items(), key=lambda item: (-item[1], item[0]))),
		factions=factions,
		territories_involved=len(territories),
		confidence=confidence,
		is_multi_front=is_multi_front,
		weighted_exchanges=round_half_up(stats.weighted_exchanges),
	)


def _unclassified_territories(series: BucketSeries, store: ExchangeStore, classifier: RegionClassifier) -> list[str]:
	touched: set[int] = set()
	for bucket in series.buckets.values():
		touched.update(bucket.territories)
	names = {store.territories[index] for index in touched}
	return sorted(name for name in names if classifier.region_of(name) == OTHER_REGION)


def detect_conflicts_with_flags(
	store: ExchangeStore,
	config: DetectionConfig | None = None,
	classifier: RegionClassifier | None = None,
	progress: ProgressReporter | None = None,
) -> DetectionResult:
	config = config or DetectionConfig()
	classifier = classifier or RegionClassifier()
	flags: list[dict[str, Any]] = []
	counts = {
		"events_total": len(store.events),
		"events_used": 0,
		"buckets_total": 0,
		"runs_total": 0,
		"conflicts_total": 0,
	}
	if not store.events:
		return DetectionResult(conflicts=[], flags=flags, counts=counts)

	events = cap_events(store.events, config.max_events)
	counts["events_used"] = len(events)
	if len(events) < len(store.events):
		flags.append(
			{
				"severity": "warning",
				"flag": "events_capped",
				"max_events": config.max_events,
				"dropped_events": len(store.events) - len(events),
			}
		)

	series = bucketize(store, events, classifier, config)
	counts["buckets_total"] = len(series)
	if not series.keys:
		flags.append({"severity": "info", "flag": "no_guild_exchanges"})
		return DetectionResult(conflicts=[], flags=flags, counts=counts)

	unclassified = _unclassified_territories(series, store, classifier)
	if unclassified:
		flags.append(
			{
				"severity": "info",
				"flag": "unclassified_territories",
				"count": len(unclassified),
				"sample": unclassified[:UNCLASSIFIED_SAMPLE_SIZE],
			}
		)

	threshold = ActivityThreshold(series, config)
	if threshold.rolling:
		flags.append(
			{
				"severity": "info",
				"flag": "rolling_threshold_enabled",
				"window_days": config.rolling_window_days,
				"global_threshold": threshold.global_threshold,
			}
		)

	runs = merge_runs(series, threshold, config)
	counts["runs_total"] = len(runs)
	if not runs:
		flags.append({"severity": "info", "flag": "no_active_buckets", "threshold": threshold.global_threshold})
		return DetectionResult(conflicts=[], flags=flags, counts=counts)

	if progress is None:
		progress = ProgressReporter(label="[conflicts] runs", total=0)
	else:
		progress.total = len(runs)

	conflicts: list[ConflictEvent] = []
	for index, run in enumerate(runs):
		conflict = characterize_run(index, run, series, store, events, classifier, config)
		if conflict is None:
			flags.append(
				{
					"severity": "info",
					"flag": "run_dropped_empty_replay",
					"start_bucket": run.start_bucket,
					"end_bucket": run.end_bucket,
				}
			)
		else:
			conflicts.append(conflict)
		progress.step(conflicts=len(conflicts), done=index == len(runs) - 1)
	progress.close()

	conflicts.sort(key=lambda item: (-item.total_exchanges, item.start_time, item.id))
	if len(conflicts) > config.max_conflicts:
		flags.append(
			{
				"severity": "info",
				"flag": "conflicts_truncated",
				"kept": config.max_conflicts,
				"dropped": len(conflicts) - config.max_conflicts,
			}
		)
		conflicts = conflicts[: config.max_conflicts]
	counts["conflicts_total"] = len(conflicts)
	return DetectionResult(conflicts=conflicts, flags=flags, counts=counts)


def detect_conflicts(
	store: ExchangeStore,
	config: DetectionConfig | None = None,
	classifier: RegionClassifier | None = None,
) -> list[ConflictEvent]:
	return detect_conflicts_with_flags(store, config, classifier).conflicts
