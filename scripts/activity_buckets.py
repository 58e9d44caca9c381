"""Bucket guild-vs-guild exchanges in time, threshold them, and merge active buckets into runs."""

from __future__ import annotations

import statistics
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Sequence

from detection_config import DetectionConfig
from exchange_store import Event, ExchangeStore
from region_classifier import RegionClassifier


@dataclass
class Bucket:
	total: int = 0
	by_region: dict[str, int] = field(default_factory=dict)
	territories: set[int] = field(default_factory=set)
	guilds: set[int] = field(default_factory=set)

	def add(self, region: str, territory_index: int, attacker: int, defender: int) -> None:
		self.total += 1
		self.by_region[region] = self.by_region.get(region, 0) + 1
		self.territories.add(territory_index)
		self.guilds.add(attacker)
		self.guilds.add(defender)


@dataclass
class BucketSeries:
	bucket_seconds: int
	buckets: dict[int, Bucket]
	keys: list[int]
	rates: dict[int, int]

	def __len__(self) -> int:
		return len(self.keys)

	@property
	def span_buckets(self) -> int:
		if not self.keys:
			return 0
		return self.keys[-1] - self.keys[0] + 1


@dataclass
class RawConflictRun:
	start_bucket: int
	end_bucket: int
	active_buckets: list[int]
	guilds: set[int]

	def extend(self, key: int, guilds: set[int]) -> None:
		self.end_bucket = key
		self.active_buckets.append(key)
		self.guilds.update(guilds)


def bucket_key(unix_sec: int, bucket_seconds: int) -> int:
	return unix_sec // bucket_seconds


def bucketize(
	store: ExchangeStore,
	events: Sequence[Event],
	classifier: RegionClassifier,
	config: DetectionConfig,
) -> BucketSeries:
	"""Single ordered pass over ``events``; only real guild-vs-guild captures are counted."""
	current_owner: dict[int, int | None] = {}
	buckets: dict[int, Bucket] = {}

	for unix_sec, territory_index, guild_index in events:
		previous = current_owner.get(territory_index)
		attacker = store.combatant(guild_index)
		current_owner[territory_index] = attacker
		if attacker is None or previous is None or attacker == previous:
			continue

		key = bucket_key(unix_sec, config.bucket_seconds)
		bucket = buckets.get(key)
		if bucket is None:
			bucket = Bucket()
			buckets[key] = bucket
		region = classifier.region_of(store.territories[territory_index])
		bucket.add(region, territory_index, attacker, previous)

	keys = sorted(buckets)
	rates = hourly_rates(buckets, keys, config.rate_window_buckets)
	return BucketSeries(bucket_seconds=config.bucket_seconds, buckets=buckets, keys=keys, rates=rates)


def hourly_rates(buckets: dict[int, Bucket], keys: list[int], window_buckets: int) -> dict[int, int]:
	"""Trailing-window sums, so sub-hour buckets still report exchanges per hour."""
	if window_buckets <= 1:
		return {key: buckets[key].total for key in keys}

	rates: dict[int, int] = {}
	running = 0
	tail = 0
	for key in keys:
		running += buckets[key].total
		while keys[tail] <= key - window_buckets:
			running -= buckets[keys[tail]].total
			tail += 1
		rates[key] = running
	return rates


def median_mad(values: Sequence[float]) -> tuple[float, float]:
	if not values:
		return 0.0, 0.0
	center = statistics.median(values)
	spread = statistics.median([abs(value - center) for value in values])
	return float(center), float(spread)


class ActivityThreshold:
	"""Robust activity threshold: ``max(floor, median + k * MAD)``.

	Exchange counts are bursty and heavy-tailed, so the median/MAD pair is used instead of a
	mean/stddev pair that the bursts themselves would inflate. With enough history the
	threshold is recomputed per bucket from a symmetric rolling window.
	"""

	def __init__(self, series: BucketSeries, config: DetectionConfig) -> None:
		self._series = series
		self._config = config
		rates = [series.rates[key] for key in series.keys]
		self.median, self.mad = median_mad(rates)
		self.global_threshold = self._threshold_from(self.median, self.mad)
		window = config.rolling_window_buckets
		self.rolling = bool(config.rolling_threshold and window > 0 and series.span_buckets > 4 * window)
		self._local: dict[int, float] = {}

	def _threshold_from(self, center: float, spread: float) -> float:
		return max(float(self._config.threshold_floor), center + self._config.mad_multiplier * spread)

	def __call__(self, key: int) -> float:
		if not self.rolling:
			return self.global_threshold
		cached = self._local.get(key)
		if cached is not None:
			return cached

		keys = self._series.keys
		window = self._config.rolling_window_buckets
		lo = bisect_left(keys, key - window)
		hi = bisect_right(keys, key + window)
		if hi - lo < self._config.rolling_min_samples:
			value = self.global_threshold
		else:
			sample = [self._series.rates[keys[index]] for index in range(lo, hi)]
			value = self._threshold_from(*median_mad(sample))
		self._local[key] = value
		return value


def guild_overlap(candidate: set[int], accumulated: set[int]) -> float:
	if not candidate:
		return 0.0
	return len(candidate & accumulated) / len(candidate)


def merge_runs(series: BucketSeries, threshold: ActivityThreshold, config: DetectionConfig) -> list[RawConflictRun]:
	"""Merge active buckets into runs with a tiered gap tolerance.

	Within ``merge_gap_buckets`` a bucket always joins the open run; within
	``overlap_merge_gap_buckets`` it joins only when most of its guilds already fight in the run.
	"""
	runs: list[RawConflictRun] = []
	current: RawConflictRun | None = None
	short_gap = config.merge_gap_buckets
	long_gap = config.overlap_merge_gap_buckets

	for key in series.keys:
		if series.rates[key] < threshold(key):
			continue
		bucket = series.buckets[key]
		if current is not None:
			gap = key - current.end_bucket
			if gap <= short_gap or (
				gap <= long_gap and guild_overlap(bucket.guilds, current.guilds) > config.overlap_merge_fraction
			):
				current.extend(key, bucket.guilds)
				continue
			runs.append(current)
		current = RawConflictRun(start_bucket=key, end_bucket=key, active_buckets=[key], guilds=set(bucket.guilds))

	if current is not None:
		runs.append(current)
	return runs
