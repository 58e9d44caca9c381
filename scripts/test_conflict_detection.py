from __future__ import annotations

import random
import unittest
from pathlib import Path
import sys

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
	sys.path.insert(0, str(SCRIPT_DIR))

from conflict_detection import (
	conflict_name,
	detect_conflicts,
	detect_conflicts_with_flags,
	region_profile,
	score_confidence,
)
from detection_config import DetectionConfig
from exchange_store import ExchangeStore
from faction_detection import ConflictSide, FactionGuild
from region_classifier import RegionClassifier
from war_grouping import group_conflicts_into_wars


HOUR = 3600
DAY = 24 * HOUR
BASE = 472_223 * HOUR


class StoreBuilder:
	def __init__(self) -> None:
		self.territories: list[str] = []
		self.guilds = ["None"]
		self.prefixes = ["None"]
		self.events: list[tuple[int, int, int]] = []

	def guild(self, name: str) -> int:
		if name not in self.guilds:
			self.guilds.append(name)
			self.prefixes.append(name[:3].upper())
		return self.guilds.index(name)

	def territory(self, name: str) -> int:
		if name not in self.territories:
			self.territories.append(name)
		return self.territories.index(name)

	def capture(self, when: int, territory: str, guild: str) -> None:
		self.events.append((when, self.territory(territory), self.guild(guild)))

	def claim(self, when: int, territories: list[str], guild: str) -> None:
		for name in territories:
			self.capture(when, name, guild)

	def burst(self, start: int, territories: list[str], guild: str) -> None:
		for offset, name in enumerate(territories):
			self.capture(start + 60 * offset, name, guild)

	def build(self) -> ExchangeStore:
		events = sorted(self.events, key=lambda event: event[0])
		return ExchangeStore(territories=self.territories, guilds=self.guilds, prefixes=self.prefixes, events=events)


def names(prefix: str, count: int, start: int = 0) -> list[str]:
	return [f"{prefix} {index}" for index in range(start, start + count)]


def add_background(builder: StoreBuilder, count: int = 20) -> None:
	"""Low steady trading between two unrelated guilds in the days before the scenario."""
	builder.claim(BASE - 10 * DAY, ["Detlas 1"], "Kilo")
	for index in range(count):
		builder.capture(BASE - 4 * DAY + index * 4 * HOUR, "Detlas 1", "Lima" if index % 2 == 0 else "Kilo")


def single_burst_store() -> ExchangeStore:
	builder = StoreBuilder()
	add_background(builder)
	builder.claim(BASE - 10 * DAY, names("Ragni", 20), "Bravo")
	builder.claim(BASE - 10 * DAY, ["Detlas 0"], "Charlie")
	builder.burst(BASE, names("Ragni", 20), "Alpha")
	return builder.build()


def war_store() -> ExchangeStore:
	builder = StoreBuilder()
	add_background(builder)
	builder.claim(BASE - 10 * DAY, names("Ragni", 40), "Bravo")
	first = names("Ragni", 20)
	second = names("Ragni", 20, start=20)
	builder.burst(BASE, first[:10], "Alpha")
	builder.burst(BASE + 600, first[10:16], "Charlie")
	builder.burst(BASE + 1200, first[16:], "Delta")
	builder.burst(BASE + 6 * HOUR, second[:10], "Alpha")
	builder.burst(BASE + 6 * HOUR + 600, second[10:16], "Charlie")
	builder.burst(BASE + 6 * HOUR + 1200, second[16:], "Echo")
	return builder.build()


def fuzzed_store(seed: int) -> ExchangeStore:
	rng = random.Random(seed)
	builder = StoreBuilder()
	territories = names("Ragni", 15) + names("Llevigar", 15) + ["Royal Dam", "Nowhere Keep"]
	guilds = [f"Guild {index}" for index in range(6)]
	for name in territories:
		builder.capture(BASE - DAY, name, rng.choice(guilds))
	when = BASE
	for _ in range(5):
		for _ in range(40):
			when += rng.randint(600, 4 * HOUR)
			builder.capture(when, rng.choice(territories), rng.choice(guilds))
		burst_guilds = rng.sample(guilds, 3)
		for _ in range(rng.randint(15, 40)):
			when += rng.randint(10, 120)
			builder.capture(when, rng.choice(territories), rng.choice(burst_guilds))
	return builder.build()


class DetectConflictsScenarioTests(unittest.TestCase):
	def test_single_burst_yields_one_two_sided_conflict(self) -> None:
		conflicts = detect_conflicts(single_burst_store(), classifier=RegionClassifier())

		self.assertEqual(len(conflicts), 1)
		conflict = conflicts[0]
		self.assertEqual(conflict.id, f"c_0_{BASE}")
		self.assertEqual((conflict.start_time, conflict.end_time), (BASE, BASE + HOUR))
		self.assertEqual(conflict.total_exchanges, 20)
		self.assertEqual(conflict.peak_hourly, 20)
		self.assertEqual(conflict.territories_involved, 20)
		self.assertEqual(conflict.primary_region, "Wynn")
		self.assertFalse(conflict.is_multi_front)
		self.assertEqual(len(conflict.factions), 2)
		self.assertEqual(conflict.factions[0].guilds[0].name, "Alpha")
		self.assertGreater(conflict.factions[0].total_taken, conflict.factions[1].total_taken)
		self.assertEqual(conflict.name, "Battle of Wynn: ALP vs BRA")
		self.assertEqual(conflict.weighted_exchanges, 20)

	def test_conflict_record_shape(self) -> None:
		record = detect_conflicts(single_burst_store(), classifier=RegionClassifier())[0].to_record()

		self.assertEqual(record["startTime"], "2023-11-14T23:00:00Z")
		self.assertEqual(record["regionBreakdown"], {"Wynn": 20})
		self.assertEqual(len(record["sides"]), 2)
		self.assertEqual(record["sides"][0], record["factions"][0])
		self.assertEqual(record["factions"][1]["totalLost"], 20)

	def test_quiet_period_yields_nothing(self) -> None:
		builder = StoreBuilder()
		builder.claim(BASE - DAY, ["Ragni 0"], "Bravo")
		for index in range(100):
			builder.capture(BASE + index * 26_000, "Ragni 0", "Alpha" if index % 2 == 0 else "Bravo")

		result = detect_conflicts_with_flags(builder.build(), classifier=RegionClassifier())

		self.assertEqual(result.conflicts, [])
		self.assertIn("no_active_buckets", [flag["flag"] for flag in result.flags])
		self.assertEqual(result.counts["buckets_total"], 100)

	def test_transitions_through_unclaimed_are_not_signal(self) -> None:
		builder = StoreBuilder()
		when = BASE
		for index in range(30):
			for owner in ("Alpha", "None", "Bravo", "None"):
				builder.capture(when, f"Ragni {index % 3}", owner)
				when += 30

		result = detect_conflicts_with_flags(builder.build(), classifier=RegionClassifier())

		self.assertEqual(result.conflicts, [])
		self.assertEqual([flag["flag"] for flag in result.flags], ["no_guild_exchanges"])

	def test_empty_store(self) -> None:
		store = ExchangeStore(territories=[], guilds=[], prefixes=[], events=[])
		result = detect_conflicts_with_flags(store)
		self.assertEqual(result.conflicts, [])
		self.assertEqual(result.flags, [])

	def test_bursts_ten_days_apart_with_disjoint_guilds_are_not_a_war(self) -> None:
		builder = StoreBuilder()
		builder.claim(BASE - 10 * DAY, names("Ragni", 20), "Bravo")
		builder.claim(BASE - 10 * DAY, names("Llevigar", 20), "Echo")
		builder.burst(BASE, names("Ragni", 20), "Alpha")
		builder.burst(BASE + 10 * DAY, names("Llevigar", 20), "Delta")

		conflicts = detect_conflicts(builder.build(), classifier=RegionClassifier())

		self.assertEqual(len(conflicts), 2)
		self.assertEqual({conflict.primary_region for conflict in conflicts}, {"Wynn", "Gavel"})
		self.assertEqual(group_conflicts_into_wars(conflicts), [])

	def test_bursts_six_hours_apart_sharing_guilds_form_one_war(self) -> None:
		conflicts = detect_conflicts(war_store(), classifier=RegionClassifier())
		self.assertEqual(len(conflicts), 2)

		wars = group_conflicts_into_wars(conflicts)

		self.assertEqual(len(wars), 1)
		war = wars[0]
		self.assertEqual([conflict.start_time for conflict in war.conflicts], [BASE, BASE + 6 * HOUR])
		self.assertEqual(war.total_exchanges, sum(conflict.total_exchanges for conflict in conflicts))
		self.assertEqual(war.total_exchanges, 40)
		self.assertEqual((war.start_time, war.end_time), (BASE, BASE + 7 * HOUR))
		self.assertTrue(war.name.startswith("War of Wynn"))

	def test_scenarios_hold_at_quarter_hour_and_hour_buckets(self) -> None:
		for bucket_seconds, run_length in ((900, 1800), (3600, HOUR)):
			with self.subTest(bucket_seconds=bucket_seconds):
				config = DetectionConfig(bucket_seconds=bucket_seconds)

				single = detect_conflicts(single_burst_store(), config, RegionClassifier())
				self.assertEqual(
					[(c.start_time, c.end_time, c.total_exchanges, c.peak_hourly, len(c.factions)) for c in single],
					[(BASE, BASE + run_length, 20, 20, 2)],
				)

				conflicts = detect_conflicts(war_store(), config, RegionClassifier())
				self.assertEqual(sorted(c.start_time for c in conflicts), [BASE, BASE + 6 * HOUR])
				self.assertEqual([c.total_exchanges for c in conflicts], [20, 20])
				wars = group_conflicts_into_wars(conflicts, config)
				self.assertEqual(len(wars), 1)
				self.assertEqual(wars[0].end_time, BASE + 6 * HOUR + run_length)

	def test_background_trading_alone_is_not_a_conflict(self) -> None:
		builder = StoreBuilder()
		add_background(builder, count=40)
		for bucket_seconds in (900, 3600):
			with self.subTest(bucket_seconds=bucket_seconds):
				config = DetectionConfig(bucket_seconds=bucket_seconds)
				self.assertEqual(detect_conflicts(builder.build(), config, RegionClassifier()), [])

	def test_resource_values_weight_exchanges(self) -> None:
		territory_data = {name: {"resources": {"emeralds": "High"}} for name in names("Ragni", 20)}
		classifier = RegionClassifier(territory_data)

		conflicts = detect_conflicts(single_burst_store(), classifier=classifier)

		self.assertEqual(len(conflicts), 1)
		conflict = conflicts[0]
		self.assertEqual(conflict.total_exchanges, 20)
		self.assertEqual(conflict.weighted_exchanges, 80)
		self.assertGreater(conflict.weighted_exchanges, conflict.total_exchanges)
		self.assertEqual(conflict.to_record()["weightedExchanges"], 80)

	def test_detection_is_deterministic(self) -> None:
		first = detect_conflicts(war_store(), classifier=RegionClassifier())
		second = detect_conflicts(war_store(), classifier=RegionClassifier())

		self.assertEqual([conflict.to_record() for conflict in first], [conflict.to_record() for conflict in second])
		self.assertEqual(
			[war.to_record() for war in group_conflicts_into_wars(first)],
			[war.to_record() for war in group_conflicts_into_wars(second)],
		)


class DetectConflictsPropertyTests(unittest.TestCase):
	def test_fuzzed_histories_keep_invariants(self) -> None:
		for seed in range(8):
			with self.subTest(seed=seed):
				store = fuzzed_store(seed)
				config = DetectionConfig(threshold_floor=4)
				for conflict in detect_conflicts(store, config, RegionClassifier()):
					self.assertEqual(sum(conflict.region_breakdown.values()), conflict.total_exchanges)
					self.assertGreaterEqual(conflict.confidence, 0.0)
					self.assertLessEqual(conflict.confidence, 1.0)
					self.assertLessEqual(len(conflict.factions), 4)
					self.assertTrue(all(side.guilds for side in conflict.factions))
					if len(conflict.factions) >= 2:
						self.assertGreaterEqual(conflict.factions[0].total_taken, conflict.factions[1].total_taken)

				for war in group_conflicts_into_wars(detect_conflicts(store, config, RegionClassifier()), config):
					self.assertGreaterEqual(len(war.conflicts), 2)

	def test_output_is_capped_and_sorted_by_size(self) -> None:
		builder = StoreBuilder()
		builder.claim(BASE - 10 * DAY, names("Ragni", 60), "Bravo")
		builder.burst(BASE, names("Ragni", 10), "Alpha")
		builder.burst(BASE + DAY, names("Ragni", 30, start=10), "Alpha")
		builder.burst(BASE + 2 * DAY, names("Ragni", 20, start=40), "Alpha")
		builder.claim(BASE - 10 * DAY, ["Detlas 0"], "Bravo")
		for index in range(20):
			builder.capture(BASE + 3 * DAY + index * 5 * HOUR, "Detlas 0", "Alpha" if index % 2 == 0 else "Bravo")

		result = detect_conflicts_with_flags(
			builder.build(), DetectionConfig(max_conflicts=2, threshold_floor=5), RegionClassifier()
		)

		self.assertEqual([conflict.total_exchanges for conflict in result.conflicts], [30, 20])
		truncated = [flag for flag in result.flags if flag["flag"] == "conflicts_truncated"]
		self.assertEqual(truncated[0]["dropped"], 1)

	def test_capped_input_and_unclassified_territories_are_flagged(self) -> None:
		builder = StoreBuilder()
		builder.claim(BASE - 10 * DAY, names("Ragni", 19) + ["Nowhere Keep"], "Bravo")
		builder.burst(BASE, names("Ragni", 19) + ["Nowhere Keep"], "Alpha")
		store = builder.build()

		result = detect_conflicts_with_flags(store, DetectionConfig(max_events=35), RegionClassifier())

		by_code = {flag["flag"]: flag for flag in result.flags}
		self.assertEqual(by_code["events_capped"]["dropped_events"], 5)
		self.assertEqual(by_code["unclassified_territories"]["sample"], ["Nowhere Keep"])
		self.assertEqual(result.counts["events_used"], 35)


class ScoringAndNamingTests(unittest.TestCase):
	def test_confidence_is_monotonic_and_bounded(self) -> None:
		low = score_confidence(guild_count=2, duration_hours=1, peak_hourly=6, territories_involved=3, cleanliness=0.2)
		high = score_confidence(
			guild_count=6, duration_hours=5, peak_hourly=40, territories_involved=25, cleanliness=1.0
		)
		self.assertLess(low, high)
		self.assertLessEqual(high, 1.0)
		self.assertEqual(score_confidence(0, 0, 0, 0, 0.0), 0.0)
		self.assertEqual(score_confidence(10, 10, 100, 100, 5.0), 1.0)

	def test_region_profile(self) -> None:
		config = DetectionConfig()
		self.assertEqual(region_profile({"Wynn": 7, "Gavel": 3}, 10, config)[0], "Wynn")

		primary, significant, multi_front = region_profile({"Wynn": 4, "Gavel": 3, "Ocean": 3}, 10, config)
		self.assertEqual(primary, "Global")
		self.assertEqual([region for region, _ in significant], ["Wynn", "Gavel", "Ocean"])
		self.assertTrue(multi_front)

	def test_conflict_names(self) -> None:
		sides = [
			ConflictSide([FactionGuild("Alpha", "ALP", 5, 0)], 5, 0),
			ConflictSide([FactionGuild("Bravo", "", 0, 5)], 0, 5),
		]
		self.assertEqual(conflict_name("Gavel", False, [], sides), "Battle of Gavel: ALP vs ???")
		self.assertEqual(
			conflict_name("Global", True, [("Wynn", 4), ("Gavel", 3), ("Ocean", 3)], sides),
			"Wynn/Gavel War: ALP vs ???",
		)
		self.assertEqual(conflict_name("Global", False, [], []), "Battle of Global: ??? vs ???")


if __name__ == "__main__":
	unittest.main()
