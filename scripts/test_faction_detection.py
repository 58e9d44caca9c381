from __future__ import annotations

import unittest
from pathlib import Path
import sys

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
	sys.path.insert(0, str(SCRIPT_DIR))

from detection_config import DetectionConfig
from exchange_store import ExchangeStore
from faction_detection import HostilityGraph, detect_factions, faction_cleanliness, partition_guilds


def totals_from_pairs(pairs: dict[tuple[int, int], int]) -> tuple[dict[int, int], dict[int, int]]:
	taken: dict[int, int] = {}
	lost: dict[int, int] = {}
	for (attacker, defender), count in pairs.items():
		taken[attacker] = taken.get(attacker, 0) + count
		lost[defender] = lost.get(defender, 0) + count
	return taken, lost


def partition(pairs: dict[tuple[int, int], int], config: DetectionConfig | None = None) -> list[list[int]]:
	taken, lost = totals_from_pairs(pairs)
	return partition_guilds(taken, lost, pairs, config)


def named_store(count: int) -> ExchangeStore:
	guilds = ["None"] + [f"Guild {index:02d}" for index in range(1, count + 1)]
	prefixes = ["None"] + [f"G{index:02d}" for index in range(1, count + 1)]
	return ExchangeStore(territories=["Ragni"], guilds=guilds, prefixes=prefixes, events=[])


class HostilityGraphTests(unittest.TestCase):
	def test_edges_are_undirected_sums(self) -> None:
		pairs = {(1, 2): 6, (2, 1): 4, (3, 2): 1}
		taken, lost = totals_from_pairs(pairs)
		graph = HostilityGraph.build(taken, lost, pairs)

		self.assertEqual(graph.weight(1, 2), 10)
		self.assertEqual(graph.weight(2, 1), 10)
		self.assertEqual(graph.weight(1, 3), 0)
		self.assertEqual(graph.nodes, [2, 1, 3])
		self.assertEqual(graph.strongest_pair(), (2, 1))
		self.assertEqual(graph.strongest_enemy(3), 2)


class PartitionTests(unittest.TestCase):
	def test_empty_and_interaction_free_inputs(self) -> None:
		self.assertEqual(partition_guilds({}, {}, {}), [])
		self.assertEqual(partition_guilds({1: 0}, {2: 0}, {}), [[1, 2]])

	def test_allies_join_the_side_they_do_not_attack(self) -> None:
		factions = partition({(1, 2): 10, (3, 2): 6, (4, 2): 4})
		self.assertEqual(len(factions), 2)
		self.assertEqual(sorted(factions[0]), [1, 3, 4])
		self.assertEqual(factions[1], [2])

	def test_aggressor_is_listed_first(self) -> None:
		factions = partition({(1, 2): 2, (2, 1): 8})
		self.assertEqual(factions, [[2], [1]])

	def test_low_interaction_guilds_are_unaffiliated(self) -> None:
		factions = partition({(1, 2): 10, (3, 2): 1})
		members = {guild for faction in factions for guild in faction}
		self.assertNotIn(3, members)
		self.assertEqual(members, {1, 2})

	def test_even_hostility_spins_off_a_third_faction(self) -> None:
		pairs = {(1, 2): 10, (2, 1): 10, (3, 1): 5, (3, 2): 5, (4, 1): 4, (4, 2): 4}
		factions = partition(pairs)

		self.assertEqual(len(factions), 3)
		self.assertEqual(sorted(factions[-1]), [3, 4])

	def test_single_guild_spin_off_is_folded(self) -> None:
		pairs = {(1, 2): 10, (2, 1): 10, (3, 1): 5, (3, 2): 5}
		factions = partition(pairs)

		self.assertEqual(len(factions), 2)
		self.assertEqual({guild for faction in factions for guild in faction}, {1, 2, 3})

	def test_faction_cap_is_respected(self) -> None:
		pairs = {(1, 2): 10, (2, 1): 10, (3, 1): 5, (3, 2): 5, (4, 1): 4, (4, 2): 4}
		factions = partition(pairs, DetectionConfig(max_factions=2))

		self.assertEqual(len(factions), 2)
		self.assertEqual({guild for faction in factions for guild in faction}, {1, 2, 3, 4})

	def test_bipartite_method_keeps_every_guild_on_two_sides(self) -> None:
		pairs = {(1, 2): 10, (3, 2): 6, (4, 1): 3}
		factions = partition(pairs, DetectionConfig(faction_method="bipartite"))

		self.assertEqual(len(factions), 2)
		self.assertEqual(sorted(guild for faction in factions for guild in faction), [1, 2, 3, 4])

	def test_partition_is_deterministic(self) -> None:
		pairs = {(1, 2): 3, (2, 3): 3, (3, 1): 3, (4, 2): 2, (5, 4): 7}
		self.assertEqual(partition(pairs), partition(dict(reversed(list(pairs.items())))))


class CleanlinessTests(unittest.TestCase):
	def test_cleanliness_measures_cross_faction_hostility(self) -> None:
		pairs = {(1, 2): 8, (3, 4): 2}
		taken, lost = totals_from_pairs(pairs)
		graph = HostilityGraph.build(taken, lost, pairs)

		self.assertEqual(faction_cleanliness(graph, [[1, 3], [2, 4]]), 1.0)
		self.assertEqual(faction_cleanliness(graph, [[1, 3, 4], [2]]), 0.8)
		self.assertEqual(faction_cleanliness(graph, [[1, 2, 3, 4]]), 0.0)


class FactionSideTests(unittest.TestCase):
	def test_totals_cover_guilds_beyond_the_display_limit(self) -> None:
		store = named_store(15)
		pairs = {(1, defender): 3 for defender in range(2, 16)}
		taken, lost = totals_from_pairs(pairs)

		sides = detect_factions(store, taken, lost, pairs)

		self.assertEqual(len(sides), 2)
		aggressor, defenders = sides
		self.assertEqual(aggressor.guilds[0].name, "Guild 01")
		self.assertEqual(aggressor.total_taken, 42)
		self.assertEqual(len(defenders.guilds), 10)
		self.assertEqual(defenders.total_lost, 42)
		self.assertEqual(sum(guild.lost for guild in defenders.guilds), 30)

	def test_side_record_uses_camel_case_totals(self) -> None:
		store = named_store(2)
		pairs = {(1, 2): 4}
		taken, lost = totals_from_pairs(pairs)

		record = detect_factions(store, taken, lost, pairs)[0].to_record()

		self.assertEqual(record["totalTaken"], 4)
		self.assertEqual(record["guilds"], [{"name": "Guild 01", "prefix": "G01", "taken": 4, "lost": 0}])


if __name__ == "__main__":
	unittest.main()
