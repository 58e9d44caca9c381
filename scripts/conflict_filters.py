"""Read-only queries over detected conflicts and wars for listings and exports."""

from __future__ import annotations

from typing import Iterable, Sequence

from conflict_detection import ConflictEvent
from territory_catalog import ALL_REGIONS
from war_grouping import War


ALL_FILTER = "All"
SORT_MODES = ("size", "date", "strategic")
REGION_SHARE_FILTER = 0.25

__all__ = [
	"ALL_FILTER",
	"ALL_REGIONS",
	"SORT_MODES",
	"confidence_label",
	"faction_guild_lists",
	"filter_conflicts",
	"standalone_conflicts",
	"wars_matching",
]


def confidence_label(confidence: float) -> str:
	if confidence >= 0.7:
		return "High"
	if confidence >= 0.4:
		return "Med"
	return "Low"


def _touches_region(conflict: ConflictEvent, region: str) -> bool:
	if conflict.primary_region == region:
		return True
	return conflict.region_breakdown.get(region, 0) >= conflict.total_exchanges * REGION_SHARE_FILTER


def _mentions_guild(conflict: ConflictEvent, needle: str) -> bool:
	for side in conflict.factions:
		for guild in side.guilds:
			if needle in guild.name.lower() or needle in guild.prefix.lower():
				return True
	return False


def filter_conflicts(
	conflicts: Sequence[ConflictEvent],
	region: str = ALL_FILTER,
	guild_search: str = "",
	sort_by: str = "size",
) -> list[ConflictEvent]:
	"""Region and guild filters, then ordering.

	``size`` keeps the detection order (largest first), ``date`` puts the newest first and
	``strategic`` orders by resource-weighted exchanges.
	"""
	if sort_by not in SORT_MODES:
		raise ValueError(f"sort_by must be one of {SORT_MODES}, got {sort_by!r}")

	result = list(conflicts)
	if region and region != ALL_FILTER:
		result = [conflict for conflict in result if _touches_region(conflict, region)]

	needle = (guild_search or "").strip().lower()
	if needle:
		result = [conflict for conflict in result if _mentions_guild(conflict, needle)]

	if sort_by == "date":
		result.sort(key=lambda conflict: -conflict.start_time)
	elif sort_by == "strategic":
		result.sort(key=lambda conflict: -conflict.weighted_exchanges)
	return result


def _war_member_ids(wars: Iterable[War]) -> set[str]:
	return {conflict.id for war in wars for conflict in war.conflicts}


def standalone_conflicts(conflicts: Sequence[ConflictEvent], wars: Sequence[War]) -> list[ConflictEvent]:
	grouped = _war_member_ids(wars)
	return [conflict for conflict in conflicts if conflict.id not in grouped]


def wars_matching(wars: Sequence[War], conflicts: Sequence[ConflictEvent]) -> list[War]:
	"""Wars with at least one member among ``conflicts``."""
	wanted = {conflict.id for conflict in conflicts}
	return [war for war in wars if any(conflict.id in wanted for conflict in war.conflicts)]


def faction_guild_lists(conflict: ConflictEvent) -> list[list[str]]:
	return [[guild.name for guild in side.guilds] for side in conflict.factions]
