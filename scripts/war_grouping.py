"""Group time-adjacent conflicts that share their leading guilds into wars."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from conflict_detection import ConflictEvent
from detection_config import DetectionConfig
from exchange_store import unix_to_iso


@dataclass
class War:
	id: str
	name: str
	start_time: int
	end_time: int
	conflicts: list[ConflictEvent]
	total_exchanges: int

	def to_record(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"name": self.name,
			"startTime": unix_to_iso(self.start_time),
			"endTime": unix_to_iso(self.end_time),
			"conflicts": [conflict.to_record() for conflict in self.conflicts],
			"conflictIds": [conflict.id for conflict in self.conflicts],
			"totalExchanges": self.total_exchanges,
		}


def top_guilds(conflict: ConflictEvent, per_faction: int) -> set[str]:
	names: set[str] = set()
	for side in conflict.factions[:2]:
		names.update(guild.name for guild in side.guilds[:per_faction])
	return names


def top_guild_overlap(left: set[str], right: set[str]) -> float:
	"""Shared names relative to the smaller set."""
	if not left or not right:
		return 0.0
	return len(left & right) / min(len(left), len(right))


def war_name(first: ConflictEvent) -> str:
	return first.name.replace("Battle of", "War of", 1)


def group_conflicts_into_wars(
	conflicts: Sequence[ConflictEvent],
	config: DetectionConfig | None = None,
) -> list[War]:
	config = config or DetectionConfig()
	if not conflicts:
		return []

	max_gap = int(config.war_max_gap_hours * 3600)
	max_span = int(config.war_max_days * 86400)
	ordered = sorted(conflicts, key=lambda item: (item.start_time, item.id))
	assigned: set[str] = set()
	wars: list[War] = []

	for index, first in enumerate(ordered):
		if first.id in assigned:
			continue
		assigned.add(first.id)
		members = [first]
		guilds = top_guilds(first, config.war_top_guilds)

		for candidate in ordered[index + 1 :]:
			if candidate.id in assigned:
				continue
			if candidate.start_time - members[-1].end_time > max_gap:
				break
			if candidate.end_time - first.start_time > max_span:
				break
			candidate_guilds = top_guilds(candidate, config.war_top_guilds)
			if top_guild_overlap(guilds, candidate_guilds) >= config.war_min_overlap:
				members.append(candidate)
				assigned.add(candidate.id)
				guilds.update(candidate_guilds)

		if len(members) < 2:
			continue
		wars.append(
			War(
				id=f"war_{len(wars)}_{first.start_time}",
				name=war_name(first),
				start_time=first.start_time,
				end_time=members[-1].end_time,
				conflicts=members,
				total_exchanges=sum(member.total_exchanges for member in members),
			)
		)

	wars.sort(key=lambda war: (-war.total_exchanges, war.start_time, war.id))
	return wars
