"""Split the guilds of one conflict into hostile factions.

The input is the replayed capture graph of a conflict: per-guild taken/lost counts and
directed ``(attacker, defender) -> captures`` pairs. Two partitioners are available:

- ``communities``: seed two communities from the most hostile pair, then let every other
  guild (most involved first) join the community it is least hostile toward, or found a new
  one when its hostility is spread evenly. Spin-off communities left with one guild are
  folded into an ally and the result is capped at ``max_factions``.
- ``bipartite``: seed two sides the same way and put every other guild on the side it
  attacks more.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from detection_config import DetectionConfig
from exchange_store import ExchangeStore


PairAttacks = Mapping[tuple[int, int], int]


@dataclass(frozen=True)
class HostilityEdge:
	a: int
	b: int
	weight: int


@dataclass
class HostilityGraph:
	"""Undirected hostility graph; edge weight is captures in both directions."""

	nodes: list[int]
	edges: list[HostilityEdge]
	involvement: dict[int, int]

	_adjacency: dict[int, dict[int, int]] = field(init=False, repr=False, default_factory=dict)

	def __post_init__(self) -> None:
		adjacency: dict[int, dict[int, int]] = {node: {} for node in self.nodes}
		for edge in self.edges:
			adjacency.setdefault(edge.a, {})[edge.b] = edge.weight
			adjacency.setdefault(edge.b, {})[edge.a] = edge.weight
		self._adjacency = adjacency

	@classmethod
	def build(
		cls,
		guild_taken: Mapping[int, int],
		guild_lost: Mapping[int, int],
		pair_attacks: PairAttacks,
	) -> "HostilityGraph":
		involvement: dict[int, int] = {}
		for guild, count in guild_taken.items():
			involvement[guild] = involvement.get(guild, 0) + count
		for guild, count in guild_lost.items():
			involvement[guild] = involvement.get(guild, 0) + count

		weights: dict[tuple[int, int], int] = {}
		for (attacker, defender), count in pair_attacks.items():
			if attacker == defender or count <= 0:
				continue
			key = (attacker, defender) if attacker < defender else (defender, attacker)
			weights[key] = weights.get(key, 0) + count
			involvement.setdefault(attacker, 0)
			involvement.setdefault(defender, 0)

		nodes = sorted(involvement, key=lambda guild: (-involvement[guild], guild))
		edges = [HostilityEdge(a, b, weight) for (a, b), weight in sorted(weights.items())]
		return cls(nodes=nodes, edges=edges, involvement=involvement)

	def weight(self, a: int, b: int) -> int:
		return self._adjacency.get(a, {}).get(b, 0)

	def neighbors(self, guild: int) -> dict[int, int]:
		return self._adjacency.get(guild, {})

	def hostility_toward(self, guild: int, members: Sequence[int]) -> int:
		adjacent = self.neighbors(guild)
		return sum(adjacent.get(member, 0) for member in members)

	def hostility_between(self, left: Sequence[int], right: Sequence[int]) -> int:
		return sum(self.hostility_toward(guild, right) for guild in left)

	def strongest_pair(self) -> tuple[int, int] | None:
		best: HostilityEdge | None = None
		for edge in self.edges:
			if best is None or edge.weight > best.weight:
				best = edge
		if best is None:
			return None
		# The more involved guild seeds the first community.
		if (-self.involvement[best.b], best.b) < (-self.involvement[best.a], best.a):
			return best.b, best.a
		return best.a, best.b

	def strongest_enemy(self, guild: int) -> int | None:
		adjacent = self.neighbors(guild)
		if not adjacent:
			return None
		return min(adjacent, key=lambda other: (-adjacent[other], other))


@dataclass
class FactionGuild:
	name: str
	prefix: str
	taken: int
	lost: int

	@property
	def involvement(self) -> int:
		return self.taken + self.lost

	def to_record(self) -> dict[str, Any]:
		return {"name": self.name, "prefix": self.prefix, "taken": self.taken, "lost": self.lost}


@dataclass
class ConflictSide:
	guilds: list[FactionGuild]
	total_taken: int
	total_lost: int

	@classmethod
	def empty(cls) -> "ConflictSide":
		return cls(guilds=[], total_taken=0, total_lost=0)

	def to_record(self) -> dict[str, Any]:
		return {
			"guilds": [guild.to_record() for guild in self.guilds],
			"totalTaken": self.total_taken,
			"totalLost": self.total_lost,
		}


def build_side(
	store: ExchangeStore,
	members: Sequence[int],
	guild_taken: Mapping[int, int],
	guild_lost: Mapping[int, int],
	display_limit: int,
) -> ConflictSide:
	guilds = [
		FactionGuild(
			name=store.guild_name(index),
			prefix=store.guild_prefix(index),
			taken=guild_taken.get(index, 0),
			lost=guild_lost.get(index, 0),
		)
		for index in members
	]
	# Totals cover every member; only the displayed list is truncated.
	total_taken = sum(guild.taken for guild in guilds)
	total_lost = sum(guild.lost for guild in guilds)
	guilds.sort(key=lambda guild: (-guild.involvement, guild.name))
	return ConflictSide(guilds=guilds[:display_limit], total_taken=total_taken, total_lost=total_lost)


def _community_index(communities: list[list[int]]) -> dict[int, int]:
	return {guild: index for index, members in enumerate(communities) for guild in members}


def _merge_into(communities: list[list[int]], source: int, target: int) -> None:
	communities[target].extend(communities[source])
	del communities[source]


def _assign_communities(graph: HostilityGraph, seeds: tuple[int, int], config: DetectionConfig) -> list[list[int]]:
	communities: list[list[int]] = [[seeds[0]], [seeds[1]]]
	pending = [
		guild
		for guild in graph.nodes
		if guild not in seeds and graph.involvement[guild] >= config.min_guild_interactions
	]

	while pending:
		deferred: list[int] = []
		placed = False
		for guild in pending:
			hostility = [graph.hostility_toward(guild, members) for members in communities]
			total = sum(hostility)
			if total == 0:
				deferred.append(guild)
				continue
			placed = True
			least = min(range(len(communities)), key=lambda index: (hostility[index], index))
			ratio = hostility[least] / max(hostility)
			if ratio > config.spinoff_ratio and total >= config.spinoff_min_interactions:
				communities.append([guild])
			else:
				communities[least].append(guild)
		if not placed:
			# Fights only among not-yet-placed guilds: start a community from the most involved.
			communities.append([deferred.pop(0)])
		pending = deferred

	return communities


def _fold_singletons(graph: HostilityGraph, communities: list[list[int]]) -> None:
	# The two seed communities (0 and 1) are never folded.
	while len(communities) > 2:
		singleton = next(
			(index for index in range(len(communities) - 1, 1, -1) if len(communities[index]) == 1),
			None,
		)
		if singleton is None:
			return
		guild = communities[singleton][0]
		owner = _community_index(communities)
		enemy = graph.strongest_enemy(guild)
		enemy_community = owner.get(enemy) if enemy is not None else None
		candidates = [
			index for index in range(len(communities)) if index not in (singleton, enemy_community)
		]
		if not candidates:
			return
		if enemy_community is not None:
			enemy_members = communities[enemy_community]
			target = min(
				candidates,
				key=lambda index: (
					-graph.hostility_between(communities[index], enemy_members),
					graph.hostility_toward(guild, communities[index]),
					index,
				),
			)
		else:
			target = min(candidates, key=lambda index: (graph.hostility_toward(guild, communities[index]), index))
		_merge_into(communities, singleton, target)


def _community_involvement(graph: HostilityGraph, members: Sequence[int]) -> int:
	return sum(graph.involvement.get(guild, 0) for guild in members)


def _order_communities(graph: HostilityGraph, communities: list[list[int]]) -> None:
	communities.sort(key=lambda members: (-_community_involvement(graph, members), min(members)))


def _cap_communities(graph: HostilityGraph, communities: list[list[int]], max_factions: int) -> None:
	while len(communities) > max_factions:
		_order_communities(graph, communities)
		smallest = len(communities) - 1
		members = communities[smallest]
		# Join the least hostile remaining faction; ties go to the preceding neighbor.
		target = min(
			range(smallest),
			key=lambda index: (graph.hostility_between(members, communities[index]), smallest - index),
		)
		_merge_into(communities, smallest, target)


def _bipartite_sides(graph: HostilityGraph, pair_attacks: PairAttacks, seeds: tuple[int, int]) -> list[list[int]]:
	sides: list[list[int]] = [[seeds[0]], [seeds[1]]]
	for guild in graph.nodes:
		if guild in seeds:
			continue
		# Directed: only the guild's own attacks count toward a side.
		attacks = [0, 0]
		for side_index, members in enumerate(sides):
			attacks[side_index] = sum(pair_attacks.get((guild, member), 0) for member in members)
		sides[1 if attacks[1] > attacks[0] else 0].append(guild)
	return sides


def partition_guilds(
	guild_taken: Mapping[int, int],
	guild_lost: Mapping[int, int],
	pair_attacks: PairAttacks,
	config: DetectionConfig | None = None,
) -> list[list[int]]:
	"""Return faction member lists ordered by involvement; see the module docstring."""
	config = config or DetectionConfig()
	graph = HostilityGraph.build(guild_taken, guild_lost, pair_attacks)
	if not graph.nodes:
		return []

	seeds = graph.strongest_pair()
	if seeds is None:
		return [list(graph.nodes)]

	if config.faction_method == "bipartite":
		communities = _bipartite_sides(graph, pair_attacks, seeds)
	else:
		communities = _assign_communities(graph, seeds, config)
		_fold_singletons(graph, communities)
		_cap_communities(graph, communities, config.max_factions)

	communities = [members for members in communities if members]
	_order_communities(graph, communities)
	if len(communities) >= 2:
		first_taken = sum(guild_taken.get(guild, 0) for guild in communities[0])
		second_taken = sum(guild_taken.get(guild, 0) for guild in communities[1])
		if second_taken > first_taken:
			communities[0], communities[1] = communities[1], communities[0]
	return communities


def faction_cleanliness(graph: HostilityGraph, factions: Sequence[Sequence[int]]) -> float:
	"""Share of the top two factions' hostility that crosses between them (0-1)."""
	if len(factions) < 2:
		return 0.0
	left, right = list(factions[0]), list(factions[1])
	inter = graph.hostility_between(left, right)
	# Each internal edge is seen from both ends.
	intra = (graph.hostility_between(left, left) + graph.hostility_between(right, right)) // 2
	if inter + intra == 0:
		return 0.0
	return inter / (inter + intra)


def detect_factions(
	store: ExchangeStore,
	guild_taken: Mapping[int, int],
	guild_lost: Mapping[int, int],
	pair_attacks: PairAttacks,
	config: DetectionConfig | None = None,
) -> list[ConflictSide]:
	config = config or DetectionConfig()
	factions = partition_guilds(guild_taken, guild_lost, pair_attacks, config)
	return [build_side(store, members, guild_taken, guild_lost, config.display_guilds) for members in factions]
