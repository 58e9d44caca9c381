"""Compact territory-exchange history shared by every detection stage.

Events are ``(unix_seconds, territory_index, guild_index)`` triples sorted by time; names live
in the parallel ``territories``/``guilds``/``prefixes`` arrays. ``territory_events[t]`` is the
time-sorted ``(unix_seconds, guild_index)`` sub-sequence for territory ``t``.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence


NEUTRAL_GUILD = "None"

Event = tuple[int, int, int]
TerritoryEvent = tuple[int, int]


def parse_dt(raw: Any) -> datetime:
	if isinstance(raw, datetime):
		dt = raw
	else:
		text = str(raw).strip()
		if text.endswith("Z"):
			text = text[:-1] + "+00:00"
		dt = datetime.fromisoformat(text)
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt.astimezone(timezone.utc)


def dt_to_iso(dt: datetime) -> str:
	return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def unix_to_iso(seconds: int) -> str:
	return dt_to_iso(datetime.fromtimestamp(int(seconds), tz=timezone.utc))


def to_unix_seconds(raw: Any) -> int:
	if isinstance(raw, bool):
		raise ValueError(f"Not a timestamp: {raw!r}")
	if isinstance(raw, (int, float)):
		return int(raw)
	return int(parse_dt(raw).timestamp())


def fallback_prefix(guild_name: str) -> str:
	return guild_name[:3].upper()


def group_territory_events(events: Sequence[Event], territory_count: int) -> list[list[TerritoryEvent]]:
	grouped: list[list[TerritoryEvent]] = [[] for _ in range(territory_count)]
	for unix_sec, territory_index, guild_index in events:
		grouped[territory_index].append((unix_sec, guild_index))
	return grouped


def validate_events(events: Sequence[Event], territory_count: int, guild_count: int) -> None:
	previous = None
	for index, (unix_sec, territory_index, guild_index) in enumerate(events):
		if previous is not None and unix_sec < previous:
			raise ValueError(f"Exchange events must be sorted by time; event {index} at {unix_sec} precedes {previous}")
		if not 0 <= territory_index < territory_count:
			raise ValueError(f"Event {index} references unknown territory index {territory_index}")
		if not 0 <= guild_index < guild_count:
			raise ValueError(f"Event {index} references unknown guild index {guild_index}")
		previous = unix_sec


@dataclass
class ExchangeStore:
	territories: list[str]
	guilds: list[str]
	prefixes: list[str]
	events: list[Event]
	territory_events: list[list[TerritoryEvent]] = field(default_factory=list)

	_neutral: frozenset[int] = field(init=False, repr=False, default=frozenset())

	def __post_init__(self) -> None:
		self.events = [(int(sec), int(terr), int(guild)) for sec, terr, guild in self.events]
		if self.territory_events:
			self.territory_events = [
				[(int(sec), int(guild)) for sec, guild in per_territory] for per_territory in self.territory_events
			]
		else:
			self.territory_events = group_territory_events(self.events, len(self.territories))
		self._neutral = frozenset(index for index, name in enumerate(self.guilds) if name == NEUTRAL_GUILD)

	@classmethod
	def from_payload(cls, payload: Mapping[str, Any], *, validate: bool = True) -> "ExchangeStore":
		"""Build a store from the exchanges API payload (``data`` may be nested or flat)."""
		data = payload.get("data", payload)
		territories = [str(name) for name in data.get("territories") or []]
		guilds = [str(name) for name in data.get("guilds") or []]
		prefixes = [str(prefix) for prefix in data.get("prefixes") or []]
		raw_events = data.get("events") or []
		try:
			events = [(int(item[0]), int(item[1]), int(item[2])) for item in raw_events]
		except (TypeError, ValueError, IndexError) as exc:
			raise ValueError(f"Malformed exchange event: {exc}") from exc

		if validate:
			if len(prefixes) != len(guilds):
				raise ValueError(f"prefixes ({len(prefixes)}) must align with guilds ({len(guilds)})")
			validate_events(events, len(territories), len(guilds))

		territory_events = payload.get("territoryEvents") or payload.get("territory_events") or []
		if validate and territory_events and len(territory_events) != len(territories):
			raise ValueError("territoryEvents must be index-aligned with territories")
		return cls(
			territories=territories,
			guilds=guilds,
			prefixes=prefixes,
			events=events,
			territory_events=[list(items) for items in territory_events],
		)

	def to_payload(self) -> dict[str, Any]:
		return {
			"territories": list(self.territories),
			"guilds": list(self.guilds),
			"prefixes": list(self.prefixes),
			"events": [list(event) for event in self.events],
		}

	def combatant(self, guild_index: int | None) -> int | None:
		"""Return the guild index, or None for missing and unclaimed owners."""
		if guild_index is None or guild_index in self._neutral:
			return None
		return guild_index

	def guild_name(self, guild_index: int) -> str:
		return self.guilds[guild_index]

	def guild_prefix(self, guild_index: int) -> str:
		if guild_index < len(self.prefixes) and self.prefixes[guild_index]:
			return self.prefixes[guild_index]
		return fallback_prefix(self.guilds[guild_index])


def event_lower_bound(events: Sequence[Event], target_sec: int) -> int:
	"""Index of the first event at or after ``target_sec``."""
	lo, hi = 0, len(events)
	while lo < hi:
		mid = (lo + hi) // 2
		if events[mid][0] < target_sec:
			lo = mid + 1
		else:
			hi = mid
	return lo


def ownership_at(store: ExchangeStore, when: int) -> dict[int, int | None]:
	"""Owner of every territory with history strictly before ``when``.

	Unclaimed territories map to None. Each territory is resolved with a binary search over its
	own event list.
	"""
	owners: dict[int, int | None] = {}
	for territory_index, per_territory in enumerate(store.territory_events):
		position = bisect_left(per_territory, (when,))
		if position > 0:
			owners[territory_index] = store.combatant(per_territory[position - 1][1])
	return owners


def cap_events(events: list[Event], max_events: int) -> list[Event]:
	if len(events) <= max_events:
		return events
	return events[-max_events:]


def build_exchange_store(
	rows: Iterable[tuple[Any, str, str]],
	prefix_lookup: Mapping[str, str] | None = None,
) -> ExchangeStore:
	"""Intern raw ``(exchange_time, territory, attacker_name)`` rows into a store.

	A capture records both the new owner and a "None" row for the same second; the "None" row is
	dropped whenever a real guild shares its ``(second, territory)`` group.
	"""
	prefix_lookup = prefix_lookup or {}
	normalized = sorted(
		{(to_unix_seconds(when), str(territory), str(attacker)) for when, territory, attacker in rows}
	)

	territory_index: dict[str, int] = {}
	guild_index: dict[str, int] = {}
	territories: list[str] = []
	guilds: list[str] = []
	prefixes: list[str] = []
	events: list[Event] = []

	def territory_id(name: str) -> int:
		if name not in territory_index:
			territory_index[name] = len(territories)
			territories.append(name)
		return territory_index[name]

	def guild_id(name: str) -> int:
		if name not in guild_index:
			guild_index[name] = len(guilds)
			guilds.append(name)
			prefixes.append(prefix_lookup.get(name) or fallback_prefix(name))
		return guild_index[name]

	buffer: list[tuple[int, str, str]] = []

	def flush() -> None:
		has_guild = any(attacker != NEUTRAL_GUILD for _, _, attacker in buffer)
		for unix_sec, territory, attacker in buffer:
			if has_guild and attacker == NEUTRAL_GUILD:
				continue
			events.append((unix_sec, territory_id(territory), guild_id(attacker)))
		buffer.clear()

	for row in normalized:
		if buffer and (row[0] != buffer[0][0] or row[1] != buffer[0][1]):
			flush()
		buffer.append(row)
	if buffer:
		flush()

	return ExchangeStore(territories=territories, guilds=guilds, prefixes=prefixes, events=events)
