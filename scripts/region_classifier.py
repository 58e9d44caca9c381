"""Territory -> region classification and territory importance values.

A ``RegionClassifier`` owns its memo cache and the registered coordinate/resource table, so
each worker or test can hold an independent instance.
"""

from __future__ import annotations

from typing import Any, Mapping

from territory_catalog import (
	CATALOG_ORDER,
	OTHER_REGION,
	REGION_BOUNDS,
	normalize_territory_name,
)


RESOURCE_TIERS = {
	"Very High": 4,
	"High": 3,
	"Medium": 2,
	"Low": 1,
}
RESOURCE_WEIGHTS = (
	("emeralds", 1.0),
	("ore", 0.8),
	("crops", 0.6),
	("fish", 0.4),
	("wood", 0.4),
)


def parse_resource_tier(tier: Any) -> int:
	return RESOURCE_TIERS.get(str(tier or "").strip(), 0)


def territory_importance(resources: Mapping[str, Any] | None) -> float:
	if not resources:
		return 0.0
	return sum(parse_resource_tier(resources.get(kind)) * weight for kind, weight in RESOURCE_WEIGHTS)


def classify_by_name(raw_name: str) -> str:
	name = normalize_territory_name(raw_name)
	for patterns in CATALOG_ORDER:
		if patterns.matches(name):
			return patterns.region
	return OTHER_REGION


def _location_center(info: Mapping[str, Any]) -> tuple[float, float] | None:
	location = info.get("Location") or info.get("location")
	if not isinstance(location, Mapping):
		return None
	start = location.get("start")
	end = location.get("end")
	if not start or not end or len(start) < 2 or len(end) < 2:
		return None
	try:
		return (float(start[0]) + float(end[0])) / 2, (float(start[1]) + float(end[1])) / 2
	except (TypeError, ValueError):
		return None


class RegionClassifier:
	def __init__(self, territory_data: Mapping[str, Mapping[str, Any]] | None = None) -> None:
		self._cache: dict[str, str] = {}
		self._centers: dict[str, tuple[float, float]] = {}
		self._values: dict[str, float] = {}
		if territory_data:
			self.set_territory_data(territory_data)

	@property
	def has_territory_data(self) -> bool:
		return bool(self._centers or self._values)

	def set_territory_data(self, data: Mapping[str, Mapping[str, Any]]) -> None:
		"""Register coordinates/resources keyed by territory name.

		Replaces any earlier table and drops memoized regions, since the coordinate fallback
		may now answer differently.
		"""
		self._cache.clear()
		self._centers = {}
		self._values = {}
		for name, info in data.items():
			if not isinstance(info, Mapping):
				continue
			key = normalize_territory_name(name)
			center = _location_center(info)
			if center is not None:
				self._centers[key] = center
			resources = info.get("resources")
			if isinstance(resources, Mapping):
				self._values[key] = territory_importance(resources)

	def region_of(self, name: str) -> str:
		cached = self._cache.get(name)
		if cached is not None:
			return cached
		region = classify_by_name(name)
		if region == OTHER_REGION:
			region = self.classify_by_coordinates(name)
		self._cache[name] = region
		return region

	def classify_by_coordinates(self, name: str) -> str:
		center = self._centers.get(normalize_territory_name(name))
		if center is None:
			return OTHER_REGION
		x, z = center
		for bounds in REGION_BOUNDS:
			if bounds.contains(x, z):
				return bounds.region
		return OTHER_REGION

	def territory_value(self, name: str) -> float:
		return self._values.get(normalize_territory_name(name), 0.0)
