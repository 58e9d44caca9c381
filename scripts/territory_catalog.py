"""Hand-curated territory catalog used for region classification.

Regions are matched in ``CATALOG_ORDER``; the first region whose exact names or name
prefixes match wins, so more specific regions come before the broad provinces.
"""

from __future__ import annotations

from dataclasses import dataclass


REGIONS = (
	"Wynn",
	"Gavel",
	"Ocean",
	"Corkus",
	"Canyon",
	"Molten Heights",
	"Sky Islands",
	"Fruma",
)
OTHER_REGION = "Other"
GLOBAL_REGION = "Global"
ALL_REGIONS = (*REGIONS, OTHER_REGION)

APOSTROPHE_VARIANTS = ("\u2018", "\u2019", "\u2032")


@dataclass(frozen=True)
class RegionPatterns:
	region: str
	exact: frozenset[str]
	prefixes: tuple[str, ...] = ()

	def matches(self, name: str) -> bool:
		return name in self.exact or name.startswith(self.prefixes)


@dataclass(frozen=True)
class RegionBounds:
	region: str
	min_x: float
	max_x: float
	min_z: float
	max_z: float

	def contains(self, x: float, z: float) -> bool:
		return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z


FRUMA = RegionPatterns(
	region="Fruma",
	exact=frozenset(
		{
			"Agricultural Sector", "Industrial Sector", "Residence Sector", "Water Processing Sector",
			"Citadel's Shadow", "Contested District", "Gates to Aelumia", "Royal Barracks",
			"Royal Dam", "University Campus", "The Lumbermill", "Espren", "Festival Grounds",
			"Highlands Gate", "Lake Gitephe", "Lake Rieke", "Hyloch", "Xima Valley",
			"Wellspring of Eternity", "The Frog Bog", "Forts in Fall", "Alder Understory",
			"Deforested Ecotone", "Verdant Grove", "Aldwell", "Timasca", "Fort Hegea",
			"Fort Tericen", "Fort Torann", "Feuding Houses", "Frosty Outpost",
		}
	),
)

CORKUS = RegionPatterns(
	region="Corkus",
	exact=frozenset(
		{
			"Fallen Factory", "Fallen Village", "Avos Temple", "Avos Territory", "Relos",
			"Retrofitted Manufactory", "Picnic Pond", "Lighthouse Lookout", "Corkus Sea Cove",
		}
	),
	prefixes=("Corkus",),
)

OCEAN = RegionPatterns(
	region="Ocean",
	exact=frozenset(
		{
			"Selchar", "Pirate Town", "Maro Peaks", "Zhight Island", "Mage Island", "Tree Island",
			"Half Moon Island", "Skien's Island", "Regular Island", "Rooster Island", "Icy Island",
			"Legendary Island", "Snail Island", "Temple Island", "Wybel Island", "Swamp Island",
			"Central Islands", "Lost Atoll", "Volcanic Isles", "Dreary Docks", "Jofash Docks",
			"Jofash Tunnel", "Cathedral Harbour", "Bloody Beach", "Rocky Shore",
		}
	),
	prefixes=("Durum",),
)

SKY_ISLANDS = RegionPatterns(
	region="Sky Islands",
	exact=frozenset(
		{
			"Sky Island Ascent", "Bantisu Air Temple", "Bantisu Approach", "Heavenly Ingress",
			"Nexus of Light", "Path to Ahmsord", "Angel Refuge", "Sunrise Plateau", "Sunset Plateau",
			"Cosmic Fissures", "Celestial Impact",
		}
	),
	prefixes=("Ahmsord", "Sky "),
)

MOLTEN_HEIGHTS = RegionPatterns(
	region="Molten Heights",
	exact=frozenset(
		{
			"Thanos", "Thanos Exit", "Thanos Underpass", "Upper Thanos", "Path to Thanos", "Rodoroc",
			"Rymek", "Dogun Ritual Site", "Dragonling Nests", "Dragonbone Graveyard",
			"Crater Descent", "Pyroclastic Flow", "Sulphuric Hollow", "Entrance to Molten Heights",
			"Maex", "Freezing Heights", "Perilous Passage",
		}
	),
	prefixes=("Lava ", "Molten ", "Volcanic "),
)

CANYON = RegionPatterns(
	region="Canyon",
	exact=frozenset(
		{
			"Bizarre Passage", "Collapsed Bridge", "Fading Forest", "Forgotten Path",
			"Forgotten Town", "Jagged Foothills",
		}
	),
	prefixes=("Canyon ", "Chasm "),
)

GAVEL = RegionPatterns(
	region="Gavel",
	exact=frozenset(
		{
			"Bremminglar", "Bucie Waterfall", "Dark Forest Village", "Entrance to Kander",
			"Entrance to Olux", "Entrance to Cinfras", "Entrance to Gavel", "Entrance to Thesead",
			"Entrance to Bucie", "Field of Life", "Guardian of the Forest", "Light Peninsula",
			"Road to Light Forest", "Path to Light", "Path to Light's Secret", "Path to Cinfras",
			"Path to Talor", "Path to the Penitentiary", "Talor Cemetery", "Outer Aldorei Town",
			"Cherry Blossom Grove", "Fleris Cranny", "Fleris Trail", "Floral Peaks", "Florist's Hut",
			"Delnar Manor", "Derelict Mansion", "Faltach Manor", "Twain Lake", "Twain Mansion",
			"Heart of Decay", "Caritat Mansion", "Castle Dullahan", "Sinister Forest", "Silent Road",
			"Dujgon Nation", "Nodguj Nation", "Panda Kingdom", "Panda Path", "Harnort Compound",
			"Hobgoblin's Hoard", "Forest of Eyes", "Fungal Grove", "Gloopy Cave",
			"Parasitic Slime Mine", "Mushroom Hill", "Big Mushroom Cave", "Eltom", "Ternaves",
			"Ternaves Tunnel", "Mantis Nest", "Bear Zoo", "Temple of Legends", "Paths of Sludge",
			"Primal Fen", "Infested Sinkhole", "Swamp Mountain Arch", "Shady Shack",
			"Enchanted River", "Entamis Village", "Decayed Basin", "Colourful Mountaintop",
			"Cascading Basins", "Featherfall Cliffs", "Pine Pillar Forest", "Sanctuary Bridge",
			"Unicorn Trail", "Luxuriant Pond", "Riverbank Knoll", "Royal Gate", "Luminous Plateau",
			"The Gate", "Ranol's Farm", "Wizard's Warning", "Path to Ozoth's Spire",
			"Path to the Dojo", "Path to the Forgery", "Path to the Grootslangs", "The Forgery",
			"The Shiar", "The Hive", "Karoc Quarry", "Gert Camp", "Eagle Tribe", "Owl Tribe",
			"Elephelk Trail", "Iboju Village", "Paper Trail", "Secluded Ponds", "Secluded Workshop",
			"Kitrios Armory", "Kitrios Barracks", "Harpy's Haunt North", "Harpy's Haunt South",
			"Pigmen Ravines", "Orc Battlegrounds", "Orc Lake", "Orc Road", "Cliffhearth Orc Camp",
			"Loamsprout Orc Camp", "Mudspring Orc Camp", "Sablestone Orc Camp",
			"Shineridge Orc Camp", "Stonecave Orc Camp", "Sunspark Orc Camp",
			"Cliffside Passage North", "Cliffside Passage South", "Wayward Split",
			"Protector's Pathway", "Illuminant Path", "Mycelial Expanse", "Myconid Descent",
			"Timeworn Arch", "Evergreen Outbreak", "Blooming Boulders", "Winding Waters",
			"Elefolk Stomping Grounds", "Felroc Fields", "Lusuco", "Lutho", "Ava's Workshop",
			"Astraulus' Tower",
		}
	),
	prefixes=(
		"Llevigar", "Aldorei", "Cinfras", "Thesead", "Efilim", "Gylia", "Gelibord", "Lexdale",
		"Olux", "Kander", "Kandon",
	),
)

WYNN = RegionPatterns(
	region="Wynn",
	exact=frozenset(
		{
			"Apprentice Huts", "Arachnid Woods", "Bandit Cave", "Bandit's Toll", "Barren Sands",
			"Black Road", "Bob's Tomb", "Broken Road", "Burning Airship", "Burning Farm",
			"Coastal Trail", "Collapsed Emerald Mine", "Displaced Housing", "Disturbed Crypt",
			"Dodegar's Forge", "Dusty Pit", "Elkurn", "Emerald Trail", "Entrance to Almuj",
			"Entrance to Nivla Woods", "Farmers Settlement", "Nomads' Refuge", "Goblin Plains East",
			"Goblin Plains West", "Great Bridge", "Grey Ruins", "Guild Hall", "Iron Road",
			"Mine Base Plains", "Mining Base Camp", "Minotaur Barbecue", "Mount Wynn Inn",
			"Mummy's Tomb", "Scorpion Nest", "Old Coal Mine", "Old Crossroads", "Plains Lake",
			"Savannah Plains", "Road to Elkurn", "Road to Mine", "Road to Time Valley",
			"Roots of Corruption", "Ruined Houses", "Time Valley", "Tower of Ascension",
			"Webbed Fracture", "Wizard Tower", "Sanguine Spider Den", "Southern Outpost",
			"Scorched Trail", "Accursed Dunes", "Cascading Oasis", "Herb Cave", "Naga Lake",
			"Lizardman Camp", "Lizardman Lake", "Lion Lair", "Little Wood", "Abandoned Farm",
			"Abandoned Lumberyard", "Abandoned Mines", "Abandoned Mines Entrance", "Abandoned Pass",
			"Alekin", "Ancient Nemract", "Ancient Waterworks", "Wolves' Den", "Wood Sprite Hideaway",
			"Katoa Ranch", "Meteor Crater", "Meteor Trail", "Monte's Village", "Tempo Town",
			"Troll Tower", "Troll's Challenge", "Mangled Lake", "Twisted Housing", "Twisted Ridge",
			"Witching Road", "Forgotten Burrows", "Housing Crisis", "Jungle Entrance", "Frozen Fort",
			"Frozen Homestead", "Frosty Spikes", "Frigid Crossroads", "Icy Descent", "Icy Vigil",
			"Aerial Descent", "Weird Clearing", "Worm Tunnel", "Waterfall Cave", "Santa's Hideout",
			"Invaded Barracks", "Overrun Docks", "Overtaken Outpost", "Lifeless Forest",
			"Blackstring Den", "Silverbull Headquarters", "Raiders' Airbase", "Raiders' Stronghold",
			"Ruined Prospect", "Razed Inn", "Ruined Villa", "Inhospitable Mountain",
			"Desolate Valley", "Akias Ruins", "Ancient Excavation", "Balloon Airbase",
			"Brigand Outpost", "Bloody Trail", "Rocky Bend", "Azure Frontier", "Toxic Caves",
			"Toxic Drip", "Wanderer's Way", "Nested Cliffside", "Otherworldly Monolith",
			"Maiden Tower", "Mesquis Tower", "Krolton's Cave", "Ogre Den", "Centerworld Fortress",
			"Void Valley", "Viscera Pits", "Gateway to Nothing", "Cyclospordial Hazard",
			"Final Step", "Founder's Statue", "Fountain of Youth", "Workshop Glade",
			"Industrial Clearing", "Perilous Grotto", "Turncoat Turnabout", "Jitak's Farm",
			"Trunkstump Goblin Camp", "Essren's Hut",
		}
	),
	prefixes=("Ragni", "Detlas", "Nemract", "Almuj", "Nesaak", "Troms", "Nivla", "Corrupted", "Maltic"),
)

CATALOG_ORDER = (FRUMA, CORKUS, OCEAN, SKY_ISLANDS, MOLTEN_HEIGHTS, CANYON, GAVEL, WYNN)

# Approximate boxes in game coordinates (X, Z); earlier boxes win where they overlap.
REGION_BOUNDS = (
	RegionBounds("Fruma", -2300, -850, -1800, -400),
	RegionBounds("Corkus", -1700, -1300, -2950, -2650),
	RegionBounds("Ocean", -700, 150, -3600, -2800),
	RegionBounds("Sky Islands", 600, 1200, -5000, -4400),
	RegionBounds("Molten Heights", 1100, 1700, -5300, -4900),
	RegionBounds("Canyon", 200, 900, -4700, -4200),
	RegionBounds("Gavel", -700, 1000, -5600, -4000),
	RegionBounds("Wynn", -850, 1400, -2800, -300),
)


def normalize_territory_name(raw: str) -> str:
	name = str(raw or "")
	for variant in APOSTROPHE_VARIANTS:
		name = name.replace(variant, "'")
	return name
