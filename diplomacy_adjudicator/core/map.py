"""
Map module for the Diplomacy adjudicator.
Defines provinces, locations, per-unit-kind adjacencies and the standard map.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set


class ProvinceType(Enum):
    """Terrain of a province."""
    LAND = "land"
    SEA = "sea"
    COASTAL = "coastal"


class Power(Enum):
    """The seven great powers."""
    ENGLAND = "England"
    FRANCE = "France"
    GERMANY = "Germany"
    ITALY = "Italy"
    AUSTRIA = "Austria-Hungary"
    RUSSIA = "Russia"
    TURKEY = "Turkey"


class Coast(Enum):
    """Coast specifications for provinces with multiple coasts."""
    NORTH = "nc"
    SOUTH = "sc"
    EAST = "ec"
    WEST = "wc"


@dataclass(frozen=True)
class Location:
    """A province, optionally narrowed to one of its coasts."""
    province: str
    coast: Optional[Coast] = None

    def matches(self, other: 'Location') -> bool:
        """
        Loose equality: a bare province matches any of its coasts.
        Two different named coasts of one province never match.
        """
        if self.province != other.province:
            return False
        if self.coast is None or other.coast is None:
            return True
        return self.coast == other.coast

    def bare(self) -> 'Location':
        return Location(self.province)

    @staticmethod
    def parse(text: str) -> 'Location':
        """Parse 'Spa', 'Spa/sc' or 'Spa (sc)'."""
        text = text.strip().replace("(", "/").replace(")", "")
        if "/" in text:
            province, coast = text.split("/", 1)
            return Location(province.strip(), Coast(coast.strip().lower()))
        return Location(text)

    def __str__(self) -> str:
        if self.coast:
            return f"{self.province}/{self.coast.value}"
        return self.province


class Province:
    """Represents a single province on the map."""

    def __init__(
        self,
        name: str,
        full_name: str,
        province_type: ProvinceType,
        is_supply_center: bool = False,
        home_center_of: Optional[Power] = None,
        coasts: Optional[List[Coast]] = None,
        convoy_capable: Optional[bool] = None
    ):
        self.name = name
        self.full_name = full_name
        self.province_type = province_type
        self.is_supply_center = is_supply_center
        self.home_center_of = home_center_of
        self.coasts = coasts or []
        # Fleets in sea provinces carry convoys unless a variant says otherwise
        if convoy_capable is None:
            convoy_capable = province_type == ProvinceType.SEA
        self.convoy_capable = convoy_capable

    def is_land(self) -> bool:
        return self.province_type == ProvinceType.LAND

    def is_sea(self) -> bool:
        return self.province_type == ProvinceType.SEA

    def is_coastal(self) -> bool:
        return self.province_type == ProvinceType.COASTAL

    def has_multiple_coasts(self) -> bool:
        return len(self.coasts) > 1

    def __repr__(self) -> str:
        return f"Province({self.name}, {self.full_name})"


class Map:
    """
    The game board: provinces plus one adjacency graph per unit kind.

    Armies move between provinces; fleets move between locations, so a fleet
    on one coast of Spain cannot reach what only the other coast borders.
    """

    def __init__(self):
        self.provinces: Dict[str, Province] = {}
        self.army_adjacencies: Dict[str, Set[str]] = {}
        self.fleet_adjacencies: Dict[Location, Set[Location]] = {}

    def add_province(self, province: Province) -> None:
        """Add a province to the map."""
        self.provinces[province.name] = province
        self.army_adjacencies.setdefault(province.name, set())

    def add_army_adjacency(self, first: str, second: str) -> None:
        """Add a two-way land border."""
        for abbr in (first, second):
            if abbr not in self.provinces:
                raise KeyError(f"Unknown province: {abbr}")
        self.army_adjacencies[first].add(second)
        self.army_adjacencies[second].add(first)

    def add_fleet_adjacency(self, first: Location, second: Location) -> None:
        """Add a two-way sea lane between two locations."""
        for loc in (first, second):
            province = self.provinces.get(loc.province)
            if province is None:
                raise KeyError(f"Unknown province: {loc.province}")
            if province.has_multiple_coasts() and loc.coast not in province.coasts:
                raise ValueError(f"Fleet adjacency for {loc} must name one of its coasts")
        self.fleet_adjacencies.setdefault(first, set()).add(second)
        self.fleet_adjacencies.setdefault(second, set()).add(first)

    def get_province(self, abbr: str) -> Optional[Province]:
        """Get a province by its abbreviation."""
        return self.provinces.get(abbr)

    def get_all_provinces(self) -> List[Province]:
        """Get all provinces in the map."""
        return list(self.provinces.values())

    def get_supply_centers(self) -> List[Province]:
        """Get all supply center provinces."""
        return [p for p in self.provinces.values() if p.is_supply_center]

    def get_home_centers(self, power: Power) -> List[Province]:
        """Get all home supply centers for a given power."""
        return [p for p in self.provinces.values() if p.home_center_of == power]

    def find_province(self, text: str) -> Optional[str]:
        """Resolve an abbreviation or full name, ignoring case."""
        wanted = text.strip().lower()
        for province in self.provinces.values():
            if province.name.lower() == wanted or province.full_name.lower() == wanted:
                return province.name
        return None

    def _fleet_origins(self, loc: Location) -> List[Location]:
        """Coasts a fleet order may mean when it names only the province."""
        province = self.provinces.get(loc.province)
        if province is None:
            return []
        if loc.coast is None and province.has_multiple_coasts():
            return [Location(loc.province, coast) for coast in province.coasts]
        return [loc]

    def adjacent_locations(self, is_fleet: bool, loc: Location) -> List[Location]:
        """Every location a unit of the given kind can reach in one move."""
        if not is_fleet:
            result = []
            for abbr in sorted(self.army_adjacencies.get(loc.province, ())):
                if not self.provinces[abbr].is_sea():
                    result.append(Location(abbr))
            return result

        seen = set()
        for origin in self._fleet_origins(loc):
            seen.update(self.fleet_adjacencies.get(origin, ()))
        return sorted(seen, key=str)

    def is_adjacent(self, is_fleet: bool, from_loc: Location, to_loc: Location) -> bool:
        """
        Check whether a unit can move between two locations.
        A destination without a coast matches any of its coasts.
        """
        return any(
            to_loc.matches(candidate)
            for candidate in self.adjacent_locations(is_fleet, from_loc)
        )

    def fleet_coasts_to(self, from_loc: Location, province: str) -> List[Location]:
        """Locations of `province` that a fleet at `from_loc` can reach."""
        return [
            loc for loc in self.adjacent_locations(True, from_loc)
            if loc.province == province
        ]

    def sea_neighbours(self, province: str) -> Set[str]:
        """Provinces sharing a sea lane with any coast of `province`."""
        result = set()
        for loc, others in self.fleet_adjacencies.items():
            if loc.province == province:
                result.update(other.province for other in others)
        return result

    def find_convoy_path(
        self,
        origin: str,
        destination: str,
        fleet_provinces: Iterable[str]
    ) -> Optional[List[str]]:
        """
        Breadth-first search for a chain of convoying provinces from origin
        to destination. Only convoy-capable provinces listed in
        `fleet_provinces` may carry the army.
        Returns the chain of carrying provinces, or None.
        """
        carriers = {
            abbr for abbr in fleet_provinces
            if abbr in self.provinces and self.provinces[abbr].convoy_capable
            and abbr not in (origin, destination)
        }
        if not carriers:
            return None

        queue = deque()
        parents: Dict[str, Optional[str]] = {}
        for abbr in sorted(self.sea_neighbours(origin) & carriers):
            parents[abbr] = None
            queue.append(abbr)

        while queue:
            current = queue.popleft()
            neighbours = self.sea_neighbours(current)
            if destination in neighbours:
                chain = [current]
                while parents[chain[-1]] is not None:
                    chain.append(parents[chain[-1]])
                return list(reversed(chain))
            for abbr in sorted(neighbours & carriers):
                if abbr not in parents:
                    parents[abbr] = current
                    queue.append(abbr)
        return None

    def can_convoy(self, origin: str, destination: str) -> bool:
        """Whether any chain of convoy-capable provinces links two coasts."""
        for abbr in (origin, destination):
            province = self.provinces.get(abbr)
            if province is None or not province.is_coastal():
                return False
        carriers = [p.name for p in self.provinces.values() if p.convoy_capable]
        return self.find_convoy_path(origin, destination, carriers) is not None

    def distance(self, start: str, targets: Iterable[str]) -> int:
        """
        Smallest number of moves from `start` to any of `targets`,
        ignoring unit kind. Unreachable targets give the province count.
        """
        targets = set(targets)
        if not targets:
            return len(self.provinces)
        neighbours: Dict[str, Set[str]] = {
            abbr: set(adj) for abbr, adj in self.army_adjacencies.items()
        }
        for loc, others in self.fleet_adjacencies.items():
            neighbours.setdefault(loc.province, set()).update(o.province for o in others)

        seen = {start}
        frontier = [start]
        steps = 0
        while frontier:
            if targets.intersection(frontier):
                return steps
            steps += 1
            next_frontier = []
            for abbr in frontier:
                for adj in sorted(neighbours.get(abbr, ())):
                    if adj not in seen:
                        seen.add(adj)
                        next_frontier.append(adj)
            frontier = next_frontier
        return len(self.provinces)


def create_standard_map() -> Map:
    """Create the standard 1901 Diplomacy map."""
    game_map = Map()

    # Format: (abbr, name, type, is_sc, home_of, coasts)
    provinces_data = [
        # England
        ("Lon", "London", ProvinceType.COASTAL, True, Power.ENGLAND, []),
        ("Edi", "Edinburgh", ProvinceType.COASTAL, True, Power.ENGLAND, []),
        ("Lvp", "Liverpool", ProvinceType.COASTAL, True, Power.ENGLAND, []),
        ("Wal", "Wales", ProvinceType.COASTAL, False, None, []),
        ("Yor", "Yorkshire", ProvinceType.COASTAL, False, None, []),
        ("Cly", "Clyde", ProvinceType.COASTAL, False, None, []),

        # France
        ("Par", "Paris", ProvinceType.LAND, True, Power.FRANCE, []),
        ("Mar", "Marseilles", ProvinceType.COASTAL, True, Power.FRANCE, []),
        ("Bre", "Brest", ProvinceType.COASTAL, True, Power.FRANCE, []),
        ("Bur", "Burgundy", ProvinceType.LAND, False, None, []),
        ("Gas", "Gascony", ProvinceType.COASTAL, False, None, []),
        ("Pic", "Picardy", ProvinceType.COASTAL, False, None, []),

        # Germany
        ("Ber", "Berlin", ProvinceType.COASTAL, True, Power.GERMANY, []),
        ("Mun", "Munich", ProvinceType.LAND, True, Power.GERMANY, []),
        ("Kie", "Kiel", ProvinceType.COASTAL, True, Power.GERMANY, []),
        ("Pru", "Prussia", ProvinceType.COASTAL, False, None, []),
        ("Ruh", "Ruhr", ProvinceType.LAND, False, None, []),
        ("Sil", "Silesia", ProvinceType.LAND, False, None, []),

        # Italy
        ("Rom", "Rome", ProvinceType.COASTAL, True, Power.ITALY, []),
        ("Ven", "Venice", ProvinceType.COASTAL, True, Power.ITALY, []),
        ("Nap", "Naples", ProvinceType.COASTAL, True, Power.ITALY, []),
        ("Apu", "Apulia", ProvinceType.COASTAL, False, None, []),
        ("Pie", "Piedmont", ProvinceType.COASTAL, False, None, []),
        ("Tus", "Tuscany", ProvinceType.COASTAL, False, None, []),

        # Austria-Hungary
        ("Vie", "Vienna", ProvinceType.LAND, True, Power.AUSTRIA, []),
        ("Bud", "Budapest", ProvinceType.LAND, True, Power.AUSTRIA, []),
        ("Tri", "Trieste", ProvinceType.COASTAL, True, Power.AUSTRIA, []),
        ("Boh", "Bohemia", ProvinceType.LAND, False, None, []),
        ("Gal", "Galicia", ProvinceType.LAND, False, None, []),
        ("Tyr", "Tyrolia", ProvinceType.LAND, False, None, []),

        # Russia
        ("Mos", "Moscow", ProvinceType.LAND, True, Power.RUSSIA, []),
        ("Sev", "Sevastopol", ProvinceType.COASTAL, True, Power.RUSSIA, []),
        ("War", "Warsaw", ProvinceType.LAND, True, Power.RUSSIA, []),
        ("StP", "St Petersburg", ProvinceType.COASTAL, True, Power.RUSSIA, [Coast.NORTH, Coast.SOUTH]),
        ("Lvn", "Livonia", ProvinceType.COASTAL, False, None, []),
        ("Ukr", "Ukraine", ProvinceType.LAND, False, None, []),
        ("Fin", "Finland", ProvinceType.COASTAL, False, None, []),

        # Turkey
        ("Con", "Constantinople", ProvinceType.COASTAL, True, Power.TURKEY, []),
        ("Smy", "Smyrna", ProvinceType.COASTAL, True, Power.TURKEY, []),
        ("Ank", "Ankara", ProvinceType.COASTAL, True, Power.TURKEY, []),
        ("Arm", "Armenia", ProvinceType.COASTAL, False, None, []),
        ("Syr", "Syria", ProvinceType.COASTAL, False, None, []),

        # Neutral supply centers
        ("Bel", "Belgium", ProvinceType.COASTAL, True, None, []),
        ("Hol", "Holland", ProvinceType.COASTAL, True, None, []),
        ("Den", "Denmark", ProvinceType.COASTAL, True, None, []),
        ("Swe", "Sweden", ProvinceType.COASTAL, True, None, []),
        ("Nwy", "Norway", ProvinceType.COASTAL, True, None, []),
        ("Spa", "Spain", ProvinceType.COASTAL, True, None, [Coast.NORTH, Coast.SOUTH]),
        ("Por", "Portugal", ProvinceType.COASTAL, True, None, []),
        ("Tun", "Tunis", ProvinceType.COASTAL, True, None, []),
        ("Ser", "Serbia", ProvinceType.LAND, True, None, []),
        ("Bul", "Bulgaria", ProvinceType.COASTAL, True, None, [Coast.EAST, Coast.SOUTH]),
        ("Rum", "Rumania", ProvinceType.COASTAL, True, None, []),
        ("Gre", "Greece", ProvinceType.COASTAL, True, None, []),

        # Other land provinces
        ("Alb", "Albania", ProvinceType.COASTAL, False, None, []),
        ("Naf", "North Africa", ProvinceType.COASTAL, False, None, []),

        # Sea provinces
        ("NTH", "North Sea", ProvinceType.SEA, False, None, []),
        ("NWG", "Norwegian Sea", ProvinceType.SEA, False, None, []),
        ("BAR", "Barents Sea", ProvinceType.SEA, False, None, []),
        ("ENG", "English Channel", ProvinceType.SEA, False, None, []),
        ("IRI", "Irish Sea", ProvinceType.SEA, False, None, []),
        ("MAO", "Mid-Atlantic Ocean", ProvinceType.SEA, False, None, []),
        ("NAO", "North Atlantic Ocean", ProvinceType.SEA, False, None, []),
        ("HEL", "Heligoland Bight", ProvinceType.SEA, False, None, []),
        ("SKA", "Skagerrak", ProvinceType.SEA, False, None, []),
        ("BAL", "Baltic Sea", ProvinceType.SEA, False, None, []),
        ("BOT", "Gulf of Bothnia", ProvinceType.SEA, False, None, []),
        ("WES", "Western Mediterranean", ProvinceType.SEA, False, None, []),
        ("LYO", "Gulf of Lyon", ProvinceType.SEA, False, None, []),
        ("TYS", "Tyrrhenian Sea", ProvinceType.SEA, False, None, []),
        ("ION", "Ionian Sea", ProvinceType.SEA, False, None, []),
        ("ADR", "Adriatic Sea", ProvinceType.SEA, False, None, []),
        ("AEG", "Aegean Sea", ProvinceType.SEA, False, None, []),
        ("EAS", "Eastern Mediterranean", ProvinceType.SEA, False, None, []),
        ("BLA", "Black Sea", ProvinceType.SEA, False, None, []),
    ]

    for abbr, full_name, ptype, is_sc, home_of, coasts in provinces_data:
        game_map.add_province(Province(abbr, full_name, ptype, is_sc, home_of, coasts))

    # Land borders, usable by armies
    army_borders = [
        ("Alb", "Gre"), ("Alb", "Ser"), ("Alb", "Tri"),
        ("Ank", "Arm"), ("Ank", "Con"), ("Ank", "Smy"),
        ("Apu", "Nap"), ("Apu", "Rom"), ("Apu", "Ven"),
        ("Arm", "Sev"), ("Arm", "Smy"), ("Arm", "Syr"),
        ("Bel", "Bur"), ("Bel", "Hol"), ("Bel", "Pic"), ("Bel", "Ruh"),
        ("Ber", "Kie"), ("Ber", "Mun"), ("Ber", "Pru"), ("Ber", "Sil"),
        ("Boh", "Gal"), ("Boh", "Mun"), ("Boh", "Sil"), ("Boh", "Tyr"), ("Boh", "Vie"),
        ("Bre", "Gas"), ("Bre", "Par"), ("Bre", "Pic"),
        ("Bud", "Gal"), ("Bud", "Rum"), ("Bud", "Ser"), ("Bud", "Tri"), ("Bud", "Vie"),
        ("Bul", "Con"), ("Bul", "Gre"), ("Bul", "Rum"), ("Bul", "Ser"),
        ("Bur", "Gas"), ("Bur", "Mar"), ("Bur", "Mun"), ("Bur", "Par"),
        ("Bur", "Pic"), ("Bur", "Ruh"),
        ("Cly", "Edi"), ("Cly", "Lvp"),
        ("Con", "Smy"),
        ("Den", "Kie"), ("Den", "Swe"),
        ("Edi", "Lvp"), ("Edi", "Yor"),
        ("Fin", "Nwy"), ("Fin", "StP"), ("Fin", "Swe"),
        ("Gal", "Rum"), ("Gal", "Sil"), ("Gal", "Ukr"), ("Gal", "Vie"), ("Gal", "War"),
        ("Gas", "Mar"), ("Gas", "Par"), ("Gas", "Spa"),
        ("Gre", "Ser"),
        ("Hol", "Kie"), ("Hol", "Ruh"),
        ("Kie", "Mun"), ("Kie", "Ruh"),
        ("Lon", "Wal"), ("Lon", "Yor"),
        ("Lvn", "Mos"), ("Lvn", "Pru"), ("Lvn", "StP"), ("Lvn", "War"),
        ("Lvp", "Wal"), ("Lvp", "Yor"),
        ("Mar", "Pie"), ("Mar", "Spa"),
        ("Mos", "Sev"), ("Mos", "StP"), ("Mos", "Ukr"), ("Mos", "War"),
        ("Mun", "Ruh"), ("Mun", "Sil"), ("Mun", "Tyr"),
        ("Naf", "Tun"),
        ("Nap", "Rom"),
        ("Nwy", "StP"), ("Nwy", "Swe"),
        ("Par", "Pic"),
        ("Pie", "Tus"), ("Pie", "Tyr"), ("Pie", "Ven"),
        ("Por", "Spa"),
        ("Pru", "Sil"), ("Pru", "War"),
        ("Rom", "Tus"), ("Rom", "Ven"),
        ("Rum", "Ser"), ("Rum", "Sev"), ("Rum", "Ukr"),
        ("Ser", "Tri"),
        ("Sev", "Ukr"),
        ("Sil", "War"),
        ("Smy", "Syr"),
        ("Tri", "Tyr"), ("Tri", "Ven"), ("Tri", "Vie"),
        ("Tus", "Ven"),
        ("Tyr", "Ven"), ("Tyr", "Vie"),
        ("Ukr", "War"),
        ("Wal", "Yor"),
    ]
    for first, second in army_borders:
        game_map.add_army_adjacency(first, second)

    # Sea lanes, usable by fleets; coasts written as "Spa/nc"
    fleet_borders = [
        # Sea to sea
        ("ADR", "ION"), ("AEG", "EAS"), ("AEG", "ION"), ("BAL", "BOT"),
        ("BAR", "NWG"), ("EAS", "ION"), ("ENG", "IRI"), ("ENG", "MAO"),
        ("ENG", "NTH"), ("HEL", "NTH"), ("ION", "TYS"), ("IRI", "MAO"),
        ("IRI", "NAO"), ("LYO", "TYS"), ("LYO", "WES"), ("MAO", "NAO"),
        ("MAO", "WES"), ("NAO", "NWG"), ("NTH", "NWG"), ("NTH", "SKA"),
        ("TYS", "WES"),

        # Sea to coast
        ("ADR", "Alb"), ("ADR", "Apu"), ("ADR", "Tri"), ("ADR", "Ven"),
        ("AEG", "Bul/sc"), ("AEG", "Con"), ("AEG", "Gre"), ("AEG", "Smy"),
        ("BAL", "Ber"), ("BAL", "Den"), ("BAL", "Kie"), ("BAL", "Lvn"),
        ("BAL", "Pru"), ("BAL", "Swe"),
        ("BAR", "Nwy"), ("BAR", "StP/nc"),
        ("BLA", "Ank"), ("BLA", "Arm"), ("BLA", "Bul/ec"), ("BLA", "Con"),
        ("BLA", "Rum"), ("BLA", "Sev"),
        ("BOT", "Fin"), ("BOT", "Lvn"), ("BOT", "StP/sc"), ("BOT", "Swe"),
        ("EAS", "Smy"), ("EAS", "Syr"),
        ("ENG", "Bel"), ("ENG", "Bre"), ("ENG", "Lon"), ("ENG", "Pic"), ("ENG", "Wal"),
        ("HEL", "Den"), ("HEL", "Hol"), ("HEL", "Kie"),
        ("ION", "Alb"), ("ION", "Apu"), ("ION", "Gre"), ("ION", "Nap"), ("ION", "Tun"),
        ("IRI", "Lvp"), ("IRI", "Wal"),
        ("LYO", "Mar"), ("LYO", "Pie"), ("LYO", "Spa/sc"), ("LYO", "Tus"),
        ("MAO", "Bre"), ("MAO", "Gas"), ("MAO", "Naf"), ("MAO", "Por"),
        ("MAO", "Spa/nc"), ("MAO", "Spa/sc"),
        ("NAO", "Cly"), ("NAO", "Lvp"),
        ("NTH", "Bel"), ("NTH", "Den"), ("NTH", "Edi"), ("NTH", "Hol"),
        ("NTH", "Lon"), ("NTH", "Nwy"), ("NTH", "Yor"),
        ("NWG", "Cly"), ("NWG", "Edi"), ("NWG", "Nwy"),
        ("SKA", "Den"), ("SKA", "Nwy"), ("SKA", "Swe"),
        ("TYS", "Nap"), ("TYS", "Rom"), ("TYS", "Tun"), ("TYS", "Tus"),
        ("WES", "Naf"), ("WES", "Spa/sc"), ("WES", "Tun"),

        # Coast to coast
        ("Alb", "Gre"), ("Alb", "Tri"), ("Ank", "Arm"), ("Ank", "Con"),
        ("Apu", "Nap"), ("Apu", "Ven"), ("Arm", "Sev"), ("Bel", "Hol"),
        ("Bel", "Pic"), ("Ber", "Kie"), ("Ber", "Pru"), ("Bre", "Gas"),
        ("Bre", "Pic"), ("Bul/ec", "Con"), ("Bul/ec", "Rum"), ("Bul/sc", "Con"),
        ("Bul/sc", "Gre"), ("Cly", "Edi"), ("Cly", "Lvp"), ("Con", "Smy"),
        ("Den", "Kie"), ("Den", "Swe"), ("Edi", "Yor"), ("Fin", "StP/sc"),
        ("Fin", "Swe"), ("Gas", "Spa/nc"), ("Hol", "Kie"), ("Lon", "Wal"),
        ("Lon", "Yor"), ("Lvn", "Pru"), ("Lvn", "StP/sc"), ("Lvp", "Wal"),
        ("Mar", "Pie"), ("Mar", "Spa/sc"), ("Naf", "Tun"), ("Nap", "Rom"),
        ("Nwy", "StP/nc"), ("Nwy", "Swe"), ("Pie", "Tus"), ("Por", "Spa/nc"),
        ("Por", "Spa/sc"), ("Rom", "Tus"), ("Rum", "Sev"), ("Smy", "Syr"),
        ("Tri", "Ven"),
    ]
    for first, second in fleet_borders:
        game_map.add_fleet_adjacency(Location.parse(first), Location.parse(second))

    return game_map
