"""Geographic lookup used for "nearby city" matching.

Cities are canonical entries held in a flat list (their index is the city id)
and every spelling of a city, canonical or alias, is registered in an alias
index keyed by (country code, normalized name). A free-text city resolves when
its normalized form, or a leading run of its words followed only by district
words, is a registered alias: "Paris 15e" resolves to Paris, "Aix-les-Bains"
never resolves to an "Aix" and "Venice Beach" never resolves to Nice.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
import unicodedata

from .regions_data import CITY_ALIASES, COUNTRY_SYNONYMS, REGIONS_BY_COUNTRY

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[-'’`.,/()]+")
_SPACES = re.compile(r"\s+")
# Trailing words that narrow a city to one of its districts: "15e", "1er", "2eme", "arrondissement"
_DISTRICT_WORD = re.compile(r"^(\d+[a-z]*|arr|arrondissement|cedex)$")


def normalize_name(value: str | None) -> str:
    """Lowercase, strip diacritics, turn hyphens/apostrophes into spaces."""
    if not value:
        return ""
    text = unicodedata.normalize("NFD", str(value).lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = _SEPARATORS.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def is_district_suffix(words) -> bool:
    """True when every word only names a district of the city before it."""
    return bool(words) and all(_DISTRICT_WORD.match(w) for w in words)


@dataclass(frozen=True)
class Region:
    name: str
    country_code: str
    cities: tuple[str, ...]


@dataclass(frozen=True)
class City:
    id: int
    name: str
    country_code: str
    region: Region
    aliases: tuple[str, ...] = field(default_factory=tuple)


class RegionIndex:
    def __init__(self) -> None:
        self._cities: list[City] = []
        self._aliases: dict[tuple[str, str], set[int]] = {}
        self._regions: dict[str, list[Region]] = {}
        self._countries: dict[str, str] = {}

    @classmethod
    def from_tables(cls, regions_by_country: dict, city_aliases: dict | None = None, country_synonyms: dict | None = None) -> "RegionIndex":
        index = cls()
        city_aliases = city_aliases or {}
        for code, synonyms in (country_synonyms or {}).items():
            index.add_country(code, synonyms)
        for code, regions in regions_by_country.items():
            extra = city_aliases.get(code, {})
            for region_name, cities in regions:
                region = Region(name=region_name, country_code=code, cities=tuple(cities))
                index._regions.setdefault(code, []).append(region)
                for city_name in cities:
                    index.add_city(city_name, region, extra.get(city_name, ()))
        for (code, alias), ids in index._aliases.items():
            if len(ids) > 1:
                logger.debug("City name %r is ambiguous in %s (%d cities)", alias, code, len(ids))
        return index

    def add_country(self, code: str, synonyms) -> None:
        code = code.upper()
        self._countries[normalize_name(code)] = code
        for name in synonyms:
            self._countries[normalize_name(name)] = code

    def add_city(self, name: str, region: Region, aliases=()) -> City:
        city = City(
            id=len(self._cities),
            name=name,
            country_code=region.country_code,
            region=region,
            aliases=tuple(aliases),
        )
        self._cities.append(city)
        for spelling in (name, *city.aliases):
            key = (region.country_code, normalize_name(spelling))
            self._aliases.setdefault(key, set()).add(city.id)
        return city

    # ---- lookups ----

    def country_code(self, country: str | None) -> str | None:
        """Resolve a country name (French/English, any case/accents) or ISO code."""
        return self._countries.get(normalize_name(country))

    def regions(self, country_code: str) -> list[Region]:
        return list(self._regions.get((country_code or "").upper(), []))

    def resolve_city(self, city: str | None, country_code: str | None) -> City | None:
        """Longest leading word run of ``city`` that is a known, unambiguous alias.

        Words dropped from the end must be district words ("Paris 15e").
        """
        if not country_code:
            return None
        code = country_code.upper()
        words = normalize_name(city).split()
        for n in range(len(words), 0, -1):
            if n < len(words) and not is_district_suffix(words[n:]):
                continue
            ids = self._aliases.get((code, " ".join(words[:n])))
            if not ids:
                continue
            if len(ids) > 1:
                # Ambiguous name: fail closed rather than guess
                return None
            return self._cities[next(iter(ids))]
        return None

    def find_region(self, city: str | None, country_code: str | None) -> Region | None:
        resolved = self.resolve_city(city, country_code)
        return resolved.region if resolved else None

    def same_country(self, country_a: str | None, country_b: str | None) -> bool:
        na, nb = normalize_name(country_a), normalize_name(country_b)
        if not na or not nb:
            return False
        if na == nb:
            return True
        code_a = self.country_code(country_a)
        return code_a is not None and code_a == self.country_code(country_b)

    def same_region(self, city_a: str | None, country_a: str | None, city_b: str | None, country_b: str | None) -> bool:
        if not self.same_country(country_a, country_b):
            return False
        code = self.country_code(country_a)
        if not code:
            return False
        region_a = self.find_region(city_a, code)
        region_b = self.find_region(city_b, code)
        if region_a is None or region_b is None:
            return False
        return region_a.name == region_b.name

    def region_name(self, city: str | None, country: str | None) -> str | None:
        region = self.find_region(city, self.country_code(country))
        return region.name if region else None

    def cities_match(self, city_a: str | None, city_b: str | None, country: str | None = None) -> bool:
        """Literal city comparison: same name, same name plus a district, or aliases of one city.

        "Paris" matches "Paris 15e"; "Aix" does not match "Aix-les-Bains" and
        "Nice" does not match "Venice".
        """
        words_a = normalize_name(city_a).split()
        words_b = normalize_name(city_b).split()
        if not words_a or not words_b:
            return False
        shorter, longer = sorted((words_a, words_b), key=len)
        if longer[: len(shorter)] == shorter and (len(longer) == len(shorter) or is_district_suffix(longer[len(shorter):])):
            return True
        code = self.country_code(country)
        if not code:
            return False
        resolved_a = self.resolve_city(city_a, code)
        resolved_b = self.resolve_city(city_b, code)
        return resolved_a is not None and resolved_b is not None and resolved_a.id == resolved_b.id


default_index = RegionIndex.from_tables(REGIONS_BY_COUNTRY, CITY_ALIASES, COUNTRY_SYNONYMS)


def country_code(country: str | None) -> str | None:
    return default_index.country_code(country)


def find_region(city: str | None, country_code: str | None) -> Region | None:
    return default_index.find_region(city, country_code)


def same_country(country_a: str | None, country_b: str | None) -> bool:
    return default_index.same_country(country_a, country_b)


def same_region(city_a: str | None, country_a: str | None, city_b: str | None, country_b: str | None) -> bool:
    return default_index.same_region(city_a, country_a, city_b, country_b)


def region_name(city: str | None, country: str | None) -> str | None:
    return default_index.region_name(city, country)


def cities_match(city_a: str | None, city_b: str | None, country: str | None = None) -> bool:
    return default_index.cities_match(city_a, city_b, country)
