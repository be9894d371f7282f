"""
Profile loading for SkillSwap.

Turns raw profile records (as exported by the surrounding system) into
Profile objects. Loading is lenient: records that cannot be converted are
reported and skipped so one bad row never blocks a matching run.
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from rich.console import Console

from .exceptions import ProfileFormatError
from .models import Location, Profile, Skill, SkillLevel

console = Console()

DEFAULT_LANGUAGES = ["en"]
DEFAULT_TRUST = 0.5
MISSING_VALUES = {"", "undefined", "null", "none"}


def level_from_number(level: float) -> SkillLevel:
    """Map a 1-10 self rating onto a skill level."""
    if level <= 3:
        return SkillLevel.BEGINNER
    if level <= 6:
        return SkillLevel.INTERMEDIATE
    if level <= 8:
        return SkillLevel.ADVANCED
    return SkillLevel.EXPERT


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in MISSING_VALUES:
        return None
    return text


def _parse_level(value: Any, default: SkillLevel) -> SkillLevel:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return level_from_number(value)
    text = str(value).strip()
    try:
        return level_from_number(float(text))
    except ValueError:
        return SkillLevel.parse(text, default=default)


def parse_skill(raw: Any, default_level: SkillLevel = SkillLevel.INTERMEDIATE) -> Optional[Skill]:
    """Build a Skill from a dict or a bare name. Returns None for blank entries."""
    if isinstance(raw, Skill):
        return raw
    if isinstance(raw, str):
        name = _clean_text(raw)
        return Skill(name=name, level=default_level) if name else None
    if isinstance(raw, dict):
        name = _clean_text(raw.get("name"))
        if not name:
            return None
        return Skill(
            name=name,
            level=_parse_level(raw.get("level"), default_level),
            description=_clean_text(raw.get("description")),
            category=_clean_text(raw.get("category")),
            id=_clean_text(raw.get("id"))
        )
    raise ProfileFormatError(f"Unsupported skill entry: {raw!r}")


def _parse_skills(raw: Any, default_level: SkillLevel) -> List[Skill]:
    if raw is None:
        return []
    if isinstance(raw, (str, dict)):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raise ProfileFormatError(f"Skills must be a list, got {type(raw).__name__}")
    skills = []
    for entry in raw:
        skill = parse_skill(entry, default_level)
        if skill is not None:
            skills.append(skill)
    return skills


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def parse_location(raw: Any) -> Optional[Location]:
    """Location is kept when any of its fields is present, coordinates included."""
    if not isinstance(raw, dict):
        return None
    location = Location(
        city=_clean_text(raw.get("city")),
        country=_clean_text(raw.get("country")),
        latitude=_parse_float(raw.get("latitude")),
        longitude=_parse_float(raw.get("longitude")),
        timezone=_clean_text(raw.get("timezone"))
    )
    if not any((location.city, location.country, location.has_coordinates, location.timezone)):
        return None
    return location


def parse_languages(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return list(DEFAULT_LANGUAGES)
    languages = [str(lang).strip() for lang in raw if lang is not None and str(lang).strip()]
    return languages or list(DEFAULT_LANGUAGES)


def parse_trust(record: Dict[str, Any]) -> float:
    trust = _parse_float(record.get("trust", record.get("trustScore")))
    if trust is None:
        return DEFAULT_TRUST
    return max(0.0, min(1.0, trust))


def profile_from_record(record: Dict[str, Any]) -> Profile:
    """
    Convert one raw record into a Profile.

    Accepts ``id`` or ``_id``; ``offers``/``wants`` as lists of skill dicts or
    names, or the legacy single ``offer_skill``/``want_skill`` fields with a
    numeric ``skill_level``. Raises ProfileFormatError when the record has no id.
    """
    if not isinstance(record, dict):
        raise ProfileFormatError(f"Profile record must be an object, got {type(record).__name__}")

    raw_id = record.get("id", record.get("_id"))
    profile_id = _clean_text(raw_id)
    if not profile_id:
        raise ProfileFormatError("Profile record has no id")

    offer_level = _parse_level(record.get("skill_level"), SkillLevel.INTERMEDIATE)
    offers = _parse_skills(record.get("offers"), SkillLevel.INTERMEDIATE)
    if not offers:
        offers = _parse_skills(record.get("offer_skill"), offer_level)

    wants = _parse_skills(record.get("wants"), SkillLevel.BEGINNER)
    if not wants:
        # Legacy wanted skills carry no level of their own
        wants = _parse_skills(record.get("want_skill"), SkillLevel.BEGINNER)

    username = _clean_text(record.get("username")) or _clean_text(record.get("name"))
    email = _clean_text(record.get("email"))
    if not username and email:
        username = email.split("@")[0]

    return Profile(
        id=profile_id,
        username=username or f"User_{profile_id[:8]}",
        offers=offers,
        wants=wants,
        languages=parse_languages(record.get("languages")),
        location=parse_location(record.get("location")),
        trust=parse_trust(record)
    )


def convert_records(records: Iterable[Any]) -> List[Profile]:
    """Convert records leniently, skipping the ones that fail."""
    profiles = []
    failed = 0
    for index, record in enumerate(records):
        try:
            profiles.append(profile_from_record(record))
        except ProfileFormatError as e:
            failed += 1
            console.print(f"[yellow]Warning: skipping profile record {index}: {e}[/yellow]")
    if failed:
        console.print(f"[dim]Converted {len(profiles)} profiles, skipped {failed}[/dim]")
    return profiles


class ProfileCollection:
    """Profiles loaded from one source, addressable by id."""

    def __init__(self, profiles: List[Profile]):
        self.profiles = profiles
        self._by_id = {}
        for profile in profiles:
            if profile.id in self._by_id:
                console.print(f"[yellow]Warning: duplicate profile id {profile.id}, keeping the first[/yellow]")
                continue
            self._by_id[profile.id] = profile

    def __len__(self) -> int:
        return len(self.profiles)

    def __iter__(self) -> Iterator[Profile]:
        return iter(self.profiles)

    def get(self, profile_id: str) -> Optional[Profile]:
        return self._by_id.get(str(profile_id))

    def require(self, profile_id: str) -> Profile:
        profile = self.get(profile_id)
        if profile is None:
            raise KeyError(f"Profile {profile_id} not found")
        return profile

    def candidates_for(self, subject: Profile) -> List[Profile]:
        return [p for p in self.profiles if p.id != subject.id]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total": len(self.profiles),
            "with_offers": sum(1 for p in self.profiles if p.offers),
            "with_wants": sum(1 for p in self.profiles if p.wants),
            "with_location": sum(1 for p in self.profiles if p.location),
        }


def load_profiles(path: str) -> ProfileCollection:
    """
    Load profiles from a JSON file.

    The file holds either a list of records or ``{"profiles": [...]}``.
    """
    file_path = Path(path)
    with open(file_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("profiles", [])
    if not isinstance(data, list):
        raise ProfileFormatError(f"{file_path} does not contain a list of profiles")

    return ProfileCollection(convert_records(data))
