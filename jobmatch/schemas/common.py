"""
Common schema types shared across different schemas.
"""

import math
from typing import Dict, Iterator, List, Optional

from pydantic import Field, RootModel, field_validator

from jobmatch.schemas.base import CustomBaseModel

MIN_SKILL_LEVEL = 1
MAX_SKILL_LEVEL = 5


class Location(CustomBaseModel):
    """A point on the map. Either coordinate may be unknown."""

    latitude: Optional[float] = Field(None, description="Degrees, -90 to 90")
    longitude: Optional[float] = Field(None, description="Degrees, -180 to 180")

    @property
    def is_known(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_valid(self) -> bool:
        if not self.is_known:
            return False
        lat, lon = self.latitude, self.longitude
        return (
            math.isfinite(lat)
            and math.isfinite(lon)
            and -90 <= lat <= 90
            and -180 <= lon <= 180
        )


class SkillMap(RootModel[Dict[str, int]]):
    """
    Skill name to proficiency level (1-5).

    Names keep their original casing for reporting; lookups are
    case-insensitive. Loose JSON from profile and posting records is
    parsed here: ``None`` becomes an empty map and numeric strings or
    floats are coerced to whole levels.
    """

    root: Dict[str, int] = Field(default_factory=dict)

    @field_validator("root", mode="before")
    @classmethod
    def _parse_loose_blob(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("skills must be an object of name -> level")

        parsed: Dict[str, int] = {}
        for raw_name, raw_level in value.items():
            name = str(raw_name).strip()
            if not name:
                raise ValueError("skill names must not be blank")
            if isinstance(raw_level, bool):
                raise ValueError(f"invalid level for skill {name!r}")
            try:
                level = float(raw_level)
            except (TypeError, ValueError):
                raise ValueError(f"invalid level for skill {name!r}: {raw_level!r}")
            if not math.isfinite(level):
                raise ValueError(f"invalid level for skill {name!r}: {raw_level!r}")
            level = int(round(level))
            if not MIN_SKILL_LEVEL <= level <= MAX_SKILL_LEVEL:
                raise ValueError(
                    f"level for skill {name!r} must be between "
                    f"{MIN_SKILL_LEVEL} and {MAX_SKILL_LEVEL}, got {raw_level!r}"
                )
            parsed[name] = level
        return parsed

    def __iter__(self) -> Iterator[str]:
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, name: object) -> bool:
        return self.level_of(name) is not None if isinstance(name, str) else False

    def names(self) -> List[str]:
        return list(self.root)

    def level_of(self, name: str) -> Optional[int]:
        wanted = name.strip().lower()
        for skill, level in self.root.items():
            if skill.lower() == wanted:
                return level
        return None
