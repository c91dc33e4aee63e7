"""
Pydantic schemas for everything the roster API hands back to callers.

Data flow:
  Fetcher → bytes → DocumentParser → Document
  Document → FieldExtractor → ExtractedField / records below
  Records are read-only projections of the fetched markup; re-fetching
  builds new values instead of updating old ones.
"""

from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ExtractionError

T = TypeVar("T")

EQUIPMENT_SLOTS = 19


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Cache ---

class CacheEntry(FrozenModel):
    """One cached resource as stored on disk."""
    key: str
    last_fetched_at: datetime
    content: bytes


# --- Single query result ---

class ExtractedField(FrozenModel, Generic[T]):
    """
    Result of one structural query.

    ``present=False`` means the node was missing (or held the upstream
    "unset" sentinel), which is different from a node holding "".
    """
    present: bool = False
    value: Optional[T] = None

    @classmethod
    def absent(cls) -> "ExtractedField":
        return cls(present=False, value=None)

    @classmethod
    def of(cls, value) -> "ExtractedField":
        return cls(present=True, value=value)

    def value_or(self, default):
        return self.value if self.present else default


# --- Character ---

class Profession(FrozenModel):
    name: str = ""
    value: str = ""


class TalentTree(FrozenModel):
    name: str = ""
    points: str = ""


class Stat(FrozenModel):
    name: str = ""
    value: str = ""


class EquippedItem(FrozenModel):
    """
    One of the 19 equipment slots.

    An unequipped slot is ``equipped=False`` with every optional field None.
    """
    slot: int = Field(ge=0, lt=EQUIPMENT_SLOTS)
    equipped: bool = True
    name: Optional[str] = None
    item_level: Optional[str] = None
    enchant: Optional[str] = None
    gems: tuple[str, ...] = ()

    @classmethod
    def empty_slot(cls, slot: int) -> "EquippedItem":
        return cls(slot=slot, equipped=False)


class GlyphType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PRIME = "prime"


class Glyph(FrozenModel):
    name: str
    type: GlyphType
    url: str
    item_id: str


class CharacterProfile(FrozenModel):
    """Everything the character page (plus talent page and gems) exposes."""
    server: str
    name: str
    level: Optional[str] = None
    character_class: Optional[str] = None
    race: Optional[str] = None
    achievement_points: Optional[str] = None
    health: Optional[str] = None
    power: Optional[str] = None
    item_level: Optional[str] = None
    gender_id: Optional[int] = None         # 0 male, 1 female, None unknown
    professions: tuple[Profession, Profession] = (Profession(), Profession())
    talents: tuple[TalentTree, TalentTree] = (TalentTree(), TalentTree())
    stats: dict[str, Stat] = Field(default_factory=dict)
    items: tuple[EquippedItem, ...] = ()
    glyphs: tuple[Glyph, ...] = ()

    def stat(self, data_id: str) -> Stat:
        """Look up a character-sheet stat by its data-id (e.g. "spellhaste")."""
        try:
            return self.stats[data_id]
        except KeyError:
            raise ExtractionError(
                f"Stat '{data_id}' not found on character page",
                details={"stat": data_id, "available": sorted(self.stats)}
            ) from None


# --- Guild ---

class GuildRosterEntry(FrozenModel):
    name: str
    rank: Optional[str] = None
    level: Optional[int] = None
    gender_id: Optional[int] = None
