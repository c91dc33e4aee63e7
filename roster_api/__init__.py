"""
Roster API

Character and guild data scraped from the WoW Armory, with a file cache
keeping request volume down.
- Fetcher: cache-first page download with retry on empty responses
- DocumentParser: tolerant HTML → XPath document
- FieldExtractor: rule-based field extraction and normalization

Public API surface:
  Entry point:     RosterAPI
  Pipeline pieces: CacheStore, Fetcher, DocumentParser, FieldExtractor,
                   GemResolver, collect_paged
  Configuration:   Settings, FetchPolicy, load_settings
  Data models:     CharacterProfile, EquippedItem, Glyph, GuildRosterEntry, ...
  Error types:     InvalidArgumentError, NetworkError, FetchError, ExtractionError
"""

from .armory import RosterAPI

from .cache import CacheStore, cache_key
from .fetcher import Fetcher, HTTPTransport
from .document import Document, DocumentParser
from .extractor import FieldExtractor
from .gems import GemResolver
from .paging import collect_paged

from .config import Settings, FetchPolicy, load_settings

from .schemas import (
    CacheEntry,
    CharacterProfile,
    EquippedItem,
    ExtractedField,
    Glyph,
    GlyphType,
    GuildRosterEntry,
    Profession,
    Stat,
    TalentTree,
)

from .exceptions import (
    RosterAPIError,
    InvalidArgumentError,
    InvalidKeyError,
    NetworkError,
    FetchError,
    ExtractionError,
)

__version__ = "0.3.0"
__all__ = [
    "RosterAPI",
    "CacheStore",
    "cache_key",
    "Fetcher",
    "HTTPTransport",
    "Document",
    "DocumentParser",
    "FieldExtractor",
    "GemResolver",
    "collect_paged",
    "Settings",
    "FetchPolicy",
    "load_settings",
    "CacheEntry",
    "CharacterProfile",
    "EquippedItem",
    "ExtractedField",
    "Glyph",
    "GlyphType",
    "GuildRosterEntry",
    "Profession",
    "Stat",
    "TalentTree",
    "RosterAPIError",
    "InvalidArgumentError",
    "InvalidKeyError",
    "NetworkError",
    "FetchError",
    "ExtractionError",
]
