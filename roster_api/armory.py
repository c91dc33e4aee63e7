"""
Main entry point for the roster API.

RosterAPI wires the pipeline together for one server plus a character
and/or guild:

  URL template → Fetcher (cache-first) → DocumentParser → FieldExtractor
                                      ↘ PaginatedAggregator (roster pages)
                                      ↘ GemResolver (one request per gem)
"""

from typing import Optional, Union
from urllib.parse import quote

from .cache import CacheStore, cache_key
from .config import Settings
from .document import Document, DocumentParser
from .exceptions import ExtractionError, FetchError, InvalidArgumentError
from .extractor import FieldExtractor, gender_from_roster
from .fetcher import Fetcher, HTTPTransport, Transport
from .gems import GemResolver
from .logger import get_module_logger, setup_logger
from .paging import collect_paged
from .schemas import (
    CharacterProfile,
    EquippedItem,
    Glyph,
    GuildRosterEntry,
    Profession,
    Stat,
    TalentTree,
)

logger = get_module_logger("armory")


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(field)
    return str(value).strip()


class RosterAPI:
    """
    Character and guild data for one server.

    At least one of ``character`` and ``guild`` must be given. Instances are
    not changed after construction; use for_character()/for_guild() to look
    at someone else with the same fetcher and cache.
    """

    def __init__(
        self,
        server: str,
        character: Optional[str] = None,
        guild: Optional[str] = None,
        settings: Optional[Settings] = None,
        fetcher: Optional[Fetcher] = None,
        transport: Optional[Transport] = None,
        log_level: Optional[int] = None
    ):
        if log_level is not None:
            setup_logger(level=log_level)

        self.server = _require(server, "server")
        if not (character and character.strip()) and not (guild and guild.strip()):
            raise InvalidArgumentError(
                "character",
                "A guild name and/or character name must be set."
            )
        self.character = character.strip() if character and character.strip() else None
        self.guild = guild.strip() if guild and guild.strip() else None

        self.settings = settings or Settings()
        if fetcher is None:
            fetcher = Fetcher(
                CacheStore(self.settings.cache_dir),
                policy=self.settings.policy,
                transport=transport or HTTPTransport(timeout=self.settings.request_timeout),
            )
        self.fetcher = fetcher
        self.parser = DocumentParser()
        self.extractor = FieldExtractor()
        self.gem_resolver = GemResolver(self.fetcher, self.settings.char_page_url,
                                        parser=self.parser, extractor=self.extractor)

        logger.info(
            f"RosterAPI initialized for server={self.server} "
            f"character={self.character} guild={self.guild}"
        )

    def for_character(self, character: str) -> "RosterAPI":
        """Same server, guild, settings and fetcher; different character."""
        return RosterAPI(self.server, _require(character, "character"), self.guild,
                         settings=self.settings, fetcher=self.fetcher)

    def for_guild(self, guild: str) -> "RosterAPI":
        """Same server, character, settings and fetcher; different guild."""
        return RosterAPI(self.server, self.character, _require(guild, "guild"),
                         settings=self.settings, fetcher=self.fetcher)

    # --- URL templates ---

    def _character_url(self, *suffix: str) -> str:
        character = self._require_character()
        parts = [quote(self.server), quote(character), *suffix]
        return self.settings.char_page_url + "/".join(parts)

    def _guild_url(self, suffix: str = "") -> str:
        guild = self._require_guild()
        return f"{self.settings.guild_page_url}{quote(self.server)}/{quote(guild)}/{suffix}"

    def _require_character(self) -> str:
        if not self.character:
            raise InvalidArgumentError("character", "No character set on this RosterAPI.")
        return self.character

    def _require_guild(self) -> str:
        if not self.guild:
            raise InvalidArgumentError("guild", "No guild set on this RosterAPI.")
        return self.guild

    def _page(self, url: str, key: str) -> Document:
        return self.parser.parse(self.fetcher.fetch(url, key))

    # --- Pages ---

    def character_page(self) -> Document:
        url = self._character_url("simple")
        return self._page(url, cache_key("character", self.server, self.character))

    def talent_page(self) -> Document:
        url = self._character_url("talent", "primary")
        return self._page(url, cache_key("talents", self.server, self.character))

    def statistic_page(self, category: Union[int, str]) -> Document:
        category = _require(str(category) if category is not None else None, "statistic category")
        url = self._character_url("statistic", quote(category))
        return self._page(url, cache_key("statistic", self.server, self.character, category))

    def roster_page(self, page: int = 1) -> Document:
        url = f"{self._guild_url('roster')}?page={page}"
        return self._page(url, cache_key("roster", self.server, self.guild, page))

    def guild_summary_page(self) -> Document:
        return self._page(self._guild_url(), cache_key("guild", self.server, self.guild))

    def guild_perks_page(self) -> Document:
        return self._page(self._guild_url("perk"), cache_key("perks", self.server, self.guild))

    # --- Character ---

    def profile(self, include_gender: bool = True) -> CharacterProfile:
        """
        Full character profile: character page, talent page (glyphs), gem
        pages and, when a guild is set and ``include_gender`` is true, the
        guild roster for the gender.
        """
        doc = self.character_page()

        def field(name: str) -> Optional[str]:
            return self.extractor.field(doc, name).value

        gender_id = None
        if include_gender and self.guild:
            try:
                gender_id = self.gender()
            except (ExtractionError, FetchError) as e:
                logger.warning(f"Gender unknown for {self.character}: {e.message}")

        return CharacterProfile(
            server=self.server,
            name=self._require_character(),
            level=field("level"),
            character_class=field("character_class"),
            race=field("race"),
            achievement_points=field("achievement_points"),
            health=field("health"),
            power=field("power"),
            item_level=field("item_level"),
            gender_id=gender_id,
            professions=self.extractor.professions(doc),
            talents=self.extractor.talents(doc),
            stats=self.extractor.character_stats(doc),
            items=tuple(self.extractor.equipped_items(doc, self.gem_resolver)),
            glyphs=tuple(self.glyphs()),
        )

    def level(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "level").value

    def character_class(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "character_class").value

    def race(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "race").value

    def achievement_points(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "achievement_points").value

    def health(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "health").value

    def power(self) -> Optional[str]:
        """Mana, rage, energy... whatever the class uses."""
        return self.extractor.field(self.character_page(), "power").value

    def item_level(self) -> Optional[str]:
        return self.extractor.field(self.character_page(), "item_level").value

    def professions(self) -> tuple[Profession, Profession]:
        return self.extractor.professions(self.character_page())

    def talents(self) -> tuple[TalentTree, TalentTree]:
        return self.extractor.talents(self.character_page())

    def stat(self, stat: str) -> Stat:
        """Character-sheet stat by data-id, e.g. "spellhaste" or "meleecrit"."""
        return self.extractor.character_stat(self.character_page(), _require(stat, "stat"))

    def items(self) -> list[EquippedItem]:
        """All 19 slots, gems resolved to names."""
        return self.extractor.equipped_items(self.character_page(), self.gem_resolver)

    def glyphs(self) -> list[Glyph]:
        return self.extractor.glyphs(self.talent_page())

    def gender(self) -> Optional[int]:
        """
        0 = male, 1 = female, None if unknown.

        The character page doesn't show gender; the guild roster's
        race/gender icon does, so this needs a guild.
        """
        self._require_guild()
        return gender_from_roster(self.guild_members(), self._require_character())

    # --- Statistics ---

    def statistic(self, category: Union[int, str], name: str) -> str:
        """
        Value of one statistic, e.g. statistic(131, "Number of hugs").

        Raises ExtractionError if the category page has no such statistic.
        """
        name = _require(name, "statistic name")
        return self.extractor.statistic(self.statistic_page(category), name)

    def statistic_names(self, category: Union[int, str]) -> list[str]:
        return self.extractor.statistic_names(self.statistic_page(category))

    # --- Guild ---

    def guild_members(self, filter_level: Optional[int] = None) -> list[GuildRosterEntry]:
        """Every roster member across all roster pages, optionally only one level."""
        self._require_guild()
        return collect_paged(
            total_size=self.extractor.roster_total,
            page_fetch=self.roster_page,
            page_extract=lambda doc: self.extractor.roster_rows(doc, filter_level),
        )

    def guild_perks(self) -> list[str]:
        return self.extractor.guild_perks(self.guild_perks_page())

    def top_weekly_contributors(self) -> list[str]:
        return self.extractor.top_contributors(self.guild_summary_page())
