"""
Rule-based field extractor.

Turns parsed armory pages into typed records. Simple fields are described
declaratively in FIELD_RULES / PAIR_RULES / SLOT_RULES (logical name →
XPath → normalization), so each rule can be checked against a synthetic
page without touching the network.

Normalization policy:
  - Sentinel text ("No profession", "Talents") means "not set" → absent/"".
  - A missing optional node is absent, never an error.
  - Required structure (guild size, a named statistic) → ExtractionError.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .document import Document, normalize_text
from .exceptions import ExtractionError
from .logger import get_module_logger
from .schemas import (
    EQUIPMENT_SLOTS,
    EquippedItem,
    ExtractedField,
    Glyph,
    GlyphType,
    GuildRosterEntry,
    Profession,
    Stat,
    TalentTree,
)

logger = get_module_logger("extractor")


def has_class(name: str) -> str:
    """XPath predicate body matching one token of a multi-valued class attribute."""
    return f'contains(concat(" ", normalize-space(@class), " "), " {name} ")'


@dataclass(frozen=True)
class FieldRule:
    """One scalar field: where it lives and which text means "unset"."""
    path: str
    sentinel: Optional[str] = None
    index: int = 0


@dataclass(frozen=True)
class PairRule:
    """Two name/value slots sharing one "unset" sentinel."""
    name_path: str
    value_path: str
    sentinel: str


# --- Character page ---

FIELD_RULES: dict[str, FieldRule] = {
    "level": FieldRule('//span[@class="level"]'),
    "character_class": FieldRule('//a[@class="class"]'),
    "race": FieldRule('//a[@class="race"]'),
    "achievement_points": FieldRule('//div[@class="achievements"]/a'),
    "health": FieldRule('//li[@class="health"]/span[@class="value"]'),
    "power": FieldRule('//li[@id="summary-power"]/span[@class="value"]'),
    "item_level": FieldRule('//div[@id="summary-averageilvl-best"]'),
}

PAIR_RULES: dict[str, PairRule] = {
    "professions": PairRule(
        name_path='//span[@class="profession-details"]/span[@class="name"]',
        value_path='//span[@class="profession-details"]/span[@class="value"]',
        sentinel="No profession",
    ),
    "talents": PairRule(
        name_path='//span[@class="name-build"]/span[@class="name"]',
        value_path='//span[@class="name-build"]/span[@class="build"]',
        sentinel="Talents",
    ),
}

STAT_PATH = '//li[@data-id]'
STAT_NAME_PATH = './span[@class="name"]'
STAT_VALUE_PATH = './span[@class="value"]'

# Equipment: one <div data-id="0..18"> per slot; paths below are relative to it
SLOT_PATH = '//div[@id="summary-inventory"]/div[@data-id]'
SLOT_RULES: dict[str, FieldRule] = {
    "name": FieldRule(f'.//div[@class="details"]/span[{has_class("name")}]'),
    "item_level": FieldRule(f'.//div[@class="details"]/span[{has_class("level")}]'),
    "enchant": FieldRule(f'.//div[@class="details"]/span[{has_class("enchant")}]'),
}
GEM_REF_PATH = f'.//div[@class="details"]//a[{has_class("gem")}]/@href'

# --- Talent page ---

GLYPH_COLUMN_PATH = '//div[@class="character-glyphs-column glyphs-{type}"]/ul/li[@class="filled"]'
GLYPH_NAME_PATH = './a/span[@class="name"]'
GLYPH_HREF_PATH = './a/@href'

# --- Statistic page ---

STATISTIC_NAME_PATH = '//dl/dt'
STATISTIC_VALUE_PATH = '//dl/dd'

# --- Guild pages ---

ROSTER_TOTAL_PATH = f'//*[{has_class("results-total")}]'
ROSTER_ROW_PATH = '(//tbody)[1]/tr'
# Roster columns: name, race, class, level, rank, achievement points
ROSTER_NAME_PATH = './td[1]'
ROSTER_LEVEL_PATH = './td[4]'
ROSTER_RANK_PATH = './td[5]'
ROSTER_IMAGE_PATH = './/img/@src'

GUILD_LEVEL_PATH = '//span[@class="level"]/strong'
GUILD_PERK_PATH = '//li[@id="p{index}"]/div/strong'
CONTRIBUTOR_PATH = '//td[@class="name"]/a'
MAX_CONTRIBUTORS = 5

# --- Item (gem) pages ---

TITLE_SEPARATOR = " - "

_NUMBER = re.compile(r"\d[\d,]*")
_TRAILING_NUMBER = re.compile(r"(\d+)$")
# Race/gender icons end in "<race>-<gender>.<ext>"
_GENDER_ICON = re.compile(r"-([01])\.\w+$")


def trailing_segment(url: str) -> str:
    """Last path segment of a URL, ignoring query string and trailing slash."""
    path = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1]


def _to_int(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    m = _NUMBER.search(text)
    return int(m.group().replace(",", "")) if m else None


class FieldExtractor:
    """Extracts typed records from parsed armory pages."""

    def __init__(self, field_rules: Optional[dict[str, FieldRule]] = None,
                 pair_rules: Optional[dict[str, PairRule]] = None):
        self.field_rules = field_rules or FIELD_RULES
        self.pair_rules = pair_rules or PAIR_RULES

    # --- Generic rule evaluation ---

    def query(self, doc: Document, path: str, context=None) -> list:
        """Raw nodes matching ``path``, in document order."""
        return doc.query(path, context)

    def apply(self, doc: Document, rule: FieldRule, context=None) -> ExtractedField[str]:
        """Evaluate one rule. A sentinel match is reported as absent."""
        result = doc.text(rule.path, rule.index, context)
        if result.present and rule.sentinel is not None and result.value == rule.sentinel:
            return ExtractedField[str].absent()
        return result

    def field(self, doc: Document, name: str) -> ExtractedField[str]:
        """Evaluate the named rule from the field table."""
        try:
            rule = self.field_rules[name]
        except KeyError:
            raise ValueError(f"Unknown field '{name}'") from None
        return self.apply(doc, rule)

    def pair(self, doc: Document, name: str) -> tuple[tuple[str, str], tuple[str, str]]:
        """
        Evaluate a paired rule.

        Each slot is checked on its own: a slot whose name is missing or
        equals the sentinel becomes ("", ""), whatever the other slot holds.
        """
        rule = self.pair_rules[name]
        names = doc.texts(rule.name_path)
        values = doc.texts(rule.value_path)

        slots = []
        for i in range(2):
            slot_name = names[i] if i < len(names) else ""
            if not slot_name or slot_name == rule.sentinel:
                slots.append(("", ""))
            else:
                slots.append((slot_name, values[i] if i < len(values) else ""))
        return slots[0], slots[1]

    # --- Character page ---

    def professions(self, doc: Document) -> tuple[Profession, Profession]:
        first, second = self.pair(doc, "professions")
        return Profession(name=first[0], value=first[1]), Profession(name=second[0], value=second[1])

    def talents(self, doc: Document) -> tuple[TalentTree, TalentTree]:
        first, second = self.pair(doc, "talents")
        return TalentTree(name=first[0], points=first[1]), TalentTree(name=second[0], points=second[1])

    def character_stats(self, doc: Document) -> dict[str, Stat]:
        """Every stat on the character sheet keyed by data-id; first occurrence wins."""
        stats: dict[str, Stat] = {}
        for node in doc.query(STAT_PATH):
            data_id = node.get("data-id", "").strip()
            if not data_id or data_id in stats:
                continue
            stats[data_id] = Stat(
                name=doc.text(STAT_NAME_PATH, context=node).value_or(""),
                value=doc.text(STAT_VALUE_PATH, context=node).value_or(""),
            )
        return stats

    def character_stat(self, doc: Document, data_id: str) -> Stat:
        stats = self.character_stats(doc)
        if data_id not in stats:
            raise ExtractionError(
                f"Stat '{data_id}' not found on character page",
                details={"stat": data_id}
            )
        return stats[data_id]

    def gem_refs(self, doc: Document, slot_node) -> list[str]:
        """Gem item links of one equipment slot, in markup order."""
        return [str(href).strip() for href in doc.query(GEM_REF_PATH, slot_node) if str(href).strip()]

    def equipped_items(
        self,
        doc: Document,
        resolve_gems: Optional[Callable[[Sequence[str]], list[str]]] = None
    ) -> list[EquippedItem]:
        """
        Extract all 19 equipment slots in slot order.

        A slot that is missing from the page or has no item name is returned
        as EquippedItem.empty_slot(), so list index == slot number always.
        Gem links are turned into names by ``resolve_gems`` when given.
        """
        slot_nodes = {}
        for node in doc.query(SLOT_PATH):
            slot = _to_int(node.get("data-id"))
            if slot is not None and 0 <= slot < EQUIPMENT_SLOTS and slot not in slot_nodes:
                slot_nodes[slot] = node

        items = []
        for slot in range(EQUIPMENT_SLOTS):
            node = slot_nodes.get(slot)
            if node is None:
                items.append(EquippedItem.empty_slot(slot))
                continue

            name = self.apply(doc, SLOT_RULES["name"], node).value_or("")
            if not name:
                items.append(EquippedItem.empty_slot(slot))
                continue

            refs = self.gem_refs(doc, node)
            gems = resolve_gems(refs) if (resolve_gems and refs) else []
            items.append(EquippedItem(
                slot=slot,
                name=name,
                item_level=self.apply(doc, SLOT_RULES["item_level"], node).value_or(""),
                enchant=self.apply(doc, SLOT_RULES["enchant"], node).value_or(""),
                gems=tuple(gems),
            ))

        equipped = sum(1 for item in items if item.equipped)
        logger.info(f"Extracted {equipped}/{EQUIPMENT_SLOTS} equipped items")
        return items

    # --- Talent page ---

    def glyphs(self, doc: Document) -> list[Glyph]:
        """Glyphs in column order major, minor, prime; markup order within a column."""
        glyphs = []
        for glyph_type in (GlyphType.MAJOR, GlyphType.MINOR, GlyphType.PRIME):
            for node in doc.query(GLYPH_COLUMN_PATH.format(type=glyph_type.value)):
                name = doc.text(GLYPH_NAME_PATH, context=node)
                if not name.present or not name.value:
                    continue
                url = doc.text(GLYPH_HREF_PATH, context=node).value_or("")
                glyphs.append(Glyph(
                    name=name.value,
                    type=glyph_type,
                    url=url,
                    item_id=trailing_segment(url) if url else "",
                ))
        return glyphs

    # --- Statistic page ---

    def statistic_names(self, doc: Document) -> list[str]:
        return doc.texts(STATISTIC_NAME_PATH)

    def statistic(self, doc: Document, name: str) -> str:
        """
        Value of the statistic called ``name``.

        Statistics are a <dt>/<dd> list without keys: the value is the <dd>
        at the ordinal of the first <dt> whose normalized text equals the
        normalized ``name`` (NFC, whitespace runs collapsed, trimmed).
        """
        wanted = normalize_text(name)
        for ordinal, stat_name in enumerate(self.statistic_names(doc)):
            if stat_name == wanted:
                value = doc.text(STATISTIC_VALUE_PATH, index=ordinal)
                if not value.present:
                    raise ExtractionError(
                        f"Statistic '{wanted}' has no value",
                        details={"statistic": wanted, "position": ordinal}
                    )
                return value.value
        raise ExtractionError(
            f"Statistic '{wanted}' not found",
            details={"statistic": wanted}
        )

    # --- Guild pages ---

    def roster_total(self, doc: Document) -> int:
        """Total member count shown on a roster page."""
        total = _to_int(doc.text(ROSTER_TOTAL_PATH).value)
        if total is None:
            raise ExtractionError(
                "Guild size not found on roster page",
                details={"path": ROSTER_TOTAL_PATH}
            )
        return total

    def roster_rows(self, doc: Document, filter_level: Optional[int] = None) -> list[GuildRosterEntry]:
        """
        Members listed on one roster page, in document order.

        ``filter_level`` drops rows whose level differs; it is checked first
        so the name/rank lookups only run for kept rows.
        """
        entries = []
        for row in doc.query(ROSTER_ROW_PATH):
            level = _to_int(doc.text(ROSTER_LEVEL_PATH, context=row).value)
            if filter_level is not None and level != filter_level:
                continue

            name = doc.text(ROSTER_NAME_PATH, context=row).value_or("")
            if not name:
                continue

            rank_text = doc.text(ROSTER_RANK_PATH, context=row).value_or("")
            m = _TRAILING_NUMBER.search(rank_text)
            rank = m.group(1) if m else (rank_text or None)

            gender_id = None
            icon = doc.text(ROSTER_IMAGE_PATH, context=row)
            if icon.present:
                g = _GENDER_ICON.search(icon.value)
                gender_id = int(g.group(1)) if g else None

            entries.append(GuildRosterEntry(name=name, rank=rank, level=level, gender_id=gender_id))
        return entries

    def guild_level(self, doc: Document) -> int:
        level = _to_int(doc.text(GUILD_LEVEL_PATH).value)
        if level is None:
            raise ExtractionError("Guild level not found on perks page")
        return level

    def guild_perks(self, doc: Document) -> list[str]:
        """Perk names p1 .. p(level-1) unlocked at the guild's level."""
        perks = []
        for index in range(1, self.guild_level(doc)):
            perk = doc.text(GUILD_PERK_PATH.format(index=index))
            if perk.present and perk.value:
                perks.append(perk.value)
        return perks

    def top_contributors(self, doc: Document, limit: int = MAX_CONTRIBUTORS) -> list[str]:
        return doc.texts(CONTRIBUTOR_PATH)[:limit]

    # --- Item pages ---

    def gem_name(self, doc: Document) -> ExtractedField[str]:
        """Display name from an item page title ("<name> - Item - ...")."""
        title = doc.title
        if not title.present:
            return title
        name = title.value.split(TITLE_SEPARATOR, 1)[0].strip()
        return ExtractedField[str].of(name) if name else ExtractedField[str].absent()


def gender_from_roster(entries: Sequence[GuildRosterEntry], character: str) -> Optional[int]:
    """Gender id of ``character`` (case-insensitive) in roster entries, None if unlisted."""
    wanted = character.lower()
    for entry in entries:
        if entry.name.lower() == wanted:
            return entry.gender_id
    return None
