"""
Shared pytest fixtures: a controllable clock, a scripted transport that
counts calls, and builders for synthetic armory pages. No test touches the
network.
"""

from typing import Optional, Sequence, Union

import pytest

from roster_api.cache import CacheStore
from roster_api.config import FetchPolicy, Settings
from roster_api.exceptions import NetworkError
from roster_api.fetcher import Fetcher

BASE = "http://armory.test/wow/en/"
CHAR_URL = BASE + "character/"
GUILD_URL = BASE + "guild/"
ITEM_URL = BASE + "item/"


class FakeClock:
    """Synthetic POSIX clock; advance() moves time forward."""

    def __init__(self, now: float = 1_600_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedTransport:
    """
    Stand-in for the HTTP transport.

    ``responses`` maps URL → bytes, a list of bytes (served in order, the
    last one repeating) or an exception instance to raise.
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses = dict(responses or {})
        self.requested: list[str] = []

    def __call__(self, url: str) -> bytes:
        self.requested.append(url)
        try:
            script = self.responses[url]
        except KeyError as exc:
            raise AssertionError(f"Unexpected URL requested: {url}") from exc

        if isinstance(script, Exception):
            raise script
        if isinstance(script, list):
            return script.pop(0) if len(script) > 1 else script[0]
        return script

    def calls_to(self, url: str) -> int:
        return self.requested.count(url)


def network_error(url: str) -> NetworkError:
    return NetworkError("Connection refused", url=url)


# --- Page builders ---

def _page(body: str, title: str = "World of Warcraft") -> bytes:
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\" />\n"
        f"<title>{title}</title>\n</head>\n<body>\n{body}\n</body>\n</html>"
    ).encode("utf-8")


def item_slot(slot: int, name: Optional[str] = None, level: str = "359",
              enchant: Optional[str] = None, gems: Sequence[str] = ()) -> str:
    """One inventory slot; ``name=None`` renders the armory's empty slot."""
    if name is None:
        return (
            f'<div data-id="{slot}" class="slot slot-{slot + 1} item-quality-0">'
            '<div class="slot-inner"><div class="slot-contents">'
            '<a href="javascript:;" class="empty"><span class="frame"></span></a>'
            '</div></div></div>'
        )
    enchant_html = (
        f'<span class="enchant color-q2"><a href="/wow/en/item/9{slot}">{enchant}</a></span>'
        if enchant else ""
    )
    gems_html = "".join(
        f'<span class="icon-socket socket-1"><a href="/wow/en/item/{gem}" class="gem">'
        f'<img src="/icons/{gem}.jpg" alt="" /></a></span>'
        for gem in gems
    )
    return (
        f'<div data-id="{slot}" class="slot slot-{slot + 1}">\n'
        '  <div class="slot-inner"><div class="slot-contents">\n'
        f'    <a href="/wow/en/item/{1000 + slot}" class="item"></a>\n'
        '    <div class="details">\n'
        f'      <span class="name-shadow">{name}</span>\n'
        f'      <span class="name color-q4"><a href="/wow/en/item/{1000 + slot}">{name}</a></span>\n'
        f'      {enchant_html}\n'
        f'      <span class="level">{level}</span>\n'
        f'      <span class="sockets">{gems_html}</span>\n'
        '    </div>\n'
        '  </div></div>\n'
        '</div>'
    )


def character_page(
    level: str = "85",
    race: str = "Blood Elf",
    character_class: str = "Mage",
    achievement_points: str = "8025",
    health: str = "120,345",
    power: Optional[str] = "98,000",
    item_level: Optional[str] = "353",
    professions: Sequence[tuple[str, str]] = (("Tailoring", "525"), ("Enchanting", "510")),
    talents: Sequence[tuple[str, str]] = (("Fire", "2/31/8"), ("Frost", "10/0/31")),
    stats: Sequence[tuple[str, str, str]] = (("strength", "Strength", "42"),
                                              ("spellhaste", "Haste", "12.5%")),
    slots: Sequence[str] = (),
) -> bytes:
    power_html = (
        f'<li id="summary-power" class="resource-0"><span class="name">Mana</span>'
        f'<span class="value">{power}</span></li>' if power is not None else ""
    )
    ilvl_html = (
        f'<div id="summary-averageilvl-best" class="best tip">{item_level}</div>'
        if item_level is not None else ""
    )
    profession_html = "".join(
        f'<span class="profession-details"><span class="name">{n}</span>'
        f'<span class="value">{v}</span></span>\n' for n, v in professions
    )
    talent_html = "".join(
        f'<span class="name-build"><span class="name">{n}</span>'
        f'<span class="build">{b}</span></span>\n' for n, b in talents
    )
    stat_html = "".join(
        f'<li data-id="{i}"><span class="name">{n}</span><span class="value">{v}</span></li>\n'
        for i, n, v in stats
    )
    body = f"""
<div class="profile-info">
  <div class="under-name">
    <span class="level">{level}</span>
    <a href="/wow/en/game/race/blood-elf" class="race">{race}</a>
    <a href="/wow/en/game/class/mage" class="class">{character_class}</a>
  </div>
  <div class="achievements"><a href="/achievement">{achievement_points}</a></div>
</div>
<div id="summary-averageilvl">{ilvl_html}</div>
<ul class="summary-health-resource">
  <li class="health"><span class="name">Health</span><span class="value">{health}</span></li>
  {power_html}
</ul>
<div class="summary-professions">
{profession_html}</div>
<div class="summary-talents">
{talent_html}</div>
<ul class="summary-stats">
{stat_html}</ul>
<div id="summary-inventory" class="summary-inventory">
{chr(10).join(slots)}
</div>
"""
    return _page(body, "Kastang @ Eitrigg - Game - World of Warcraft")


def talent_page(glyphs: dict[str, Sequence[tuple[str, str]]]) -> bytes:
    """``glyphs`` maps major/minor/prime → [(name, item id)]."""
    columns = []
    for glyph_type in ("prime", "major", "minor"):
        items = "".join(
            f'<li class="filled"><a href="/wow/en/item/{item_id}">'
            f'<span class="icon"></span><span class="name">{name}</span></a></li>\n'
            for name, item_id in glyphs.get(glyph_type, ())
        )
        items += '<li class="empty"><span class="name">Empty</span></li>\n'
        columns.append(
            f'<div class="character-glyphs-column glyphs-{glyph_type}">\n<ul>\n{items}</ul>\n</div>'
        )
    return _page("\n".join(columns))


def statistic_page(entries: Sequence[tuple[str, str]]) -> bytes:
    rows = "".join(f"<dt>\n  {name}\n</dt>\n<dd>\n  {value}\n</dd>\n" for name, value in entries)
    return _page(f'<div class="statistic"><dl>\n{rows}</dl></div>')


def roster_page(total: Optional[Union[int, str]],
                members: Sequence[tuple[str, int, str, int]] = ()) -> bytes:
    """``members`` rows are (name, level, rank text, gender id)."""
    total_html = (
        f'<div class="table-options"><strong class="results-total">{total}</strong> results</div>'
        if total is not None else ""
    )
    rows = "".join(
        f'<tr class="row{i % 2 + 1}">\n'
        f'  <td class="name"><strong><a href="/wow/en/character/eitrigg/{name}/">{name}</a></strong></td>\n'
        f'  <td class="race"><img src="/wow/static/images/icons/race/10-{gender}.gif" alt="" /></td>\n'
        f'  <td class="cls"><img src="/wow/static/images/icons/class/8.gif" alt="" /></td>\n'
        f'  <td class="lvl">{level}</td>\n'
        f'  <td class="rank">{rank}</td>\n'
        f'  <td class="ach-points">1000</td>\n'
        '</tr>\n'
        for i, (name, level, rank, gender) in enumerate(members)
    )
    body = (
        f'<div id="roster">{total_html}\n'
        '<table><thead><tr><th>Name</th><th>Race</th><th>Class</th><th>Level</th>'
        f'<th>Rank</th><th>Points</th></tr></thead>\n<tbody>\n{rows}</tbody></table></div>'
    )
    return _page(body)


def perks_page(level: Union[int, str], perks: Sequence[str]) -> bytes:
    items = "".join(
        f'<li id="p{i}" class="unlocked"><div><strong>{name}</strong>'
        f'<span class="desc">Perk description</span></div></li>\n'
        for i, name in enumerate(perks, 1)
    )
    return _page(
        f'<div class="guild-level"><span class="level"><strong>{level}</strong></span></div>\n'
        f'<ul class="perks">\n{items}</ul>'
    )


def guild_summary_page(contributors: Sequence[str]) -> bytes:
    rows = "".join(
        f'<tr><td class="rank">{i}</td><td class="name"><a href="/wow/en/character/eitrigg/{name}/">'
        f'{name}</a></td><td class="score">{1000 - i}</td></tr>\n'
        for i, name in enumerate(contributors, 1)
    )
    return _page(f'<div class="guild-news"><table class="contributors">\n<tbody>\n{rows}</tbody></table></div>')


def gem_page(name: str) -> bytes:
    return _page('<div class="item-detail"><h2>Gem</h2></div>',
                 f"{name} - Item - World of Warcraft")


# --- Fixtures ---

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock) -> CacheStore:
    return CacheStore(tmp_path / "cache", clock=clock)


@pytest.fixture
def policy() -> FetchPolicy:
    return FetchPolicy(max_age=3600, max_retries=5, retry_backoff=0.5)


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def fetcher(cache, policy, transport, sleeps) -> Fetcher:
    return Fetcher(cache, policy=policy, transport=transport, sleep=sleeps.append)


@pytest.fixture
def settings(tmp_path, policy) -> Settings:
    return Settings(
        char_page_url=CHAR_URL,
        guild_page_url=GUILD_URL,
        cache_dir=tmp_path / "cache",
        policy=policy,
    )
