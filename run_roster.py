#!/usr/bin/env python3
"""
Example driver: dump a character profile and/or guild roster as JSON.

Configuration (cache dir, cache time, URL prefixes, retries) comes from the
environment or a .env file; see roster_api.config.load_settings.

Usage:
    python run_roster.py Eitrigg --character Kastang
    python run_roster.py Eitrigg --guild "We Know" --level 85
    python run_roster.py Eitrigg --character Kastang --statistic 130 "Beverages consumed"
"""

import argparse
import json
import logging
import sys

from roster_api import RosterAPI, RosterAPIError, load_settings


def main():
    parser = argparse.ArgumentParser(description="Pull character and guild data from the armory")
    parser.add_argument("server", help="Realm name")
    parser.add_argument("--character", "-c", help="Character name")
    parser.add_argument("--guild", "-g", help="Guild name")
    parser.add_argument("--level", "-l", type=int, help="Only list guild members of this level")
    parser.add_argument(
        "--statistic", "-s",
        nargs=2,
        metavar=("CATEGORY", "NAME"),
        help="Print one statistic, e.g. 131 'Number of hugs'"
    )
    parser.add_argument("--env-file", help="Read settings from this .env file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    settings = load_settings(args.env_file)

    try:
        api = RosterAPI(
            args.server,
            character=args.character,
            guild=args.guild,
            settings=settings,
            log_level=logging.DEBUG if args.verbose else logging.WARNING
        )

        output = {}
        if args.character:
            output["profile"] = api.profile().model_dump(mode="json")
            if args.statistic:
                category, name = args.statistic
                output["statistic"] = {"name": name, "value": api.statistic(category, name)}
        if args.guild:
            members = api.guild_members(filter_level=args.level)
            output["roster"] = [m.model_dump(mode="json") for m in members]
            output["perks"] = api.guild_perks()
            output["top_weekly_contributors"] = api.top_weekly_contributors()
    except RosterAPIError as e:
        print(f"✗ {type(e).__name__}: {e.message}", file=sys.stderr)
        sys.exit(1)

    # ensure_ascii=False keeps accented realm/character names readable
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
