"""
Parses episode selection expressions such as '1.1,2.3-2.5,3.2-4'.
"""

import re

from soaper_dl.exceptions import SelectionError

_SINGLE_REGEX = re.compile(r"^(\d+)\.(\d+)$")
_RANGE_REGEX = re.compile(r"^(\d+)\.(\d+)-(?:(\d+)\.)?(\d+)$")


def episode_sort_key(number: str) -> tuple[int, ...]:
    """Version-style ordering: '1.10' sorts after '1.9'."""
    return tuple(int(part) for part in number.split("."))


def parse_episode_expr(expression: str) -> list[str]:
    """
    Expands a selection into unique 'S.E' numbers in playback order.

    Each comma-separated item is either 'S.E' or a range within one season,
    written 'S.A-S.B' or 'S.A-B'.

    Raises:
        SelectionError: For malformed items, cross-season or reversed ranges,
            or an empty selection.
    """
    episodes: set[str] = set()
    for raw_item in expression.split(","):
        item = raw_item.strip()
        if not item:
            continue

        if match := _SINGLE_REGEX.match(item):
            season, episode = (int(g) for g in match.groups())
            episodes.add(f"{season}.{episode}")
            continue

        match = _RANGE_REGEX.match(item)
        if not match:
            raise SelectionError(f"Invalid episode number: '{item}'")

        season, start = int(match.group(1)), int(match.group(2))
        end_season = int(match.group(3)) if match.group(3) else season
        end = int(match.group(4))
        if end_season != season:
            raise SelectionError(f"Episode range '{item}' spans more than one season.")
        if end < start:
            raise SelectionError(f"Episode range '{item}' is reversed.")
        episodes.update(f"{season}.{n}" for n in range(start, end + 1))

    if not episodes:
        raise SelectionError("Wrong episode number!")
    return sorted(episodes, key=episode_sort_key)
