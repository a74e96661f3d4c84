"""
Display helpers for EA values: crests, divisions, reputation tiers, dates.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from proclubs.utils.helpers import parse_optional_int

NOT_FOUND_CREST_URL = (
    "https://media.contentapi.ea.com/content/dam/eacom/fc/pro-clubs/notfound-crest.png"
)
CREST_URL_TEMPLATE = (
    "https://eafc24.content.easports.com/fifa/fltOnlineAssets/"
    "24B23FDE-7835-41C2-87A2-F453DFDB2E82/2024/fcweb/crests/256x256/l{badge_id}.png"
)
DIVISION_CREST_URL_TEMPLATE = (
    "https://media.contentapi.ea.com/content/dam/eacom/fc/pro-clubs/divisioncrest{division}.png"
)

DIVISION_NAMES = {
    "1": "Elite",
    "2": "Division 1",
    "3": "Division 2",
    "4": "Division 3",
    "5": "Division 4",
    "6": "Division 5",
}

# Only tier 1 has been confirmed against EA's own pages
REPUTATION_TIERS = {
    "1": "Emerging Stars",
    "2": "Well Known",
    "3": "Popular",
    "4": "Renowned",
    "5": "Elite",
    "6": "Legendary",
}


def get_club_badge_url(club: Any) -> str:
    """
    Crest URL for a club info record.

    customKit.selectedKitType 1 means a custom crest (crestAssetId),
    anything else is a licensed team crest (teamId).
    """
    if not isinstance(club, dict) or not club:
        return NOT_FOUND_CREST_URL

    custom_kit = club.get("customKit") if isinstance(club.get("customKit"), dict) else {}
    if custom_kit.get("selectedKitType") in (1, "1"):
        badge_id = custom_kit.get("crestAssetId")
    else:
        badge_id = club.get("teamId")

    if not badge_id:
        return NOT_FOUND_CREST_URL
    return CREST_URL_TEMPLATE.format(badge_id=badge_id)


def get_division_badge_url(division: Any) -> Optional[str]:
    """Division crest URL, or None when division is unknown."""
    if not division:
        return None
    return DIVISION_CREST_URL_TEMPLATE.format(division=division)


def get_division_name(division: Any) -> str:
    if not division:
        return "Unknown"
    return DIVISION_NAMES.get(str(division), "Unknown")


def format_division(division: Any) -> str:
    """Short division label used on club cards ("Elite", "Div 1", ...)."""
    div = str(division)
    if div == "1":
        return "Elite"
    number = parse_optional_int(div)
    if number is not None and 2 <= number <= 6:
        return f"Div {number - 1}"
    return f"Div {div}"


def get_reputation_name(tier: Any) -> str:
    if not tier:
        return "Unknown"
    return REPUTATION_TIERS.get(str(tier), "Unknown")


def format_result(result: Optional[str]) -> str:
    """Collapse EA result words ("win", "loss", "draw", "w", ...) to W/L/D."""
    if not result:
        return "-"
    lowered = result.lower()
    if "win" in lowered or lowered == "w":
        return "W"
    if "loss" in lowered or lowered == "l":
        return "L"
    if "draw" in lowered or lowered == "d":
        return "D"
    return result


def timestamp_to_datetime(timestamp: Any) -> Optional[datetime]:
    """EA timestamps are UNIX seconds; returns an aware UTC datetime."""
    seconds = parse_optional_int(timestamp)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_date(timestamp: Any) -> str:
    """
    Format an EA timestamp (seconds) as "Nov 14, 2023".

    Returns "-" for empty values and the raw value when it cannot be parsed.
    """
    if not timestamp:
        return "-"
    dt = timestamp_to_datetime(timestamp)
    if dt is None:
        return str(timestamp)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"
