"""Runner name and finish time normalization.

Every results site formats names and times differently. All scrapers go
through these functions so results are comparable across sources.

Name matching is loose: first and last token equality is
enough, so "John Q Smith" matches "John Smith". Two different people who
share a first and last name will both match; that case surfaces as an
ambiguous result for an operator to resolve.
"""

import math
import re

MARATHON_MILES = 26.2
HALF_MARATHON_MILES = 13.1

_HMS_COLON = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
_HMS_UNITS = re.compile(r"(\d+)h\s*(\d+)m\s*(\d+)s", re.IGNORECASE)
_FRACTIONAL = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})\.(\d+)$")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """
    Canonicalize a runner name for comparison.

    Lowercases, trims, turns "Last, First" into "first last" and collapses
    runs of whitespace.
    """
    if not name:
        return ""

    normalized = name.lower().strip()

    if "," in normalized:
        parts = [part.strip() for part in normalized.split(",")]
        last, first = parts[0], parts[1]
        normalized = f"{first} {last}"

    return _WHITESPACE.sub(" ", normalized).strip()


def names_match(name1: str | None, name2: str | None) -> bool:
    """Check whether two runner names refer to the same person (loosely)."""
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)

    if not n1 or not n2:
        return False

    if n1 == n2:
        return True

    # Middle names and initials are ignored
    parts1 = n1.split(" ")
    parts2 = n2.split(" ")
    if len(parts1) >= 2 and len(parts2) >= 2:
        return parts1[0] == parts2[0] and parts1[-1] == parts2[-1]

    return False


def split_name(name: str) -> tuple[str, str]:
    """Split a display name into (first, last); single tokens are last names."""
    parts = name.strip().split()
    if len(parts) <= 1:
        return "", parts[0] if parts else ""
    return parts[0], " ".join(parts[1:])


def normalize_time(time_string: str | None) -> str | None:
    """
    Canonicalize a finish time to h:mm:ss.

    Accepts "3:42:15", "03:42:15" and "3h 42m 15s". Anything else is
    returned trimmed.
    """
    if not time_string:
        return None

    cleaned = time_string.strip()

    match = _HMS_COLON.match(cleaned)
    if match:
        hours, minutes, seconds = match.groups()
        return f"{int(hours)}:{minutes}:{seconds}"

    match = _HMS_UNITS.search(cleaned)
    if match:
        hours, minutes, seconds = match.groups()
        return f"{int(hours)}:{int(minutes):02d}:{int(seconds):02d}"

    return cleaned


def round_time(time_string: str | None) -> str | None:
    """Round fractional seconds ("3:42:15.6" -> "3:42:16"), carrying upward."""
    if not time_string:
        return None

    cleaned = time_string.strip()
    match = _FRACTIONAL.match(cleaned)
    if not match:
        return cleaned

    hours, minutes, seconds, fraction = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
    if float(f"0.{fraction}") >= 0.5:
        total += 1

    return _format_seconds(total)


def format_time(time: str | None) -> str | None:
    """
    Format a finish time for display.

    Strips exactly one leading zero from the hour: "04:14:45" -> "4:14:45",
    "00:45:30" -> "0:45:30".
    """
    if not time:
        return None
    return re.sub(r"^0(\d):", r"\1:", time)


def format_pace(pace: str | None) -> str | None:
    """Format a pace for display, stripping one leading zero from the minutes."""
    if not pace:
        return None
    return re.sub(r"^0(\d)", r"\1", pace.strip())


def time_to_seconds(time: str | None) -> int | None:
    """Convert h:mm:ss or mm:ss to total seconds."""
    if not time:
        return None

    parts = time.strip().split(":")
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return None
    return None


def calculate_pace(time: str | None, distance_miles: float = MARATHON_MILES) -> str | None:
    """
    Calculate per-mile pace (m:ss) from a finish time.

    A remainder that rounds to 60 seconds carries into the next minute, so
    the result never reads "X:60".
    """
    total_seconds = time_to_seconds(time)
    if total_seconds is None or not distance_miles:
        return None

    pace_seconds = total_seconds / distance_miles
    pace_minutes = math.floor(pace_seconds / 60)
    remainder = math.floor(pace_seconds % 60 + 0.5)

    if remainder == 60:
        pace_minutes += 1
        remainder = 0

    return f"{pace_minutes}:{remainder:02d}"


def event_distance_miles(event_type: str | None, default: float = MARATHON_MILES) -> float:
    """Distance for an event label; anything not a half marathon uses the default."""
    if event_type and "half" in event_type.lower():
        return HALF_MARATHON_MILES
    return default


def _format_seconds(total: int) -> str:
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"
