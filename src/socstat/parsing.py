"""Pure parsing and scoring helpers shared by the readers."""

import re
from collections.abc import Sequence

NUMBER_RE = re.compile(r"[-+]?[0-9]+(?:\.[0-9]+)?")

FREQ_MIN_MHZ = 1
FREQ_MAX_MHZ = 6000

TEMP_MIN_C = 5.0
TEMP_MAX_C = 150.0

# Celsius, deci-, centi-, milli-, 1e-4 and micro-degrees
TEMP_DIVISORS = (1, 10, 100, 1000, 10000, 1_000_000)

GENERIC_THERMAL_KEYWORDS = ("tsens", "tmu", "therm", "sensor")


def first_number_token(text: str) -> str | None:
    """Return the first signed integer or decimal token in text."""
    match = NUMBER_RE.search(text)
    return match.group(0) if match else None


def first_int(text: str | None) -> int | None:
    """Parse the first numeric token as an integer; decimals are rejected."""
    if text is None:
        return None
    token = first_number_token(text)
    if token is None:
        return None
    try:
        return int(token)
    except ValueError:
        return None


def normalize_to_mhz(raw: int | None) -> int | None:
    """
    Convert a raw frequency reading to MHz by magnitude.

    Hz (>= 10,000,000) and kHz (>= 10,000) are scaled down; anything smaller
    is taken as MHz already. Results outside 1-6000 MHz are rejected.
    """
    if raw is None or raw <= 0:
        return None
    if raw >= 10_000_000:
        mhz = raw // 1_000_000
    elif raw >= 10_000:
        mhz = raw // 1_000
    else:
        mhz = raw
    if FREQ_MIN_MHZ <= mhz <= FREQ_MAX_MHZ:
        return mhz
    return None


def in_temp_range(value: float) -> bool:
    return TEMP_MIN_C <= value <= TEMP_MAX_C


def parse_temp_celsius(raw: str, last: float | None = None) -> float | None:
    """
    Interpret a raw sensor string as degrees Celsius.

    Sensors report in whole, deci-, milli- or micro-degrees with no unit, so
    every divisor is tried and only plausible results are kept. With a
    previous reading the closest plausible result wins, otherwise the first.
    """
    token = first_number_token(raw)
    if token is None:
        return None
    try:
        value = float(token)
    except ValueError:
        return None

    options = [value / divisor for divisor in TEMP_DIVISORS]
    options = [opt for opt in options if in_temp_range(opt)]
    if not options:
        return None
    if last is None:
        return options[0]
    return min(options, key=lambda opt: abs(opt - last))


def score_label(label: str, prefer: Sequence[str], avoid: Sequence[str]) -> int:
    """
    Score a sensor label against keyword lists.

    Earlier prefer keywords weigh more; any avoid keyword sinks the label.
    Labels that look like generic thermal sensors get a small bonus.
    """
    low = label.lower()
    score = 0
    for i, keyword in enumerate(prefer):
        if keyword in low:
            score += 120 - i * 6
    for keyword in avoid:
        if keyword in low:
            score -= 200
    if any(keyword in low for keyword in GENERIC_THERMAL_KEYWORDS):
        score += 6
    return score


def parse_freq_list_mhz(raw: str | None) -> tuple[int, ...]:
    """Parse a whitespace/comma separated frequency table into sorted MHz."""
    if not raw:
        return ()
    values = set()
    for part in re.split(r"[\s,]+", raw.strip()):
        try:
            mhz = normalize_to_mhz(int(part))
        except ValueError:
            continue
        if mhz is not None:
            values.add(mhz)
    return tuple(sorted(values))


def clamp_unit(value: float) -> float:
    """Clamp a ratio to [0, 1]."""
    return min(1.0, max(0.0, value))
