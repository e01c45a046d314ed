"""Temperature discovery and sampling across thermal zones, hwmon and dumpsys."""

import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from socstat.access import SysfsAccess
from socstat.parsing import (
    first_number_token,
    in_temp_range,
    parse_temp_celsius,
    score_label,
)

logger = logging.getLogger(__name__)

THERMAL_CLASS = "/sys/class/thermal"
HWMON_CLASS = "/sys/class/hwmon"
DUMPSYS_THERMAL_CMD = "dumpsys thermalservice"

RESCAN_INTERVAL = 45.0
DUMPSYS_INTERVAL = 12.0
JUMP_WINDOW = 5.0
JUMP_THRESHOLD_C = 15.0

MAX_CANDIDATES = 16
READ_CANDIDATES = 6
MAX_READINGS = 3

_NAME_PATTERNS = (
    re.compile(r"mName=([^,}]+)"),
    re.compile(r"name=([^,}]+)"),
)
_VALUE_PATTERNS = (
    re.compile(r"mValue=([-+]?[0-9]+(?:\.[0-9]+)?)"),
    re.compile(r"value=([-+]?[0-9]+(?:\.[0-9]+)?)"),
)


@dataclass(slots=True, frozen=True)
class TempDomain:
    """Keyword lists that steer sensor selection for one subsystem."""

    label: str
    prefer: tuple[str, ...]
    avoid: tuple[str, ...]
    dumpsys_prefer: tuple[str, ...]
    dumpsys_avoid: tuple[str, ...]


CPU_DOMAIN = TempDomain(
    label="CPU",
    prefer=("mtktscpu", "cpu", "apss", "cpuss", "soc", "tsens", "big", "little", "cluster"),
    avoid=("battery", "charger", "skin", "usb", "wifi", "modem", "pmic"),
    dumpsys_prefer=("cpu", "apss", "cpuss", "soc"),
    dumpsys_avoid=("battery", "skin", "usb"),
)

GPU_DOMAIN = TempDomain(
    label="GPU",
    prefer=("gpu", "gpuss", "gfx", "mali", "adreno", "kgsl", "vgpu"),
    avoid=("battery", "charger", "skin", "usb", "wifi", "modem", "pmic", "cpu", "apss"),
    dumpsys_prefer=("gpu", "gpuss", "gfx", "mali", "adreno"),
    dumpsys_avoid=("battery", "skin", "usb"),
)


@dataclass(slots=True, frozen=True)
class TempCandidate:
    """A temperature node and how well its label matches the domain."""

    path: str
    label: str
    score: int


@dataclass(slots=True)
class TempCache:
    """Mutable per-domain resolver state."""

    candidates: list[TempCandidate] = field(default_factory=list)
    last_value: float | None = None
    last_source: str = ""
    last_update: float | None = None
    last_scan: float | None = None
    last_fallback: float | None = None


def scan_candidates(access: SysfsAccess, domain: TempDomain) -> list[TempCandidate]:
    """Enumerate thermal-zone and hwmon temperature nodes, best first."""
    found: list[TempCandidate] = []

    for entry in access.list_dir(THERMAL_CLASS):
        if not entry.startswith("thermal_zone"):
            continue
        zone = f"{THERMAL_CLASS}/{entry}"
        temp_path = f"{zone}/temp"
        if not access.exists(temp_path):
            continue
        zone_type = access.read(f"{zone}/type", fallback=False) or ""
        label = f"thermal:{zone_type}"
        found.append(TempCandidate(temp_path, label, score_label(label, domain.prefer, domain.avoid)))

    for entry in access.list_dir(HWMON_CLASS):
        hwmon = f"{HWMON_CLASS}/{entry}"
        name = access.read(f"{hwmon}/name", fallback=False) or entry
        for node in access.list_dir(hwmon):
            if not (node.startswith("temp") and node.endswith("_input")):
                continue
            channel = node[len("temp") : -len("_input")]
            channel_label = access.read(f"{hwmon}/temp{channel}_label", fallback=False) or ""
            label = f"hwmon:{name} {channel_label}".strip()
            found.append(
                TempCandidate(f"{hwmon}/{node}", label, score_label(label, domain.prefer, domain.avoid))
            )

    # sorted() is stable, so equal scores keep discovery order
    return sorted(found, key=lambda c: c.score, reverse=True)


def parse_dumpsys_thermal(
    text: str, prefer: Sequence[str], avoid: Sequence[str]
) -> tuple[float | None, str]:
    """
    Pick the best-matching temperature out of ``dumpsys thermalservice``.

    Output formats differ between Android releases, so each line is scanned
    for any of the known name/value spellings.
    """
    best_score: int | None = None
    best_temp: float | None = None
    best_name = ""

    for line in text.splitlines():
        low = line.lower()
        if "battery" in low or "charger" in low:
            continue

        name = ""
        for pattern in _NAME_PATTERNS:
            match = pattern.search(line)
            if match:
                name = match.group(1).strip()
                break

        value_str = None
        for pattern in _VALUE_PATTERNS:
            match = pattern.search(line)
            if match:
                value_str = match.group(1)
                break
        if value_str is None:
            value_str = first_number_token(line)
        if value_str is None:
            continue
        try:
            value = float(value_str)
        except ValueError:
            continue
        if not in_temp_range(value):
            continue

        score = score_label(f"dumpsys:{name} {line}", prefer, avoid)
        if best_score is None or score > best_score:
            best_score = score
            best_temp = value
            best_name = name or "unknown"

    if best_temp is None:
        return None, ""
    return best_temp, f"dumpsys:{best_name}"


class TemperatureResolver:
    """
    Resolves one domain's temperature from whatever sensors the device has.

    Candidate nodes are rescanned every 45 seconds, the top few are averaged
    to damp single-sensor jitter, and ``dumpsys thermalservice`` is used as a
    throttled last resort. Sudden jumps within a few seconds are treated as
    unit misreads and replaced with the cached value.
    """

    def __init__(
        self,
        domain: TempDomain,
        access: SysfsAccess,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._domain = domain
        self._access = access
        self._clock = clock
        self._cache = TempCache()

    @property
    def domain(self) -> TempDomain:
        return self._domain

    @property
    def cache(self) -> TempCache:
        """Get the resolver's cache (read it, do not share it with consumers)."""
        return self._cache

    def resolve(self) -> tuple[float | None, str]:
        """Return ``(celsius, source label)`` for the current tick."""
        cache = self._cache
        label = self._domain.label
        now = self._clock()

        if not cache.candidates or cache.last_scan is None or now - cache.last_scan > RESCAN_INTERVAL:
            cache.candidates = scan_candidates(self._access, self._domain)[:MAX_CANDIDATES]
            cache.last_scan = now
            logger.debug("%s: rescanned, %d temperature candidates", label, len(cache.candidates))

        picked, source = self._sample_candidates()

        if picked is None and (cache.last_fallback is None or now - cache.last_fallback > DUMPSYS_INTERVAL):
            cache.last_fallback = now
            dump = self._access.run(DUMPSYS_THERMAL_CMD) or ""
            picked, dump_source = parse_dumpsys_thermal(
                dump, self._domain.dumpsys_prefer, self._domain.dumpsys_avoid
            )
            if picked is not None:
                source = dump_source or DUMPSYS_THERMAL_CMD
                logger.debug("%s: temperature from dumpsys fallback (%s)", label, source)

        if (
            picked is not None
            and cache.last_value is not None
            and cache.last_update is not None
            and now - cache.last_update < JUMP_WINDOW
            and abs(picked - cache.last_value) > JUMP_THRESHOLD_C
        ):
            logger.debug("%s: rejected jump %.1f -> %.1f", label, cache.last_value, picked)
            return cache.last_value, f"{label} cached (jump filtered)"

        if picked is not None:
            cache.last_value = picked
            cache.last_source = source
            cache.last_update = now
            return picked, source

        if cache.last_value is not None:
            return cache.last_value, f"{label} cached: {cache.last_source}"
        return None, f"{label} no sensor found"

    def _sample_candidates(self) -> tuple[float | None, str]:
        """Average up to three plausible readings from the best candidates."""
        temps: list[float] = []
        sources: list[str] = []
        for candidate in self._cache.candidates[:READ_CANDIDATES]:
            raw = self._access.read(candidate.path)
            if raw is None:
                continue
            temp = parse_temp_celsius(raw, self._cache.last_value)
            if temp is None:
                continue
            temps.append(temp)
            sources.append(f"{candidate.label}({candidate.path})")
            if len(temps) >= MAX_READINGS:
                break

        if not temps:
            return None, ""
        return sum(temps) / len(temps), " | ".join(sources)
