"""CPU usage, frequency and temperature from /proc/stat and cpufreq."""

import logging
import time
from collections.abc import Callable

from socstat.access import SysfsAccess
from socstat.models import CpuCoreInfo, CpuInfo, freq_temp_text, percent_text, temp_text
from socstat.parsing import clamp_unit, first_int, normalize_to_mhz
from socstat.thermal import CPU_DOMAIN, TemperatureResolver

logger = logging.getLogger(__name__)

PROC_STAT = "/proc/stat"
CPUFREQ_NODES = (
    "/sys/devices/system/cpu/cpu{core}/cpufreq/scaling_cur_freq",
    "/sys/devices/system/cpu/cpu{core}/cpufreq/cpuinfo_cur_freq",
)

AGGREGATE = -1


def parse_stat_lines(text: str) -> list[tuple[int, list[int]]]:
    """
    Parse the ``cpu`` lines of /proc/stat.

    Returns ``(index, fields)`` pairs where the aggregate line has index -1.
    Lines with fewer than five numeric fields are skipped.
    """
    rows: list[tuple[int, list[int]]] = []
    for line in text.splitlines():
        if not line.startswith("cpu"):
            continue
        parts = line.split()
        name = parts[0]
        if name == "cpu":
            index = AGGREGATE
        else:
            try:
                index = int(name[3:])
            except ValueError:
                continue
        fields = []
        for part in parts[1:]:
            try:
                fields.append(int(part))
            except ValueError:
                pass
        if len(fields) < 5:
            continue
        rows.append((index, fields))
    return rows


class CpuCounters:
    """Last-seen ``(total, idle)`` jiffies per stat index."""

    def __init__(self) -> None:
        self._last: dict[int, tuple[int, int]] = {}

    def update(self, index: int, total: int, idle: int) -> float:
        """
        Record new counters and return usage since the previous call.

        The first observation of an index has nothing to diff against and
        reports 0.
        """
        previous = self._last.get(index)
        self._last[index] = (total, idle)
        if previous is None:
            return 0.0
        total_delta = max(0, total - previous[0])
        idle_delta = max(0, idle - previous[1])
        if total_delta == 0:
            return 0.0
        return clamp_unit((total_delta - idle_delta) / total_delta)

    def usage_from_fields(self, index: int, fields: list[int]) -> float:
        # idle + iowait
        idle = fields[3] + (fields[4] if len(fields) > 4 else 0)
        return self.update(index, sum(fields), idle)


class CpuReader:
    """Reads aggregate and per-core CPU state once per tick."""

    def __init__(
        self,
        access: SysfsAccess,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._access = access
        self._counters = CpuCounters()
        self._temperature = TemperatureResolver(CPU_DOMAIN, access, clock=clock)

    def read_core_freq_mhz(self, core: int) -> int | None:
        """Current frequency of a core in MHz, or None if unknown."""
        for template in CPUFREQ_NODES:
            raw = first_int(self._access.read(template.format(core=core)))
            if raw is not None:
                return normalize_to_mhz(raw)
        return None

    def read(self) -> CpuInfo:
        text = self._access.read(PROC_STAT)
        if text is None:
            logger.debug("%s unreadable", PROC_STAT)
            return CpuInfo()

        rows = parse_stat_lines(text)
        aggregate = next((fields for index, fields in rows if index == AGGREGATE), None)
        if aggregate is None:
            return CpuInfo()

        usage = self._counters.usage_from_fields(AGGREGATE, aggregate)

        cores = []
        for index, fields in sorted((row for row in rows if row[0] >= 0), key=lambda row: row[0]):
            core_usage = self._counters.usage_from_fields(index, fields)
            cores.append(
                CpuCoreInfo(
                    index=index,
                    usage=core_usage,
                    usage_text=percent_text(core_usage),
                    freq_mhz=self.read_core_freq_mhz(index),
                )
            )

        known = [core.freq_mhz for core in cores if core.freq_mhz is not None]
        first = next((core for core in cores if core.index == 0), None)
        freq = first.freq_mhz if first is not None else self.read_core_freq_mhz(0)
        if freq is None and known:
            freq = round(sum(known) / len(known))

        temp, source = self._temperature.resolve()

        return CpuInfo(
            usage=usage,
            usage_text=percent_text(usage),
            freq_mhz=freq,
            temp_c=temp,
            temp_text=temp_text(temp),
            extra_text=freq_temp_text(freq, temp),
            cores=tuple(cores),
            temp_source=source,
        )
