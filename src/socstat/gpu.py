"""GPU usage, frequency and temperature across vendor-specific sysfs backends."""

import logging
import re
import time
from collections import deque
from collections.abc import Callable

from socstat.access import SysfsAccess
from socstat.models import GpuInfo, GpuParams, GpuStaticInfo, freq_temp_text, percent_text, temp_text
from socstat.parsing import clamp_unit, first_int, normalize_to_mhz, parse_freq_list_mhz
from socstat.thermal import GPU_DOMAIN, TemperatureResolver

logger = logging.getLogger(__name__)

KGSL = "/sys/class/kgsl/kgsl-3d0"
KGSL_DEVFREQ = f"{KGSL}/devfreq"
KGSL_BUSY = f"{KGSL}/gpubusy"
KGSL_MODEL = f"{KGSL}/gpu_model"
KGSL_CLOCKS = (
    f"{KGSL}/gpuclk",
    f"{KGSL}/gpu_clock",
    "/sys/kernel/debug/kgsl/kgsl-3d0/gpuclk",
)
GED = "/sys/kernel/ged"
GED_UTIL = f"{GED}/hal/gpu_utilization"
GED_FREQS = (
    f"{GED}/hal/current_freq",
    f"{GED}/hal/cur_freq",
)
GPUFREQ_PROC = "/proc/gpufreq"
GPUFREQ_DUMP = f"{GPUFREQ_PROC}/gpufreq_var_dump"
MALI = "/sys/class/misc/mali0"
MALI_UTILS = (
    f"{MALI}/device/utilization",
    "/sys/devices/platform/mali/utilization",
)
DEVFREQ_CLASS = "/sys/class/devfreq"
DEVFREQ_NAME_HINTS = ("kgsl", "gpu", "mali", "mtk")
DEVFREQ_GLOB_CMD = (
    "ls -d /sys/devices/platform/*mali*/devfreq "
    "/sys/devices/platform/*gpu*/devfreq 2>/dev/null | head -n 1"
)

STATIC_TTL = 30.0
WINDOW_TOTAL_MIN = 200_000
WINDOW_TOTAL_MAX = 5_000_000
DEFAULT_HISTORY_SIZE = 60

MHZ_TOKEN_RE = re.compile(r"(\d{2,5})\s*MHz", re.IGNORECASE)


class GpuCounters:
    """Previous busy/total pair and the bounded usage history."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self.last_busy: int | None = None
        self.last_total: int | None = None
        self.history: deque[float] = deque(maxlen=max(1, history_size))

    def usage(self, busy: int, total: int) -> tuple[float, bool]:
        """
        Turn a busy/total pair into usage.

        Returns ``(usage, windowed)``. Windowed pairs already describe a fixed
        sampling window and are used as-is; cumulative pairs are diffed
        against the previous tick, except after a reset where the absolute
        ratio is used.
        """
        last_busy, last_total = self.last_busy, self.last_total
        self.last_busy, self.last_total = busy, total

        ratio = busy / total
        windowed = WINDOW_TOTAL_MIN <= total <= WINDOW_TOTAL_MAX and busy <= total
        if windowed or last_busy is None or last_total is None:
            return clamp_unit(ratio), windowed
        if total < last_total or busy < last_busy:
            return clamp_unit(ratio), False
        busy_delta = max(0, busy - last_busy)
        total_delta = max(0, total - last_total)
        if total_delta <= 0:
            return clamp_unit(ratio), False
        return clamp_unit(busy_delta / total_delta), False


class GpuReader:
    """
    Reads GPU state by trying each known backend in priority order.

    Qualcomm (kgsl), MediaTek (GED, /proc/gpufreq), Mali and generic devfreq
    nodes all expose overlapping subsets of the same information; the first
    backend that yields a plausible value wins.
    """

    def __init__(
        self,
        access: SysfsAccess,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._access = access
        self._clock = clock
        self._counters = GpuCounters(history_size)
        self._temperature = TemperatureResolver(GPU_DOMAIN, access, clock=clock)
        self._vendor: str | None = None
        self._devfreq_base: str | None = None
        self._static_info = GpuStaticInfo()
        self._params = GpuParams()
        self._static_updated: float | None = None

    @property
    def history(self) -> list[float]:
        """Get a copy of the recent usage samples, oldest first."""
        return list(self._counters.history)

    def detect_vendor(self) -> str:
        access = self._access
        if access.exists(KGSL):
            return "Qualcomm Adreno"
        if access.exists(GED) or access.exists(GPUFREQ_PROC):
            return "MediaTek"
        if access.exists(MALI):
            return "ARM Mali"
        return "unknown"

    def find_devfreq_base(self) -> str | None:
        """Locate the GPU's devfreq directory, caching it once found."""
        if self._devfreq_base is not None:
            return self._devfreq_base

        access = self._access
        if access.exists(KGSL_DEVFREQ) and access.exists(f"{KGSL_DEVFREQ}/cur_freq"):
            self._devfreq_base = KGSL_DEVFREQ
            return self._devfreq_base

        for name in access.list_dir(DEVFREQ_CLASS):
            low = name.lower()
            if not any(hint in low for hint in DEVFREQ_NAME_HINTS):
                continue
            node = f"{DEVFREQ_CLASS}/{name}"
            cur = first_int(access.read(f"{node}/cur_freq"))
            if cur is not None and cur > 0:
                self._devfreq_base = node
                return node

        found = access.run(DEVFREQ_GLOB_CMD)
        if found and access.exists(f"{found}/cur_freq"):
            logger.debug("devfreq base found by shell glob: %s", found)
            self._devfreq_base = found
            return found

        return None

    def _read_devfreq_int(self, base: str, name: str) -> int | None:
        return first_int(self._access.read(f"{base}/{name}"))

    def refresh_static(self) -> None:
        """Refresh identification and devfreq parameters at most every 30s."""
        now = self._clock()
        if self._static_updated is not None and now - self._static_updated < STATIC_TTL:
            return

        access = self._access
        model = access.read(KGSL_MODEL)
        self._static_info = GpuStaticInfo(
            platform=access.run("getprop ro.board.platform"),
            hardware=access.run("getprop ro.hardware"),
            model=model,
            renderer_hint=model or access.run("getprop ro.hardware.egl"),
        )

        base = self.find_devfreq_base()
        if base is None:
            self._params = GpuParams()
        else:
            available = parse_freq_list_mhz(access.read(f"{base}/available_frequencies"))
            min_mhz = normalize_to_mhz(self._read_devfreq_int(base, "min_freq"))
            max_mhz = normalize_to_mhz(self._read_devfreq_int(base, "max_freq"))
            if min_mhz is None and available:
                min_mhz = available[0]
            if max_mhz is None and available:
                max_mhz = available[-1]
            self._params = GpuParams(
                devfreq_base=base,
                governor=access.read(f"{base}/governor"),
                min_freq_mhz=min_mhz,
                max_freq_mhz=max_mhz,
                available_freqs_mhz=available,
            )
        self._static_updated = now

    def _read_kgsl_usage(self) -> tuple[float | None, str]:
        raw = self._access.read(KGSL_BUSY)
        if raw is None:
            return None, ""
        parts = raw.split()
        if len(parts) < 2:
            return None, ""
        try:
            busy, total = int(parts[0]), int(parts[1])
        except ValueError:
            return None, ""
        if total <= 0:
            return None, ""
        usage, windowed = self._counters.usage(busy, total)
        return usage, "kgsl (windowed)" if windowed else "kgsl (delta)"

    def _read_ged_usage(self) -> tuple[float | None, str]:
        value = first_int(self._access.read(GED_UTIL))
        if value is None:
            return None, ""
        return clamp_unit(value / 100), "ged"

    def _read_mali_usage(self) -> tuple[float | None, str]:
        raw = None
        for path in MALI_UTILS:
            raw = self._access.read(path)
            if raw is not None:
                break
        value = first_int(raw)
        if value is None:
            return None, ""
        if 0 <= value <= 100:
            return clamp_unit(value / 100), "mali"
        if 0 <= value <= 255:
            return clamp_unit(value / 255), "mali"
        return None, ""

    def read_usage(self) -> tuple[float, str]:
        """Return ``(usage, source)`` from the first backend that answers."""
        for backend in (self._read_kgsl_usage, self._read_ged_usage, self._read_mali_usage):
            usage, source = backend()
            if usage is not None:
                return usage, source
        return 0.0, "unknown"

    def read_freq_mhz(self) -> tuple[int | None, str]:
        """Return ``(MHz, source)`` from the first backend that answers."""
        base = self._params.devfreq_base or self.find_devfreq_base()
        if base is not None:
            mhz = normalize_to_mhz(self._read_devfreq_int(base, "cur_freq"))
            if mhz is not None:
                return mhz, "devfreq"

        for paths, source in ((KGSL_CLOCKS, "kgsl"), (GED_FREQS, "ged")):
            for path in paths:
                mhz = normalize_to_mhz(first_int(self._access.read(path)))
                if mhz is not None:
                    return mhz, source

        dump = self._access.read(GPUFREQ_DUMP)
        if dump:
            match = MHZ_TOKEN_RE.search(dump)
            if match:
                mhz = normalize_to_mhz(int(match.group(1)))
                if mhz is not None:
                    return mhz, "gpufreq dump"

        return None, "unknown"

    def read(self) -> GpuInfo:
        if self._vendor is None:
            self._vendor = self.detect_vendor()
            logger.debug("GPU vendor: %s", self._vendor)
        self.refresh_static()

        usage, usage_source = self.read_usage()
        self._counters.history.append(usage)

        freq, freq_source = self.read_freq_mhz()
        temp, temp_source = self._temperature.resolve()

        return GpuInfo(
            vendor=self._vendor,
            usage=usage,
            usage_text=percent_text(usage),
            freq_mhz=freq,
            temp_c=temp,
            temp_text=temp_text(temp),
            extra_text=freq_temp_text(freq, temp),
            history=tuple(self._counters.history),
            static_info=self._static_info,
            params=self._params,
            usage_source=usage_source,
            freq_source=freq_source,
            devfreq_source=self._params.devfreq_base or "none",
            temp_source=temp_source,
        )
