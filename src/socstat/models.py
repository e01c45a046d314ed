"""Data models for socstat.

Every record published to consumers is frozen and slotted; sequences are
tuples so a snapshot can be shared without copying.
"""

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class CpuCoreInfo:
    """Usage and frequency of a single core."""

    index: int
    usage: float  # 0.0 - 1.0
    usage_text: str
    freq_mhz: int | None = None


@dataclass(slots=True, frozen=True)
class CpuInfo:
    """Aggregate CPU state for one tick."""

    usage: float = 0.0
    usage_text: str = "--%"
    freq_mhz: int | None = None
    temp_c: float | None = None
    temp_text: str = "unavailable"
    extra_text: str = "freq -- MHz · temp unavailable"
    cores: tuple[CpuCoreInfo, ...] = ()
    temp_source: str = "no sensor found"


@dataclass(slots=True, frozen=True)
class GpuStaticInfo:
    """Slow-changing identification data for the GPU."""

    platform: str | None = None
    hardware: str | None = None
    model: str | None = None
    renderer_hint: str | None = None


@dataclass(slots=True, frozen=True)
class GpuParams:
    """Devfreq governor and frequency table."""

    devfreq_base: str | None = None
    governor: str | None = None
    min_freq_mhz: int | None = None
    max_freq_mhz: int | None = None
    available_freqs_mhz: tuple[int, ...] = ()


@dataclass(slots=True, frozen=True)
class GpuInfo:
    """GPU state for one tick."""

    vendor: str = "unknown"
    usage: float = 0.0
    usage_text: str = "--%"
    freq_mhz: int | None = None
    temp_c: float | None = None
    temp_text: str = "unavailable"
    extra_text: str = "freq -- MHz · temp unavailable"
    history: tuple[float, ...] = ()
    static_info: GpuStaticInfo = field(default_factory=GpuStaticInfo)
    params: GpuParams = field(default_factory=GpuParams)
    usage_source: str = "unknown"
    freq_source: str = "unknown"
    devfreq_source: str = "none"
    temp_source: str = "no sensor found"


@dataclass(slots=True, frozen=True)
class ZramInfo:
    """Compressed swap device state. ``enabled=False`` means no zram device."""

    enabled: bool = False
    algorithm: str | None = None
    disk_size_bytes: int | None = None
    orig_data_bytes: int | None = None
    compr_data_bytes: int | None = None
    mem_used_bytes: int | None = None
    ratio: float | None = None


@dataclass(slots=True, frozen=True)
class RamInfo:
    """Memory accounting for one tick. All sizes are in KB."""

    total_kb: int = 0
    used_kb: int = 0
    cached_kb: int = 0
    available_kb: int = 0
    real_free_kb: int = 0
    swap_total_kb: int = 0
    swap_used_kb: int = 0
    swap_text: str = "disabled"
    usage: float = 0.0
    value_text: str = "-- / -- GB"
    extra_text: str = "available -- GB · swap disabled"
    zram: ZramInfo = field(default_factory=ZramInfo)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable result of one collection pass."""

    cpu: CpuInfo = field(default_factory=CpuInfo)
    gpu: GpuInfo = field(default_factory=GpuInfo)
    ram: RamInfo = field(default_factory=RamInfo)
    timestamp: float = 0.0


def percent_text(usage: float) -> str:
    """Format a 0-1 usage value as a rounded percentage."""
    return f"{round(usage * 100)}%"


def temp_text(temp_c: float | None) -> str:
    """Format a temperature for display."""
    if temp_c is None:
        return "unavailable"
    return f"{temp_c:.1f}°C"


def freq_temp_text(freq_mhz: int | None, temp_c: float | None) -> str:
    """Build the one-line frequency/temperature summary."""
    freq = "--" if freq_mhz is None else str(freq_mhz)
    return f"freq {freq} MHz · temp {temp_text(temp_c)}"
