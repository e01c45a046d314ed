"""Memory accounting from /proc/meminfo and zram statistics."""

import logging

from socstat.access import SysfsAccess
from socstat.models import RamInfo, ZramInfo
from socstat.parsing import clamp_unit

logger = logging.getLogger(__name__)

PROC_MEMINFO = "/proc/meminfo"
ZRAM = "/sys/block/zram0"

KB_PER_GIB = 1024 * 1024


def kb_to_gib(kb: int) -> float:
    return kb / KB_PER_GIB


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse ``Key:   value kB`` lines into a key -> KB mapping."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            values[parts[0].rstrip(":")] = int(parts[1])
        except ValueError:
            continue
    return values


def parse_comp_algorithm(raw: str | None) -> str | None:
    """Extract the active algorithm from ``lzo [lz4] zstd`` style output."""
    if raw is None:
        return None
    for token in raw.split():
        if token.startswith("[") and token.endswith("]"):
            return token[1:-1]
    return raw.strip()


def compression_ratio(orig: int | None, compr: int | None) -> float | None:
    if orig is None or compr is None or compr <= 0:
        return None
    return orig / compr


def swap_text(total_kb: int, used_kb: int) -> str:
    """Describe swap, keeping "disabled" apart from "nothing swapped"."""
    if total_kb <= 0:
        return "disabled"
    return f"{kb_to_gib(used_kb):.1f}/{kb_to_gib(total_kb):.1f} GB"


class RamReader:
    """Reads RAM, swap and zram state once per tick."""

    def __init__(self, access: SysfsAccess) -> None:
        self._access = access

    def read_zram(self) -> ZramInfo:
        access = self._access
        if not access.exists(ZRAM, fallback=False):
            return ZramInfo(enabled=False)

        disk_size = None
        raw_size = access.read(f"{ZRAM}/disksize")
        if raw_size is not None:
            try:
                disk_size = int(raw_size)
            except ValueError:
                logger.debug("malformed zram disksize: %r", raw_size)

        stats: list[int] = []
        raw_stat = access.read(f"{ZRAM}/mm_stat")
        if raw_stat is not None:
            for part in raw_stat.split():
                try:
                    stats.append(int(part))
                except ValueError:
                    pass
        orig, compr, mem_used = (stats + [None, None, None])[:3]

        return ZramInfo(
            enabled=True,
            algorithm=parse_comp_algorithm(access.read(f"{ZRAM}/comp_algorithm")),
            disk_size_bytes=disk_size,
            orig_data_bytes=orig,
            compr_data_bytes=compr,
            mem_used_bytes=mem_used,
            ratio=compression_ratio(orig, compr),
        )

    def read(self) -> RamInfo:
        text = self._access.read(PROC_MEMINFO)
        if text is None:
            logger.debug("%s unreadable", PROC_MEMINFO)
            return RamInfo()
        info = parse_meminfo(text)
        total = info.get("MemTotal")
        if total is None:
            return RamInfo()

        available = info.get("MemAvailable", info.get("MemFree", 0))
        cached = max(0, info.get("Cached", 0) + info.get("SReclaimable", 0) - info.get("Shmem", 0))
        used = max(0, total - available)
        real_free = max(0, available - cached)
        usage = clamp_unit(used / total) if total > 0 else 0.0

        swap_total = info.get("SwapTotal", 0)
        swap_used = max(0, swap_total - info.get("SwapFree", 0))
        swap = swap_text(swap_total, swap_used)

        return RamInfo(
            total_kb=total,
            used_kb=used,
            cached_kb=cached,
            available_kb=available,
            real_free_kb=real_free,
            swap_total_kb=swap_total,
            swap_used_kb=swap_used,
            swap_text=swap,
            usage=usage,
            value_text=f"{kb_to_gib(used):.1f} / {kb_to_gib(total):.1f} GB",
            extra_text=f"available {kb_to_gib(available):.1f} GB · swap {swap}",
            zram=self.read_zram(),
        )
