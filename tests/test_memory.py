"""Tests for the RAM and zram reader."""

import pytest

from socstat.memory import (
    RamReader,
    compression_ratio,
    parse_comp_algorithm,
    parse_meminfo,
    swap_text,
)
from socstat.models import RamInfo, ZramInfo

MEMINFO = """\
MemTotal:        8000000 kB
MemFree:          500000 kB
MemAvailable:    3000000 kB
Buffers:           10000 kB
Cached:          1000000 kB
SwapCached:         1000 kB
Shmem:            100000 kB
SReclaimable:     200000 kB
SwapTotal:       4194304 kB
SwapFree:        3145728 kB
HugePages_Total:       0
"""

MB = 1024 * 1024


class TestParsing:
    """Tests for the pure memory helpers."""

    def test_parse_meminfo(self):
        info = parse_meminfo(MEMINFO)
        assert info["MemTotal"] == 8_000_000
        assert info["SReclaimable"] == 200_000
        assert info["HugePages_Total"] == 0

    def test_parse_meminfo_skips_junk(self):
        assert parse_meminfo("garbage\nMemTotal: lots kB\nMemFree: 5 kB\n") == {"MemFree": 5}

    def test_active_algorithm(self):
        assert parse_comp_algorithm("lzo lzo-rle [lz4] zstd") == "lz4"
        assert parse_comp_algorithm("zstd") == "zstd"
        assert parse_comp_algorithm(None) is None

    def test_compression_ratio(self):
        assert compression_ratio(200 * MB, 50 * MB) == pytest.approx(4.0)
        assert compression_ratio(200 * MB, 0) is None
        assert compression_ratio(None, 50 * MB) is None

    def test_swap_text(self):
        assert swap_text(0, 0) == "disabled"
        assert swap_text(2 * MB, 0) == "0.0/2.0 GB"


class TestRamReader:
    """Tests for RamReader."""

    def test_derivations(self, device, access):
        device.write("/proc/meminfo", MEMINFO)
        info = RamReader(access).read()

        assert info.total_kb == 8_000_000
        assert info.available_kb == 3_000_000
        assert info.cached_kb == 1_100_000
        assert info.used_kb == 5_000_000
        assert info.usage == pytest.approx(0.625)
        assert info.real_free_kb == 1_900_000
        assert info.swap_total_kb == 4_194_304
        assert info.swap_used_kb == 1_048_576
        assert info.swap_text == "1.0/4.0 GB"
        assert info.value_text == "4.8 / 7.6 GB"
        assert info.extra_text == "available 2.9 GB · swap 1.0/4.0 GB"

    def test_mem_free_used_without_mem_available(self, device, access):
        device.write("/proc/meminfo", "MemTotal: 1000 kB\nMemFree: 400 kB\n")
        info = RamReader(access).read()
        assert info.available_kb == 400
        assert info.used_kb == 600
        assert info.swap_text == "disabled"

    def test_cached_estimate_never_negative(self, device, access):
        device.write(
            "/proc/meminfo",
            "MemTotal: 1000 kB\nMemAvailable: 100 kB\nCached: 10 kB\nShmem: 500 kB\n",
        )
        info = RamReader(access).read()
        assert info.cached_kb == 0
        assert info.real_free_kb == 100

    def test_zero_total(self, device, access):
        device.write("/proc/meminfo", "MemTotal: 0 kB\nMemAvailable: 0 kB\n")
        assert RamReader(access).read().usage == 0.0

    def test_unreadable_meminfo_gives_default(self, access):
        assert RamReader(access).read() == RamInfo()

    def test_missing_total_gives_default(self, device, access):
        device.write("/proc/meminfo", "MemFree: 400 kB\n")
        assert RamReader(access).read() == RamInfo()


class TestZram:
    """Tests for zram statistics."""

    def test_absent_device_is_disabled(self, access, shell):
        shell.responses["[ -e /sys/block/zram0 ] && echo ok"] = "ok"
        assert RamReader(access).read_zram() == ZramInfo(enabled=False)
        assert shell.calls == []

    def test_enabled_device(self, device, access):
        device.write("/sys/block/zram0/disksize", str(4 * 1024 * MB))
        device.write("/sys/block/zram0/comp_algorithm", "lzo lzo-rle [lz4] zstd")
        device.write(
            "/sys/block/zram0/mm_stat",
            f"{200 * MB} {50 * MB} {52 * MB} 0 {60 * MB} 120 3 0 0",
        )

        zram = RamReader(access).read_zram()

        assert zram.enabled
        assert zram.algorithm == "lz4"
        assert zram.disk_size_bytes == 4 * 1024 * MB
        assert zram.orig_data_bytes == 200 * MB
        assert zram.compr_data_bytes == 50 * MB
        assert zram.mem_used_bytes == 52 * MB
        assert zram.ratio == pytest.approx(4.0)

    def test_empty_device_has_no_ratio(self, device, access):
        device.write("/sys/block/zram0/disksize", "0")
        device.write("/sys/block/zram0/mm_stat", "0 0 0 0 0 0 0 0 0")

        zram = RamReader(access).read_zram()

        assert zram.enabled
        assert zram.ratio is None
        assert zram.algorithm is None

    def test_zram_attached_to_ram_info(self, device, access):
        device.write("/proc/meminfo", MEMINFO)
        device.write("/sys/block/zram0/comp_algorithm", "zstd")
        info = RamReader(access).read()
        assert info.zram.enabled
        assert info.zram.algorithm == "zstd"
        assert info.zram.ratio is None
