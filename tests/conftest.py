"""Shared fixtures: a fake sysfs/procfs tree, a scripted shell and a clock."""

from pathlib import Path

import pytest

from socstat.access import SysfsAccess


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeShell:
    """Shell capability that answers from a command -> output table."""

    def __init__(self) -> None:
        self.responses: dict[str, str] = {}
        self.calls: list[str] = []

    def __call__(self, cmd: str) -> str | None:
        self.calls.append(cmd)
        return self.responses.get(cmd)

    def count(self, cmd: str) -> int:
        return sum(1 for call in self.calls if call == cmd)


class FakeDevice:
    """Builds a device tree under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, path: str, text: str) -> None:
        target = self.root / path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text)

    def mkdir(self, path: str) -> None:
        (self.root / path.lstrip("/")).mkdir(parents=True, exist_ok=True)

    def remove(self, path: str) -> None:
        (self.root / path.lstrip("/")).unlink()

    def thermal_zone(self, index: int, zone_type: str, temp: str) -> None:
        self.write(f"/sys/class/thermal/thermal_zone{index}/type", zone_type)
        self.write(f"/sys/class/thermal/thermal_zone{index}/temp", temp)

    def hwmon(self, index: int, name: str, channels: dict[int, tuple[str, str]]) -> None:
        base = f"/sys/class/hwmon/hwmon{index}"
        self.write(f"{base}/name", name)
        for channel, (label, value) in channels.items():
            self.write(f"{base}/temp{channel}_input", value)
            if label:
                self.write(f"{base}/temp{channel}_label", label)


@pytest.fixture
def device(tmp_path: Path) -> FakeDevice:
    return FakeDevice(tmp_path)


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def access(device: FakeDevice, shell: FakeShell) -> SysfsAccess:
    return SysfsAccess(root=str(device.root), shell=shell)
