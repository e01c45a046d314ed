"""Tests for the sysfs accessor and its shell fallback."""

import os
import subprocess

from socstat import access as access_module
from socstat.access import SysfsAccess, su_shell


class TestSysfsAccess:
    """Tests for SysfsAccess."""

    def test_read_strips_text(self, device, access):
        device.write("/proc/stat", "cpu 1 2 3 4 5\n\n")
        assert access.read("/proc/stat") == "cpu 1 2 3 4 5"

    def test_read_missing_falls_back_to_shell(self, access, shell):
        shell.responses["cat /sys/class/kgsl/kgsl-3d0/gpubusy 2>/dev/null"] = "10 100\n"

        assert access.read("/sys/class/kgsl/kgsl-3d0/gpubusy") == "10 100"
        assert shell.calls == ["cat /sys/class/kgsl/kgsl-3d0/gpubusy 2>/dev/null"]

    def test_read_empty_file_falls_back_to_shell(self, device, access, shell):
        device.write("/sys/x/empty", "")
        assert access.read("/sys/x/empty") is None
        assert shell.count("cat /sys/x/empty 2>/dev/null") == 1

    def test_read_denied_falls_back_to_shell(self, device, access, shell):
        device.write("/sys/x/secret", "42")
        os.chmod(device.root / "sys/x/secret", 0)
        shell.responses["cat /sys/x/secret 2>/dev/null"] = "42"
        try:
            assert access.read("/sys/x/secret") == "42"
        finally:
            os.chmod(device.root / "sys/x/secret", 0o644)

    def test_read_never_raises_without_shell(self, device):
        plain = SysfsAccess(root=str(device.root), shell=None)
        assert plain.read("/does/not/exist") is None
        assert plain.run("anything") is None

    def test_shell_errors_are_contained(self, device):
        def broken(cmd):
            raise RuntimeError("boom")

        failing = SysfsAccess(root=str(device.root), shell=broken)
        assert failing.read("/missing") is None
        assert failing.exists("/missing") is False

    def test_run_blank_output_is_none(self, access, shell):
        shell.responses["getprop ro.hardware"] = "   \n"
        assert access.run("getprop ro.hardware") is None

    def test_exists(self, device, access, shell):
        device.write("/sys/block/zram0/disksize", "0")
        assert access.exists("/sys/block/zram0")
        assert not access.exists("/sys/class/misc/mali0")

        shell.responses["[ -e /sys/class/misc/mali0 ] && echo ok"] = "ok"
        assert access.exists("/sys/class/misc/mali0")

    def test_fallback_disabled_stays_local(self, access, shell):
        shell.responses["cat /sys/x/type 2>/dev/null"] = "cpu"
        shell.responses["[ -e /sys/x ] && echo ok"] = "ok"

        assert access.read("/sys/x/type", fallback=False) is None
        assert access.exists("/sys/x", fallback=False) is False
        assert shell.calls == []

    def test_list_dir_sorted(self, device, access):
        device.write("/sys/class/thermal/thermal_zone1/temp", "1")
        device.write("/sys/class/thermal/thermal_zone0/temp", "1")
        device.write("/sys/class/thermal/cooling_device0/type", "fan")

        assert access.list_dir("/sys/class/thermal") == [
            "cooling_device0",
            "thermal_zone0",
            "thermal_zone1",
        ]
        assert access.list_dir("/sys/class/hwmon") == []

    def test_default_root_is_identity(self):
        live = SysfsAccess(shell=None)
        assert live.root == "/"
        assert live.resolve("/proc/stat") == "/proc/stat"


class TestSuShell:
    """Tests for the default elevated shell."""

    def test_missing_su_returns_none(self, monkeypatch):
        def fake_run(*args, **kwargs):
            raise FileNotFoundError("su")

        monkeypatch.setattr(access_module.subprocess, "run", fake_run)
        assert su_shell("id") is None

    def test_returns_stripped_stdout(self, monkeypatch):
        def fake_run(argv, **kwargs):
            assert argv == ["su", "-c", "getprop ro.hardware"]
            return subprocess.CompletedProcess(argv, 0, stdout="qcom\n", stderr="")

        monkeypatch.setattr(access_module.subprocess, "run", fake_run)
        assert su_shell("getprop ro.hardware") == "qcom"

    def test_empty_output_is_none(self, monkeypatch):
        monkeypatch.setattr(
            access_module.subprocess,
            "run",
            lambda argv, **kwargs: subprocess.CompletedProcess(argv, 1, stdout="", stderr="denied"),
        )
        assert su_shell("dumpsys thermalservice") is None

    def test_stdin_is_detached(self, monkeypatch):
        seen = {}

        def fake_run(argv, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(argv, 1, stdout="", stderr="Password: ")

        monkeypatch.setattr(access_module.subprocess, "run", fake_run)
        assert su_shell("echo ok") is None
        assert seen["stdin"] is subprocess.DEVNULL

    def test_undecodable_output_is_replaced(self, monkeypatch):
        def fake_run(argv, **kwargs):
            stdout = b"\xff\xfetemp\n".decode(kwargs["encoding"], kwargs["errors"])
            return subprocess.CompletedProcess(argv, 0, stdout=stdout, stderr="")

        monkeypatch.setattr(access_module.subprocess, "run", fake_run)
        assert su_shell("cat /sys/x") == "\ufffd\ufffdtemp"
