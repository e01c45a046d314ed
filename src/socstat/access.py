"""Read access to kernel pseudo-files with an elevated-shell fallback."""

import logging
import os
import subprocess
from collections.abc import Callable

logger = logging.getLogger(__name__)

Shell = Callable[[str], str | None]


def su_shell(cmd: str) -> str | None:
    """
    Run a command through ``su -c`` and return its stripped output.

    Returns None when ``su`` is missing, the command fails to spawn, or it
    prints nothing. Never raises.
    """
    try:
        result = subprocess.run(
            ["su", "-c", cmd],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("su shell unavailable for %r: %s", cmd, exc)
        return None
    out = result.stdout.strip()
    return out or None


class SysfsAccess:
    """
    Minimal "read text at path" capability over sysfs/procfs.

    Direct reads are tried first; when they fail the injected shell is asked
    to ``cat`` the node instead. Every method returns a value and never
    raises, so callers can treat a missing node and an unreadable one alike.
    """

    def __init__(self, root: str = "/", shell: Shell | None = su_shell) -> None:
        """
        Initialize the accessor.

        Args:
            root: Directory that absolute paths are resolved against. "/" reads
                the live system; tests point it at a fixture tree.
            shell: Elevated command runner, or None to disable the fallback.
        """
        self._root = root
        self._shell = shell

    @property
    def root(self) -> str:
        """Get the root that absolute paths are resolved against."""
        return self._root

    def resolve(self, path: str) -> str:
        """Map an absolute device path into the configured root."""
        if self._root == "/":
            return path
        return os.path.join(self._root, path.lstrip("/"))

    def run(self, cmd: str) -> str | None:
        """Run a command through the elevated shell, if one is configured."""
        if self._shell is None:
            return None
        try:
            out = self._shell(cmd)
        except Exception:
            logger.debug("shell capability raised for %r", cmd, exc_info=True)
            return None
        if out is None:
            return None
        return out.strip() or None

    def read(self, path: str, fallback: bool = True) -> str | None:
        """
        Read and strip a node's text, falling back to ``cat`` via the shell.

        Pass ``fallback=False`` for metadata nodes where a miss is expected.
        """
        try:
            with open(self.resolve(path), encoding="utf-8", errors="replace") as fh:
                text = fh.read().strip()
            if text:
                return text
        except OSError:
            pass
        if not fallback:
            return None
        return self.run(f"cat {path} 2>/dev/null")

    def exists(self, path: str, fallback: bool = True) -> bool:
        """Check whether a node exists, asking the shell when it is hidden."""
        if os.path.exists(self.resolve(path)):
            return True
        if not fallback:
            return False
        return self.run(f"[ -e {path} ] && echo ok") == "ok"

    def list_dir(self, path: str) -> list[str]:
        """List a directory's entries in sorted order; empty on any error."""
        try:
            return sorted(os.listdir(self.resolve(path)))
        except OSError:
            return []
