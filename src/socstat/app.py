"""socstat - terminal dashboard over the sampling engine."""

import argparse
import logging
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from socstat.access import SysfsAccess, su_shell
from socstat.gpu import DEFAULT_HISTORY_SIZE
from socstat.memory import kb_to_gib
from socstat.models import CpuCoreInfo, CpuInfo, GpuInfo, RamInfo, Snapshot
from socstat.monitor import StatsMonitor

logger = logging.getLogger(__name__)

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def usage_bar(usage: float, color: str, width: int = 20) -> str:
    """Render a 0-1 usage value as a markup bar."""
    filled = min(width, max(0, int(usage * width)))
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


def sparkline(values: list[float] | tuple[float, ...], width: int = 30) -> str:
    """Render the tail of a 0-1 series as a sparkline."""
    tail = list(values)[-width:]
    top = len(SPARK_CHARS) - 1
    return "".join(SPARK_CHARS[min(top, max(0, round(v * top)))] for v in tail)


def format_cpu(cpu: CpuInfo) -> str:
    return (
        f"CPU \\[{usage_bar(cpu.usage, 'green')}] {cpu.usage_text:>4}\n"
        f"{cpu.extra_text}\n"
        f"[dim]{cpu.temp_source}[/dim]"
    )


def format_gpu(gpu: GpuInfo) -> str:
    model = gpu.static_info.model or gpu.static_info.renderer_hint or gpu.vendor
    return (
        f"GPU \\[{usage_bar(gpu.usage, 'magenta')}] {gpu.usage_text:>4}  {model}\n"
        f"{gpu.extra_text}\n"
        f"{sparkline(gpu.history)}\n"
        f"[dim]usage: {gpu.usage_source} · freq: {gpu.freq_source} · {gpu.temp_source}[/dim]"
    )


def format_ram(ram: RamInfo) -> str:
    zram = ram.zram
    if not zram.enabled:
        zram_line = "zram disabled"
    else:
        ratio = "--" if zram.ratio is None else f"{zram.ratio:.2f}x"
        zram_line = f"zram {zram.algorithm or '?'} · ratio {ratio}"
    return (
        f"Mem \\[{usage_bar(ram.usage, 'cyan')}] {ram.value_text}\n"
        f"{ram.extra_text}\n"
        f"cached {kb_to_gib(ram.cached_kb):.1f} GB · free {kb_to_gib(ram.real_free_kb):.1f} GB\n"
        f"{zram_line}"
    )


class StatsPanels(Static):
    """Header widget showing CPU, GPU and memory summaries."""

    DEFAULT_CSS = """
    StatsPanels {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize StatsPanels."""
        super().__init__(*args, **kwargs)
        self._snapshot: Snapshot | None = None

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    def compose(self) -> ComposeResult:
        """Compose the panel layout."""
        yield Horizontal(
            Static("Loading CPU info...", id="cpu-info"),
            Static("Loading GPU info...", id="gpu-info"),
            Static("Loading memory info...", id="mem-info"),
        )

    def update_stats(self, snapshot: Snapshot) -> None:
        """Update the panels from a snapshot."""
        self._snapshot = snapshot
        try:
            self.query_one("#cpu-info", Static).update(format_cpu(snapshot.cpu))
            self.query_one("#gpu-info", Static).update(format_gpu(snapshot.gpu))
            self.query_one("#mem-info", Static).update(format_ram(snapshot.ram))
        except Exception:
            pass  # Widget not mounted yet


class CoreTable(Container):
    """Container for the per-core table."""

    DEFAULT_CSS = """
    CoreTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize CoreTable."""
        super().__init__(*args, **kwargs)
        self._current_cores: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the core table."""
        yield DataTable(id="core-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#core-table", DataTable)
        table.cursor_type = "row"
        table.add_column("CORE", key="core", width=6)
        table.add_column("USAGE", key="usage", width=24)
        table.add_column("%", key="percent", width=6)
        table.add_column("MHz", key="freq", width=8)

    def update_cores(self, cores: tuple[CpuCoreInfo, ...]) -> None:
        """Update rows in place, adding and removing cores as they appear."""
        table = self.query_one("#core-table", DataTable)
        new_cores = {core.index for core in cores}

        for index in self._current_cores - new_cores:
            try:
                table.remove_row(str(index))
            except Exception:
                pass  # Row may not exist

        for core in cores:
            row_key = str(core.index)
            freq = "--" if core.freq_mhz is None else str(core.freq_mhz)
            bar = usage_bar(core.usage, "green")
            try:
                if core.index in self._current_cores:
                    table.update_cell(row_key, "usage", bar)
                    table.update_cell(row_key, "percent", core.usage_text)
                    table.update_cell(row_key, "freq", freq)
                else:
                    table.add_row(f"cpu{core.index}", bar, core.usage_text, freq, key=row_key)
            except Exception:
                pass  # Row may have been removed

        self._current_cores = new_cores


class SocstatApp(App):
    """Main socstat application."""

    TITLE = "socstat"
    SUB_TITLE = "SoC utilization, clocks and temperatures"

    CSS = """
    Screen {
        layout: vertical;
    }

    #stats-panels {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info, #gpu-info, #mem-info {
        width: 1fr;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        interval_ms: int = 1000,
        history_size: int = DEFAULT_HISTORY_SIZE,
        access: SysfsAccess | None = None,
    ) -> None:
        """Initialize the SocstatApp."""
        super().__init__()
        self._update_queue: Queue[Snapshot] = Queue()
        self._monitor = StatsMonitor(
            self._update_queue,
            interval_ms=interval_ms,
            gpu_history_size=history_size,
            access=access,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatsPanels(id="stats-panels")
        yield CoreTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: Snapshot) -> None:
        """Update the UI with a new snapshot."""
        try:
            self.query_one("#stats-panels", StatsPanels).update_stats(snapshot)
            self.query_one(CoreTable).update_cores(snapshot.cpu.cores)
        except Exception:
            logger.debug("UI update skipped", exc_info=True)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="socstat", description=SocstatApp.SUB_TITLE)
    parser.add_argument("--interval-ms", type=int, default=1000, help="sampling interval (default 1000)")
    parser.add_argument(
        "--history", type=int, default=DEFAULT_HISTORY_SIZE, help="GPU usage samples to keep (default 60)"
    )
    parser.add_argument("--root", default="/", help="read sysfs/procfs under this directory")
    parser.add_argument("--no-root-shell", action="store_true", help="never fall back to su")
    parser.add_argument("--log-file", help="write debug logs to this file")
    return parser


def build_access(args: argparse.Namespace) -> SysfsAccess:
    """Create the accessor; a non-default root never falls back to the live system."""
    use_shell = not args.no_root_shell and args.root == "/"
    return SysfsAccess(root=args.root, shell=su_shell if use_shell else None)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the socstat application."""
    args = build_parser().parse_args(argv)
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    app = SocstatApp(interval_ms=args.interval_ms, history_size=args.history, access=build_access(args))
    app.run()


if __name__ == "__main__":
    main()
