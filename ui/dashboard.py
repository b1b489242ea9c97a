"""Real-time CLI dashboard for broker monitoring."""

from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from core.request_types import PipelineState, ProxiedExchange
from ui.audit import AuditLogger

console = Console()

OUTCOME_STYLES = {
    PipelineState.SUCCEEDED: ("proxied", "green"),
    PipelineState.REJECTED_POLICY: ("blocked", "yellow"),
    PipelineState.REJECTED_PARSE: ("bad url", "magenta"),
    PipelineState.REJECTED_UPSTREAM: ("upstream", "red"),
}


class Decision:
    """One finished request as shown on the dashboard."""

    def __init__(self, exchange: ProxiedExchange, timestamp: datetime):
        self.method = exchange.method
        target = exchange.target
        self.target = target[:70] + "..." if len(target) > 70 else target
        self.state = exchange.state
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard of allowlist decisions."""

    def __init__(self, config: Config, audit: AuditLogger | None = None):
        self.config = config
        self._audit = audit or AuditLogger()
        self._lock = Lock()
        self._decisions: list[Decision] = []
        self._max_decisions = 10
        self._counts = {state: 0 for state in OUTCOME_STYLES}
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_transition(self, exchange: ProxiedExchange, detail: str | None = None) -> None:
        """Record a pipeline transition; finished requests show up in the table."""
        self._audit.log_transition(exchange, detail)
        if exchange.state not in OUTCOME_STYLES:
            return
        with self._lock:
            self._counts[exchange.state] += 1
            self._decisions.insert(0, Decision(exchange, datetime.now()))
            self._decisions = self._decisions[: self._max_decisions]
            self._refresh()

    def log_error(self, exchange: ProxiedExchange, status: int, message: str) -> None:
        """Log an error."""
        self._audit.log_error(exchange, status, message)
        with self._lock:
            truncated = message[:50] + "..." if len(message) > 50 else message
            self._errors.insert(0, f"{exchange.method} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["header"].update(self._build_header())
        layout["body"].update(self._build_decisions_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Network Broker", style="bold cyan")
        for state, (label, style) in OUTCOME_STYLES.items():
            stats.append("  |  ")
            stats.append(f"{label}: {self._counts[state]}", style=style)
        stats.append("  |  ")
        stats.append(f"Rules: {len(self.config.inbound.allowlist)}", style="dim")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.inbound.proxy_listen_port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_decisions_panel(self) -> Panel:
        """Build the recent decisions panel."""
        if self._decisions:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Method", width=7)
            table.add_column("Destination", ratio=3)
            table.add_column("Outcome", width=10)

            for decision in self._decisions:
                label, style = OUTCOME_STYLES[decision.state]
                table.add_row(
                    decision.timestamp.strftime("%H:%M:%S"),
                    Text(decision.method),
                    Text(decision.target),
                    f"[{style}]{label}[/{style}]",
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[blue]Recent Decisions[/blue]", border_style="blue")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            address = self.config.inbound.wireguard.local_address
            content = Text(
                f"Peers reach http://[{address}]:{self.config.inbound.proxy_listen_port}/proxy/<url>",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
