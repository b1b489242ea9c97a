"""CLI entry point for network-broker."""

import logging
import sys
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from app import create_app
from core.config import Config, load_config
from core.exceptions import ConfigurationError
from services.tunnel import InterfaceTunnel, render_interface_config
from ui.audit import AuditLogger
from ui.dashboard import Dashboard
from ui.log_utils import set_log_root, write_cli_log

console = Console()


def parse_args(argv: list[str]) -> tuple[list[str], set[str]]:
    """Split argv into config paths (``-c``/``--config``) and flags."""
    paths: list[str] = []
    flags: set[str] = set()
    args = iter(argv)
    for arg in args:
        if arg in ("-c", "--config"):
            path = next(args, None)
            if path is None:
                raise ConfigurationError(f"{arg} needs a file path")
            paths.append(path)
        elif arg.startswith("--config="):
            paths.append(arg.split("=", 1)[1])
        elif arg in ("--check", "--wg-config", "--dashboard", "--help", "-h"):
            flags.add(arg)
        else:
            raise ConfigurationError(f"unknown argument {arg!r} (see --help)")
    return paths, flags


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    try:
        paths, flags = parse_args(sys.argv[1:] if argv is None else argv)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {escape(str(e))}")
        sys.exit(1)

    if flags & {"--help", "-h"}:
        _print_help()
        return

    try:
        config = load_config(paths)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {escape(str(e))}")
        sys.exit(1)

    if "--check" in flags:
        _print_summary(config)
        return

    if "--wg-config" in flags:
        console.print(render_interface_config(config.inbound.wireguard), markup=False, highlight=False)
        return

    _setup_logging(config)
    try:
        serve(config, dashboard="--dashboard" in flags)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {escape(str(e))}")
        sys.exit(1)


def serve(config: Config, dashboard: bool = False) -> None:
    """Bind the tunnel listener and run the broker until interrupted."""
    import uvicorn

    tunnel = InterfaceTunnel(config.inbound.wireguard)
    sock = tunnel.listen(config.inbound.proxy_listen_port)

    request_logger = Dashboard(config) if dashboard else AuditLogger()
    app = create_app(config, request_logger)

    uvicorn_config = uvicorn.Config(app, log_level="warning", access_log=False)
    server = uvicorn.Server(uvicorn_config)

    if isinstance(request_logger, Dashboard):
        request_logger.start()
    start_time = datetime.now()
    write_cli_log(
        "STARTUP",
        "Broker started",
        address=tunnel.local_address,
        port=config.inbound.proxy_listen_port,
    )
    try:
        server.run(sockets=[sock])
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Broker stopped", duration=str(duration))
        if isinstance(request_logger, Dashboard):
            request_logger.stop()
        sock.close()


def _setup_logging(config: Config) -> None:
    settings = config.inbound.logging
    set_log_root(settings.log_root)
    logging.basicConfig(
        level=settings.level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _print_summary(config: Config) -> None:
    """Print the validated allowlist."""
    inbound = config.inbound
    console.print(
        f"[green]Configuration OK[/green] "
        f"({len(inbound.wireguard.peers)} peer(s), {len(inbound.allowlist)} rule(s))"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("URL")
    table.add_column("Methods")
    table.add_column("Sets headers")
    table.add_column("Removes headers")
    for item in inbound.allowlist:
        table.add_row(
            item.url,
            ", ".join(item.methods),
            ", ".join(item.set_request_headers) or "-",
            ", ".join(item.remove_response_headers) or "-",
        )
    console.print(table)


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Network Broker[/bold cyan]

Exposes allowlisted HTTP destinations to WireGuard tunnel peers.

[bold]Usage:[/bold]
    network-broker -c config.json [-c override.yaml ...]    Start the broker
    network-broker -c config.json --dashboard                Start with live dashboard
    network-broker -c config.json --check                    Validate config, list rules
    network-broker -c config.json --wg-config                Print WireGuard interface config
    network-broker --help                                    Show this help

[bold]Requests:[/bold]
    Peers call http://<local_address>:<proxy_listen_port>/proxy/<destination-url>
    Only method + URL pairs listed in the allowlist are forwarded.
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
