"""
PSS-Live CLI.

Modes:
- listen: Live ingestion from the scoring system broadcast
- replay: Run a capture file through the pipeline
- decode: Inspect a single payload
- protocol: Show the tag registry or verify a schema document
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..collectors.udp_listener import UDPListener
from ..config import ConfigValidationError, PSSConfig, load_config, generate_default_config
from ..core.errors import BindError, DecodeError
from ..core.state import MatchState
from ..formats.capture import load_capture
from ..protocol.decoder import StreamDecoder
from ..protocol.events import StreamEvent
from ..protocol.registry import CONNECTION_SPEC, TAG_REGISTRY
from ..protocol.schema import DEFAULT_SCHEMA_PATH, load_protocol_definitions, verify_schema
from ..streaming.pipeline import MatchPipeline
from ..streaming.publisher import ERROR, EVENT, EventPublisher, Notification, StateSnapshot


app = typer.Typer(
    name="pss-live",
    help="Live match state from PSS scoring broadcasts",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _describe(item: Notification) -> str:
    """One-line rendering of a notification."""
    if isinstance(item, DecodeError):
        return f"[red]{item.code.value}[/] {escape(item.message)}"
    if isinstance(item, StateSnapshot):
        return f"[dim]state after {item.event.kind.value}[/]"
    return f"[cyan]{item.kind.value:<20}[/] {escape(item.to_wire())}"


def _print_notification(item: Notification, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(item.to_dict()))
    else:
        console.print(_describe(item))


def _state_table(state: MatchState) -> Table:
    """Format match state as table."""
    table = Table(title="Match State")
    table.add_column("Field")
    table.add_column("Athlete 1", justify="right")
    table.add_column("Athlete 2", justify="right")

    a1, a2 = state.athletes[1], state.athletes[2]
    table.add_row("Name", a1.long_name or a1.short_name, a2.long_name or a2.short_name)
    table.add_row("Country", a1.country, a2.country)
    table.add_row("Score", str(a1.score), str(a2.score))
    for rnd in range(1, 4):
        row = state.sub_score_row(rnd)
        table.add_row(f"Round {rnd}", str(row[0]), str(row[1]))
    table.add_row("Warnings", str(a1.warnings), str(a2.warnings))
    table.add_row("Challenge", state.challenges[1].value, state.challenges[2].value)
    table.add_row("Injury", str(state.injuries[1].remaining), str(state.injuries[2].remaining))

    table.add_section()
    clock = f"{state.clock.display} ({'running' if state.clock.running else 'stopped'})"
    table.add_row("Match", state.match_number, "")
    table.add_row("Round", str(state.round), "")
    table.add_row("Clock", clock, "")
    table.add_row("Ready", "yes" if state.ready else "no", "")
    table.add_row("Round winners", ' '.join(str(w) for w in state.round_winners), "")
    if state.provisional_winner:
        table.add_row("Provisional", state.provisional_winner, "")
    if state.winner_name:
        table.add_row("Winner", state.winner_name, state.winner_classification or "")
    return table


def _print_stats(stats: dict) -> None:
    table = Table(title="Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key in ('datagrams', 'statements', 'events', 'decode_errors', 'non_ascii', 'reduction_errors'):
        table.add_row(key.replace('_', ' ').capitalize(), f"{stats[key]:,}")
    table.add_row("Dropped notifications", str(stats['publisher']['dropped']))
    console.print(table)


# === LISTEN COMMAND ===

@app.command()
def listen(
    host: Optional[str] = typer.Option(None, "--host", help="Listen interface (IPv4)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Listen port"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config"),
    json_output: bool = typer.Option(False, "--json", help="Print notifications as JSON lines"),
    prometheus_port: Optional[int] = typer.Option(None, "--prometheus-port", help="Prometheus metrics port"),
    duration: float = typer.Option(0.0, "--duration", help="Stop after N seconds (0 = until Ctrl-C)"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """Listen for scoring datagrams and print live events."""
    cfg = load_config(config_path)
    if host:
        cfg.listener.host = host
    if port is not None:
        cfg.listener.port = port

    try:
        cfg.check()
    except ConfigValidationError as e:
        for error in e.errors:
            err_console.print(f"[red]Invalid configuration ({e.code.value}):[/] {error}")
        raise typer.Exit(1)

    _setup_logging(log_level or cfg.logging.level)

    publisher = EventPublisher(queue_size=cfg.publisher.queue_size)
    pipeline = MatchPipeline(publisher)
    printer = publisher.subscribe_callback(
        lambda item: _print_notification(item, json_output),
        name='console',
        categories=[EVENT, ERROR],
    )

    listener = UDPListener(
        host=cfg.listener.host,
        port=cfg.listener.port,
        on_datagram=pipeline.handle_datagram,
        on_invalid=pipeline.handle_invalid,
        buffer_size=cfg.listener.buffer_size,
        recv_timeout=cfg.listener.recv_timeout,
    )

    try:
        listener.start()
    except BindError as e:
        err_console.print(f"[red]Error:[/] {e}")
        publisher.close()
        raise typer.Exit(1)

    # Start Prometheus exporter
    prom = None
    prom_cfg = cfg.exporters.prometheus
    if prometheus_port or prom_cfg.enabled:
        from ..exporters.prometheus import PrometheusExporter
        prom = PrometheusExporter(port=prometheus_port or prom_cfg.port, prefix=prom_cfg.prefix)
        try:
            prom.start()
            err_console.print(f"[green]Prometheus:[/] http://0.0.0.0:{prom.port}/metrics")
        except OSError as e:
            err_console.print(f"[yellow]Prometheus disabled:[/] {e}")
            prom = None

    bound_host, bound_port = listener.address
    if not json_output:
        console.print(f"[bold blue]PSS-Live v{__version__}[/] listening on {bound_host}:{bound_port}")

    started = time.time()
    try:
        while not duration or time.time() - started < duration:
            time.sleep(min(0.2, duration) if duration else 1.0)
            if prom:
                prom.update_from_stats(pipeline.stats())
                prom.update_from_state(pipeline.state)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Stopped[/]")
    finally:
        listener.stop()
        printer.stop()
        publisher.close()
        if prom:
            prom.stop()

    if not json_output:
        _print_stats(pipeline.stats())


# === REPLAY COMMAND ===

@app.command()
def replay(
    capture: Path = typer.Argument(..., help="Capture file", exists=True),
    json_output: bool = typer.Option(False, "--json", help="Print final state as JSON"),
    show_events: bool = typer.Option(False, "--events", help="Print each event while replaying"),
    quiet: bool = typer.Option(False, "-q", "--quiet"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    """Replay a capture file and print the final match state."""
    _setup_logging(log_level)

    try:
        datagrams = load_capture(capture)
    except (OSError, ValueError) as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    publisher = EventPublisher()
    pipeline = MatchPipeline(publisher)
    events = publisher.subscribe('replay', categories=[EVENT, ERROR]) if show_events else None

    for datagram in datagrams:
        pipeline.handle_datagram(datagram)
        if events is not None:
            for item in events.drain():
                _print_notification(item, json_output)

    state = pipeline.state
    if json_output:
        typer.echo(json.dumps(state.to_dict(), indent=2))
    else:
        console.print(_state_table(state))
        if not quiet:
            _print_stats(pipeline.stats())


# === DECODE COMMAND ===

@app.command()
def decode(
    payload: str = typer.Argument(..., help="Datagram payload, e.g. 'sc1;3;sc2;0;'"),
    json_output: bool = typer.Option(False, "--json"),
):
    """Tokenize and decode one payload."""
    decoder = StreamDecoder()
    statements = decoder.tokenizer.tokenize(payload)
    results = decoder.decode_all(statements)

    if json_output:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        table = Table(title="Statements")
        table.add_column("Tag")
        table.add_column("Fields")
        table.add_column("Result")
        for statement, result in zip(statements, results):
            if isinstance(result, StreamEvent):
                outcome = f"[green]{result.kind.value}[/]"
            else:
                outcome = f"[red]{result.code.value}[/] {result.reason}"
            table.add_row(statement.tag, ';'.join(statement.fields), outcome)
        console.print(table)

    if any(isinstance(r, DecodeError) for r in results):
        raise typer.Exit(1)


# === PROTOCOL COMMAND ===

@app.command()
def protocol(
    schema: Optional[Path] = typer.Option(None, "--schema", help="Schema document to verify", exists=True),
    verify: bool = typer.Option(False, "--verify", help="Verify the bundled schema"),
):
    """List registered stream tags, or verify a schema document."""
    if schema or verify:
        definitions = load_protocol_definitions(schema or DEFAULT_SCHEMA_PATH)
        report = verify_schema(definitions)

        console.print(f"Definitions: {report.definitions}, examples: {report.examples_checked}")
        for stream in report.missing_streams:
            console.print(f"[red]Unregistered stream:[/] {stream}")
        for example, error in report.failed_examples:
            console.print(f"[red]Example failed:[/] {example} -> {error}")

        if not report.ok:
            raise typer.Exit(1)
        console.print("[green]Schema OK[/]")
        return

    table = Table(title="Stream Tags")
    table.add_column("Tag", style="cyan")
    table.add_column("Kind")
    table.add_column("Fields", justify="right")
    table.add_column("Description")
    for spec in list(TAG_REGISTRY.values()) + [CONNECTION_SPEC]:
        upper = '*' if spec.max_fields is None else str(spec.max_fields)
        arity = str(spec.min_fields) if upper == str(spec.min_fields) else f"{spec.min_fields}..{upper}"
        table.add_row(spec.tag, spec.kind.value, arity, spec.description)
    console.print(table)


# === CONFIG COMMAND ===

@app.command("config")
def config_cmd(
    action: str = typer.Argument(..., help="Action: init|validate|dump"),
    path: Optional[Path] = typer.Argument(None, help="Config file path"),
):
    """Configuration management."""
    if action == "init":
        console.print(generate_default_config())

    elif action == "validate":
        if not path:
            console.print("[red]Path required for validate[/]")
            raise typer.Exit(1)
        try:
            cfg = PSSConfig.load(path)
        except Exception as e:
            console.print(f"[red]Error:[/] {e}")
            raise typer.Exit(1)
        try:
            cfg.check()
        except ConfigValidationError as e:
            console.print(f"[red]Invalid configuration ({e.code.value}):[/]")
            for error in e.errors:
                console.print(f"  - {error}")
            raise typer.Exit(1)
        console.print(f"[green]Valid:[/] {path}")

    elif action == "dump":
        cfg = PSSConfig.load(path) if path else load_config()
        console.print(cfg.to_yaml())

    else:
        console.print(f"[red]Unknown action:[/] {action}")
        console.print("Valid actions: init, validate, dump")
        raise typer.Exit(1)


# === VERSION COMMAND ===

@app.command()
def version():
    """Show version information."""
    console.print(f"[bold blue]PSS-Live v{__version__}[/]")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
