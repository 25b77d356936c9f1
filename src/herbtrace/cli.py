"""Typer CLI entrypoint for herbtrace."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import typer

from .engine import StageResult, TraceabilityEngine, open_engine
from .exceptions import (
    AuthorizationError,
    ConfigError,
    HerbtraceError,
    NotFoundError,
    SequenceError,
    ValidationError,
)
from .identifiers import decode, encode
from .ledger import QueryFunction, TransactionJournal, export_csv
from .ledger.selection import JOURNAL_FILENAME
from .records import Actor, Role


EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 2
EXIT_SEQUENCE_ERROR = 3
EXIT_IO_ERROR = 4
EXIT_CONFIG_ERROR = 5
EXIT_NOT_FOUND = 6
EXIT_AUTHORIZATION_ERROR = 7

DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"]

T = TypeVar("T")


app = typer.Typer(help="Herb chain-of-custody engine")
qr_app = typer.Typer(help="QR artifact commands")
ledger_app = typer.Typer(help="Ledger inspection")
app.add_typer(qr_app, name="qr")
app.add_typer(ledger_app, name="ledger")


CONFIG_OPTION = typer.Option(
    Path("config"),
    "--config",
    "-c",
    help="Path to configuration directory",
)
WORKSPACE_OPTION = typer.Option(
    Path(".herbtrace"),
    "--workspace",
    "-w",
    help="Directory for simulated ledger state",
)
QR_OPTION = typer.Option(
    None,
    "--qr",
    dir_okay=False,
    writable=True,
    help="Write the chain's QR code here (.png or .svg)",
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for diagnostics on stderr",
    ),
) -> None:
    """Record and trace herb batches from harvest to finished product."""

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


@app.command("collect")
def collect_command(
    herb: str = typer.Option(..., "--herb", help="Herb id or name"),
    weight: float = typer.Option(..., "--weight", help="Harvested weight in kg"),
    latitude: float = typer.Option(..., "--lat", help="Collection latitude"),
    longitude: float = typer.Option(..., "--lng", help="Collection longitude"),
    actor: str = typer.Option(..., "--actor", help="Collector id"),
    role: Role = typer.Option(Role.COLLECTOR, "--role", help="Role of the actor"),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", formats=DATETIME_FORMATS, help="Harvest time (defaults to now)"
    ),
    image_hash: Optional[str] = typer.Option(None, "--image-hash"),
    metadata_hash: Optional[str] = typer.Option(None, "--metadata-hash"),
    qr_path: Optional[Path] = QR_OPTION,
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Record a harvest and open a new chain."""

    async def action(engine: TraceabilityEngine) -> StageResult:
        return await engine.sequencer.record_collection(
            Actor(actor, role),
            herb,
            weight,
            latitude,
            longitude,
            timestamp=timestamp,
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )

    result = _run(_with_engine(config_dir, workspace, action))
    _emit_stage_result(result, qr_path)


@app.command("attest")
def attest_command(
    chain_id: str = typer.Argument(..., help="Chain identifier"),
    moisture: float = typer.Option(..., "--moisture", help="Moisture in %"),
    pesticide: float = typer.Option(..., "--pesticide", help="Pesticide residue in mg/kg"),
    heavy_metal: float = typer.Option(..., "--heavy-metal", help="Heavy metals in ppm"),
    actor: str = typer.Option(..., "--actor", help="Lab tester id"),
    role: Role = typer.Option(Role.LAB, "--role", help="Role of the actor"),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", formats=DATETIME_FORMATS
    ),
    image_hash: Optional[str] = typer.Option(None, "--image-hash"),
    metadata_hash: Optional[str] = typer.Option(None, "--metadata-hash"),
    qr_path: Optional[Path] = QR_OPTION,
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Record lab results for a collected chain."""

    async def action(engine: TraceabilityEngine) -> StageResult:
        return await engine.sequencer.attest_quality(
            Actor(actor, role),
            chain_id,
            moisture,
            pesticide,
            heavy_metal,
            timestamp=timestamp,
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )

    result = _run(_with_engine(config_dir, workspace, action))
    _emit_stage_result(result, qr_path)


@app.command("process")
def process_command(
    chain_id: str = typer.Argument(..., help="Chain identifier"),
    method: str = typer.Option(..., "--method", help="Processing method, e.g. drying"),
    temperature: float = typer.Option(..., "--temperature", help="Temperature in C"),
    duration: float = typer.Option(..., "--duration", help="Duration in hours"),
    yield_amount: float = typer.Option(..., "--yield", help="Output weight in kg"),
    actor: str = typer.Option(..., "--actor", help="Processor id"),
    role: Role = typer.Option(Role.PROCESSOR, "--role", help="Role of the actor"),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", formats=DATETIME_FORMATS
    ),
    image_hash: Optional[str] = typer.Option(None, "--image-hash"),
    metadata_hash: Optional[str] = typer.Option(None, "--metadata-hash"),
    qr_path: Optional[Path] = QR_OPTION,
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Record processing of a chain that passed quality."""

    async def action(engine: TraceabilityEngine) -> StageResult:
        return await engine.sequencer.transfer_custody(
            Actor(actor, role),
            chain_id,
            method,
            temperature,
            duration,
            yield_amount,
            timestamp=timestamp,
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )

    result = _run(_with_engine(config_dir, workspace, action))
    _emit_stage_result(result, qr_path)


@app.command("manufacture")
def manufacture_command(
    chain_id: str = typer.Argument(..., help="Chain identifier"),
    product_name: str = typer.Option(..., "--product", help="Product name"),
    batch_size: int = typer.Option(..., "--batch-size", min=1, help="Units in the batch"),
    expiry: datetime = typer.Option(
        ..., "--expiry", formats=["%Y-%m-%d"], help="Expiry date (YYYY-MM-DD)"
    ),
    actor: str = typer.Option(..., "--actor", help="Manufacturer id"),
    role: Role = typer.Option(Role.MANUFACTURER, "--role", help="Role of the actor"),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", formats=DATETIME_FORMATS
    ),
    image_hash: Optional[str] = typer.Option(None, "--image-hash"),
    metadata_hash: Optional[str] = typer.Option(None, "--metadata-hash"),
    qr_path: Optional[Path] = QR_OPTION,
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Create the final product batch for a processed chain."""

    async def action(engine: TraceabilityEngine) -> StageResult:
        return await engine.sequencer.create_batch(
            Actor(actor, role),
            chain_id,
            product_name,
            batch_size,
            expiry.date(),
            timestamp=timestamp,
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )

    result = _run(_with_engine(config_dir, workspace, action))
    _emit_stage_result(result, qr_path)


@app.command("trace")
def trace_command(
    chain_id: str = typer.Argument(..., help="Chain identifier or scanned QR payload"),
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Show the full provenance of a chain."""

    async def action(engine: TraceabilityEngine) -> Dict[str, Any]:
        chain = await engine.assembler.get_provenance(decode(chain_id))
        payload = chain.as_dict()
        payload["timeline"] = [
            {
                "stage": step.stage.value,
                "timestamp": step.timestamp.isoformat(),
                "organization": step.organization,
                "transactionId": step.transaction_id,
                "simulated": step.simulated,
                "details": step.details,
            }
            for step in chain.timeline()
        ]
        return payload

    payload = _run(_with_engine(config_dir, workspace, action))
    typer.echo(json.dumps(payload, indent=2))


@qr_app.command("render")
def qr_render(
    chain_id: str = typer.Argument(..., help="Chain identifier"),
    out: Path = typer.Option(
        ...,
        "--out",
        "-o",
        dir_okay=False,
        writable=True,
        help="Output image path (.png or .svg)",
    ),
) -> None:
    """Render the QR code for a chain identifier."""

    try:
        path = encode(chain_id).save(out)
    except ValidationError as exc:
        typer.echo(f"Validation error: {exc}", err=True)
        raise typer.Exit(EXIT_VALIDATION_ERROR) from exc
    except OSError as exc:
        typer.echo(f"Failed to write {out}: {exc}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from exc

    typer.echo(json.dumps({"chainId": chain_id, "output": str(path)}, indent=2))


@qr_app.command("decode")
def qr_decode(
    payload: str = typer.Argument(..., help="Scanned QR payload text"),
) -> None:
    """Validate a scanned payload and print the identifier it carries."""

    try:
        identifier = decode(payload)
    except ValidationError as exc:
        typer.echo(f"Validation error: {exc}", err=True)
        raise typer.Exit(EXIT_VALIDATION_ERROR) from exc

    typer.echo(
        json.dumps({"chainId": identifier.value, "marker": identifier.marker.value}, indent=2)
    )


@ledger_app.command("status")
def ledger_status(
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Show which ledger was selected and its state."""

    async def action(engine: TraceabilityEngine) -> Dict[str, Any]:
        return engine.ledger.describe()

    payload = _run(_with_engine(config_dir, workspace, action))
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@ledger_app.command("history")
def ledger_history(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of entries"),
    config_dir: Path = CONFIG_OPTION,
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """List recent transactions, newest first."""

    async def action(engine: TraceabilityEngine) -> Any:
        return await engine.ledger.evaluate(
            QueryFunction.GET_TRANSACTION_HISTORY, {"limit": limit}
        )

    entries = _run(_with_engine(config_dir, workspace, action))
    typer.echo(json.dumps({"transactions": entries or []}, indent=2))


@ledger_app.command("export")
def ledger_export(
    out: Path = typer.Option(
        ...,
        "--out",
        "-o",
        dir_okay=False,
        writable=True,
        help="CSV output path",
    ),
    workspace: Path = WORKSPACE_OPTION,
) -> None:
    """Export the simulated transaction log as CSV."""

    journal = TransactionJournal(Path(workspace) / JOURNAL_FILENAME)
    try:
        rows = export_csv(journal.read(), out)
    except OSError as exc:
        typer.echo(f"Failed to write {out}: {exc}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from exc

    typer.echo(json.dumps({"output": str(out), "rows": rows}, indent=2))


async def _with_engine(
    config_dir: Path,
    workspace: Path,
    action: Callable[[TraceabilityEngine], Awaitable[T]],
) -> T:
    engine = await open_engine(config_dir, workspace)
    async with engine:
        return await action(engine)


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except ValidationError as exc:
        issues = [
            {"code": issue.code, "message": issue.message, "location": issue.location}
            for issue in exc.issues
        ]
        typer.echo(json.dumps({"errors": issues}, indent=2))
        typer.echo(f"Validation error: {exc}", err=True)
        raise typer.Exit(EXIT_VALIDATION_ERROR) from exc
    except SequenceError as exc:
        typer.echo(f"Sequence error: {exc}", err=True)
        raise typer.Exit(EXIT_SEQUENCE_ERROR) from exc
    except NotFoundError as exc:
        typer.echo(f"Not found: {exc}", err=True)
        raise typer.Exit(EXIT_NOT_FOUND) from exc
    except AuthorizationError as exc:
        typer.echo(f"Authorization error: {exc}", err=True)
        raise typer.Exit(EXIT_AUTHORIZATION_ERROR) from exc
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    except HerbtraceError as exc:
        typer.echo(f"Ledger error: {exc}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from exc
    except OSError as exc:
        typer.echo(f"I/O error: {exc}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from exc


def _emit_stage_result(result: StageResult, qr_path: Optional[Path]) -> None:
    payload: Dict[str, Any] = {
        "chainId": result.chain_id,
        "state": result.state.value,
        **result.receipt.as_dict(),
        "qr": None,
    }
    if qr_path is not None:
        try:
            payload["qr"] = str(result.artifact.save(qr_path))
        except OSError as exc:
            typer.echo(f"Failed to write {qr_path}: {exc}", err=True)
            raise typer.Exit(EXIT_IO_ERROR) from exc
    typer.echo(json.dumps(payload, indent=2))
