"""Argparse-free wrappers around the pipeline for the TUI.

Every function returns a CommandResult instead of raising, and accepts an
optional on_progress callback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..config import Identity
from ..errors import FlashkitError, RejectedError
from ..pipeline import NetworkFactory, Session, dispatch_init, establish, provision_all, report, report_target
from ..provision import ProgressCallback
from ..report import format_account_data


@dataclass
class CommandResult:
    """Universal return type for all TUI commands."""

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)


def _collector(logs: list[str], on_progress: ProgressCallback | None) -> ProgressCallback:
    def progress(message: str, pct: float | None = None) -> None:
        logs.append(message)
        if on_progress is not None:
            on_progress(message, pct)

    return progress


def _failure(exc: FlashkitError, logs: list[str]) -> CommandResult:
    data: dict[str, Any] = {}
    if exc.step:
        data["step"] = exc.step
    if isinstance(exc, RejectedError) and exc.logs:
        data["logs"] = list(exc.logs)
    if exc.address:
        data["address"] = exc.address
    return CommandResult(success=False, message=str(exc), data=data, errors=[str(exc)], logs=logs)


def cmd_establish(
    identity: Identity,
    network_factory: NetworkFactory | None = None,
    on_progress: ProgressCallback | None = None,
) -> CommandResult:
    logs: list[str] = []
    try:
        session = establish(identity, network_factory=network_factory, on_progress=_collector(logs, on_progress))
    except FlashkitError as exc:
        return _failure(exc, logs)
    return CommandResult(
        success=True,
        message=f"Connected to {session.rpc_url}",
        data={"session": session, "payer": str(session.payer.pubkey()), "balance": session.balance},
        logs=logs,
    )


def cmd_provision(
    session: Session,
    parallel: bool = False,
    on_progress: ProgressCallback | None = None,
) -> CommandResult:
    logs: list[str] = []
    try:
        accounts = provision_all(session, parallel=parallel, on_progress=_collector(logs, on_progress))
    except FlashkitError as exc:
        return _failure(exc, logs)
    created = [name for name, account in accounts.items() if account.created]
    return CommandResult(
        success=True,
        message=f"Provisioned {len(accounts)} account(s), {len(created)} created",
        data={
            "accounts": {name: str(account.address) for name, account in accounts.items()},
            "created": created,
        },
        logs=logs,
    )


def cmd_dispatch_init(session: Session, on_progress: ProgressCallback | None = None) -> CommandResult:
    logs: list[str] = []
    try:
        signature = dispatch_init(session, on_progress=_collector(logs, on_progress))
    except FlashkitError as exc:
        return _failure(exc, logs)
    return CommandResult(
        success=True,
        message="Init instruction confirmed",
        data={"signature": str(signature)},
        logs=logs,
    )


def cmd_report(session: Session, name: str | None = None) -> CommandResult:
    try:
        target = report_target(session, name=name)
        data = report(session, target)
    except FlashkitError as exc:
        return _failure(exc, [])
    return CommandResult(
        success=True,
        message=f"{target}: {len(data)} bytes",
        data={"address": str(target), "raw": data, "dump": format_account_data(data)},
    )
