"""CLI entrypoint for flashkit."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .accounts import descriptor_address
from .config import CLUSTER_URLS, Identity, resolve_identity, starter_config, write_config
from .constants import CONFIG_FILENAME
from .dispatch import OPCODE_NAMES
from .errors import FlashkitError
from .pipeline import dispatch_opcode, establish, provision_all, report, report_target, run
from .report import format_account_data


def _print_progress(message: str, pct: float | None = None) -> None:
    print(message)


def _identity_from_args(args: argparse.Namespace) -> Identity:
    return resolve_identity(
        args.config,
        cluster=args.cluster,
        rpc_url=args.rpc_url,
        payer=args.payer,
        program_id=args.program_id,
        program_keypair=args.program_keypair,
    )


def _airdrop_flag(args: argparse.Namespace) -> bool | None:
    return False if getattr(args, "no_airdrop", False) else None


def _print_report(label: str, data: bytes) -> None:
    print(f"{label}: {len(data)} bytes")
    for line in format_account_data(data):
        print(f"  {line}")


def _cmd_config_init(args: argparse.Namespace) -> int:
    out_path = Path(args.out) if args.out else Path(CONFIG_FILENAME)
    if out_path.exists() and not args.force:
        raise ValueError(f"{out_path} already exists (use --force to overwrite)")
    data = starter_config(
        rpc_url=args.rpc_url,
        cluster=args.cluster,
        payer=args.payer,
        program_id=args.program_id,
        program_keypair=args.program_keypair,
    )
    write_config(out_path, data)
    print(f"Wrote config file: {out_path}")
    return 0


def _cmd_accounts_show(args: argparse.Namespace) -> int:
    identity = _identity_from_args(args)
    payer = identity.get_payer_signer()
    program_id = identity.get_program_address()
    print("Accounts:")
    print(f"  rpc_url: {identity.rpc_url}")
    print(f"  program_id: {program_id}")
    print(f"  payer: {payer.pubkey()}")
    for descriptor in identity.descriptors:
        address = descriptor_address(descriptor, payer.pubkey(), program_id)
        owner = descriptor.owner or program_id
        print(f"    {descriptor.name} (seed {descriptor.seed}, {descriptor.size} bytes): {address}")
        if owner != program_id:
            print(f"      owner: {owner}")
    return 0


def _cmd_establish(args: argparse.Namespace) -> int:
    establish(_identity_from_args(args), airdrop=_airdrop_flag(args), on_progress=_print_progress)
    return 0


def _cmd_provision(args: argparse.Namespace) -> int:
    session = establish(_identity_from_args(args), airdrop=_airdrop_flag(args), on_progress=_print_progress)
    accounts = provision_all(session, parallel=args.parallel, on_progress=_print_progress)
    created = sum(1 for account in accounts.values() if account.created)
    print(f"Provisioned {len(accounts)} account(s), {created} created")
    return 0


def _cmd_dispatch(args: argparse.Namespace) -> int:
    session = establish(_identity_from_args(args), airdrop=_airdrop_flag(args), on_progress=_print_progress)
    payload = bytes.fromhex(args.payload_hex) if args.payload_hex else None
    signature = dispatch_opcode(
        session, OPCODE_NAMES[args.opcode], payload=payload, on_progress=_print_progress
    )
    print(f"Signature: {signature}")
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    session = establish(_identity_from_args(args), airdrop=False, on_progress=_print_progress)
    target = report_target(session, args.address, args.name)
    data = report(session, target)
    _print_report(str(target), data)
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    print("Let's initialize the flashloan program...")
    result = run(
        _identity_from_args(args),
        parallel=args.parallel,
        airdrop=_airdrop_flag(args),
        on_progress=_print_progress,
    )
    _print_report(str(report_target(result.session)), result.data or b"")
    print("Success")
    return 0


def _cmd_tui(args: argparse.Namespace) -> int:
    from .tui import launch_tui

    return launch_tui(_identity_from_args(args))


def _add_identity_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help=f"Config file (default: ./{CONFIG_FILENAME} if present)")
    parser.add_argument("--cluster", choices=sorted(CLUSTER_URLS), help="Named cluster")
    parser.add_argument("--rpc-url", help="RPC URL override")
    parser.add_argument("--payer", help="Payer keypair path")
    parser.add_argument("--program-id", help="Deployed program id")
    parser.add_argument("--program-keypair", help="Program keypair path (program id is its pubkey)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog=os.path.basename(sys.argv[0]))
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_config = sub.add_parser("config", help="Config helpers")
    p_config_sub = p_config.add_subparsers(dest="config_cmd", required=True)
    p_config_init = p_config_sub.add_parser("init", help="Write a starter config file")
    p_config_init.add_argument("--out", help=f"Output path (default: {CONFIG_FILENAME})")
    p_config_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    p_config_init.add_argument("--cluster", choices=sorted(CLUSTER_URLS), help="Named cluster")
    p_config_init.add_argument("--rpc-url", help="RPC URL")
    p_config_init.add_argument("--payer", help="Payer keypair path")
    p_config_init.add_argument("--program-id", help="Deployed program id")
    p_config_init.add_argument("--program-keypair", help="Program keypair path")
    p_config_init.set_defaults(func=_cmd_config_init)

    p_accounts = sub.add_parser("accounts", help="Account helpers")
    p_accounts_sub = p_accounts.add_subparsers(dest="accounts_cmd", required=True)
    p_accounts_show = p_accounts_sub.add_parser("show", help="Print derived account addresses (offline)")
    _add_identity_args(p_accounts_show)
    p_accounts_show.set_defaults(func=_cmd_accounts_show)

    p_establish = sub.add_parser("establish", help="Connect, check the program, and fund the payer")
    _add_identity_args(p_establish)
    p_establish.add_argument("--no-airdrop", action="store_true", help="Never request an airdrop")
    p_establish.set_defaults(func=_cmd_establish)

    p_provision = sub.add_parser("provision", help="Create any missing seeded accounts")
    _add_identity_args(p_provision)
    p_provision.add_argument("--no-airdrop", action="store_true", help="Never request an airdrop")
    p_provision.add_argument("--parallel", action="store_true", help="Provision accounts concurrently")
    p_provision.set_defaults(func=_cmd_provision)

    p_dispatch = sub.add_parser("dispatch", help="Send an instruction referencing the seeded accounts")
    _add_identity_args(p_dispatch)
    p_dispatch.add_argument("--no-airdrop", action="store_true", help="Never request an airdrop")
    p_dispatch.add_argument("--opcode", choices=sorted(OPCODE_NAMES), default="init")
    p_dispatch.add_argument("--payload-hex", help="Extra instruction bytes appended after the opcode")
    p_dispatch.set_defaults(func=_cmd_dispatch)

    p_report = sub.add_parser("report", help="Dump raw account data")
    _add_identity_args(p_report)
    target = p_report.add_mutually_exclusive_group()
    target.add_argument("--name", help="Account name from the config")
    target.add_argument("--address", help="Account address")
    p_report.set_defaults(func=_cmd_report)

    p_run = sub.add_parser("run", help="Establish, provision, dispatch init, and report")
    _add_identity_args(p_run)
    p_run.add_argument("--no-airdrop", action="store_true", help="Never request an airdrop")
    p_run.add_argument("--parallel", action="store_true", help="Provision accounts concurrently")
    p_run.set_defaults(func=_cmd_run)

    p_tui = sub.add_parser("tui", help="Launch the interactive terminal UI")
    _add_identity_args(p_tui)
    p_tui.set_defaults(func=_cmd_tui)

    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except FileNotFoundError as exc:
        print(str(exc))
        return 1
    except (FlashkitError, ValueError) as exc:
        print(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
