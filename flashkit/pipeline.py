"""Session context and the establish / provision / dispatch / report steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .accounts import AccountDescriptor, ProvisionedAccount, descriptor_address, find_descriptor
from .config import Identity
from .constants import FEE_SIGNATURE_ALLOWANCE, LAMPORTS_PER_SOL, REPORT_ACCOUNT_NAME
from .dispatch import Opcode, dispatch
from .errors import ConfigurationError, FlashkitError
from .network import NetworkClient
from .provision import ProgressCallback, provision_all as _provision_all
from .report import read_account

NetworkFactory = Callable[[Identity], NetworkClient]


def _default_network(identity: Identity) -> NetworkClient:
    return NetworkClient(identity.get_network_endpoint(), timeout=identity.timeout)


def _emit(on_progress: ProgressCallback | None, message: str, pct: float | None = None) -> None:
    if on_progress is not None:
        on_progress(message, pct)


@dataclass(frozen=True)
class Session:
    """Everything the later steps need, built once by :func:`establish`."""

    network: NetworkClient
    payer: Keypair
    program_id: Pubkey
    descriptors: tuple[AccountDescriptor, ...]
    rpc_url: str
    balance: int = 0

    def address_of(self, descriptor: AccountDescriptor) -> Pubkey:
        return descriptor_address(descriptor, self.payer.pubkey(), self.program_id)

    def addresses(self) -> list[Pubkey]:
        return [self.address_of(descriptor) for descriptor in self.descriptors]


@dataclass
class RunResult:
    session: Session
    accounts: dict[str, ProvisionedAccount] = field(default_factory=dict)
    signature: Signature | None = None
    data: bytes | None = None


def check_program(network: NetworkClient, program_id: Pubkey, so_path: Path | None = None) -> None:
    info = network.get_account_info(program_id)
    if info is None:
        if so_path is not None and so_path.exists():
            raise ConfigurationError("Program needs to be deployed", address=program_id)
        raise ConfigurationError("Program needs to be built and deployed", address=program_id)
    if not info.executable:
        raise ConfigurationError("Program is not executable", address=program_id)


def required_payer_balance(
    network: NetworkClient, payer: Pubkey, descriptors: tuple[AccountDescriptor, ...]
) -> int:
    rent = sum(network.get_minimum_balance_for_rent_exemption(d.size) for d in descriptors)
    params = network.get_protocol_parameters(payer)
    return rent + params.lamports_per_signature * FEE_SIGNATURE_ALLOWANCE


def fund_payer(
    network: NetworkClient,
    payer: Keypair,
    descriptors: tuple[AccountDescriptor, ...],
    *,
    airdrop: bool = True,
    on_progress: ProgressCallback | None = None,
) -> int:
    required = required_payer_balance(network, payer.pubkey(), descriptors)
    balance = network.get_balance(payer.pubkey())
    if balance < required:
        if airdrop:
            _emit(on_progress, f"Requesting airdrop of {required - balance} lamports")
            network.request_funds(payer.pubkey(), required - balance)
            balance = network.get_balance(payer.pubkey())
        else:
            _emit(on_progress, f"Payer balance {balance} is below the {required} lamports needed; airdrop disabled")
    return balance


def establish(
    identity: Identity,
    *,
    network_factory: NetworkFactory | None = None,
    airdrop: bool | None = None,
    on_progress: ProgressCallback | None = None,
) -> Session:
    """Load identities, connect, verify the program, and fund the payer."""
    try:
        payer = identity.get_payer_signer()
        program_id = identity.get_program_address()
        descriptors = tuple(descriptor.bind(program_id) for descriptor in identity.descriptors)
        for descriptor in descriptors:
            descriptor_address(descriptor, payer.pubkey(), program_id)

        network = (network_factory or _default_network)(identity)
        version = network.get_version()
        _emit(on_progress, f"Connection to cluster established: {identity.rpc_url} {version}")

        check_program(network, program_id, identity.program_so_path)
        _emit(on_progress, f"Using program {program_id}")

        balance = fund_payer(
            network,
            payer,
            descriptors,
            airdrop=identity.airdrop if airdrop is None else airdrop,
            on_progress=on_progress,
        )
        _emit(
            on_progress,
            f"Using account {payer.pubkey()} containing {balance / LAMPORTS_PER_SOL} SOL to pay for fees",
        )
    except FlashkitError as exc:
        exc.with_context("establish")
        raise

    return Session(
        network=network,
        payer=payer,
        program_id=program_id,
        descriptors=descriptors,
        rpc_url=identity.rpc_url,
        balance=balance,
    )


def provision_all(
    session: Session,
    *,
    parallel: bool = False,
    on_progress: ProgressCallback | None = None,
) -> dict[str, ProvisionedAccount]:
    return _provision_all(
        session.network,
        session.descriptors,
        session.payer,
        session.program_id,
        parallel=parallel,
        on_progress=on_progress,
    )


def dispatch_opcode(
    session: Session,
    opcode: Opcode,
    *,
    payload: bytes | None = None,
    on_progress: ProgressCallback | None = None,
) -> Signature:
    addresses = session.addresses()
    _emit(on_progress, f"Dispatching {opcode.name} to {session.program_id} with {len(addresses)} account(s)")
    try:
        signature = dispatch(session.network, opcode, addresses, session.program_id, session.payer, payload)
    except FlashkitError as exc:
        exc.with_context("dispatch", session.program_id)
        raise
    _emit(on_progress, f"Confirmed {opcode.name}: {signature}")
    return signature


def dispatch_init(session: Session, *, on_progress: ProgressCallback | None = None) -> Signature:
    return dispatch_opcode(session, Opcode.INIT, on_progress=on_progress)


def report_target(session: Session, address: Pubkey | str | None = None, name: str | None = None) -> Pubkey:
    if address is not None:
        if isinstance(address, Pubkey):
            return address
        try:
            return Pubkey.from_string(address)
        except ValueError as exc:
            raise ConfigurationError(f"invalid address '{address}': {exc}", step="report") from exc
    if name is None:
        names = [descriptor.name for descriptor in session.descriptors]
        if REPORT_ACCOUNT_NAME in names:
            name = REPORT_ACCOUNT_NAME
        elif names:
            name = names[-1]
        else:
            raise ConfigurationError("no accounts configured", step="report")
    return session.address_of(find_descriptor(session.descriptors, name))


def report(
    session: Session,
    address: Pubkey | str | None = None,
    *,
    name: str | None = None,
) -> bytes:
    try:
        target = report_target(session, address, name)
        return read_account(session.network, target)
    except FlashkitError as exc:
        exc.with_context("report")
        raise


def run(
    identity: Identity,
    *,
    network_factory: NetworkFactory | None = None,
    parallel: bool = False,
    airdrop: bool | None = None,
    on_progress: ProgressCallback | None = None,
) -> RunResult:
    """Full pipeline. The first failing step aborts everything after it."""
    session = establish(identity, network_factory=network_factory, airdrop=airdrop, on_progress=on_progress)
    result = RunResult(session=session)
    result.accounts = provision_all(session, parallel=parallel, on_progress=on_progress)
    result.signature = dispatch_init(session, on_progress=on_progress)
    result.data = report(session)
    return result
