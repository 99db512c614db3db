"""Idempotent creation of seeded accounts."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Iterable, Protocol

from solders.account import Account
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import CreateAccountWithSeedParams, create_account_with_seed
from solders.transaction import Transaction

from .accounts import AccountDescriptor, ProvisionedAccount, derive_address
from .errors import (
    AccountNotFoundError,
    CreationRejectedError,
    FlashkitError,
    InsufficientFundsError,
    RejectedError,
)

ProgressCallback = Callable[[str, float | None], None]


class AccountNetwork(Protocol):
    def get_protocol_parameters(self, payer: Pubkey) -> Any: ...

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int: ...

    def get_balance(self, address: Pubkey) -> int: ...

    def get_account_info(self, address: Pubkey) -> Account | None: ...

    def submit_and_confirm(self, transaction: Transaction) -> Signature: ...


def _emit(on_progress: ProgressCallback | None, message: str, pct: float | None = None) -> None:
    if on_progress is not None:
        on_progress(message, pct)


def build_create_transaction(
    descriptor: AccountDescriptor,
    payer: Keypair,
    owner: Pubkey,
    address: Pubkey,
    lamports: int,
    blockhash: Any,
) -> Transaction:
    ix = create_account_with_seed(
        CreateAccountWithSeedParams(
            from_pubkey=payer.pubkey(),
            to_pubkey=address,
            base=payer.pubkey(),
            seed=descriptor.seed,
            lamports=lamports,
            space=descriptor.size,
            owner=owner,
        )
    )
    return Transaction.new_signed_with_payer([ix], payer.pubkey(), [payer], blockhash)


def ensure_account(
    network: AccountNetwork,
    descriptor: AccountDescriptor,
    payer: Keypair,
    owner: Pubkey | None = None,
    *,
    on_progress: ProgressCallback | None = None,
) -> ProvisionedAccount:
    """Return the account for ``descriptor``, creating it if it does not exist.

    An existing account is returned as-is: it is never re-funded or re-created.
    When the create transaction is rejected, the address is read again and an
    account that now exists with the expected owner counts as success, which
    covers a concurrent provisioner winning the race.
    """
    effective_owner = owner or descriptor.owner
    if effective_owner is None:
        raise ValueError(f"descriptor '{descriptor.name}' has no owning program")
    address = derive_address(payer.pubkey(), descriptor.seed, effective_owner)

    existing = network.get_account_info(address)
    if existing is not None:
        _emit(on_progress, f"Account {descriptor.name} already exists: {address}")
        return ProvisionedAccount.from_account(descriptor.name, address, existing)

    lamports = network.get_minimum_balance_for_rent_exemption(descriptor.size)
    params = network.get_protocol_parameters(payer.pubkey())
    required = lamports + params.lamports_per_signature
    balance = network.get_balance(payer.pubkey())
    if balance < required:
        raise InsufficientFundsError(
            f"payer {payer.pubkey()} has {balance} lamports; creating '{descriptor.name}' "
            f"needs {required} (rent {lamports} + fee {params.lamports_per_signature})",
            address=address,
        )

    _emit(on_progress, f"Creating account {descriptor.name}: {address}")
    tx = build_create_transaction(descriptor, payer, effective_owner, address, lamports, params.blockhash)
    try:
        signature = network.submit_and_confirm(tx)
    except RejectedError as exc:
        current = network.get_account_info(address)
        if current is not None and current.owner == effective_owner:
            _emit(on_progress, f"Account {descriptor.name} was created concurrently: {address}")
            return ProvisionedAccount.from_account(descriptor.name, address, current)
        raise CreationRejectedError(
            f"create '{descriptor.name}' rejected: {exc.message}",
            logs=exc.logs,
            address=address,
        ) from exc

    created = network.get_account_info(address)
    if created is None:
        raise AccountNotFoundError(
            f"account '{descriptor.name}' not visible after confirmed creation {signature}",
            address=address,
        )
    return ProvisionedAccount.from_account(
        descriptor.name, address, created, created=True, signature=signature
    )


def provision_tasks(
    network: AccountNetwork,
    descriptors: Iterable[AccountDescriptor],
    payer: Keypair,
    owner: Pubkey | None = None,
    *,
    on_progress: ProgressCallback | None = None,
) -> list[tuple[AccountDescriptor, Callable[[], ProvisionedAccount]]]:
    """One independent zero-argument call per descriptor, in declaration order."""
    return [
        (descriptor, partial(ensure_account, network, descriptor, payer, owner, on_progress=on_progress))
        for descriptor in descriptors
    ]


def _tag(exc: FlashkitError, descriptor: AccountDescriptor, payer: Keypair, owner: Pubkey | None) -> None:
    address = None
    effective_owner = owner or descriptor.owner
    if effective_owner is not None and not exc.address:
        try:
            address = derive_address(payer.pubkey(), descriptor.seed, effective_owner)
        except FlashkitError:
            address = None
    exc.with_context(f"provision:{descriptor.name}", address)


def provision_all(
    network: AccountNetwork,
    descriptors: Iterable[AccountDescriptor],
    payer: Keypair,
    owner: Pubkey | None = None,
    *,
    parallel: bool = False,
    max_workers: int = 4,
    on_progress: ProgressCallback | None = None,
) -> dict[str, ProvisionedAccount]:
    """Ensure every descriptor's account exists.

    Sequential mode stops at the first failure, so later descriptors are never
    touched. Parallel mode joins in declaration order and raises the first
    failure in that order, cancelling tasks that have not started.
    """
    tasks = provision_tasks(network, descriptors, payer, owner, on_progress=on_progress)
    results: dict[str, ProvisionedAccount] = {}
    total = len(tasks)

    if not parallel:
        for idx, (descriptor, task) in enumerate(tasks, start=1):
            try:
                results[descriptor.name] = task()
            except FlashkitError as exc:
                _tag(exc, descriptor, payer, owner)
                raise
            _emit(on_progress, f"Provisioned {idx}/{total}: {descriptor.name}", idx / total)
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, total or 1))) as pool:
        futures: list[tuple[AccountDescriptor, Future[ProvisionedAccount]]] = [
            (descriptor, pool.submit(task)) for descriptor, task in tasks
        ]
        try:
            for idx, (descriptor, future) in enumerate(futures, start=1):
                try:
                    results[descriptor.name] = future.result()
                except FlashkitError as exc:
                    _tag(exc, descriptor, payer, owner)
                    raise
                _emit(on_progress, f"Provisioned {idx}/{total}: {descriptor.name}", idx / total)
        except BaseException:
            for _, future in futures:
                future.cancel()
            raise
    return results
