"""Seeded account descriptors and address derivation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from solders.account import Account
from solders.pubkey import Pubkey
from solders.signature import Signature

from .constants import DEFAULT_ACCOUNTS, MAX_ACCOUNT_SIZE, MAX_SEED_LEN
from .errors import ConfigurationError, InvalidSeedError


@dataclass(frozen=True)
class AccountDescriptor:
    name: str
    seed: str
    size: int
    # None binds to the target program when the session is established.
    owner: Optional[Pubkey] = None

    def bind(self, program_id: Pubkey) -> "AccountDescriptor":
        if self.owner is not None:
            return self
        return replace(self, owner=program_id)


@dataclass(frozen=True)
class ProvisionedAccount:
    name: str
    address: Pubkey
    lamports: int
    owner: Pubkey
    data: bytes
    executable: bool
    created: bool = False
    signature: Optional[Signature] = None

    @classmethod
    def from_account(
        cls,
        name: str,
        address: Pubkey,
        account: Account,
        *,
        created: bool = False,
        signature: Optional[Signature] = None,
    ) -> "ProvisionedAccount":
        return cls(
            name=name,
            address=address,
            lamports=account.lamports,
            owner=account.owner,
            data=bytes(account.data),
            executable=account.executable,
            created=created,
            signature=signature,
        )


def check_seed(seed: str) -> str:
    if not isinstance(seed, str):
        raise InvalidSeedError("seed must be a string")
    if len(seed.encode("utf-8")) > MAX_SEED_LEN:
        raise InvalidSeedError(f"seed '{seed}' exceeds {MAX_SEED_LEN} bytes")
    return seed


def derive_address(base: Pubkey, seed: str, owner: Pubkey) -> Pubkey:
    """Return the create-with-seed address for ``(base, seed, owner)``.

    The address is ``sha256(base || seed || owner)`` and is used like any other
    account key. No network access.
    """
    check_seed(seed)
    return Pubkey.create_with_seed(base, seed, owner)


def descriptor_address(descriptor: AccountDescriptor, base: Pubkey, program_id: Pubkey) -> Pubkey:
    owner = descriptor.owner or program_id
    return derive_address(base, descriptor.seed, owner)


def default_descriptors() -> List[AccountDescriptor]:
    return [AccountDescriptor(name=name, seed=seed, size=size) for name, seed, size in DEFAULT_ACCOUNTS]


def _parse_owner(raw: Any, idx: int) -> Optional[Pubkey]:
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigurationError(f"accounts[{idx}].owner must be a base58 string")
    try:
        return Pubkey.from_string(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"accounts[{idx}].owner is not a valid pubkey: {exc}") from exc


def parse_descriptors(config: Dict[str, Any]) -> List[AccountDescriptor]:
    """Read ``[[accounts]]`` entries; fall back to the default seeded set."""
    raw = config.get("accounts")
    if raw is None:
        return default_descriptors()
    if not isinstance(raw, list) or not raw:
        raise ConfigurationError("accounts must be a non-empty array of tables")

    descriptors: List[AccountDescriptor] = []
    seen_names: set[str] = set()
    seen_seeds: set[str] = set()
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ConfigurationError(f"accounts[{idx}] must be a table")
        seed = item.get("seed")
        if not isinstance(seed, str) or not seed:
            raise ConfigurationError(f"accounts[{idx}].seed must be a non-empty string")
        check_seed(seed)
        name = item.get("name", seed)
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"accounts[{idx}].name must be a string")
        size = item.get("size")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0 or size > MAX_ACCOUNT_SIZE:
            raise ConfigurationError(f"accounts[{idx}].size must be an integer in 0..{MAX_ACCOUNT_SIZE}")
        if name in seen_names:
            raise ConfigurationError(f"duplicate account name '{name}'")
        if seed in seen_seeds:
            raise ConfigurationError(f"duplicate account seed '{seed}'")
        seen_names.add(name)
        seen_seeds.add(seed)
        descriptors.append(
            AccountDescriptor(name=name, seed=seed, size=size, owner=_parse_owner(item.get("owner"), idx))
        )
    return descriptors


def find_descriptor(descriptors: Iterable[AccountDescriptor], name: str) -> AccountDescriptor:
    for descriptor in descriptors:
        if descriptor.name == name:
            return descriptor
    raise ConfigurationError(f"no account named '{name}'")


def descriptors_to_config(descriptors: Iterable[AccountDescriptor]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for descriptor in descriptors:
        entry: Dict[str, Any] = {"name": descriptor.name, "seed": descriptor.seed, "size": descriptor.size}
        if descriptor.owner is not None:
            entry["owner"] = str(descriptor.owner)
        out.append(entry)
    return out
