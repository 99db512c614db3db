"""Project configuration and identity resolution.

Values are resolved from, in order: explicit overrides (CLI flags), the
``FLASHKIT_*`` environment, ``flashkit.toml``, the Solana CLI config, and
built-in defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ImportError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .accounts import AccountDescriptor, descriptors_to_config, default_descriptors, parse_descriptors
from .constants import (
    CONFIG_FILENAME,
    DEFAULT_RPC_URL,
    DEFAULT_TIMEOUT,
    ENV_PAYER_KEYPAIR,
    ENV_PROGRAM_ID,
    ENV_RPC_URL,
    PROGRAM_DIR,
    PROGRAM_KEYPAIR_NAME,
    PROGRAM_SO_NAME,
)
from .errors import ConfigurationError

CLUSTER_URLS: dict[str, str] = {
    "localnet": "http://127.0.0.1:8899",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet": "https://api.mainnet-beta.solana.com",
}

DEFAULT_PAYER_PATH = Path("~/.config/solana/id.json")


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def load_config(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    try:
        return tomllib.loads(config_path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Unable to read config {config_path}: {exc}") from exc


def write_config(path: str | Path, data: dict[str, Any]) -> Path:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_bytes(tomli_w.dumps(data).encode())
    return config_path


def starter_config(
    *,
    rpc_url: str | None = None,
    cluster: str | None = None,
    payer: str | None = None,
    program_id: str | None = None,
    program_keypair: str | None = None,
    descriptors: list[AccountDescriptor] | None = None,
) -> dict[str, Any]:
    cluster_table: dict[str, Any] = {}
    if cluster:
        cluster_table["cluster"] = cluster
    if rpc_url:
        cluster_table["rpc_url"] = rpc_url
    cluster_table["payer"] = payer or str(DEFAULT_PAYER_PATH)
    if program_id:
        cluster_table["program_id"] = program_id
    else:
        cluster_table["program_keypair"] = program_keypair or f"{PROGRAM_DIR}/{PROGRAM_KEYPAIR_NAME}"
    cluster_table["program_so"] = f"{PROGRAM_DIR}/{PROGRAM_SO_NAME}"
    cluster_table["airdrop"] = True
    return {
        "cluster": cluster_table,
        "accounts": descriptors_to_config(descriptors or default_descriptors()),
    }


def load_solana_cli_config(env: Mapping[str, str] | None = None) -> dict[str, str]:
    env = os.environ if env is None else env
    path = env.get("SOLANA_CONFIG") or env.get("SOLANA_CONFIG_FILE")
    if path:
        cfg_path = Path(path).expanduser()
    else:
        cfg_path = Path.home() / ".config" / "solana" / "cli" / "config.yml"
    try:
        text = cfg_path.read_text()
    except OSError:
        return {}
    cfg: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        value = value.strip().strip("\"'")
        if key and value:
            cfg[key] = value
    return cfg


def resolve_path(base_dir: Path | None, value: str) -> Path:
    expanded = Path(value).expanduser()
    if expanded.is_absolute() or base_dir is None:
        return expanded
    return (base_dir / expanded).resolve()


def load_keypair(path: str | Path) -> Keypair:
    keypair_path = Path(path).expanduser()
    try:
        raw = json.loads(keypair_path.read_text())
        return Keypair.from_bytes(bytes(raw))
    except (OSError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Failed to read keypair at '{keypair_path}': {exc}") from exc


@dataclass(frozen=True)
class Identity:
    """Resolved payer, program, and endpoint for one run."""

    rpc_url: str
    payer_path: Path
    program_id: str | None = None
    program_keypair_path: Path | None = None
    program_so_path: Path | None = None
    cluster: str | None = None
    descriptors: tuple[AccountDescriptor, ...] = field(default_factory=lambda: tuple(default_descriptors()))
    airdrop: bool = True
    timeout: float = DEFAULT_TIMEOUT
    config_path: Path | None = None

    def get_network_endpoint(self) -> str:
        return self.rpc_url

    def get_payer_signer(self) -> Keypair:
        return load_keypair(self.payer_path)

    def get_program_address(self) -> Pubkey:
        if self.program_id:
            try:
                return Pubkey.from_string(self.program_id)
            except ValueError as exc:
                raise ConfigurationError(f"program_id is not a valid pubkey: {exc}") from exc
        if self.program_keypair_path is None:
            raise ConfigurationError("No program_id or program_keypair configured")
        try:
            return load_keypair(self.program_keypair_path).pubkey()
        except ConfigurationError as exc:
            raise ConfigurationError(
                f"Failed to read program keypair at '{self.program_keypair_path}' due to error: "
                f"{exc.message}. Program may need to be deployed"
            ) from exc


def resolve_identity(
    config_path: str | Path | None = None,
    *,
    cluster: str | None = None,
    rpc_url: str | None = None,
    payer: str | None = None,
    program_id: str | None = None,
    program_keypair: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Identity:
    env = os.environ if env is None else env

    if config_path is not None:
        path: Path | None = Path(config_path)
        config = load_config(path)
    else:
        default_path = Path.cwd() / CONFIG_FILENAME
        path = default_path if default_path.exists() else None
        config = load_config(default_path) if path else {}
    base_dir = path.resolve().parent if path else Path.cwd()

    section = config.get("cluster") if isinstance(config.get("cluster"), dict) else {}
    solana_cfg = load_solana_cli_config(env)

    cluster_name = _clean(cluster) or _clean(section.get("cluster"))
    if cluster_name and cluster_name not in CLUSTER_URLS:
        raise ConfigurationError(
            f"Unknown cluster '{cluster_name}' (expected one of: {', '.join(sorted(CLUSTER_URLS))})"
        )

    if _clean(rpc_url):
        effective_rpc = _clean(rpc_url)
    elif _clean(cluster):
        effective_rpc = CLUSTER_URLS[cluster_name]  # type: ignore[index]
    else:
        effective_rpc = (
            _clean(env.get(ENV_RPC_URL))
            or _clean(section.get("rpc_url"))
            or (CLUSTER_URLS[cluster_name] if cluster_name else None)
            or _clean(solana_cfg.get("json_rpc_url"))
            or DEFAULT_RPC_URL
        )

    payer_value = (
        _clean(payer)
        or _clean(env.get(ENV_PAYER_KEYPAIR))
        or _clean(section.get("payer"))
        or _clean(solana_cfg.get("keypair_path"))
        or str(DEFAULT_PAYER_PATH)
    )

    effective_program_id = _clean(program_id) or _clean(env.get(ENV_PROGRAM_ID))
    keypair_value = _clean(program_keypair)
    if not effective_program_id and not keypair_value:
        effective_program_id = _clean(section.get("program_id"))
        keypair_value = _clean(section.get("program_keypair"))
    if not effective_program_id and not keypair_value:
        keypair_value = f"{PROGRAM_DIR}/{PROGRAM_KEYPAIR_NAME}"

    so_value = _clean(section.get("program_so")) or f"{PROGRAM_DIR}/{PROGRAM_SO_NAME}"

    airdrop = section.get("airdrop", True)
    if not isinstance(airdrop, bool):
        raise ConfigurationError("cluster.airdrop must be a boolean")
    timeout = section.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError("cluster.timeout must be a positive number")

    return Identity(
        rpc_url=effective_rpc,  # type: ignore[arg-type]
        payer_path=resolve_path(base_dir, payer_value),
        program_id=effective_program_id,
        program_keypair_path=resolve_path(base_dir, keypair_value) if keypair_value else None,
        program_so_path=resolve_path(base_dir, so_value),
        cluster=cluster_name,
        descriptors=tuple(parse_descriptors(config)),
        airdrop=airdrop,
        timeout=float(timeout),
        config_path=path,
    )
