"""Raw account data readback."""

from __future__ import annotations

from typing import Protocol

from solders.account import Account
from solders.pubkey import Pubkey

from .errors import AccountNotFoundError


class ReportNetwork(Protocol):
    def get_account_info(self, address: Pubkey) -> Account | None: ...


def read_account(network: ReportNetwork, address: Pubkey) -> bytes:
    info = network.get_account_info(address)
    if info is None:
        raise AccountNotFoundError("cannot find the account", address=address)
    # Layout is not decoded here.
    return bytes(info.data)


def format_account_data(data: bytes, width: int = 16) -> list[str]:
    if width <= 0:
        raise ValueError("width must be positive")
    if not data:
        return ["<empty>"]
    lines = []
    for offset in range(0, len(data), width):
        chunk = data[offset : offset + width]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        text = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{offset:08x}  {hex_part:<{width * 3 - 1}}  |{text}|")
    return lines
