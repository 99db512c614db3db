"""Network client adapter over solana-py.

Only this module talks to the RPC node. Library exceptions are translated into
the flashkit error taxonomy here; callers never see solana-py exception types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.account import Account
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

from .constants import DEFAULT_LAMPORTS_PER_SIGNATURE, DEFAULT_TIMEOUT
from .errors import InsufficientFundsError, NetworkError, RejectedError

# Fee-payer funding failures. Anything else, including a program reporting its
# own "insufficient ..." condition, stays a RejectedError.
_FUNDING_ERRORS = (
    "insufficientfundsforfee",
    "insufficientfundsforrent",
    "attempttodebitanaccountbutfoundnorecordofapriorcredit",
)
_SYSTEM_TRANSFER_SHORTFALL = "Transfer: insufficient lamports"
_SYSTEM_PROGRAM = str(SYSTEM_PROGRAM_ID)


@dataclass(frozen=True)
class ProtocolParameters:
    blockhash: Hash
    last_valid_block_height: int
    lamports_per_signature: int


def _rpc_error_logs(exc: RPCException) -> list[str]:
    payload = exc.args[0] if exc.args else None
    data = getattr(payload, "data", None)
    logs = getattr(data, "logs", None)
    return [str(line) for line in logs] if logs else []


def _rpc_error_message(exc: RPCException) -> str:
    payload = exc.args[0] if exc.args else None
    message = getattr(payload, "message", None)
    return str(message) if message else str(exc)


def _is_funding_error(text: str) -> bool:
    compact = "".join(ch for ch in text.lower() if ch.isalnum())
    return any(marker in compact for marker in _FUNDING_ERRORS)


def _system_transfer_shortfall(logs: list[str]) -> bool:
    """True when a top-level system program instruction ran out of lamports.

    The same line logged by a system program CPI from another program is the
    caller's failure, not the payer's.
    """
    stack: list[str] = []
    for line in logs:
        parts = line.split()
        # "Program <id> invoke [n]" / "Program <id> success" / "Program <id> failed: ..."
        frame = len(parts) >= 3 and parts[0] == "Program" and not parts[1].endswith(":")
        if frame and parts[2] == "invoke":
            stack.append(parts[1])
        elif frame and parts[2] in ("success", "failed:"):
            if stack:
                stack.pop()
        elif line.startswith(_SYSTEM_TRANSFER_SHORTFALL) and stack == [_SYSTEM_PROGRAM]:
            return True
    return False


class NetworkClient:
    """Blocking RPC client exposing the calls the pipeline needs."""

    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: Commitment = Confirmed,
        timeout: float = DEFAULT_TIMEOUT,
        client: Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._client = client if client is not None else Client(rpc_url, commitment=commitment, timeout=timeout)

    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except RPCException as exc:
            message = _rpc_error_message(exc)
            logs = _rpc_error_logs(exc)
            if _is_funding_error(message) or _system_transfer_shortfall(logs):
                raise InsufficientFundsError(f"{what}: {message}") from exc
            raise RejectedError(f"{what}: {message}", logs=logs) from exc
        except UnconfirmedTxError as exc:
            raise NetworkError(f"{what}: transaction not confirmed: {exc}") from exc
        except (SolanaRpcException, httpx.HTTPError, OSError) as exc:
            raise NetworkError(f"{what} failed against {self.rpc_url}: {exc}") from exc

    def get_version(self) -> str:
        resp = self._call("getVersion", self._client.get_version)
        return str(resp.value.solana_core)

    def get_protocol_parameters(self, payer: Pubkey) -> ProtocolParameters:
        resp = self._call("getLatestBlockhash", self._client.get_latest_blockhash, self.commitment)
        blockhash = resp.value.blockhash
        message = Message.new_with_blockhash([], payer, blockhash)
        fee = self._call("getFeeForMessage", self._client.get_fee_for_message, message, self.commitment).value
        return ProtocolParameters(
            blockhash=blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
            lamports_per_signature=fee if fee else DEFAULT_LAMPORTS_PER_SIGNATURE,
        )

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        resp = self._call(
            "getMinimumBalanceForRentExemption",
            self._client.get_minimum_balance_for_rent_exemption,
            size,
            self.commitment,
        )
        return int(resp.value)

    def get_balance(self, address: Pubkey) -> int:
        resp = self._call("getBalance", self._client.get_balance, address, self.commitment)
        return int(resp.value)

    def get_account_info(self, address: Pubkey) -> Account | None:
        resp = self._call(
            "getAccountInfo",
            self._client.get_account_info,
            address,
            self.commitment,
            encoding="base64",
        )
        return resp.value

    def _confirm(self, what: str, signature: Signature) -> Signature:
        resp = self._call(what, self._client.confirm_transaction, signature, self.commitment)
        statuses = getattr(resp, "value", None) or []
        status = statuses[0] if statuses else None
        err = getattr(status, "err", None)
        if err is not None:
            text = str(err)
            if _is_funding_error(text):
                raise InsufficientFundsError(f"{what}: transaction {signature} failed: {text}")
            raise RejectedError(f"{what}: transaction {signature} failed: {text}")
        return signature

    def request_funds(self, address: Pubkey, lamports: int) -> Signature:
        signature = self._call("requestAirdrop", self._client.request_airdrop, address, lamports, self.commitment)
        return self._confirm("requestAirdrop", signature.value)

    def submit_and_confirm(self, transaction: Transaction) -> Signature:
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        resp = self._call("sendTransaction", self._client.send_raw_transaction, bytes(transaction), opts=opts)
        return self._confirm("confirmTransaction", resp.value)
