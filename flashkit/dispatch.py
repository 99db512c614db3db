"""Instruction construction and submission for the flashloan program."""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Protocol, Sequence

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction


class Opcode(IntEnum):
    INIT = 0
    EXECUTE_OPERATION = 1
    CALL = 2


OPCODE_NAMES = {
    "init": Opcode.INIT,
    "execute-operation": Opcode.EXECUTE_OPERATION,
    "call": Opcode.CALL,
}


class DispatchNetwork(Protocol):
    def get_protocol_parameters(self, payer: Pubkey): ...

    def submit_and_confirm(self, transaction: Transaction) -> Signature: ...


def encode_opcode(opcode: Opcode) -> bytes:
    # The program reads the JSON text of the variant index, e.g. b"0" for INIT.
    return json.dumps(int(opcode)).encode()


def account_metas(payer: Pubkey, addresses: Sequence[Pubkey]) -> list[AccountMeta]:
    metas = [AccountMeta(payer, True, True)]
    metas.extend(AccountMeta(address, False, True) for address in addresses)
    return metas


def build_instruction(
    opcode: Opcode,
    program_id: Pubkey,
    payer: Pubkey,
    addresses: Sequence[Pubkey],
    payload: bytes | None = None,
) -> Instruction:
    if payer in addresses:
        raise ValueError("payer must not be repeated among instruction accounts")
    data = encode_opcode(opcode) + (payload or b"")
    return Instruction(program_id, data, account_metas(payer, addresses))


def build_transaction(instruction: Instruction, payer: Keypair, blockhash: Hash) -> Transaction:
    return Transaction.new_signed_with_payer([instruction], payer.pubkey(), [payer], blockhash)


def dispatch(
    network: DispatchNetwork,
    opcode: Opcode,
    addresses: Sequence[Pubkey],
    program_id: Pubkey,
    payer: Keypair,
    payload: bytes | None = None,
) -> Signature:
    """Send one instruction referencing ``addresses`` and wait for confirmation.

    Account order on the wire is the payer (signer, writable) followed by
    ``addresses`` exactly as given (writable).
    """
    ix = build_instruction(opcode, program_id, payer.pubkey(), addresses, payload)
    params = network.get_protocol_parameters(payer.pubkey())
    return network.submit_and_confirm(build_transaction(ix, payer, params.blockhash))
