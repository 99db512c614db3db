"""Error taxonomy for the provisioning and dispatch pipeline."""

from __future__ import annotations

from typing import Any


class FlashkitError(Exception):
    """Base error. Carries the failing pipeline step and account address."""

    def __init__(self, message: str, *, step: str | None = None, address: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.address = str(address) if address is not None else None

    def with_context(self, step: str | None = None, address: Any = None) -> "FlashkitError":
        if step and not self.step:
            self.step = step
        if address is not None and not self.address:
            self.address = str(address)
        return self

    def __str__(self) -> str:
        parts = []
        if self.step:
            parts.append(f"[{self.step}]")
        parts.append(self.message)
        if self.address:
            parts.append(f"(account {self.address})")
        return " ".join(parts)


class ConfigurationError(FlashkitError):
    """Missing or unreadable program identity, keypair, or config file."""


class InvalidSeedError(FlashkitError):
    """Seed string is too long for create-with-seed addressing."""


class InsufficientFundsError(FlashkitError):
    """Payer cannot cover account funding plus fees."""


class NetworkError(FlashkitError):
    """RPC transport failure or confirmation timeout."""


class RejectedError(FlashkitError):
    """The network or the target program rejected a transaction."""

    def __init__(self, message: str, *, logs: list[str] | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.logs = list(logs or [])


class CreationRejectedError(RejectedError):
    """A create-with-seed transaction was rejected and the account is not usable."""


class AccountNotFoundError(FlashkitError):
    """Account has never been provisioned."""
