from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger
from pydantic import SecretStr

from launch_sniper.errors import ConfigError


class Signer(Protocol):
    """Signing capability injected at startup. The key never leaves the implementation."""

    @property
    def address(self) -> str: ...

    def sign_transaction(self, tx: dict) -> bytes: ...


@dataclass
class LocalAccountSigner:
    account: LocalAccount

    @classmethod
    def from_secret(cls, private_key: SecretStr | None) -> LocalAccountSigner:
        if private_key is None or not private_key.get_secret_value():
            raise ConfigError("Private key required for signing transactions")
        try:
            account = Account.from_key(private_key.get_secret_value())
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Invalid signing key: {type(e).__name__}") from None
        logger.info("Executor address: {}", account.address)
        return cls(account=account)

    @property
    def address(self) -> str:
        return self.account.address

    def sign_transaction(self, tx: dict) -> bytes:
        signed = self.account.sign_transaction(tx)
        return bytes(signed.raw_transaction)


@dataclass
class WatchOnlySigner:
    """Address without a key, for dry runs: payloads are built but never signed."""

    address: str

    def sign_transaction(self, tx: dict) -> bytes:
        raise ConfigError("Watch-only executor cannot sign transactions")
