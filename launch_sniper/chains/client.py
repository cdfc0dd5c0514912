from __future__ import annotations

from typing import Any, Awaitable, Mapping, Optional, Protocol, Sequence

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound

from launch_sniper.errors import TransientFetchError
from launch_sniper.models import LogEntry, to_hash_hex


class ChainClient(Protocol):
    """Narrow view of the node used by the pipeline. Every method is a suspension point."""

    async def block_number(self) -> int: ...

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        topics: Sequence[Optional[str]],
        address: Optional[str] = None,
    ) -> list[LogEntry]: ...

    async def get_block(self, number: int, full_transactions: bool = False) -> Mapping[str, Any]: ...

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]: ...

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]: ...

    async def call(self, to: str, data: bytes) -> bytes: ...

    async def get_transaction_count(self, address: str) -> int: ...

    async def gas_price(self) -> int: ...

    async def send_raw_transaction(self, raw: bytes) -> str: ...


class Web3ChainClient:
    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    @classmethod
    def create(cls, rpc_url: str, timeout_sec: float = 10.0) -> Web3ChainClient:
        w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout_sec}))
        logger.info("Connected to EVM provider: {}", rpc_url)
        return cls(w3=w3)

    async def _rpc(self, method: str, awaitable: Awaitable):
        try:
            return await awaitable
        except (ContractLogicError, TransactionNotFound):
            raise
        except Exception as e:
            raise TransientFetchError(method, str(e) or type(e).__name__) from e

    async def block_number(self) -> int:
        return int(await self._rpc("eth_blockNumber", self.w3.eth.block_number))

    async def get_logs(self, from_block, to_block, topics, address=None) -> list[LogEntry]:
        params: dict[str, Any] = {"fromBlock": from_block, "toBlock": to_block, "topics": list(topics)}
        if address:
            params["address"] = AsyncWeb3.to_checksum_address(address)
        raw_logs = await self._rpc("eth_getLogs", self.w3.eth.get_logs(params))
        return [LogEntry.from_rpc(lg) for lg in raw_logs or []]

    async def get_block(self, number: int, full_transactions: bool = False):
        return await self._rpc("eth_getBlockByNumber", self.w3.eth.get_block(number, full_transactions=full_transactions))

    async def get_transaction(self, tx_hash: str):
        try:
            return await self._rpc("eth_getTransactionByHash", self.w3.eth.get_transaction(tx_hash))
        except TransactionNotFound:
            return None

    async def get_transaction_receipt(self, tx_hash: str):
        try:
            return await self._rpc("eth_getTransactionReceipt", self.w3.eth.get_transaction_receipt(tx_hash))
        except TransactionNotFound:
            return None

    async def call(self, to: str, data: bytes) -> bytes:
        tx = {"to": AsyncWeb3.to_checksum_address(to), "data": "0x" + data.hex()}
        try:
            result = await self._rpc("eth_call", self.w3.eth.call(tx))
        except ContractLogicError:
            return b""
        return bytes(result or b"")

    async def get_transaction_count(self, address: str) -> int:
        addr = AsyncWeb3.to_checksum_address(address)
        return int(await self._rpc("eth_getTransactionCount", self.w3.eth.get_transaction_count(addr, "pending")))

    async def gas_price(self) -> int:
        return int(await self._rpc("eth_gasPrice", self.w3.eth.gas_price))

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx_hash = await self._rpc("eth_sendRawTransaction", self.w3.eth.send_raw_transaction(raw))
        return to_hash_hex(tx_hash)
