from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.chains.signatures import ERC20_TRANSFER
from launch_sniper.errors import TransientFetchError
from launch_sniper.logs import report_failure
from launch_sniper.models import LogEntry, TradeIntent, normalize_address, to_int


def received_amount(receipt: Mapping[str, Any], token: str, recipient: str) -> int:
    """Sum of ``token`` Transfer amounts to ``recipient`` in a receipt."""
    token = normalize_address(token)
    recipient = normalize_address(recipient)
    total = 0
    for raw in receipt.get("logs") or []:
        lg = LogEntry.from_rpc(raw)
        if lg.emitter != token or len(lg.topics) != 3 or lg.topics[0] != ERC20_TRANSFER.topic0:
            continue
        if normalize_address(lg.topics[2]) == recipient and len(lg.data) >= 32:
            total += int.from_bytes(lg.data[:32], "big")
    return total


class ConfirmationWatcher:
    """Detached receipt pollers for submitted swaps.

    The caller gets its TradeResult as soon as the transaction is accepted;
    the outcome is only logged from here. Nothing waits on these tasks except
    shutdown.
    """

    def __init__(self, client: ChainClient, recipient: str, poll_sec: float = 3.0):
        self.client = client
        self.recipient = normalize_address(recipient)
        self.poll_sec = poll_sec
        self._tasks: set[asyncio.Task] = set()
        self.confirmed = 0
        self.reverted = 0

    def __len__(self) -> int:
        return len(self._tasks)

    def watch(self, tx_hash: str, intent: TradeIntent) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._wait(tx_hash, intent), name=f"confirm-{tx_hash}")
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            report_failure("confirmation", task.get_name(), exc)

    async def _wait(self, tx_hash: str, intent: TradeIntent) -> Optional[int]:
        while True:
            try:
                receipt = await self.client.get_transaction_receipt(tx_hash)
            except TransientFetchError as e:
                logger.debug("Receipt poll for {} failed, retrying: {}", tx_hash, e)
                receipt = None
            if receipt is not None:
                return self._report(tx_hash, intent, receipt)
            await asyncio.sleep(self.poll_sec)

    def _report(self, tx_hash: str, intent: TradeIntent, receipt: Mapping[str, Any]) -> Optional[int]:
        status = to_int(receipt.get("status"))
        gas_used = to_int(receipt.get("gasUsed"))
        gas_price = to_int(receipt.get("effectiveGasPrice"))
        if status != 1:
            self.reverted += 1
            report_failure("confirmation", tx_hash, f"reverted in block {to_int(receipt.get('blockNumber'))}")
            return None
        self.confirmed += 1
        amount_out = received_amount(receipt, intent.token_out, self.recipient)
        logger.info(
            "Confirmed {} in block {}: received {} of {} (min {}), gas spent {} wei",
            tx_hash,
            to_int(receipt.get("blockNumber")),
            amount_out,
            intent.token_out,
            intent.amount_out_minimum,
            gas_used * gas_price,
        )
        return amount_out

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled {} pending confirmation watcher(s)", len(tasks))
