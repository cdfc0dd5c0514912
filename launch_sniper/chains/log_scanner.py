from __future__ import annotations

from typing import Iterable

from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.chains.signatures import SignatureLayout
from launch_sniper.models import BlockRange, LogEntry


class LogScanner:
    def __init__(self, client: ChainClient):
        self.client = client

    async def scan(self, block_range: BlockRange, signatures: Iterable[SignatureLayout]) -> list[LogEntry]:
        """Logs matching any of ``signatures`` in ``block_range``.

        One ``eth_getLogs`` per signature: OR-filters on topic0 are not served
        reliably by every node. Results are concatenated in the order the
        signatures are given, keeping the node's order within each signature.
        ``TransientFetchError`` from the client propagates to the caller.
        """
        out: list[LogEntry] = []
        for sig in signatures:
            logs = await self.client.get_logs(
                from_block=block_range.start,
                to_block=block_range.end,
                topics=[sig.topic0_hex],
                address=sig.address,
            )
            if logs:
                logger.debug("{}: {} logs in {}-{}", sig.name, len(logs), block_range.start, block_range.end)
            out.extend(logs)
        return out
