"""Candidate producers: where new pools for a block come from.

All three strategies end the same way: the receipt of every interesting
transaction is fetched and each pool-creation record found in it is classified
against that transaction's logs. They differ only in how the interesting
transactions are picked.
"""
from __future__ import annotations

import abc
import asyncio
from typing import Any, Iterable, Mapping, Optional, Sequence

from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.chains.decoder import EventDecoder
from launch_sniper.chains.log_scanner import LogScanner
from launch_sniper.chains.signatures import SignatureRegistry
from launch_sniper.detection.classifier import FreshnessClassifier
from launch_sniper.errors import TransientFetchError
from launch_sniper.logs import report_failure
from launch_sniper.models import (
    BlockRange,
    Candidate,
    FreshnessVerdict,
    LogEntry,
    PoolCreationRecord,
    TransferRecord,
    normalize_address,
    to_hash_hex,
)


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for it in items:
        if it not in seen:
            seen.add(it)
            out.append(it)
    return out


class CandidateProducer(abc.ABC):
    source = "base"

    def __init__(self, client: ChainClient, registry: SignatureRegistry):
        self.client = client
        self.registry = registry
        self.decoder = EventDecoder(registry)
        self.classifier = FreshnessClassifier(self.decoder)
        self.scanner = LogScanner(client)

    @abc.abstractmethod
    async def produce(self, block_number: int) -> list[Candidate]:
        """Classified candidates for one block, in log order.

        Raises ``TransientFetchError`` only when the block itself could not be
        scanned; per-transaction failures are reported and absorbed.
        """

    async def _receipt_logs(self, tx_hash: str) -> Optional[list[LogEntry]]:
        try:
            receipt = await self.client.get_transaction_receipt(tx_hash)
        except TransientFetchError as e:
            report_failure("receipt", tx_hash, e)
            return None
        if receipt is None:
            report_failure("receipt", tx_hash, "receipt not available")
            return None
        return [LogEntry.from_rpc(lg) for lg in receipt.get("logs") or []]

    async def _fetch_receipts(self, tx_hashes: Sequence[str]) -> dict[str, Optional[list[LogEntry]]]:
        results = await asyncio.gather(*(self._receipt_logs(h) for h in tx_hashes))
        return dict(zip(tx_hashes, results))

    async def _classify_transactions(
        self, tx_hashes: Sequence[str], known_pools: Sequence[PoolCreationRecord] = ()
    ) -> list[Candidate]:
        """Classify every pool record of ``tx_hashes``.

        ``known_pools`` are records already decoded from the block scan; when a
        receipt can't be fetched they are still emitted, unclassified.
        """
        receipts = await self._fetch_receipts(tx_hashes)
        by_tx: dict[str, list[PoolCreationRecord]] = {}
        for p in known_pools:
            by_tx.setdefault(p.transaction_hash, []).append(p)

        out: list[Candidate] = []
        for tx_hash in tx_hashes:
            logs = receipts.get(tx_hash)
            if logs is None:
                for p in by_tx.get(tx_hash, []):
                    out.append(Candidate(pool=p, verdict=FreshnessVerdict.unclassified(), source=self.source))
                continue
            pools = by_tx.get(tx_hash) or self.decoder.pools(logs)
            for p in pools:
                verdict = self.classifier.classify(p, logs)
                logger.debug(
                    "Pool {} ({}/{}) fresh={} kind={}",
                    p.pool_address, p.token0, p.token1, verdict.is_fresh_launch, verdict.kind.value,
                )
                out.append(Candidate(pool=p, verdict=verdict, source=self.source))
        return out


class PoolCreationProducer(CandidateProducer):
    """Scans pool-creation signatures directly."""

    source = "pool_creation"

    async def produce(self, block_number: int) -> list[Candidate]:
        logs = await self.scanner.scan(BlockRange(block_number, block_number), self.registry.pool_creation())
        pools = self.decoder.pools(logs)
        if not pools:
            return []
        tx_hashes = _unique(p.transaction_hash for p in pools)
        return await self._classify_transactions(tx_hashes, pools)


class FirstTransferProducer(CandidateProducer):
    """Looks for mints of unknown tokens, then for pools created alongside them."""

    source = "first_transfer"

    def __init__(self, client: ChainClient, registry: SignatureRegistry, known_tokens: Iterable[str] = ()):
        super().__init__(client, registry)
        self.known = {normalize_address(a) for a in known_tokens}

    async def produce(self, block_number: int) -> list[Candidate]:
        logs = await self.scanner.scan(BlockRange(block_number, block_number), [self.registry.transfer()])
        tx_hashes = []
        for lg in logs:
            rec = self.decoder.decode(lg)
            if not isinstance(rec, TransferRecord) or not rec.is_mint:
                continue
            if rec.token_address in self.known:
                continue
            tx_hashes.append(lg.transaction_hash)
        tx_hashes = _unique(tx_hashes)
        if not tx_hashes:
            return []
        logger.debug("Block {}: {} transaction(s) mint unknown tokens", block_number, len(tx_hashes))
        return await self._classify_transactions(tx_hashes)


class RouterPatternProducer(CandidateProducer):
    """Inspects transactions sent to known DEX routers."""

    source = "router_pattern"

    def __init__(self, client: ChainClient, registry: SignatureRegistry, routers: Iterable[str] = ()):
        super().__init__(client, registry)
        self.routers = {normalize_address(a) for a in routers}

    def _to_router(self, tx: Mapping[str, Any]) -> bool:
        to = tx.get("to")
        return bool(to) and normalize_address(to) in self.routers

    async def produce(self, block_number: int) -> list[Candidate]:
        block = await self.client.get_block(block_number, full_transactions=True)
        txs = [tx for tx in (block.get("transactions") or []) if isinstance(tx, Mapping)]
        tx_hashes = _unique(to_hash_hex(tx.get("hash")) for tx in txs if self._to_router(tx))
        if not tx_hashes:
            return []
        return await self._classify_transactions(tx_hashes)


def build_producer(
    strategy: str,
    client: ChainClient,
    registry: SignatureRegistry,
    known_tokens: Iterable[str] = (),
    routers: Iterable[str] = (),
) -> CandidateProducer:
    if strategy == "pool_creation":
        return PoolCreationProducer(client, registry)
    if strategy == "first_transfer":
        return FirstTransferProducer(client, registry, known_tokens)
    if strategy == "router_pattern":
        return RouterPatternProducer(client, registry, routers)
    raise ValueError(f"Unknown detection strategy: {strategy}")
