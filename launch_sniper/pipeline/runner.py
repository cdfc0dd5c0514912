from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger

from launch_sniper.analytics.metrics import PipelineStats
from launch_sniper.chains.client import ChainClient, Web3ChainClient
from launch_sniper.chains.signatures import default_registry
from launch_sniper.config import AppSettings
from launch_sniper.detection.candidates import CandidateProducer, build_producer
from launch_sniper.detection.dedup import DedupStore, pool_key, token_key
from launch_sniper.detection.metadata import TokenMetadataResolver
from launch_sniper.errors import QuoteFailure, TransientFetchError
from launch_sniper.execution.confirmations import ConfirmationWatcher
from launch_sniper.execution.executor import TradeExecutor
from launch_sniper.execution.planner import TradePlanner
from launch_sniper.execution.wallet import LocalAccountSigner, Signer, WatchOnlySigner
from launch_sniper.logs import report_failure
from launch_sniper.models import ZERO_ADDRESS, Candidate, TradeIntent, TradeResult, normalize_address
from launch_sniper.pipeline.cursor import BlockCursor, CursorState, Scheduler


@dataclass
class Prepared:
    """Outcome of the concurrent stage for one candidate."""

    target: Optional[str] = None
    intent: Optional[TradeIntent] = None
    skip_reason: Optional[str] = None
    quote_failed: bool = False


class LaunchPipeline:
    def __init__(
        self,
        producer: CandidateProducer,
        resolver: TokenMetadataResolver,
        planner: TradePlanner,
        executor: TradeExecutor,
        dedup: DedupStore,
        quote_assets: Iterable[str],
        amount_in: int,
        require_target_minted: bool = True,
        stats: Optional[PipelineStats] = None,
    ):
        self.producer = producer
        self.resolver = resolver
        self.planner = planner
        self.executor = executor
        self.dedup = dedup
        self.quote_assets = {normalize_address(a) for a in quote_assets}
        self.amount_in = amount_in
        self.require_target_minted = require_target_minted
        self.stats = stats or PipelineStats()

    def select_target(self, candidate: Candidate) -> tuple[Optional[tuple[str, str]], Optional[str]]:
        """(quote_asset, target) for a candidate, or a skip reason."""
        pool = candidate.pool
        sides = [t for t in pool.tokens if t in self.quote_assets]
        if len(sides) != 1:
            return None, "no quote pair" if not sides else "both sides are quote assets"
        quote = sides[0]
        target = pool.token1 if quote == pool.token0 else pool.token0
        if self.resolver.is_known(target):
            return None, "known token"
        if self.require_target_minted and target not in candidate.verdict.minted_token_addresses:
            return None, "target not minted"
        return (quote, target), None

    async def prepare(self, candidate: Candidate) -> Prepared:
        if not candidate.verdict.is_fresh_launch:
            return Prepared(skip_reason="not fresh")
        pair, reason = self.select_target(candidate)
        if pair is None:
            return Prepared(skip_reason=reason)
        quote, target = pair
        if self.dedup.seen(token_key(target)):
            return Prepared(skip_reason="token already traded")

        quote_meta, target_meta = await asyncio.gather(self.resolver.resolve(quote), self.resolver.resolve(target))
        if quote_meta is None or target_meta is None:
            return Prepared(skip_reason="metadata")
        logger.info(
            "Fresh launch {} ({}): {} {} paired with {}",
            candidate.pool.pool_address, candidate.verdict.kind.value, target_meta.symbol, target, quote_meta.symbol,
        )

        pool = candidate.pool
        try:
            intent = await self.planner.plan(
                token_in=quote,
                token_out=target,
                amount_in=self.amount_in,
                fee_tier=pool.fee,
                protocol=pool.protocol,
                pool_address=pool.pool_address,
            )
        except QuoteFailure as e:
            report_failure("quote", pool.pool_address, f"{type(e).__name__}: {e}")
            return Prepared(target=target, skip_reason="quote", quote_failed=True)
        return Prepared(target=target, intent=intent)

    async def process_block(self, block_number: int) -> list[TradeResult]:
        candidates = await self.producer.produce(block_number)
        pending = [c for c in candidates if not self.dedup.seen(pool_key(c.pool.pool_address))]
        if len(pending) < len(candidates):
            logger.debug("Block {}: {} candidate(s) already processed", block_number, len(candidates) - len(pending))
        if not pending:
            return []

        prepared = await asyncio.gather(*(self.prepare(c) for c in pending), return_exceptions=True)

        results: list[TradeResult] = []
        for candidate, prep in zip(pending, prepared):
            pool = candidate.pool
            # Marked before any other check so a pool is considered once
            if not self.dedup.mark_and_check(pool_key(pool.pool_address)):
                continue
            self.stats.pools_seen += 1
            if isinstance(prep, BaseException):
                report_failure("prepare", pool.pool_address, prep)
                self.stats.skip("error")
                continue
            if candidate.verdict.is_fresh_launch:
                self.stats.fresh_launches += 1
            if prep.intent is None and prep.target is None:
                logger.debug("Skip pool {}: {}", pool.pool_address, prep.skip_reason)
                self.stats.skip(prep.skip_reason or "skipped")
                continue
            # A token whose quote failed is marked too: one attempt per token per run
            if not self.dedup.mark_and_check(token_key(prep.target)):
                logger.info("Skip pool {}: token {} already traded", pool.pool_address, prep.target)
                self.stats.skip("token already traded")
                continue
            if prep.intent is None:
                if prep.quote_failed:
                    self.stats.quote_failures += 1
                self.stats.skip(prep.skip_reason or "skipped")
                continue
            result = await self.executor.execute(prep.intent)
            self.stats.record_trade(result)
            results.append(result)
        return results


class SniperService:
    def __init__(
        self,
        client: ChainClient,
        pipeline: LaunchPipeline,
        scheduler: Optional[Scheduler] = None,
        watcher: Optional[ConfirmationWatcher] = None,
        backfill_blocks: int = 0,
        max_blocks_per_iteration: int = 50,
    ):
        self.client = client
        self.pipeline = pipeline
        self.scheduler = scheduler or Scheduler()
        self.watcher = watcher
        self.backfill_blocks = backfill_blocks
        self.max_blocks_per_iteration = max_blocks_per_iteration
        self.cursor: Optional[BlockCursor] = None

    @property
    def stats(self) -> PipelineStats:
        return self.pipeline.stats

    def stop(self) -> None:
        self.scheduler.stop()

    async def run_once(self) -> int:
        """Process every block up to the current height; returns how many.

        ``TransientFetchError`` propagates with the cursor left on the last
        fully processed block.
        """
        height = await self.client.block_number()
        if self.cursor is None:
            start = max(0, height - self.backfill_blocks)
            self.cursor = BlockCursor(start)
            logger.info("Initial block: {} (head {}, backfill {})", start, height, self.backfill_blocks)

        rng = self.cursor.next_range(height, self.max_blocks_per_iteration)
        if rng is None:
            return 0

        processed = 0
        try:
            for bn in rng.blocks():
                if self.scheduler.stopped:
                    break
                self.cursor.state = CursorState.SCANNING
                try:
                    await self.pipeline.process_block(bn)
                except TransientFetchError:
                    raise
                except Exception as e:
                    # Not retryable: retrying would stall the cursor on this block
                    logger.exception("Block {} failed, skipping: {}", bn, e)
                    self.stats.blocks_failed += 1
                self.cursor.state = CursorState.ADVANCING
                self.cursor.advance(bn)
                self.stats.blocks_processed += 1
                processed += 1
        finally:
            self.cursor.state = CursorState.IDLE
        return processed

    async def run(self) -> None:
        logger.info("Starting launch sniper (dry_run={})", self.pipeline.executor.dry_run)
        try:
            while not self.scheduler.stopped:
                try:
                    processed = await self.run_once()
                except TransientFetchError as e:
                    next_block = self.cursor.last_processed + 1 if self.cursor else "head"
                    report_failure("poll", f"block {next_block}", e)
                    await self.scheduler.backoff()
                    continue
                except Exception as e:
                    logger.exception("Sniper loop error: {}", e)
                    await self.scheduler.backoff()
                    continue
                if processed == 0:
                    await self.scheduler.idle()
        finally:
            if self.watcher is not None:
                await self.watcher.cancel_all()
            logger.info("Shutdown summary: {}", self.stats.summary())


def make_signer(settings: AppSettings) -> Signer:
    if settings.evm_private_key is not None:
        return LocalAccountSigner.from_secret(settings.evm_private_key)
    # Dry runs may go without a key; payloads still carry a recipient
    return WatchOnlySigner(address=normalize_address(settings.executor_address or ZERO_ADDRESS))


def build_service(
    settings: AppSettings, client: Optional[ChainClient] = None, signer: Optional[Signer] = None
) -> SniperService:
    client = client or Web3ChainClient.create(settings.rpc_http_url, settings.rpc_timeout_sec)
    signer = signer or make_signer(settings)
    registry = default_registry(settings.signatures_config)
    known = settings.known_tokens()
    logger.info("Strategy {} with {} signature(s), {} known token(s)", settings.strategy, len(registry), len(known))

    producer = build_producer(settings.strategy, client, registry, known.keys(), settings.watched_routers())
    resolver = TokenMetadataResolver(client, known, fetch_total_supply=settings.fetch_total_supply)
    planner = TradePlanner.from_settings(client, settings)
    watcher = ConfirmationWatcher(client, signer.address, poll_sec=settings.confirmation_poll_sec)
    executor = TradeExecutor.from_settings(client, signer, settings, watcher=watcher)

    wrapped = settings.wrapped_native()
    quote_assets = {wrapped} if settings.require_quote_pair else set(known)
    pipeline = LaunchPipeline(
        producer=producer,
        resolver=resolver,
        planner=planner,
        executor=executor,
        dedup=DedupStore(),
        quote_assets=quote_assets,
        amount_in=settings.swap_amount_wei,
        require_target_minted=settings.require_target_minted,
    )
    return SniperService(
        client,
        pipeline,
        scheduler=Scheduler(settings.block_poll_interval_sec, settings.error_backoff_sec),
        watcher=watcher,
        backfill_blocks=settings.backfill_blocks,
        max_blocks_per_iteration=settings.max_blocks_per_iteration,
    )
