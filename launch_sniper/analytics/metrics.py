from __future__ import annotations

from dataclasses import dataclass, field

from launch_sniper.models import TradeResult


@dataclass
class Summary:
    blocks_processed: int
    blocks_failed: int
    pools_seen: int
    fresh_launches: int
    skipped: int
    quote_failures: int
    trades_submitted: int
    trades_failed: int
    dry_runs: int


@dataclass
class PipelineStats:
    """Observational counters for a run; nothing reads them to make decisions."""

    blocks_processed: int = 0
    blocks_failed: int = 0
    pools_seen: int = 0
    fresh_launches: int = 0
    skipped: int = 0
    quote_failures: int = 0
    trades_submitted: int = 0
    trades_failed: int = 0
    dry_runs: int = 0
    skip_reasons: dict[str, int] = field(default_factory=dict)

    def skip(self, reason: str) -> None:
        self.skipped += 1
        self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + 1

    def record_trade(self, result: TradeResult) -> None:
        if result.success:
            self.trades_submitted += 1
        elif result.failure_reason == "dry run":
            self.dry_runs += 1
        else:
            self.trades_failed += 1

    def summary(self) -> Summary:
        return Summary(
            blocks_processed=self.blocks_processed,
            blocks_failed=self.blocks_failed,
            pools_seen=self.pools_seen,
            fresh_launches=self.fresh_launches,
            skipped=self.skipped,
            quote_failures=self.quote_failures,
            trades_submitted=self.trades_submitted,
            trades_failed=self.trades_failed,
            dry_runs=self.dry_runs,
        )
