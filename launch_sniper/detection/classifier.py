from __future__ import annotations

from typing import Sequence

from launch_sniper.chains.decoder import EventDecoder
from launch_sniper.models import FreshnessVerdict, LogEntry, PoolCreationRecord, TransferRecord


class FreshnessClassifier:
    """Decides whether a pool's tokens were minted in the pool's own transaction.

    Pure with respect to its inputs: it only decodes the logs it is handed, and
    only those emitted by the transaction that created the pool.
    """

    def __init__(self, decoder: EventDecoder):
        self.decoder = decoder

    def minted_tokens(self, transaction_logs: Sequence[LogEntry]) -> set[str]:
        return {
            rec.token_address
            for rec in self.decoder.decode_many(transaction_logs)
            if isinstance(rec, TransferRecord) and rec.is_mint
        }

    def classify(self, pool: PoolCreationRecord, transaction_logs: Sequence[LogEntry]) -> FreshnessVerdict:
        own_logs = [lg for lg in transaction_logs if lg.transaction_hash == pool.transaction_hash]
        decoded = self.decoder.decode_many(own_logs)
        minted = {r.token_address for r in decoded if isinstance(r, TransferRecord) and r.is_mint}
        pool_event = any(isinstance(r, PoolCreationRecord) and r.pool_address == pool.pool_address for r in decoded)

        # Mints of unrelated tokens in the same transaction don't count for this pool
        relevant = frozenset(t for t in pool.tokens if t in minted)
        return FreshnessVerdict(
            is_fresh_launch=bool(relevant) and pool_event,
            minted_token_addresses=relevant,
            token0_minted=pool.token0 in minted,
            token1_minted=pool.token1 in minted,
        )
