from __future__ import annotations

from typing import Iterable, Optional, Union

from loguru import logger

from launch_sniper.chains.signatures import POOL_CREATION, TRANSFER, FieldLocation, SignatureLayout, SignatureRegistry
from launch_sniper.models import LogEntry, PoolCreationRecord, TransferRecord, normalize_address

DecodedEvent = Union[PoolCreationRecord, TransferRecord]


# --------- 32B word slicing ----------------------------------------------------
def _word(b: bytes, i: int) -> bytes:
    return b[i * 32:(i + 1) * 32]


def _u256(w: bytes) -> int:
    return int.from_bytes(w, "big")


class EventDecoder:
    def __init__(self, registry: SignatureRegistry):
        self.registry = registry

    def _read(self, log: LogEntry, loc: FieldLocation) -> bytes:
        if loc.source == "topic":
            return log.topics[loc.index]
        return _word(log.data, loc.index)

    def _well_formed(self, log: LogEntry, layout: SignatureLayout) -> bool:
        if len(log.topics) != layout.topic_count:
            return False
        if any(len(t) != 32 for t in log.topics):
            return False
        return len(log.data) >= layout.required_data_words() * 32

    def decode(self, log: LogEntry) -> Optional[DecodedEvent]:
        if not log.topics:
            return None
        layout = self.registry.lookup(log.topics[0])
        if layout is None or not self._well_formed(log, layout):
            return None
        try:
            if layout.kind == POOL_CREATION:
                return self._decode_pool(log, layout)
            if layout.kind == TRANSFER:
                return self._decode_transfer(log)
        except (IndexError, ValueError) as e:
            # Skip bad row
            logger.debug("decode error {} in {}: {}", layout.name, log.transaction_hash, e)
        return None

    def _decode_pool(self, log: LogEntry, layout: SignatureLayout) -> PoolCreationRecord:
        fee = None
        if layout.fee is not None:
            fee = _u256(self._read(log, layout.fee))
        elif layout.fixed_fee is not None:
            fee = layout.fixed_fee
        return PoolCreationRecord(
            pool_address=normalize_address(self._read(log, layout.pool)),
            token0=normalize_address(self._read(log, layout.token0)),
            token1=normalize_address(self._read(log, layout.token1)),
            fee=fee,
            block_number=log.block_number,
            transaction_hash=log.transaction_hash,
            protocol=layout.protocol,
            signature=layout.name,
        )

    def _decode_transfer(self, log: LogEntry) -> TransferRecord:
        return TransferRecord(
            token_address=log.emitter,
            sender=normalize_address(log.topics[1]),
            recipient=normalize_address(log.topics[2]),
            amount=_u256(_word(log.data, 0)),
        )

    def decode_many(self, logs: Iterable[LogEntry]) -> list[DecodedEvent]:
        out: list[DecodedEvent] = []
        for lg in logs:
            rec = self.decode(lg)
            if rec is not None:
                out.append(rec)
        return out

    def pools(self, logs: Iterable[LogEntry]) -> list[PoolCreationRecord]:
        return [r for r in self.decode_many(logs) if isinstance(r, PoolCreationRecord)]

    def transfers(self, logs: Iterable[LogEntry]) -> list[TransferRecord]:
        return [r for r in self.decode_many(logs) if isinstance(r, TransferRecord)]
