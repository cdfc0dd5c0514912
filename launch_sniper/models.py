from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_WORD = b"\x00" * 32


def normalize_address(value: str | bytes) -> str:
    """Lowercase 0x-prefixed hex. Accepts 20-byte values or 32-byte padded words."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)[-20:]
        return "0x" + raw.hex()
    s = value.strip().lower()
    if not s.startswith("0x"):
        s = "0x" + s
    return "0x" + s[2:][-40:].rjust(40, "0")


def to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    s = str(value)
    h = s[2:] if s[:2].lower() == "0x" else s
    if len(h) % 2:
        h = "0" + h
    return bytes.fromhex(h)


def to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    s = str(value).lower()
    return int(s, 16) if s.startswith("0x") else int(s)


def to_hash_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    s = str(value).lower()
    return s if s.startswith("0x") else "0x" + s


@dataclass(frozen=True)
class BlockRange:
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Invalid block range: {self.start} > {self.end}")

    def __len__(self) -> int:
        return self.end - self.start + 1

    def blocks(self) -> range:
        return range(self.start, self.end + 1)


@dataclass(frozen=True)
class LogEntry:
    emitter: str
    topics: tuple[bytes, ...]
    data: bytes
    block_number: int
    transaction_hash: str
    log_index: int = 0

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> LogEntry:
        # Works for raw JSON-RPC dicts (hex strings) and web3 AttributeDicts (HexBytes)
        return cls(
            emitter=normalize_address(raw.get("address") or ZERO_ADDRESS),
            topics=tuple(to_bytes(t) for t in (raw.get("topics") or [])),
            data=to_bytes(raw.get("data")),
            block_number=to_int(raw.get("blockNumber")),
            transaction_hash=to_hash_hex(raw.get("transactionHash") or b""),
            log_index=to_int(raw.get("logIndex")),
        )


@dataclass(frozen=True)
class PoolCreationRecord:
    pool_address: str
    token0: str
    token1: str
    fee: Optional[int]
    block_number: int
    transaction_hash: str
    protocol: str = "v3"
    signature: str = ""

    @property
    def tokens(self) -> tuple[str, str]:
        return (self.token0, self.token1)


@dataclass(frozen=True)
class TransferRecord:
    token_address: str
    sender: str
    recipient: str
    amount: int

    @property
    def is_mint(self) -> bool:
        return self.sender == ZERO_ADDRESS


class LaunchKind(str, Enum):
    FULL = "full"  # both sides minted in the creating transaction
    ONE_SIDED = "one_sided"  # new token against an existing asset
    NONE = "none"  # secondary liquidity for circulating tokens


@dataclass(frozen=True)
class FreshnessVerdict:
    is_fresh_launch: bool
    minted_token_addresses: frozenset[str] = field(default_factory=frozenset)
    token0_minted: bool = False
    token1_minted: bool = False

    @classmethod
    def unclassified(cls) -> FreshnessVerdict:
        return cls(is_fresh_launch=False)

    @property
    def kind(self) -> LaunchKind:
        if self.token0_minted and self.token1_minted:
            return LaunchKind.FULL
        if self.token0_minted or self.token1_minted:
            return LaunchKind.ONE_SIDED
        return LaunchKind.NONE


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    symbol: str
    name: str
    decimals: int = 18
    total_supply: Optional[int] = None
    known: bool = False


@dataclass(frozen=True)
class TradeIntent:
    token_in: str
    token_out: str
    amount_in: int
    amount_out_minimum: int
    fee_tier: int
    deadline: int
    protocol: str = "v3"
    quoted_amount_out: int = 0
    pool_address: Optional[str] = None


@dataclass(frozen=True)
class TradeResult:
    success: bool
    transaction_hash: Optional[str] = None
    amount_out: Optional[int] = None
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    pool: PoolCreationRecord
    verdict: FreshnessVerdict
    source: str
