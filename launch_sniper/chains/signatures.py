"""Registry of known event kinds and how to read their fields.

Different pool factories put the same logical fields (tokens, fee, pool) in
different places: in an indexed topic, in a data word, or nowhere at all. Each
signature therefore carries its own layout descriptor; nothing here assumes the
offsets of one factory apply to another.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Literal, Optional

from eth_utils import event_signature_to_log_topic
from loguru import logger

from launch_sniper.errors import ConfigError

POOL_CREATION = "pool_creation"
TRANSFER = "transfer"


@dataclass(frozen=True)
class FieldLocation:
    source: Literal["topic", "data"]
    index: int

    @classmethod
    def topic(cls, index: int) -> FieldLocation:
        return cls("topic", index)

    @classmethod
    def word(cls, index: int) -> FieldLocation:
        return cls("data", index)

    @classmethod
    def parse(cls, text: str) -> FieldLocation:
        # "topic:3" or "data:1"
        source, _, index = text.partition(":")
        if source not in ("topic", "data") or not index.isdigit():
            raise ValueError(f"Invalid field location: {text!r}")
        return cls(source, int(index))  # type: ignore[arg-type]


@dataclass(frozen=True)
class SignatureLayout:
    name: str
    event_signature: str
    kind: str
    topic_count: int
    data_words: int = 0
    token0: Optional[FieldLocation] = None
    token1: Optional[FieldLocation] = None
    pool: Optional[FieldLocation] = None
    fee: Optional[FieldLocation] = None
    fixed_fee: Optional[int] = None
    protocol: str = "v3"
    address: Optional[str] = None  # optional emitter filter (factory)

    @property
    def topic0(self) -> bytes:
        return event_signature_to_log_topic(self.event_signature)

    @property
    def topic0_hex(self) -> str:
        return "0x" + self.topic0.hex()

    def required_data_words(self) -> int:
        words = [self.data_words]
        for loc in (self.token0, self.token1, self.pool, self.fee):
            if loc is not None and loc.source == "data":
                words.append(loc.index + 1)
        return max(words)


UNISWAP_V3_POOL_CREATED = SignatureLayout(
    name="uniswap_v3_pool_created",
    event_signature="PoolCreated(address,address,uint24,int24,address)",
    kind=POOL_CREATION,
    topic_count=4,
    data_words=2,  # tickSpacing, pool
    token0=FieldLocation.topic(1),
    token1=FieldLocation.topic(2),
    fee=FieldLocation.topic(3),
    pool=FieldLocation.word(1),
    protocol="v3",
)

UNISWAP_V2_PAIR_CREATED = SignatureLayout(
    name="uniswap_v2_pair_created",
    event_signature="PairCreated(address,address,address,uint256)",
    kind=POOL_CREATION,
    topic_count=3,
    data_words=2,  # pair, allPairsLength
    token0=FieldLocation.topic(1),
    token1=FieldLocation.topic(2),
    pool=FieldLocation.word(0),
    fixed_fee=3000,
    protocol="v2",
)

ERC20_TRANSFER = SignatureLayout(
    name="erc20_transfer",
    event_signature="Transfer(address,address,uint256)",
    kind=TRANSFER,
    topic_count=3,  # ERC721 Transfer indexes the id too and has 4
    data_words=1,
)


class SignatureRegistry:
    def __init__(self, layouts: Iterable[SignatureLayout] = ()):
        self._by_topic: dict[bytes, SignatureLayout] = {}
        for layout in layouts:
            self.register(layout)

    def register(self, layout: SignatureLayout) -> None:
        if layout.topic0 in self._by_topic:
            raise ValueError(f"Duplicate topic0 for {layout.name}: {layout.topic0_hex}")
        self._by_topic[layout.topic0] = layout

    def lookup(self, topic0: bytes) -> Optional[SignatureLayout]:
        return self._by_topic.get(bytes(topic0))

    def __iter__(self) -> Iterator[SignatureLayout]:
        return iter(self._by_topic.values())

    def __len__(self) -> int:
        return len(self._by_topic)

    def of_kind(self, kind: str) -> list[SignatureLayout]:
        return [s for s in self._by_topic.values() if s.kind == kind]

    def pool_creation(self) -> list[SignatureLayout]:
        return self.of_kind(POOL_CREATION)

    def transfer(self) -> SignatureLayout:
        return self.of_kind(TRANSFER)[0]


def layout_from_dict(item: dict) -> SignatureLayout:
    def loc(key: str) -> Optional[FieldLocation]:
        v = item.get(key)
        return FieldLocation.parse(str(v)) if v else None

    layout = SignatureLayout(
        name=str(item["name"]),
        event_signature=str(item["event_signature"]),
        kind=POOL_CREATION,
        topic_count=int(item["topic_count"]),
        data_words=int(item.get("data_words") or 0),
        token0=loc("token0"),
        token1=loc("token1"),
        pool=loc("pool"),
        fee=loc("fee"),
        fixed_fee=int(item["fixed_fee"]) if item.get("fixed_fee") is not None else None,
        protocol=str(item.get("protocol") or "v3"),
        address=(str(item["address"]).lower() if item.get("address") else None),
    )
    if layout.token0 is None or layout.token1 is None or layout.pool is None:
        raise ValueError(f"Layout {layout.name} must locate token0, token1 and pool")
    return layout


def load_extra_layouts(path: str | Path) -> list[SignatureLayout]:
    """Pool-creation layouts from a ``signatures:`` YAML list; any defect is a ConfigError."""
    import yaml

    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text()) or {}
        layouts = [layout_from_dict(item) for item in data.get("signatures", [])]
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read signatures config {p}: {e}") from e
    except KeyError as e:
        raise ConfigError(f"Signatures config {p}: layout missing field {e}") from e
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError(f"Signatures config {p}: {e}") from e
    logger.info("Loaded {} extra pool-creation layouts from {}", len(layouts), p)
    return layouts


def default_registry(extra_config: str | None = None) -> SignatureRegistry:
    layouts = [UNISWAP_V3_POOL_CREATED, UNISWAP_V2_PAIR_CREATED]
    if extra_config:
        layouts.extend(load_extra_layouts(extra_config))
    layouts.append(ERC20_TRANSFER)
    try:
        return SignatureRegistry(layouts)
    except ValueError as e:
        raise ConfigError(str(e)) from e
