from __future__ import annotations

import asyncio
from typing import Mapping, Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector
from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.config import KnownToken
from launch_sniper.errors import TransientFetchError
from launch_sniper.logs import report_failure
from launch_sniper.models import TokenMetadata, normalize_address

SYMBOL = function_signature_to_4byte_selector("symbol()")
NAME = function_signature_to_4byte_selector("name()")
DECIMALS = function_signature_to_4byte_selector("decimals()")
TOTAL_SUPPLY = function_signature_to_4byte_selector("totalSupply()")


def decode_string(raw: bytes) -> str:
    """ABI dynamic string first, then raw (bytes32-style) UTF-8; '' when neither works."""
    if not raw:
        return ""
    try:
        (value,) = abi_decode(["string"], raw)
        return str(value).replace("\x00", "").strip()
    except (DecodingError, UnicodeDecodeError, ValueError, OverflowError):
        pass
    try:
        return raw.rstrip(b"\x00").decode("utf-8").replace("\x00", "").strip()
    except UnicodeDecodeError:
        return ""


def decode_uint(raw: bytes) -> Optional[int]:
    if len(raw) < 32:
        return None
    return int.from_bytes(raw[:32], "big")


class TokenMetadataResolver:
    def __init__(
        self,
        client: ChainClient,
        known_tokens: Mapping[str, KnownToken],
        fetch_total_supply: bool = True,
    ):
        self.client = client
        self.known = {normalize_address(a): t for a, t in known_tokens.items()}
        self.fetch_total_supply = fetch_total_supply
        self._cache: dict[str, TokenMetadata] = {}
        self.remote_lookups = 0

    def is_known(self, address: str) -> bool:
        return normalize_address(address) in self.known

    async def resolve(self, address: str) -> Optional[TokenMetadata]:
        addr = normalize_address(address)
        known = self.known.get(addr)
        if known is not None:
            return TokenMetadata(
                address=addr, symbol=known.symbol, name=known.name, decimals=known.decimals, known=True
            )
        cached = self._cache.get(addr)
        if cached is not None:
            return cached

        try:
            meta = await self._probe(addr)
        except TransientFetchError as e:
            report_failure("metadata", addr, e)
            return None
        if meta is None:
            report_failure("metadata", addr, "no symbol(); not an ERC20-like token")
            return None
        self._cache[addr] = meta
        logger.debug("Resolved {} as {} ({}), decimals={}", addr, meta.symbol, meta.name, meta.decimals)
        return meta

    async def _probe(self, addr: str) -> Optional[TokenMetadata]:
        self.remote_lookups += 1
        calls = [
            self.client.call(addr, SYMBOL),
            self.client.call(addr, NAME),
            self.client.call(addr, DECIMALS),
        ]
        if self.fetch_total_supply:
            calls.append(self.client.call(addr, TOTAL_SUPPLY))
        results = await asyncio.gather(*calls, return_exceptions=True)
        for r in results:
            if isinstance(r, BaseException):
                raise r

        symbol = decode_string(results[0])
        if not symbol:
            return None
        decimals = decode_uint(results[2])
        if decimals is None:
            decimals = 18
        elif decimals > 255:
            return None
        total_supply = decode_uint(results[3]) if self.fetch_total_supply else None
        return TokenMetadata(
            address=addr,
            symbol=symbol,
            name=decode_string(results[1]),
            decimals=decimals,
            total_supply=total_supply,
        )
