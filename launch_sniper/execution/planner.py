from __future__ import annotations

import time
from typing import Callable, Optional, Sequence

from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.config import AppSettings
from launch_sniper.errors import NoLiquidity, QuoteRemoteError, TransientFetchError, UnsupportedPool
from launch_sniper.execution.uniswap_v2 import decode_amounts_out, get_amounts_out_calldata
from launch_sniper.execution.uniswap_v3 import (
    compute_min_out,
    decode_quoted_out,
    quote_exact_input_single_calldata,
)
from launch_sniper.models import TradeIntent, normalize_address


class TradePlanner:
    """Turns a (token_in, token_out, amount) request into a priced TradeIntent.

    Quotes are read-only calls; nothing here signs or sends.
    """

    def __init__(
        self,
        client: ChainClient,
        *,
        v3_quoter: Optional[str],
        v2_router: Optional[str] = None,
        slippage_bps: int = 500,
        deadline_seconds: int = 300,
        fee_tiers: Sequence[int] = (10_000, 3_000, 500),
        quoter_version: str = "v2",
        clock: Callable[[], float] = time.time,
    ):
        if not 0 < slippage_bps < 10_000:
            raise ValueError("slippage_bps must be between 1 and 9999")
        self.client = client
        self.v3_quoter = normalize_address(v3_quoter) if v3_quoter else None
        self.v2_router = normalize_address(v2_router) if v2_router else None
        self.slippage_bps = slippage_bps
        self.deadline_seconds = deadline_seconds
        self.fee_tiers = list(fee_tiers)
        self.quoter_version = quoter_version
        self.clock = clock

    @classmethod
    def from_settings(cls, client: ChainClient, settings: AppSettings, clock: Callable[[], float] = time.time):
        return cls(
            client,
            v3_quoter=settings.quoter_address(),
            v2_router=settings.router_address("v2"),
            slippage_bps=settings.slippage_bps,
            deadline_seconds=settings.deadline_seconds,
            fee_tiers=settings.fee_tiers(),
            quoter_version=settings.quoter_version,
            clock=clock,
        )

    async def _call(self, to: str, data: bytes) -> bytes:
        try:
            return await self.client.call(to, data)
        except TransientFetchError as e:
            raise QuoteRemoteError(str(e)) from e

    async def quote_v3(self, token_in: str, token_out: str, amount_in: int, fee: int) -> int:
        if not self.v3_quoter:
            raise UnsupportedPool("no V3 quoter configured")
        data = quote_exact_input_single_calldata(token_in, token_out, fee, amount_in, self.quoter_version)
        quoted = decode_quoted_out(await self._call(self.v3_quoter, data))
        if not quoted:
            raise NoLiquidity(f"no V3 quote for {token_in}->{token_out} fee={fee}")
        return quoted

    async def quote_v2(self, token_in: str, token_out: str, amount_in: int) -> int:
        if not self.v2_router:
            raise UnsupportedPool("no V2 router configured")
        data = get_amounts_out_calldata(amount_in, [token_in, token_out])
        quoted = decode_amounts_out(await self._call(self.v2_router, data))
        if not quoted:
            raise NoLiquidity(f"no V2 quote for {token_in}->{token_out}")
        return quoted

    async def _probe_fee_tiers(self, token_in: str, token_out: str, amount_in: int) -> tuple[int, int]:
        if not self.fee_tiers:
            raise UnsupportedPool("no fee tier to probe")
        for fee in self.fee_tiers:
            try:
                return fee, await self.quote_v3(token_in, token_out, amount_in, fee)
            except NoLiquidity:
                logger.debug("No liquidity at fee tier {} for {}", fee, token_out)
        raise NoLiquidity(f"no fee tier quoted for {token_in}->{token_out}")

    async def plan(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee_tier: Optional[int],
        protocol: str = "v3",
        pool_address: Optional[str] = None,
    ) -> TradeIntent:
        if amount_in <= 0:
            raise ValueError("amount_in must be positive")
        token_in = normalize_address(token_in)
        token_out = normalize_address(token_out)

        if protocol == "v3":
            if fee_tier is None:
                fee_tier, quoted = await self._probe_fee_tiers(token_in, token_out, amount_in)
            else:
                quoted = await self.quote_v3(token_in, token_out, amount_in, fee_tier)
        elif protocol == "v2":
            quoted = await self.quote_v2(token_in, token_out, amount_in)
            fee_tier = fee_tier or 3000
        else:
            raise UnsupportedPool(f"unsupported protocol {protocol!r}")

        min_out = compute_min_out(quoted, self.slippage_bps)
        intent = TradeIntent(
            token_in=token_in,
            token_out=token_out,
            amount_in=int(amount_in),
            amount_out_minimum=min_out,
            fee_tier=int(fee_tier),
            deadline=int(self.clock()) + self.deadline_seconds,
            protocol=protocol,
            quoted_amount_out=quoted,
            pool_address=normalize_address(pool_address) if pool_address else None,
        )
        logger.info(
            "Planned {} {} -> {} amount_in={} quoted={} min_out={} fee={}",
            protocol, token_in, token_out, amount_in, quoted, min_out, fee_tier,
        )
        return intent
