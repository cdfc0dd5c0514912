from __future__ import annotations

from typing import Optional

from eth_utils import to_checksum_address
from loguru import logger

from launch_sniper.chains.client import ChainClient
from launch_sniper.config import AppSettings
from launch_sniper.execution.confirmations import ConfirmationWatcher
from launch_sniper.execution.uniswap_v2 import (
    V2SwapPlan,
    build_swap_exact_eth_for_tokens,
    build_swap_exact_tokens_for_tokens,
)
from launch_sniper.execution.uniswap_v3 import V3SinglePlan, build_exact_input_single
from launch_sniper.execution.wallet import Signer
from launch_sniper.logs import report_failure
from launch_sniper.models import TradeIntent, TradeResult, normalize_address

DRY_RUN = "dry run"


class TradeExecutor:
    def __init__(
        self,
        client: ChainClient,
        signer: Signer,
        *,
        chain_id: int,
        wrapped_native: Optional[str],
        v3_router: Optional[str],
        v2_router: Optional[str] = None,
        router_version: str = "router02",
        gas_boost_multiplier: float = 2.0,
        gas_limit: int = 350_000,
        pay_with_native: bool = True,
        dry_run: bool = True,
        watcher: Optional[ConfirmationWatcher] = None,
    ):
        self.client = client
        self.signer = signer
        self.chain_id = chain_id
        self.wrapped_native = normalize_address(wrapped_native) if wrapped_native else None
        self.v3_router = normalize_address(v3_router) if v3_router else None
        self.v2_router = normalize_address(v2_router) if v2_router else None
        self.router_version = router_version
        self.gas_boost_multiplier = gas_boost_multiplier
        self.gas_limit = gas_limit
        self.pay_with_native = pay_with_native
        self.dry_run = dry_run
        self.watcher = watcher
        self.submitted = 0
        self.failed = 0

    @classmethod
    def from_settings(
        cls, client: ChainClient, signer: Signer, settings: AppSettings, watcher: Optional[ConfirmationWatcher] = None
    ) -> TradeExecutor:
        return cls(
            client,
            signer,
            chain_id=settings.chain_id,
            wrapped_native=settings.wrapped_native(),
            v3_router=settings.router_address("v3"),
            v2_router=settings.router_address("v2"),
            router_version=settings.router_version,
            gas_boost_multiplier=settings.gas_boost_multiplier,
            gas_limit=settings.gas_limit,
            pay_with_native=settings.pay_with_native,
            dry_run=settings.dry_run,
            watcher=watcher,
        )

    def _native_in(self, intent: TradeIntent) -> bool:
        return self.pay_with_native and intent.token_in == self.wrapped_native

    def build_payload(self, intent: TradeIntent) -> dict:
        """Router call for ``intent``: ``{"to", "data", "value"}``."""
        recipient = self.signer.address
        native = self._native_in(intent)
        if intent.protocol == "v3":
            if not self.v3_router:
                raise ValueError("no V3 router configured")
            plan = V3SinglePlan(
                router=self.v3_router,
                token_in=intent.token_in,
                token_out=intent.token_out,
                fee=intent.fee_tier,
                amount_in=intent.amount_in,
                min_out=intent.amount_out_minimum,
                recipient=recipient,
                deadline=intent.deadline,
                value=intent.amount_in if native else 0,
            )
            return build_exact_input_single(plan, self.router_version)
        if intent.protocol == "v2":
            if not self.v2_router:
                raise ValueError("no V2 router configured")
            v2 = V2SwapPlan(
                method="swapExactETHForTokens" if native else "swapExactTokensForTokens",
                router=self.v2_router,
                path=[intent.token_in, intent.token_out],
                amount_in=intent.amount_in,
                min_out=intent.amount_out_minimum,
                recipient=recipient,
                deadline=intent.deadline,
                value=intent.amount_in if native else 0,
            )
            if native:
                return build_swap_exact_eth_for_tokens(v2)
            return build_swap_exact_tokens_for_tokens(v2)
        raise ValueError(f"unsupported protocol {intent.protocol!r}")

    async def execute(self, intent: TradeIntent) -> TradeResult:
        try:
            payload = self.build_payload(intent)
        except Exception as e:
            return self._fail(intent, f"payload: {e}")

        if self.dry_run:
            logger.info(
                "[DRY RUN] would swap {} {} -> {} via {} (min_out={}, value={})",
                intent.amount_in,
                intent.token_in,
                intent.token_out,
                payload["to"],
                intent.amount_out_minimum,
                payload["value"],
            )
            return TradeResult(success=False, failure_reason=DRY_RUN)

        try:
            nonce = await self.client.get_transaction_count(self.signer.address)
            gas_price = await self.client.gas_price()
            tx = {
                "to": to_checksum_address(payload["to"]),
                "data": "0x" + payload["data"].hex(),
                "value": int(payload["value"]),
                "nonce": int(nonce),
                "gas": int(self.gas_limit),
                "gasPrice": int(gas_price * self.gas_boost_multiplier),
                "chainId": int(self.chain_id),
            }
            raw = self.signer.sign_transaction(tx)
            tx_hash = await self.client.send_raw_transaction(raw)
        except Exception as e:
            return self._fail(intent, str(e) or type(e).__name__)

        self.submitted += 1
        logger.info(
            "Submitted swap {} -> {}: tx={} nonce={} gasPrice={}",
            intent.token_in, intent.token_out, tx_hash, tx["nonce"], tx["gasPrice"],
        )
        if self.watcher is not None:
            self.watcher.watch(tx_hash, intent)
        return TradeResult(success=True, transaction_hash=tx_hash)

    def _fail(self, intent: TradeIntent, reason: str) -> TradeResult:
        self.failed += 1
        report_failure("execute", intent.pool_address or intent.token_out, reason)
        return TradeResult(success=False, failure_reason=reason)
