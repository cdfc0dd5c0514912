from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from launch_sniper.errors import ConfigError
from launch_sniper.models import normalize_address


class KnownToken(BaseModel):
    address: str
    symbol: str
    name: str = ""
    decimals: int = 18

    @field_validator("address")
    @classmethod
    def _lower(cls, v: str) -> str:
        return normalize_address(v)


class DexContracts(BaseModel):
    # Uniswap V3 quoters per chain (QuoterV2 unless quoter_version says otherwise)
    v3_quoters: dict[int, str] = {
        1: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",
        8453: "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
    }

    # Uniswap V3 swap routers (SwapRouter02 on both)
    v3_routers: dict[int, str] = {
        1: "0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45",
        8453: "0x2626664c2603336E57B271c5C0b26F421741e481",
    }

    # Uniswap V2 routers, used for both quoting (getAmountsOut) and swapping
    v2_routers: dict[int, str] = {
        1: "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
        8453: "0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
    }

    # Wrapped native per chain (WETH)
    native_wrapped: dict[int, str] = {
        1: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",  # WETH9
        8453: "0x4200000000000000000000000000000000000006",  # WETH (Base)
    }

    # Recognized stables; never treated as new tokens
    stable_tokens: dict[int, list[KnownToken]] = {
        1: [
            KnownToken(address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", symbol="USDC", name="USD Coin", decimals=6),
            KnownToken(address="0xdAC17F958D2ee523a2206206994597C13D831ec7", symbol="USDT", name="Tether USD", decimals=6),
            KnownToken(address="0x6B175474E89094C44Da98b954EedeAC495271d0F", symbol="DAI", name="Dai Stablecoin"),
        ],
        8453: [
            KnownToken(address="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913", symbol="USDC", name="USD Coin", decimals=6),
            KnownToken(address="0x50c5725949a6f0c72e6c4a641f24049a917db0cb", symbol="DAI", name="Dai Stablecoin"),
            KnownToken(address="0xd9aaec86b65d86f6a7b5b1b0c42ffa531710b6ca", symbol="USDbC", name="USD Base Coin", decimals=6),
        ],
    }

    # Routers whose transactions are inspected by the router_pattern strategy
    watched_routers: dict[int, list[str]] = {
        8453: [
            "0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",  # Uniswap V2
            "0x2626664c2603336E57B271c5C0b26F421741e481",  # Uniswap V3 SwapRouter02
            "0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD",  # Universal Router
            "0x327Df1E6de05895d2ab08513aaDD9313Fe505d86",  # BaseSwap
            "0xcF77a3Ba9A5CA399B7c97c74d54e5b1Beb874E43",  # Aerodrome
        ],
    }


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="SNIPER_", extra="ignore")

    # EVM provider
    rpc_http_url: str = "http://localhost:8545"
    rpc_timeout_sec: float = 10.0
    chain_id: int = 8453

    # Detection
    strategy: Literal["pool_creation", "first_transfer", "router_pattern"] = "pool_creation"
    require_quote_pair: bool = True  # only pools paired with the wrapped native token
    require_target_minted: bool = True
    fetch_total_supply: bool = True

    # Polling
    block_poll_interval_sec: float = 1.0
    error_backoff_sec: float = 5.0
    backfill_blocks: int = 0  # 0 means start at the current head
    max_blocks_per_iteration: int = 50

    # Execution
    dry_run: bool = True
    evm_private_key: SecretStr | None = None
    executor_address: str | None = None
    slippage_bps: int = 500  # 5%
    swap_amount_wei: int = 100_000_000_000_000  # 0.0001 ETH
    probe_fee_tiers: str = "10000,3000,500"  # used when a pool event carries no fee
    deadline_seconds: int = 300
    gas_boost_multiplier: float = 2.0
    gas_limit: int = 350_000
    pay_with_native: bool = True
    quoter_version: Literal["v1", "v2"] = "v2"
    router_version: Literal["v1", "router02"] = "router02"
    confirmation_poll_sec: float = 3.0

    # Config files
    known_tokens_config: str = "config/known_tokens.yaml"
    extra_known_tokens: str | None = None  # comma-separated addresses
    signatures_config: str | None = None

    # Dex contracts
    dex: DexContracts = DexContracts()

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # --- Validators to coerce empty strings in optional envs to None ---
    @field_validator("evm_private_key", "executor_address", "extra_known_tokens", "signatures_config", mode="before")
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    @field_validator("slippage_bps")
    @classmethod
    def _slippage_range(cls, v: int) -> int:
        if not 0 < v < 10_000:
            raise ValueError("slippage_bps must be between 1 and 9999")
        return v

    @field_validator("gas_boost_multiplier")
    @classmethod
    def _multiplier_floor(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("gas_boost_multiplier must be >= 1.0")
        return v

    @field_validator("probe_fee_tiers")
    @classmethod
    def _fee_tiers_parse(cls, v: str) -> str:
        for part in v.split(","):
            if part.strip() and int(part.strip()) <= 0:
                raise ValueError("fee tiers must be positive")
        return v

    @field_validator("swap_amount_wei", "max_blocks_per_iteration", "deadline_seconds", "gas_limit")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    def fee_tiers(self) -> list[int]:
        return [int(x.strip()) for x in self.probe_fee_tiers.split(",") if x.strip()]

    def wrapped_native(self) -> str | None:
        addr = self.dex.native_wrapped.get(self.chain_id)
        return normalize_address(addr) if addr else None

    def quoter_address(self) -> str | None:
        return self.dex.v3_quoters.get(self.chain_id)

    def router_address(self, protocol: str) -> str | None:
        routers = self.dex.v3_routers if protocol == "v3" else self.dex.v2_routers
        return routers.get(self.chain_id)

    def watched_routers(self) -> set[str]:
        return {normalize_address(a) for a in self.dex.watched_routers.get(self.chain_id, [])}

    def known_tokens(self) -> dict[str, KnownToken]:
        import yaml

        out: dict[str, KnownToken] = {}
        wrapped = self.wrapped_native()
        if wrapped:
            out[wrapped] = KnownToken(address=wrapped, symbol="WETH", name="Wrapped Ether")
        for tok in self.dex.stable_tokens.get(self.chain_id, []):
            out[tok.address] = tok

        path = Path(self.known_tokens_config)
        if path.exists():
            data = yaml.safe_load(path.read_text()) or {}
            for item in data.get("tokens", []):
                item_chain = int(item.get("chain_id") or self.chain_id)
                if item_chain != self.chain_id or not item.get("address"):
                    continue
                tok = KnownToken(**{k: v for k, v in item.items() if k != "chain_id"})
                out[tok.address] = tok

        for raw in (self.extra_known_tokens or "").split(","):
            if raw.strip():
                addr = normalize_address(raw)
                out.setdefault(addr, KnownToken(address=addr, symbol="KNOWN"))
        return out

    def validate_for_startup(self) -> None:
        if not self.dry_run and self.evm_private_key is None:
            raise ConfigError("SNIPER_EVM_PRIVATE_KEY is required when dry_run is disabled")
        if self.wrapped_native() is None:
            raise ConfigError(f"No wrapped native token configured for chain {self.chain_id}")
        if self.quoter_address() is None:
            raise ConfigError(f"No V3 quoter configured for chain {self.chain_id}")
        if self.router_address("v3") is None:
            raise ConfigError(f"No V3 router configured for chain {self.chain_id}")
        if self.signatures_config:
            from launch_sniper.chains.signatures import default_registry

            # Parses every extra layout; raises ConfigError on the first defect
            default_registry(self.signatures_config)
