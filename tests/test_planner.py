import asyncio

import pytest
from helpers import POOL, QUOTER, TKN, WETH, FakeChainClient, quoter_v2_result


def _planner(client, **kw):
    from launch_sniper.execution.planner import TradePlanner

    kw.setdefault("v3_quoter", QUOTER)
    kw.setdefault("clock", lambda: 1_700_000_000.5)
    return TradePlanner(client, **kw)


def _quote_selector():
    from eth_utils import function_signature_to_4byte_selector

    from launch_sniper.execution.uniswap_v3 import QUOTE_V2

    return function_signature_to_4byte_selector(QUOTE_V2)


def test_plan_applies_slippage_and_deadline():
    client = FakeChainClient()
    client.set_call(QUOTER, _quote_selector(), quoter_v2_result(500_000))
    intent = asyncio.run(_planner(client).plan(WETH, TKN, 10**14, fee_tier=10_000, pool_address=POOL))

    assert intent.quoted_amount_out == 500_000
    assert intent.amount_out_minimum == 475_000
    assert intent.deadline == 1_700_000_300
    assert intent.fee_tier == 10_000
    assert intent.token_in == WETH
    assert intent.token_out == TKN
    assert intent.pool_address == POOL
    assert client.sent == []


@pytest.mark.parametrize("quoted,bps", [(1, 1), (10, 500), (500_000, 500), (10**30, 9_999)])
def test_min_out_strictly_below_quote(quoted, bps):
    from launch_sniper.execution.uniswap_v3 import compute_min_out

    assert compute_min_out(quoted, bps) < quoted


def test_reverted_quote_is_no_liquidity():
    from launch_sniper.errors import NoLiquidity

    client = FakeChainClient()  # empty eth_call result
    with pytest.raises(NoLiquidity):
        asyncio.run(_planner(client).plan(WETH, TKN, 10**14, fee_tier=3000))


def test_zero_quote_is_no_liquidity():
    from launch_sniper.errors import NoLiquidity

    client = FakeChainClient()
    client.set_call(QUOTER, _quote_selector(), quoter_v2_result(0))
    with pytest.raises(NoLiquidity):
        asyncio.run(_planner(client).plan(WETH, TKN, 10**14, fee_tier=3000))


def test_transport_failure_is_remote_error():
    from launch_sniper.errors import QuoteRemoteError

    client = FakeChainClient()
    client.fail["eth_call"] = 1
    with pytest.raises(QuoteRemoteError):
        asyncio.run(_planner(client).plan(WETH, TKN, 10**14, fee_tier=3000))


def test_missing_quoter_is_unsupported():
    from launch_sniper.errors import UnsupportedPool

    with pytest.raises(UnsupportedPool):
        asyncio.run(_planner(FakeChainClient(), v3_quoter=None).plan(WETH, TKN, 10**14, fee_tier=3000))


def test_probes_fee_tiers_when_fee_unknown():
    from launch_sniper.execution.uniswap_v3 import quote_exact_input_single_calldata

    class TieredClient(FakeChainClient):
        async def call(self, to, data):
            self.calls.append((to, bytes(data)))
            if bytes(data) == quote_exact_input_single_calldata(WETH, TKN, 3000, 10**14):
                return quoter_v2_result(42_000)
            return b""

    client = TieredClient()
    intent = asyncio.run(_planner(client, fee_tiers=[10_000, 3000, 500]).plan(WETH, TKN, 10**14, fee_tier=None))
    assert intent.fee_tier == 3000
    assert intent.quoted_amount_out == 42_000
    assert len(client.calls) == 2


def test_v2_quote_uses_router_amounts_out():
    from eth_abi import encode
    from eth_utils import function_signature_to_4byte_selector

    from launch_sniper.execution.uniswap_v2 import GET_AMOUNTS_OUT

    router = "0x4752ba5dbc23f44d87826276bf6fd6b1c372ad24"
    client = FakeChainClient()
    client.set_call(
        router, function_signature_to_4byte_selector(GET_AMOUNTS_OUT), encode(["uint256[]"], [[10**14, 1_000]])
    )
    intent = asyncio.run(_planner(client, v2_router=router).plan(WETH, TKN, 10**14, fee_tier=3000, protocol="v2"))
    assert intent.protocol == "v2"
    assert intent.quoted_amount_out == 1_000
    assert intent.amount_out_minimum == 950


@pytest.mark.parametrize("version", ["v1", "v2"])
def test_quote_calldata_matches_quoter_abi(version):
    from eth_abi import encode
    from eth_utils import function_signature_to_4byte_selector

    from launch_sniper.execution.uniswap_v3 import QUOTE_V1, QUOTE_V2, quote_exact_input_single_calldata

    data = quote_exact_input_single_calldata(WETH, TKN, 3000, 10**14, quoter_version=version)
    if version == "v1":
        expected = function_signature_to_4byte_selector(QUOTE_V1) + encode(
            ["address", "address", "uint24", "uint256", "uint160"], [WETH, TKN, 3000, 10**14, 0]
        )
    else:
        expected = function_signature_to_4byte_selector(QUOTE_V2) + encode(
            ["(address,address,uint256,uint24,uint160)"], [(WETH, TKN, 10**14, 3000, 0)]
        )
    assert isinstance(data, bytes)
    assert data == expected


def test_v2_amounts_out_calldata_accepts_lowercase_path():
    from eth_abi import decode

    from launch_sniper.execution.uniswap_v2 import get_amounts_out_calldata

    data = get_amounts_out_calldata(10**14, [WETH, TKN])
    amount, path = decode(["uint256", "address[]"], data[4:])
    assert amount == 10**14
    assert [a.lower() for a in path] == [WETH, TKN]
