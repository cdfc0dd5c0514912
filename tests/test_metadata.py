import asyncio

from helpers import TKN, WETH, FakeChainClient, abi_string


def _resolver(client, **kw):
    from launch_sniper.config import AppSettings
    from launch_sniper.detection.metadata import TokenMetadataResolver

    known = AppSettings(_env_file=None, known_tokens_config="missing.yaml").known_tokens()
    return TokenMetadataResolver(client, known, **kw)


def test_decode_string_abi_and_raw_fallback():
    from launch_sniper.detection.metadata import decode_string

    assert decode_string(abi_string("PEPE")) == "PEPE"
    # bytes32-style symbol (MKR and friends)
    assert decode_string(b"MKR".ljust(32, b"\x00")) == "MKR"
    assert decode_string(b"") == ""
    assert decode_string(b"\xff\xfe" * 16) == ""


def test_known_token_resolves_without_remote_calls():
    client = FakeChainClient()
    r = _resolver(client)
    meta = asyncio.run(r.resolve(WETH))
    assert meta.known
    assert meta.symbol == "WETH"
    assert r.remote_lookups == 0
    assert client.calls == []


def test_unknown_token_probed_and_cached():
    client = FakeChainClient()
    client.add_token(TKN, "TKN", "Test Token", decimals=9)
    r = _resolver(client)

    async def go():
        first = await r.resolve(TKN)
        second = await r.resolve(TKN.upper().replace("0X", "0x"))
        return first, second

    first, second = asyncio.run(go())
    assert first.symbol == "TKN"
    assert first.name == "Test Token"
    assert first.decimals == 9
    assert first.total_supply == 10**24
    assert not first.known
    assert second is first
    assert r.remote_lookups == 1


def test_missing_decimals_default_to_18():
    from launch_sniper.detection.metadata import SYMBOL

    client = FakeChainClient()
    client.set_call(TKN, SYMBOL, abi_string("TKN"))
    meta = asyncio.run(_resolver(client, fetch_total_supply=False).resolve(TKN))
    assert meta.decimals == 18
    assert meta.total_supply is None


def test_non_token_resolves_to_none():
    client = FakeChainClient()
    assert asyncio.run(_resolver(client).resolve(TKN)) is None


def test_transient_failure_resolves_to_none_and_is_not_cached():
    client = FakeChainClient()
    client.add_token(TKN, "TKN")
    client.fail["eth_call"] = 1
    r = _resolver(client)
    assert asyncio.run(r.resolve(TKN)) is None
    assert asyncio.run(r.resolve(TKN)).symbol == "TKN"
