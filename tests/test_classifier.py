from helpers import DEAD, OTHER, POOL, TKN, TX_A, TX_B, WETH, mint_log, transfer_log, v3_pool_log


def _classifier():
    from launch_sniper.chains.decoder import EventDecoder
    from launch_sniper.chains.signatures import default_registry
    from launch_sniper.detection.classifier import FreshnessClassifier

    dec = EventDecoder(default_registry())
    return dec, FreshnessClassifier(dec)


def test_one_sided_launch_is_fresh():
    from launch_sniper.models import LaunchKind

    dec, clf = _classifier()
    pool_log = v3_pool_log(WETH, TKN, 10_000, POOL)
    logs = [pool_log, mint_log(TKN, amount=1_000_000)]
    verdict = clf.classify(dec.decode(pool_log), logs)

    assert verdict.is_fresh_launch
    assert verdict.minted_token_addresses == frozenset({TKN})
    assert verdict.token1_minted and not verdict.token0_minted
    assert verdict.kind == LaunchKind.ONE_SIDED


def test_no_mint_is_not_fresh():
    dec, clf = _classifier()
    pool_log = v3_pool_log(WETH, TKN, 3000, POOL)
    logs = [pool_log, transfer_log(TKN, DEAD, POOL, 10)]
    verdict = clf.classify(dec.decode(pool_log), logs)
    assert not verdict.is_fresh_launch
    assert verdict.minted_token_addresses == frozenset()


def test_unrelated_mint_does_not_count():
    dec, clf = _classifier()
    pool_log = v3_pool_log(WETH, TKN, 3000, POOL)
    logs = [pool_log, mint_log(OTHER)]
    verdict = clf.classify(dec.decode(pool_log), logs)
    assert not verdict.is_fresh_launch


def test_full_launch_when_both_sides_minted():
    from launch_sniper.models import LaunchKind

    dec, clf = _classifier()
    pool_log = v3_pool_log(OTHER, TKN, 3000, POOL)
    logs = [pool_log, mint_log(OTHER), mint_log(TKN)]
    verdict = clf.classify(dec.decode(pool_log), logs)
    assert verdict.is_fresh_launch
    assert verdict.kind == LaunchKind.FULL


def test_logs_of_another_transaction_do_not_qualify():
    dec, clf = _classifier()
    pool_log = v3_pool_log(WETH, TKN, 3000, POOL, tx=TX_A)
    verdict = clf.classify(dec.decode(pool_log), [pool_log, mint_log(TKN, tx=TX_B)])
    assert not verdict.is_fresh_launch
    assert verdict.minted_token_addresses == frozenset()
    assert not verdict.token1_minted


def test_mixed_transactions_only_count_the_pool_transaction():
    dec, clf = _classifier()
    pool_log = v3_pool_log(OTHER, TKN, 3000, POOL, tx=TX_A)
    logs = [pool_log, mint_log(TKN, tx=TX_A), mint_log(OTHER, tx=TX_B)]
    verdict = clf.classify(dec.decode(pool_log), logs)
    assert verdict.is_fresh_launch
    assert verdict.minted_token_addresses == frozenset({TKN})
    assert not verdict.token0_minted


def test_mint_without_pool_event_is_not_fresh():
    dec, clf = _classifier()
    pool = dec.decode(v3_pool_log(WETH, TKN, 3000, POOL, tx=TX_A))
    # Same transaction, but the creation log of this pool is missing
    verdict = clf.classify(pool, [mint_log(TKN, tx=TX_A)])
    assert not verdict.is_fresh_launch
    assert verdict.token1_minted


def test_minted_tokens():
    dec, clf = _classifier()
    logs = [mint_log(TKN), mint_log(OTHER), transfer_log(WETH, DEAD, POOL, 1)]
    assert clf.minted_tokens(logs) == {TKN, OTHER}
