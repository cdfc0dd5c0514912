def test_mark_and_check_first_sight_only():
    from launch_sniper.detection.dedup import DedupStore, pool_key

    store = DedupStore()
    key = pool_key("0xABC")
    assert not store.seen(key)
    assert store.mark_and_check(key) is True
    assert store.mark_and_check(key) is False
    assert store.seen(key)
    assert len(store) == 1


def test_keys_are_case_insensitive_and_namespaced():
    from launch_sniper.detection.dedup import DedupStore, pool_key, token_key

    store = DedupStore()
    addr = "0x1111111111111111111111111111111111111111"
    assert store.mark_and_check(pool_key(addr))
    assert not store.mark_and_check(pool_key(addr.upper()))
    # The same address as a token is a different identity
    assert store.mark_and_check(token_key(addr))
