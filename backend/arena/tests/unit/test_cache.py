from arena.reveal.cache import RevealCache
from shared.handles import ZERO_HANDLE, ValueHandle

A = ValueHandle(b"\x0a" * 32)
B = ValueHandle(b"\x0b" * 32)


class TestRevealCache:
    def test_seeded_with_sentinel(self):
        cache = RevealCache()

        assert ZERO_HANDLE in cache
        assert cache.get(ZERO_HANDLE) == 0
        assert len(cache) == 1

    def test_unknown_is_none(self):
        assert RevealCache().get(A) is None

    def test_missing_dedupes_in_order(self):
        cache = RevealCache()
        cache.merge({A: 4})

        assert cache.missing([B, A, ZERO_HANDLE, B]) == [B]

    def test_merge_is_idempotent_and_order_free(self):
        first = RevealCache()
        first.merge({A: 1})
        first.merge({B: 2})
        first.merge({A: 1})

        second = RevealCache()
        second.merge({B: 2})
        second.merge({A: 1})

        assert first.snapshot() == second.snapshot() == {ZERO_HANDLE: 0, A: 1, B: 2}

    def test_reset_keeps_only_sentinel(self):
        cache = RevealCache()
        cache.merge({A: 1, B: 2})

        cache.reset()

        assert cache.snapshot() == {ZERO_HANDLE: 0}

    def test_snapshot_is_a_copy(self):
        cache = RevealCache()
        cache.snapshot()[A] = 9

        assert A not in cache

    def test_reset_bumps_generation(self):
        cache = RevealCache()
        cache.merge({A: 1})
        before = cache.generation

        cache.reset()

        assert cache.generation == before + 1
        cache.merge({B: 2})
        assert cache.generation == before + 1
