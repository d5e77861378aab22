import pytest

from src.shared.utils.lru_cache import BoundedLRUCache


def test_evicts_least_recently_used():
    c = BoundedLRUCache(max_size=2)
    c.set("a", 1)
    c.set("b", 2)
    assert c.get("a") == 1  # a is now most recent
    c.set("c", 3)
    assert "b" not in c
    assert c.get("a") == 1 and c.get("c") == 3
    assert len(c) == 2


def test_invalidate_and_clear():
    c = BoundedLRUCache()
    c.set("a", 1)
    c.set("b", 2)
    c.invalidate("a")
    assert c.get("a") is None
    c.clear()
    assert len(c) == 0


def test_rejects_zero_size():
    with pytest.raises(ValueError):
        BoundedLRUCache(0)
