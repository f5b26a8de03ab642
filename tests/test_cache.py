from concurrent.futures import ThreadPoolExecutor

from etherscanner.cache import ContractCache

CONTRACT = "0x" + "d4" * 20


def test_keys_by_block_and_lowercased_address():
    cache = ContractCache()
    cache.set(CONTRACT.upper().replace("0X", "0x"), 1, True)

    assert cache.get(CONTRACT, 1) is True
    assert cache.get(CONTRACT, 2) is None
    assert len(cache) == 1


def test_false_is_a_cached_answer():
    cache = ContractCache()
    cache.set(CONTRACT, 1, False)
    assert cache.get(CONTRACT, 1) is False


def test_concurrent_writers():
    cache = ContractCache()

    def fill(block):
        for idx in range(50):
            cache.set(f"0x{idx:040x}", block, idx % 2 == 0)

    with ThreadPoolExecutor(max_workers=4) as executor:
        list(executor.map(fill, range(8)))

    assert len(cache) == 8 * 50
    assert cache.get(f"0x{2:040x}", 7) is True
