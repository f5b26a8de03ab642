import threading
from typing import Dict, Optional


class ContractCache:
    """Thread-safe in-memory cache of contract probes keyed by address+block."""

    def __init__(self) -> None:
        self._memory: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def _key(self, address: str, block_number: int) -> str:
        return f"{block_number}:{address.lower()}"

    def get(self, address: str, block_number: int) -> Optional[bool]:
        key = self._key(address, block_number)
        with self._lock:
            return self._memory.get(key)

    def set(self, address: str, block_number: int, is_contract: bool) -> None:
        key = self._key(address, block_number)
        with self._lock:
            self._memory[key] = is_contract

    def __len__(self) -> int:
        with self._lock:
            return len(self._memory)
