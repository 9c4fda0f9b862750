"""Round-robin rotation over the configured provider API keys."""

import asyncio
from typing import List, Sequence


class CredentialPool:
    """Ordered pool of API keys handed out round-robin.

    The index update happens inside an asyncio.Lock so concurrent
    acquisitions never read the same index twice or lose an increment.

    Usage:
        pool = CredentialPool(["key-a", "key-b"])
        key = await pool.next()   # "key-a"
        key = await pool.next()   # "key-b"
        key = await pool.next()   # "key-a"
    """

    def __init__(self, credentials: Sequence[str]):
        self._credentials: List[str] = [c for c in credentials if c]
        self._rr_index = 0
        self._rr_lock = asyncio.Lock()

    async def next(self) -> str:
        """Return the next key, wrapping around at the end of the pool.

        Raises:
            RuntimeError: If no keys are configured
        """
        if not self._credentials:
            raise RuntimeError("No API keys configured for the generation provider")

        async with self._rr_lock:
            index = self._rr_index % len(self._credentials)
            self._rr_index = (self._rr_index + 1) % len(self._credentials)
        return self._credentials[index]

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def is_empty(self) -> bool:
        return not self._credentials
