"""并发闸门：限制同时处理中的文件数量。"""

from __future__ import annotations

import asyncio
import os
from typing import Optional


def available_parallelism() -> int:
    """主机可用的逻辑核心数。"""

    return os.cpu_count() or 1


class ConcurrencyGate:
    """基于 ``asyncio.Semaphore`` 的计数信号量。

    ``capacity`` 仅是预计排队数量的提示，不影响并发上限。``in_use`` 与
    ``peak`` 记录当前与历史最大的占用槽位数。
    """

    def __init__(self, limit: Optional[int] = None, *, capacity: int = 0) -> None:
        self.limit = limit if limit is not None else available_parallelism()
        if self.limit < 1:
            raise ValueError(f"并发上限必须大于 0: {self.limit}")
        self.capacity = capacity
        self.in_use = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(self.limit)

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self.in_use += 1
        self.peak = max(self.peak, self.in_use)

    def release(self) -> None:
        if self.in_use <= 0:
            raise RuntimeError("release() 调用次数多于 acquire()")
        self.in_use -= 1
        self._semaphore.release()

    async def __aenter__(self) -> "ConcurrencyGate":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ConcurrencyGate(limit={self.limit}, in_use={self.in_use}, capacity={self.capacity})"
