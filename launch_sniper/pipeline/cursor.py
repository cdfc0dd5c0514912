from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from loguru import logger

from launch_sniper.models import BlockRange


class CursorState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    ADVANCING = "advancing"


class BlockCursor:
    """Highest block fully processed. Only ever moves forward by one."""

    def __init__(self, last_processed: int):
        if last_processed < 0:
            raise ValueError("last_processed must be >= 0")
        self.last_processed = last_processed
        self.state = CursorState.IDLE

    def next_range(self, height: int, max_span: Optional[int] = None) -> Optional[BlockRange]:
        if height <= self.last_processed:
            return None
        end = height
        if max_span is not None and max_span > 0:
            end = min(height, self.last_processed + max_span)
        return BlockRange(self.last_processed + 1, end)

    def advance(self, block_number: int) -> None:
        expected = self.last_processed + 1
        if block_number != expected:
            raise ValueError(f"cursor must advance to {expected}, got {block_number}")
        self.last_processed = block_number


class Scheduler:
    def __init__(self, poll_interval_sec: float = 1.0, error_backoff_sec: float = 5.0):
        self.poll_interval_sec = poll_interval_sec
        self.error_backoff_sec = error_backoff_sec
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested; finishing in-flight block")
        self._stop.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True when woken by a stop request."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, seconds))
            return True
        except asyncio.TimeoutError:
            return False

    async def idle(self) -> bool:
        return await self.sleep(self.poll_interval_sec)

    async def backoff(self) -> bool:
        return await self.sleep(self.error_backoff_sec)
