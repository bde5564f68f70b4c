from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TypedDict

from loguru import logger


class StatusDict(TypedDict):
    pool_address: str
    tracked_position_id: str | None
    cycles: int
    last_result: dict[str, Any] | None
    dry_run: bool


StatusTuple = tuple[bool, str]


class Strategy(ABC):
    name: str | None = None

    def __init__(self, config: dict[str, Any] | None = None, **kwargs: Any):
        self.logger = logger.bind(strategy=self.__class__.__name__)
        self.config: dict[str, Any] = config or {}

    async def setup(self) -> None:
        pass

    @abstractmethod
    async def update(self) -> StatusTuple:
        pass

    @abstractmethod
    async def _status(self) -> StatusDict:
        pass

    async def status(self) -> StatusDict:
        return await self._status()

    async def close(self) -> None:
        pass
