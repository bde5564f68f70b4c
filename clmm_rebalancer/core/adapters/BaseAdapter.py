from __future__ import annotations

from abc import ABC
from typing import Any

from loguru import logger

from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk


class BaseAdapter(ABC):
    adapter_type: str | None = None

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        *,
        chain: ChainClient,
        sdk: ClmmSdk | None = None,
    ):
        self.name = name
        self.config = config or {}
        self.chain = chain
        self.sdk = sdk
        self.logger = logger.bind(adapter=self.__class__.__name__)

    @property
    def owner(self) -> str:
        return self.chain.address

    def _require_sdk(self) -> ClmmSdk:
        if self.sdk is None:
            raise ValueError(f"{self.name} adapter requires a protocol SDK")
        return self.sdk

    async def close(self) -> None:
        pass
