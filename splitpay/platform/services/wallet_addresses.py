from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from splitpay.platform.models import WalletAddressInfo
from splitpay.platform.services.open_payments import OpenPaymentsClient

logger = logging.getLogger(__name__)


class WalletAddressResolver:
    """Looks up wallet address metadata. Always fresh: nothing is cached."""

    def __init__(self, client: OpenPaymentsClient) -> None:
        self._client = client

    async def resolve(self, url: str) -> WalletAddressInfo:
        info = await self._client.resolve_wallet_address(url)
        logger.debug("Resolved %s -> %s (%s/%d)", url, info.id, info.asset_code, info.asset_scale)
        return info

    async def resolve_many(self, urls: Sequence[str]) -> list[WalletAddressInfo]:
        return list(await asyncio.gather(*(self.resolve(url) for url in urls)))
