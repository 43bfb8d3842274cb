"""In-memory email subscription list."""
from __future__ import annotations

import asyncio
import re

from shared.models.domain import Subscription
from shared.utils.logging import get_logger

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SubscriptionService:
    """Email addresses keyed case-insensitively; subscribing twice returns the first record."""

    def __init__(self) -> None:
        self._by_email: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._by_email)

    async def add(self, email: str) -> Subscription:
        key = email.strip().casefold()
        async with self._lock:
            existing = self._by_email.get(key)
            if existing is not None:
                return existing
            sub = Subscription(email=email.strip())
            self._by_email[key] = sub
        logger.info("subscription_added", subscription_id=str(sub.id))
        return sub

    async def exists(self, email: str) -> bool:
        return email.strip().casefold() in self._by_email
