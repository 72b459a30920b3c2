import secrets
from datetime import datetime, timezone

from storefront_orders.domain.tracking import BASE36_ALPHABET
from storefront_orders.application.interfaces import Clock, RandomSource


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class SystemRandomSource(RandomSource):
    def base36(self, length: int) -> str:
        return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))
