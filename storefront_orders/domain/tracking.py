"""Журнал отслеживания доставки и трек-номера.

Журнал хранится внутри заказа как кортеж неизменяемых ``TrackingEvent``:
записи только добавляются в конец, время записи назначается при добавлении.
"""
import re
import string
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from storefront_orders.domain.exceptions import ValidationError

TRACKING_PREFIX = "ZYN"
RANDOM_SUFFIX_LENGTH = 6
BASE36_ALPHABET = string.digits + string.ascii_uppercase

_TRACKING_NUMBER_RE = re.compile(rf"^{TRACKING_PREFIX}[A-Z0-9]{{12,20}}$")


class TrackingEvent(BaseModel):
    """Value Object — запись журнала доставки"""
    model_config = ConfigDict(frozen=True)

    status: str
    location: Optional[str] = None
    timestamp: datetime
    description: Optional[str] = None


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("base36 определен только для неотрицательных чисел")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_tracking_number(now: datetime, random_suffix: str) -> str:
    """ZYN + время в миллисекундах (base36) + случайный хвост.

    Уникальность не проверяется: ее гарантирует уникальный индекс хранилища.
    """
    if len(random_suffix) != RANDOM_SUFFIX_LENGTH:
        raise ValueError(f"Случайная часть должна быть длиной {RANDOM_SUFFIX_LENGTH}")
    now_millis = int(now.timestamp() * 1000)
    return f"{TRACKING_PREFIX}{to_base36(now_millis)}{random_suffix.upper()}"


def is_valid_tracking_number(tracking_number: str) -> bool:
    return bool(_TRACKING_NUMBER_RE.match(tracking_number))


def append_tracking_event(
    history: tuple[TrackingEvent, ...],
    status: str,
    now: datetime,
    location: Optional[str] = None,
    description: Optional[str] = None,
) -> tuple[TrackingEvent, ...]:
    """Возвращает новый журнал с добавленной в конец записью"""
    if not status or not status.strip():
        raise ValidationError("Статус записи отслеживания обязателен")

    timestamp = now
    # Время в журнале не убывает, даже если часы ушли назад
    if history and history[-1].timestamp > timestamp:
        timestamp = history[-1].timestamp

    event = TrackingEvent(
        status=status,
        location=location,
        timestamp=timestamp,
        description=description,
    )
    return history + (event,)
