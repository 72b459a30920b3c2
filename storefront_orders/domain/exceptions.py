class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Недопустимый переход статуса: {current} -> {requested}")


class NotFoundError(DomainException):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class AuthorizationError(DomainException):
    pass


class DuplicateKeyError(DomainException):
    pass


class ConcurrentModificationError(DomainException):
    def __init__(self, order_id: str, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Заказ {order_id} изменен параллельно (ожидалась версия {expected_version})"
        )
