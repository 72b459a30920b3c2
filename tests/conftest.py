"""
Общие фикстуры.

Слои тестов:
    - test_domain_*     : чистая доменная логика, без I/O
    - test_use_cases    : use cases с in-memory unit of work
    - test_workers      : outbox / inbox обработчики
    - test_api          : HTTP контракт через TestClient
    - test_repositories : SQLAlchemy репозитории на SQLite
"""
import pytest

from storefront_orders.domain.models import Caller, Role

from tests.fakes import FakeClock, FakeRandomSource, FakeUnitOfWork, make_order


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def random_source():
    return FakeRandomSource(["ABC123", "DEF456", "GHI789", "JKL012"])


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def order(clock):
    """Заказ из сценария A: 2 x 500, налог 180, итого 1180"""
    return make_order(clock)


@pytest.fixture
def uow_with_order(uow, order):
    uow.store.orders[order.id] = order
    return uow


@pytest.fixture
def owner():
    return Caller(user_id="usr_1", role=Role.USER)


@pytest.fixture
def stranger():
    return Caller(user_id="usr_2", role=Role.USER)


@pytest.fixture
def admin():
    return Caller(user_id="adm_1", role=Role.ADMIN)
