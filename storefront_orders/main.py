import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront_orders.config import configure_logging
from storefront_orders.database import engine
from storefront_orders.presentation.api import router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # Схема БД создается миграциями Alembic
    logger.info("Order service запущен")
    yield
    await engine.dispose()
    logger.info("Приложение останавливается...")


app = FastAPI(
    title="Storefront Order Service",
    description="Жизненный цикл заказов, оплаты, возвраты и отслеживание доставки",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy"}
