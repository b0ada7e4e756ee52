# barbershop/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import Session

from .config import settings
from .data import seed
from .db import engine, init_db
from .errors import register_error_handlers
from .routers import admin_routes, barbers_routes, bookings_routes, services_routes, webhook_routes

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    if settings.seed_demo_data:
        with Session(engine) as session:
            seed(session)
    logger.info("barbershop_started timezone=%s slot_minutes=%s", settings.timezone, settings.slot_minutes)
    yield


app = FastAPI(title=f"{settings.shop_name} bookings", lifespan=lifespan)
register_error_handlers(app)

app.include_router(services_routes.router)
app.include_router(barbers_routes.router)
app.include_router(bookings_routes.router)
app.include_router(admin_routes.router)
app.include_router(webhook_routes.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
