import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import salestax.models  # noqa: F401
from salestax.core.config import get_settings
from salestax.core.database import init_db
from salestax.routers import addresses, certificates, orders, taxcloud, tics

settings = get_settings()

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


OPENAPI_TAGS = [
    {"name": "TaxCloud", "description": "Connection check, locations and offline imports."},
    {"name": "Addresses", "description": "Verify US destination addresses."},
    {"name": "TICs", "description": "Taxability Information Codes."},
    {"name": "Certificates", "description": "Customer exemption certificates."},
    {"name": "Orders", "description": "Quote, capture and return order tax."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description="Sales tax calculation and reporting through TaxCloud.",
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(taxcloud.router, prefix="/v1/taxcloud", tags=["TaxCloud"])
app.include_router(addresses.router, prefix="/v1/addresses", tags=["Addresses"])
app.include_router(tics.router, prefix="/v1/tics", tags=["TICs"])
app.include_router(certificates.router, prefix="/v1/customers", tags=["Certificates"])
app.include_router(orders.router, prefix="/v1/orders", tags=["Orders"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
