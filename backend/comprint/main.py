import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from comprint.core.config import settings
from comprint.core.errors import register_exception_handlers
import comprint.models  # noqa: F401  # force model registration

from comprint.api.v1.auth import router as auth_router
from comprint.api.v1.branches import router as branches_router
from comprint.api.v1.categories import router as categories_router
from comprint.api.v1.products import router as products_router
from comprint.api.v1.inventory import router as inventory_router
from comprint.api.v1.customers import router as customers_router
from comprint.api.v1.sales import router as sales_router
from comprint.api.v1.commissions import router as commissions_router
from comprint.api.v1.service_categories import router as service_categories_router
from comprint.api.v1.service_attachments import router as service_attachments_router
from comprint.api.v1.service_requests import router as service_requests_router
from comprint.api.v1.users import router as users_router
from comprint.api.v1.reports import router as reports_router


def create_application() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Comprint Services API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "comprint"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(branches_router, prefix="/api/v1")
    app.include_router(categories_router, prefix="/api/v1")
    app.include_router(products_router, prefix="/api/v1")
    app.include_router(inventory_router, prefix="/api/v1")
    app.include_router(customers_router, prefix="/api/v1")
    app.include_router(sales_router, prefix="/api/v1")
    app.include_router(commissions_router, prefix="/api/v1")
    app.include_router(service_categories_router, prefix="/api/v1")
    app.include_router(service_attachments_router, prefix="/api/v1")
    app.include_router(service_requests_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")

    # Attachment blobs (local storage backend)
    app.mount("/storage", StaticFiles(directory=settings.STORAGE_ROOT, check_dir=False), name="storage")

    return app


app = create_application()
