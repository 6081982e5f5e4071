from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campusops.api.v1.auth.router import router as auth_router
from campusops.api.v1.campuses.router import router as campuses_router
from campusops.api.v1.employees.router import router as employees_router
from campusops.api.v1.tenants.router import router as tenants_router
from campusops.core.config import settings
from campusops.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings)
    app = FastAPI(title="Campus Operations Backend")

    # CORS: allow frontend to call this API. Bulk update reports its counters in headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "Content-Disposition",
            "X-Total-Count",
            "X-Success-Count",
            "X-Failed-Count",
            "X-Import-Success",
            "X-Import-Failed",
        ],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(campuses_router)
    app.include_router(employees_router)

    return app


app = create_app()
