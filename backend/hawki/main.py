from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hawki.core.config import settings
from hawki.core.exceptions import HawkiException
from hawki.core.logging import setup_logging
from hawki.routers import attendance, employees, integrations_ado, integrations_bamboohr, progress


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(integrations_ado.router, prefix="/api/ado-sync", tags=["ado-sync"])
    app.include_router(integrations_bamboohr.router, prefix="/api/bamboohr", tags=["bamboohr"])
    app.include_router(employees.router, prefix="/api/employees", tags=["employees"])
    app.include_router(attendance.router, prefix="/api/attendance", tags=["attendance"])
    app.include_router(progress.router, prefix="/api/progress", tags=["progress"])

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "ado_configured": settings.ado_ready, "bamboohr_configured": settings.bamboohr_ready}

    @app.exception_handler(HawkiException)
    async def handle_hawki_exception(_: Request, exc: HawkiException) -> JSONResponse:
        headers = exc.headers if getattr(exc, "headers", None) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    return app


app = create_app()
