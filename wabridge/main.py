from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from wabridge.config import get_settings
from wabridge.exceptions import (
    CredentialsNotConfiguredError,
    EmptyGroupError,
    GroupNotFoundError,
    MessageNotFoundError,
    RecipientValidationError,
    WabridgeError,
)
from wabridge.infra.logging_config import configure_logging
from wabridge.routers import (
    accounts_router,
    groups_router,
    media_router,
    messages,
    settings_router,
    templates_router,
    webhooks,
)

_ERROR_STATUS = {
    RecipientValidationError: 400,
    CredentialsNotConfiguredError: 400,
    EmptyGroupError: 400,
    GroupNotFoundError: 404,
    MessageNotFoundError: 404,
}


async def wabridge_error_handler(request: Request, exc: WabridgeError) -> JSONResponse:
    status_code = next(
        (code for error, code in _ERROR_STATUS.items() if isinstance(exc, error)), 500
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)

    if testing:
        from wabridge.db import Base, engine
        import wabridge.models  # noqa: F401

        Base.metadata.create_all(bind=engine)

    app.add_exception_handler(WabridgeError, wabridge_error_handler)

    app.include_router(webhooks.router)
    app.include_router(messages.router)
    app.include_router(groups_router.router)
    app.include_router(media_router.router)
    app.include_router(settings_router.router)
    app.include_router(templates_router.router)
    app.include_router(accounts_router.router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    add_pagination(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("wabridge.main:app", host="0.0.0.0", port=get_settings().port)
