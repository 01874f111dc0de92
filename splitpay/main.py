import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from splitpay.api.routes import api_router
from splitpay.platform.config import settings
from splitpay.platform.errors import SplitPayError
from splitpay.platform.pending_store import get_pending_store, sweep_forever

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    sweeper = asyncio.create_task(sweep_forever(get_pending_store(), settings.pending_sweep_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


async def _splitpay_error_handler(request: Request, exc: SplitPayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"error": message})


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="SplitPay API", lifespan=_lifespan)

    allowed_origins = [o.strip() for o in str(settings.allowed_origins).split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SplitPayError, _splitpay_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
