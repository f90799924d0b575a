import os
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kuaishou_dl.api import download, health, resolve
from kuaishou_dl.config.settings import config, CONFIG_PATH
from kuaishou_dl.core.errors import PlatformUrlError, ResolverError
from kuaishou_dl.core.logging import log_debug, setup_logging
from kuaishou_dl.i18n import i18n
from kuaishou_dl.infra.http import close_http_client, get_http_client
from kuaishou_dl.infra.redis import init_redis, close_redis
from kuaishou_dl.models.response import ResolveResponse

setup_logging()

app = FastAPI(
    title=config.api.title,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response

@app.exception_handler(ResolverError)
async def resolver_exception_handler(request: Request, exc: ResolverError):
    _ = i18n.for_request(request)
    return JSONResponse(
        status_code=exc.status_code,
        content=ResolveResponse(success=False, error=_(exc.message_key)).to_json(),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Bad or missing page URL; the detail stays in the logs
    log_debug(request, f"Rejected request: {exc.errors()}")
    return await resolver_exception_handler(request, PlatformUrlError())

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Keep the {"success": false, "error": ...} envelope for 404/405/429
    return JSONResponse(
        status_code=exc.status_code,
        content=ResolveResponse(success=False, error=str(exc.detail)).to_json(),
        headers=getattr(exc, "headers", None),
    )

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(resolve.router, tags=["Resolve"])
app.include_router(download.router, tags=["Download"])

@app.on_event("startup")
async def startup_event():
    # Write the effective config so it can be edited in place
    config_dir = os.path.dirname(CONFIG_PATH)
    if config_dir and not os.path.exists(config_dir):
        os.makedirs(config_dir, exist_ok=True)
    if not os.path.exists(CONFIG_PATH):
        config.save_to_file(CONFIG_PATH)

    get_http_client()
    await init_redis()

@app.on_event("shutdown")
async def shutdown_event():
    await close_http_client()
    await close_redis()
