from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import Database
from app.core.middleware import AccessLogMiddleware, SecurityHeadersMiddleware
from app.features.permissions.routes import router as permission_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title=config.APP_NAME,
    description="Social media management platform with role and account based access control",
    version=config.APP_VERSION,
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)

AVAILABLE_ROUTES = [
    f"{config.API_PREFIX}/auth",
    f"{config.API_PREFIX}/users",
    f"{config.API_PREFIX}/platforms",
    f"{config.API_PREFIX}/accounts",
    f"{config.API_PREFIX}/permissions",
]

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[
        f"{config.RATE_LIMIT_MAX_REQUESTS} per {max(1, config.RATE_LIMIT_WINDOW_MS // 1000)} seconds"
    ],
    enabled=config.RATE_LIMIT_ENABLED,
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    SecurityHeadersMiddleware,
    max_body_bytes=config.MAX_BODY_BYTES,
    production=config.IS_PRODUCTION,
)
app.add_middleware(AccessLogMiddleware, production=config.IS_PRODUCTION)

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGINS:
    log.warning("Setting allow origins to %s", config.ALLOW_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse(
        {"error": "Too many requests from this IP, please try again later."},
        status_code=429
    )


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    # Only unmatched routes; 404s raised by handlers keep their own detail
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={
                "error": "Route not found",
                "message": f"The route {request.url.path} does not exist on this server",
                "available_routes": AVAILABLE_ROUTES,
            },
        )
    return await http_exception_handler(request, exc)


@app.on_event("startup")
async def startup():
    """Connect to the database and create tables."""
    log.info("Starting %s...", config.APP_NAME)
    log.info("Environment: %s", config.APP_ENV)
    log.info("Server: %s:%s", config.HOST, config.PORT)

    database = Database(config.SQLALCHEMY_DATABASE_URL, echo=config.IS_DEVELOPMENT)
    await database.connect()
    await database.create_all()
    app.state.database = database

    log.info("Server running at %s", config.HOST_URL)
    log.info("API Base URL: %s%s", config.HOST_URL, config.API_PREFIX)


@app.on_event("shutdown")
async def shutdown():
    log.info("Shutting down gracefully")
    database: Database | None = getattr(app.state, "database", None)
    if database is not None:
        await database.disconnect()


@app.get("/", response_class=HTMLResponse)
async def root():
    """Landing page describing the API."""
    endpoints = "\n".join(
        f'<div class="endpoint">{endpoint}</div>'
        for endpoint in [
            f"GET {config.API_PREFIX}/permissions - List Permissions",
            f"POST {config.API_PREFIX}/permissions/check - Check Account Permission",
            "GET /health - Health Check",
            "GET /test-db - Database Check",
        ]
    )
    return f"""
    <html>
      <head>
        <title>Social Media SaaS Platform</title>
        <style>
          body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 40px; }}
          .container {{ max-width: 600px; margin: 0 auto; }}
          .header {{ color: #2563eb; border-bottom: 2px solid #e5e7eb; padding-bottom: 20px; }}
          .info {{ background: #f8fafc; padding: 20px; border-radius: 8px; margin: 20px 0; }}
          .endpoint {{ background: #1f2937; color: #f9fafb; padding: 8px 12px; border-radius: 4px; margin: 4px 0; font-family: monospace; }}
        </style>
      </head>
      <body>
        <div class="container">
          <div class="header">
            <h1>{config.APP_NAME}</h1>
            <p>A social media management platform with role-based access control</p>
          </div>
          <div class="info">
            <p><strong>Version:</strong> {config.APP_VERSION}</p>
            <p><strong>Environment:</strong> {config.APP_ENV}</p>
            <p><strong>Database:</strong> SQLAlchemy ({config.SQLALCHEMY_DATABASE_URL.split(":", 1)[0]})</p>
            <p><strong>API Base:</strong> <code>{config.API_PREFIX}</code></p>
          </div>
          <h3>Available Endpoints:</h3>
          {endpoints}
        </div>
      </body>
    </html>
    """


@app.get("/health")
async def health(request: Request):
    """Health check endpoint; verifies the database answers."""
    timestamp = datetime.now(timezone.utc).isoformat()
    result = await request.app.state.database.health_check()

    if result["status"] != "healthy":
        log.error("Health check failed: %s", result["error"])
        return JSONResponse(
            status_code=500,
            content={
                "status": "ERROR",
                "message": "Database connection failed",
                "timestamp": timestamp,
                "error": result["error"],
            },
        )

    return {
        "status": "OK",
        "message": f"{config.APP_NAME} is running",
        "timestamp": timestamp,
        "environment": config.APP_ENV,
        "database": "Connected",
        "version": config.APP_VERSION,
    }


@app.get("/test-db")
async def test_db(request: Request):
    """Run a query against the database and report the server time."""
    database: Database = request.app.state.database
    try:
        async with database.engine.connect() as conn:
            result = await conn.execute(text("SELECT CURRENT_TIMESTAMP AS now"))
            current_time = result.scalar_one()
    except Exception as e:
        log.error("Database connection error: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Database connection failed", "details": str(e)},
        )

    return {
        "message": "Database connection successful",
        "current_time": str(current_time),
        "database": database.engine.url.database,
    }


# Include routers
app.include_router(permission_router, prefix=f"{config.API_PREFIX}/permissions", tags=["permissions"])
