from sqlalchemy import text

from costbook.core.observability import (
    domain_exception_handler,
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from costbook.core.config import settings
from costbook.db.session import engine
from costbook.routers import auth, dashboard, overheads, products, reports, stock
from costbook.services.errors import CostbookError

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Product costing and stock ledger API for small manufacturers.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Test protected endpoints (`/products`, `/stock`, `/overheads`, `/reports`, `/dashboard`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "User registration and bearer tokens."},
        {"name": "products", "description": "Products, cost lines and cost breakdowns."},
        {"name": "stock", "description": "Stock ledger movements, sales and stock alerts."},
        {"name": "overheads", "description": "Business overheads and overhead summaries."},
        {"name": "reports", "description": "Read-only cost, overhead and profitability reports."},
        {"name": "dashboard", "description": "Business KPIs, trends and quick stats."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(CostbookError, domain_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Local tooling serves the web client from dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(products.router)
app.include_router(stock.router)
app.include_router(overheads.router)
app.include_router(reports.router)
app.include_router(dashboard.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
