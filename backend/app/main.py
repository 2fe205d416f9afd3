from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.database import init_db
from core.exceptions import register_exception_handlers
from core.redis_config import close_redis_connection
from app.startup import configure_startup_logging, run_startup_checks

# ========== Cart ==========
from modules.cart.routes.cart_routes import router as cart_router

# ========== Loyalty & Rewards ==========
from modules.loyalty.routes.loyalty_routes import router as loyalty_router

# Register models with the metadata before create_all
from modules.cart.models import catalog_models  # noqa: F401
from modules.loyalty.models import rewards_models  # noqa: F401

configure_startup_logging()

app = FastAPI(
    title="Star Cafe API",
    description="Cart pricing and Star Rewards loyalty for the Star Cafe storefront",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(cart_router)
app.include_router(loyalty_router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    init_db()
    run_startup_checks()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    close_redis_connection()


@app.get("/")
def read_root():
    return {"message": "Star Cafe backend is running"}
