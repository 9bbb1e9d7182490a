import os

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shared.config.database import engine, Base
from shared.errors import register_error_handlers
from shared.observability import setup_observability
from shared.security import limiter

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models
from services.product_service import models as product_models
from services.order_service import models as order_models
from services.payment_service import models as payment_models
from services.review_service import models as review_models

from services.auth_service.router import router as auth_router
from services.product_service.router import router as product_router
from services.order_service.router import router as order_router
from services.payment_service.router import router as payment_router
from services.review_service.router import router as review_router

app = FastAPI(title="Marketplace API", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, os.getenv("SERVICE_NAME", "marketplace_api"))

# --- SECURITY SETUP ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- ERROR MAPPING ---
register_error_handlers(app)

@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

@app.get("/health")
async def health_check():
    return {"service": "marketplace", "status": "running"}

app.include_router(auth_router)
app.include_router(product_router)
app.include_router(order_router)
app.include_router(review_router)
app.include_router(payment_router)
