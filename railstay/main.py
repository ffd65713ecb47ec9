from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from railstay.config import settings
from railstay.auth import router as auth_router
from railstay.bookings import router as orders_router
from railstay.payments import router as payment_router
from railstay.inventory import router as inventory_router
from railstay.bookings import admin_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Train, hotel and onboard catering booking API",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Frontend dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    auth_router.router,
    prefix=f"{settings.API_V1_STR}/auth",
    tags=["Authentication"]
)

app.include_router(
    orders_router.router,
    prefix=f"{settings.API_V1_STR}/orders",
    tags=["Orders"]
)

app.include_router(
    payment_router.router,
    prefix=f"{settings.API_V1_STR}/payment",
    tags=["Payment"]
)

app.include_router(
    inventory_router.router,
    prefix=f"{settings.API_V1_STR}/inventory",
    tags=["Availability"]
)

app.include_router(
    admin_router.router,
    prefix=f"{settings.API_V1_STR}/admin",
    tags=["Admin"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": f"{settings.PROJECT_NAME} API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
