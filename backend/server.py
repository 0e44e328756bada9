from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
import uuid
from contextlib import asynccontextmanager
from database import database
from routes import merchant
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COMPANY_NAME = os.getenv("COMPANY_NAME", "Halo Payments")


def _log_delivery_config():
    """Log which optional collaborators are configured (never their secrets)."""
    configured = {
        "postmark": bool(os.getenv("POSTMARK_SERVER_TOKEN")),
        "recipients": bool((os.getenv("RECIPIENTS") or "").strip()),
        "drive": (os.getenv("DRIVE_DISABLE") or "").lower() != "true"
        and bool(os.getenv("DRIVE_SA_JSON") or os.getenv("DRIVE_SA_PATH")),
        "monday": bool(os.getenv("MONDAY_API_TOKEN") and os.getenv("MONDAY_BOARD_ID")),
        "whatsapp": bool(os.getenv("TWILIO_ACCOUNT_SID") and os.getenv("TWILIO_WHATSAPP_FROM")),
        "ocr": bool(os.getenv("LLM_API_KEY")),
    }
    for name, enabled in configured.items():
        if enabled:
            logger.info("Delivery channel %s: configured", name)
        else:
            logger.warning("Delivery channel %s: not configured (skipped)", name)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Merchant Onboarding API")
    await database.connect()
    _log_delivery_config()

    yield

    # Shutdown
    logger.info("Shutting down Merchant Onboarding API")
    await database.close()

# Create FastAPI app
app = FastAPI(
    title="Merchant Onboarding API",
    description=f"Merchant application intake - {COMPANY_NAME}",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(merchant.router)

# Root endpoint
@app.get("/api")
async def root():
    return {
        "service": "Merchant Onboarding",
        "owner": COMPANY_NAME,
        "version": "1.0.0",
        "status": "operational"
    }

# Health check
@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development")
    }


# Validation error handler: log request_id + error locations for submit debugging
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = str(uuid.uuid4())
    errors = exc.errors()
    logger.warning(
        "Validation failed request_id=%s path=%s errors=%s",
        request_id,
        request.url.path,
        [(e.get("loc"), e.get("msg"), e.get("type")) for e in errors],
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors), "request_id": request_id},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8001,
        reload=os.getenv("ENVIRONMENT") == "development"
    )
