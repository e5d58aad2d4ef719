from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

from artisan_market import config
from artisan_market.api.approvals import catalog_router, router as approvals_router
from artisan_market.api.comments import router as comments_router
from artisan_market.api.orders import router as orders_router
from artisan_market.errors import MarketplaceError, ValidationError
from artisan_market.store.database import init_db
from artisan_market.utils.temporal import get_temporal_client, set_client

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Artisan Marketplace")

# Include routers
app.include_router(orders_router, prefix="/orders", tags=["orders"])
app.include_router(approvals_router, prefix="/approvals", tags=["approvals"])
app.include_router(catalog_router, prefix="/catalog", tags=["catalog"])
app.include_router(comments_router, tags=["comments"])


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content=ValidationError(errors).to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    content = {"error": "Internal server error"}
    if config.is_development():
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.on_event("startup")
async def startup_event():
    init_db()
    try:
        set_client(await get_temporal_client())
        logger.info(f"Connected to Temporal server at {config.temporal_address()}")
    except Exception as e:
        # Reviews return 503 until Temporal is reachable; everything else still works
        logger.warning(f"Failed to connect to Temporal: {e}")
        set_client(None)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Artisan marketplace service is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("artisan_market.api.main:app", host=config.API_HOST, port=config.API_PORT)
