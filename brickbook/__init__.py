import logging
import traceback
from fastapi import FastAPI, Request, status
from contextlib import asynccontextmanager
from brickbook.config import Config
from brickbook.db.main import init_db
from brickbook.db.redis import redis_client, check_redis_connection

from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from brickbook.auth.routes import authRouter
from brickbook.customers.routes import customer_router
from brickbook.sales.routes import sale_router
from brickbook.payments.routes import payment_router
from brickbook.advance.routes import advance_router
from brickbook.dues.routes import due_router
from brickbook.deliveries.routes import delivery_router
from brickbook.utils.limiter import limiter


logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("---Server Started---")

    await init_db()

    await check_redis_connection()

    yield

    logger.info("---Closing Redis Connection---")
    if redis_client:
        await redis_client.close()
    logger.info("---Server Closed---")

app = FastAPI(
    title="BrickBook API",
    description="Customers, sales, dues and advance balances for construction-material dealers",
    lifespan=lifespan
)

# Required for SlowAPI to function correctly on routes
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def health_check():
    return{
        "status": "Success",
        "message": "Server Working"
    }

@app.exception_handler(StarletteHTTPException)
async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = {
        "success": False,
        "message": exc.detail,
        "data": None
    }
    # InsufficientBalance / ExcessPayment diagnostics
    content.update(getattr(exc, "extra", {}))

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None)
    )

def format_validation_errors(errors):
    formatted = []
    for err in errors:
        # Skip the first element if it's "body", "query", etc.
        loc = err["loc"]
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[0])
        formatted.append({
            "field": field,
            "message": err["msg"]
        })
    return formatted

@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation error",
            "errors": format_validation_errors(exc.errors()),
            "data": None
        }
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {
        "success": False,
        "message": "internal server error",
        "data": None
    }
    if not Config.IS_PRODUCTION:
        content["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content
    )

# Register all routers
app.include_router(authRouter, prefix="/api/auth", tags=["Authentication"])
app.include_router(customer_router, prefix="/api/customers", tags=["Customers"])
app.include_router(sale_router, prefix="/api/sales", tags=["Sales"])
app.include_router(payment_router, prefix="/api/payments", tags=["Payments"])
app.include_router(advance_router, prefix="/api/advance", tags=["Advance"])
app.include_router(due_router, prefix="/api/dues", tags=["Dues"])
app.include_router(delivery_router, prefix="/api/deliveries", tags=["Deliveries"])
