import uuid

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from nameplate.api.v1.router import api_router
from nameplate.core.context import set_request_context
from nameplate.core.limiter import limiter
from nameplate.core.logging import LoggerRegistry, configure_logging
from nameplate.core.security import SecurityHeadersMiddleware
from nameplate.domain.models import RequestContext

# Configure logging before creating the app instance
configure_logging()
logger = LoggerRegistry.get_api_logger("main")

app = FastAPI(
    title="Nameplate Extraction API",
    description="Reads brand, model, serial and rating from photos of equipment nameplates.",
    version="1.0.0",
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Create a new request context and set it for the current request."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    set_request_context(RequestContext(correlation_id=correlation_id))
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


app.add_middleware(SecurityHeadersMiddleware)

# Add the rate limiter to the application state and middleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


app.include_router(api_router, prefix="/api/v1")

logger.info("Nameplate Extraction API initialized", version="1.0.0")
