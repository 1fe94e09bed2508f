from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from homecare.core.config import settings
from homecare.core.exceptions import ApiError
from homecare.core.logging import configure_logging
from homecare.endpoints import auth, dashboard, training, health_record
from homecare.middleware.exceptions import api_error_handler, global_exception_handler, validation_exception_handler
from homecare.middleware.logging import RequestLoggingMiddleware
from homecare.utils.events import event_bus, register_default_handlers

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Access-Token", "X-Refresh-Token", "X-Request-ID"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(training.router, prefix="/training", tags=["Training"])
app.include_router(health_record.router, prefix="/health-records", tags=["Health Records"])

@app.on_event("startup")
async def startup_event():
    configure_logging()
    register_default_handlers(event_bus)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
