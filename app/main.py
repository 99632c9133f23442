import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import WidgetAPIError, widget_api_error_handler
from app.core.wire_protocol import CONVERSATION_ID_HEADER
from app.routers import chat, conversations, feedback, tenants, widget_config

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.project_name,
    version="1.0.0",
    debug=settings.debug,
)

# The widget is embedded on arbitrary tenant sites; each request's origin is checked
# against the tenant domain in the handlers, so the middleware just mirrors it.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=".*",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=[CONVERSATION_ID_HEADER],
)

app.add_exception_handler(WidgetAPIError, widget_api_error_handler)

# Include routers
app.include_router(widget_config.router, prefix=settings.api_v1_prefix)
app.include_router(chat.router, prefix=settings.api_v1_prefix)
app.include_router(conversations.router, prefix=settings.api_v1_prefix)
app.include_router(feedback.router, prefix=settings.api_v1_prefix)
app.include_router(tenants.router, prefix=settings.api_v1_prefix)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Welcome to the Widget Chat API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
