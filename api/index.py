# Serverless entry point: exposes the Plant Doctor ASGI app
import sys
import traceback

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


def build_startup_error_app(error: Exception) -> Starlette:
    """Answer every request with the import failure of the real app"""
    details = {
        "service": "plant-doctor",
        "status": "startup_failed",
        "error": str(error),
        "type": type(error).__name__,
        "traceback": traceback.format_exception(type(error), error, error.__traceback__),
        "python_version": sys.version,
    }

    async def startup_failed(request: Request):
        return JSONResponse(details, status_code=500)

    methods = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    return Starlette(routes=[
        Route("/", startup_failed, methods=methods),
        Route("/{path:path}", startup_failed, methods=methods),
    ])


try:
    from app.main import app
except Exception as e:
    app = build_startup_error_app(e)
