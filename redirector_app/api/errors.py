import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from redirector_app.errors import RedirectorError, StoreError

logger = logging.getLogger(__name__)


async def handle_redirector_error(request: Request, exc: RedirectorError) -> JSONResponse:
    """
    Render domain errors as `{"detail": ...}` with their status code.

    Expected outcomes are not logged; store failures are, and the visitor only
    sees a generic message.
    """
    if isinstance(exc, StoreError):
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": StoreError.default_message})

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


async def handle_store_failure(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store failures raised outside a transaction (plain reads)"""
    return await handle_redirector_error(request, StoreError(str(exc)))


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(RedirectorError, handle_redirector_error)
    app.add_exception_handler(SQLAlchemyError, handle_store_failure)
