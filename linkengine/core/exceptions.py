from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)

class ScrapingException(Exception):
    """Base exception for link lifecycle operations"""
    pass

class NavigationException(ScrapingException):
    """Raised when a page cannot be reached after all navigation attempts"""
    pass

class ExtractionException(ScrapingException):
    """Raised when the extraction pipeline fails outright"""
    pass

class QueueException(ScrapingException):
    """Raised when a job cannot be handed to the queue"""
    pass

class JobStateException(ScrapingException):
    """Raised on an illegal job status transition"""
    pass

class LinkNotFoundException(ScrapingException):
    """Raised when a link record does not exist"""
    pass

def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTP Exception",
                "message": exc.detail,
                "status_code": exc.status_code
            }
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation Error",
                "message": "Invalid request data",
                "details": jsonable_encoder(exc.errors())
            }
        )

    @app.exception_handler(JobStateException)
    async def job_state_exception_handler(request: Request, exc: JobStateException):
        logger.warning(f"Job state conflict: {str(exc)}")
        return JSONResponse(
            status_code=409,
            content={
                "error": "Job State Conflict",
                "message": str(exc)
            }
        )

    @app.exception_handler(LinkNotFoundException)
    async def link_not_found_handler(request: Request, exc: LinkNotFoundException):
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": str(exc)
            }
        )

    @app.exception_handler(ScrapingException)
    async def scraping_exception_handler(request: Request, exc: ScrapingException):
        logger.error(f"Scraping error: {str(exc)}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Scraping Error",
                "message": str(exc)
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred"
            }
        )
