"""
Centralized Error Handling

Maps the AgentDesk exception taxonomy to HTTP responses so every route
reports rejections the same way.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from typing import Dict, Any
import logging

from agentdesk.core.exceptions import (
    DomainRejected,
    LimitReached,
    NotFoundError,
    ParseError,
    ProviderError,
    ProviderRateLimited,
    SecurityRejection,
    ValidationError,
)
from agentdesk.utils.sanitize import sanitize_string

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Builds error bodies for each exception family"""

    @staticmethod
    def handle_validation_error(error: ValidationError) -> Dict[str, Any]:
        logger.warning(f"Validation error: {error}")
        return {
            "error": "validation_error",
            "message": str(error),
        }

    @staticmethod
    def handle_not_found_error(error: NotFoundError) -> Dict[str, Any]:
        logger.warning(str(error))
        return {
            "error": "not_found",
            "message": f"{error.resource.capitalize()} not found.",
            "resource": error.resource,
            "identifier": error.identifier,
        }

    @staticmethod
    def handle_security_rejection(error: SecurityRejection) -> Dict[str, Any]:
        return {
            "error": error.reason,
            "message": str(error),
        }

    @staticmethod
    def handle_limit_reached(error: LimitReached) -> Dict[str, Any]:
        return {
            "error": "limit_reached",
            "message": "Message limit reached for this plan.",
            **error.to_dict(),
        }

    @staticmethod
    def handle_provider_error(error: Exception) -> Dict[str, Any]:
        logger.error(f"Provider error: {sanitize_string(str(error))}")
        if isinstance(error, ProviderRateLimited):
            return {
                "error": "rate_limit",
                "message": "The AI provider is busy. Please try again in a moment.",
                "retry_after": 60,
            }
        return {
            "error": "provider_error",
            "message": "The AI provider is unavailable. Please try again.",
        }

    @staticmethod
    def handle_generic_error(error: Exception) -> Dict[str, Any]:
        logger.error(f"Unexpected error: {sanitize_string(str(error))}", exc_info=error)
        return {
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again.",
            "type": type(error).__name__,
        }


# Global exception handlers for FastAPI

async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorHandler.handle_validation_error(exc),
    )


async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorHandler.handle_not_found_error(exc),
    )


async def security_rejection_handler(request: Request, exc: SecurityRejection):
    status_code = (
        status.HTTP_403_FORBIDDEN
        if isinstance(exc, DomainRejected)
        else status.HTTP_401_UNAUTHORIZED
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorHandler.handle_security_rejection(exc),
    )


async def limit_reached_handler(request: Request, exc: LimitReached):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=ErrorHandler.handle_limit_reached(exc),
    )


async def provider_error_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorHandler.handle_provider_error(exc),
    )


async def database_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Database integrity error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "integrity_error",
            "message": "Data integrity violation. Duplicate entry or constraint failed.",
        },
    )


async def generic_error_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorHandler.handle_generic_error(exc),
    )


def setup_error_handlers(app):
    """
    Setup global error handlers for FastAPI app

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(SecurityRejection, security_rejection_handler)
    app.add_exception_handler(LimitReached, limit_reached_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(ParseError, provider_error_handler)
    app.add_exception_handler(IntegrityError, database_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    logger.info("Error handlers registered")
