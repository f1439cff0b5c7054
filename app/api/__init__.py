"""API-Routen für den Einsatztagebuch-Service.

Router werden direkt aus ihren Modulen importiert (siehe ``app.main``),
damit Services die Exceptions ohne Zirkel-Import nutzen können.
"""

from app.api.exception_handlers import (
    AppException,
    BadRequestException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "BadRequestException",
    "ConflictException",
    "NotFoundException",
    "UnauthorizedException",
    "register_exception_handlers",
]
