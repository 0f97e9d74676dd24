"""
Mapping of engine errors to HTTP responses.
"""
from fastapi import HTTPException

from core.errors import ConflictError, InvalidTargetError, NotFoundError, TidemarkError


def to_http_exception(error: TidemarkError) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidTargetError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
