"""
Response envelope helpers for the Duka API
Every body is {success, data|message, pagination?}.
"""

from __future__ import annotations

import logging
from typing import Any

from rest_framework import status
from rest_framework.response import Response

from apps.common.types import ServiceError
from apps.common.utils import PaginationInfo

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[str, int] = {
    'validation': status.HTTP_400_BAD_REQUEST,
    'business': status.HTTP_400_BAD_REQUEST,
    'not_found': status.HTTP_404_NOT_FOUND,
    'forbidden': status.HTTP_403_FORBIDDEN,
    'conflict': status.HTTP_409_CONFLICT,
    'gateway': status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def success_response(
    data: Any = None,
    message: str | None = None,
    pagination: PaginationInfo | None = None,
    http_status: int = status.HTTP_200_OK,
    **extra: Any,
) -> Response:
    body: dict[str, Any] = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    if pagination is not None:
        body['pagination'] = pagination
    body.update(extra)
    return Response(body, status=http_status)


def error_response(error: ServiceError | str, http_status: int | None = None, **extra: Any) -> Response:
    """Map a service failure onto its HTTP status; plain strings are 400s"""
    if isinstance(error, ServiceError):
        message = error.message
        code = http_status or ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST)
    else:
        message = str(error)
        code = http_status or status.HTTP_400_BAD_REQUEST

    if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"🔥 [API] {message}")

    return Response({'success': False, 'message': message, **extra}, status=code)


def validation_error_response(errors: dict[str, Any]) -> Response:
    """Serializer errors; the first message doubles as the summary"""
    first = next(iter(errors.values()), ["Invalid input"])
    message = first[0] if isinstance(first, list) and first else str(first)
    return Response(
        {'success': False, 'message': str(message), 'errors': errors},
        status=status.HTTP_400_BAD_REQUEST,
    )
