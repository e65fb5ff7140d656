"""
Error taxonomy shared by the gateways, the lifecycle coordinator and the views.

Every error is a DRF APIException so it maps straight onto an HTTP status;
api_exception_handler renders all of them as {"error": "<message>"}.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request'
    default_code = 'invalid_input'


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Forbidden'
    default_code = 'forbidden'


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'File not found'
    default_code = 'not_found'


class DependencyFailure(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal server error'
    default_code = 'dependency_failure'


class StorageError(DependencyFailure):
    default_detail = 'Storage operation failed'
    default_code = 'storage_error'


class ObjectExists(StorageError):
    default_detail = 'Object already exists'
    default_code = 'object_exists'


class MetadataError(DependencyFailure):
    default_detail = 'Metadata operation failed'
    default_code = 'metadata_error'


def _first_message(detail):
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field == 'non_field_errors':
                return message
            return f"{field}: {message}"
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    """
    Render every API error as {"error": message}. Validation errors keep the
    full field map under "details"; anything DRF does not know about becomes
    a logged 500.
    """
    response = exception_handler(exc, context)
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown'

    if response is None:
        logger.exception(f"Unhandled error in {view_name}: {exc}")
        return Response(
            {'error': 'Internal server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if response.status_code >= 500:
        logger.error(f"{view_name} failed: {exc}")

    body = {'error': _first_message(response.data.get('detail', response.data)
                                    if isinstance(response.data, dict) else response.data)}
    if isinstance(exc, ValidationError):
        body['details'] = response.data
    response.data = body
    return response
