from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler


class SourceUnavailable(APIException):
    """The external country source could not be reached in time."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "External data source unavailable"
    default_code = "source_unavailable"


class SourceError(APIException):
    """The external country source answered with an error or a bad payload."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "External data source error"
    default_code = "source_error"

    def __init__(self, detail=None, upstream_status=None):
        super().__init__(detail)
        self.upstream_status = upstream_status


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Country not found"
    default_code = "not_found"


class InternalError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"
    default_code = "internal_error"


class ValidationFailed(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"
    default_code = "validation_failed"

    def __init__(self, details):
        super().__init__()
        self.details = details


ERROR_TITLES = {
    SourceUnavailable: "External data source unavailable",
    SourceError: "External data source error",
    InternalError: "Internal server error",
}


def custom_exception_handler(exc, context):
    """
    Render API errors as {"error": ..., "details": ...} so every endpoint
    answers with the same shape.
    """
    if isinstance(exc, ValidationFailed):
        return Response(
            {"error": "Validation failed", "details": exc.details},
            status=exc.status_code,
        )
    if isinstance(exc, NotFound):
        return Response({"error": str(exc.detail)}, status=exc.status_code)
    for kind, title in ERROR_TITLES.items():
        if isinstance(exc, kind):
            body = {"error": title, "details": str(exc.detail)}
            if isinstance(exc, SourceError) and exc.upstream_status is not None:
                body["upstream_status"] = exc.upstream_status
            return Response(body, status=exc.status_code)
    response = exception_handler(exc, context)
    if response is not None:
        data = response.data
        if isinstance(data, dict) and set(data) == {"detail"}:
            response.data = {"error": str(data["detail"])}
        else:
            response.data = {"error": "Validation failed", "details": data}
    return response
