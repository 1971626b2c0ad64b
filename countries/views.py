import time

from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import services
from .exceptions import ValidationFailed
from .serializers import CountrySerializer
from .utils import get_now

# query parameter -> service argument
ALLOWED_FILTERS = {
    "region": "region",
    "currency": "currency",
    "currency_code": "currency",
}


@api_view(['POST'])
def refresh_countries(request):
    """
    POST /countries/refresh
    Fetch every country from the external source, then create or update
    the cached records and regenerate the summary image.
    """
    start_time = time.time()
    result = services.run_ingestion()
    duration = round(time.time() - start_time, 2)

    return Response(
        {
            "message": "Refresh successful",
            "created": result["created"],
            "updated": result["updated"],
            "failed": result["failed"],
            "total": result["total"],
            "last_refreshed_at": get_now().isoformat(),
            "duration_seconds": duration,
        },
        status=status.HTTP_200_OK,
    )


@api_view(['GET'])
def list_countries(request):
    """
    GET /countries
    Filters:
      - region (case-insensitive), currency / currency_code (upper-cased)
    Sorting:
      - ?sort=gdp_asc or ?sort=gdp_desc (countries without GDP come last)
    Default:
      - Ordered by id ascending.
    """
    params = {}

    # --- Validate filters ---
    for key in request.query_params.keys():
        value = request.query_params.get(key)
        if key != "sort" and key not in ALLOWED_FILTERS:
            raise ValidationFailed({key: "is not a valid filter"})
        if value is None or value.strip() == "":
            raise ValidationFailed({key: "is required"})
        if key == "sort":
            if value not in services.SORT_ORDERS:
                raise ValidationFailed({"sort": "invalid value (use gdp_asc or gdp_desc)"})
            params["sort"] = value
        else:
            params[ALLOWED_FILTERS[key]] = value

    countries = services.list_countries(**params)
    serializer = CountrySerializer(countries, many=True)
    return Response(serializer.data)


@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    GET /countries/:name  -> return 404 JSON if not found
    DELETE /countries/:name -> delete, return 204 or 404
    """
    if request.method == 'GET':
        serializer = CountrySerializer(services.get_country(name))
        return Response(serializer.data)

    services.delete_country(name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
def get_status(request):
    """
    GET /status -> { total_countries, last_refreshed_at }
    last_refreshed_at is the latest refresh stamp across records (or null)
    """
    result = services.get_status()
    last = result["last_refreshed_at"]
    return Response({
        "total_countries": result["total_countries"],
        "last_refreshed_at": last.isoformat() if last else None,
    })


@api_view(['GET'])
def get_summary_image(request):
    """
    GET /countries/image
    Serve the cached summary image, or a JSON 404 when none was rendered yet.
    """
    return HttpResponse(services.get_report(), content_type='image/png')
