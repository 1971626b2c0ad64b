"""
URL configuration for country_currency project.

All routes live in the countries app; unknown paths and unhandled errors
answer with JSON instead of Django's HTML pages.
"""
from django.urls import path, include
from django.http import JsonResponse

urlpatterns = [
    path('', include('countries.urls')),
]


def custom_404(request, exception):
    return JsonResponse({"error": "Endpoint not found, try /countries or /status"}, status=404)


def custom_500(request):
    return JsonResponse({"error": "Internal server error"}, status=500)


handler404 = "country_currency.urls.custom_404"
handler500 = "country_currency.urls.custom_500"
