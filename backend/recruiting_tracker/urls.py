"""
URL configuration for the recruiting_tracker project.
"""

from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView


def home_view(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Welcome to the Recruiting Progress Engine API',
        'version': '1.0.0',
        'endpoints': {
            'API Root': '/api/',
            'Athlete Tasks': 'GET /api/athletes/<id>/tasks/',
            'What Matters Now': 'GET /api/athletes/<id>/what-matters-now/',
            'Suggestions': 'POST /api/athletes/<id>/suggestions/evaluate/',
            'API Documentation': '/api/docs/',
            'OpenAPI Schema': '/api/schema/',
        },
    })


urlpatterns = [
    path('', home_view, name='home'),
    path('admin/', admin.site.urls),
    path('api/', include('timeline.urls')),
    # OpenAPI/Swagger Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
