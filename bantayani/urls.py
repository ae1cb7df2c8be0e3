from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.http import JsonResponse


def health_check(request):
    """Simple health check endpoint"""
    return JsonResponse({
        'status': 'healthy',
        'service': 'BantayAni API',
        'version': '1.0.0',
    })


urlpatterns = [
    path('', health_check, name='health'),
    path('health/', health_check, name='health_check'),
    path('admin/', admin.site.urls),

    # API routes - all under /api/
    path('api/', include('api.urls')),
]

# Serve uploaded detection images in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
