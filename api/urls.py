# api/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    # Auth views
    register_view,
    login_view,
    logout_view,
    user_profile,
    # Farmer / shared ViewSets
    PestDetectionViewSet,
    FarmerFarmViewSet,
    AdvisoryViewSet,
    MessageViewSet,
    # Admin ViewSets
    AdminFarmerViewSet,
    AdminActivityLogViewSet,
    # Additional views
    DetectPestView,
    changes_view,
)

router = DefaultRouter()
router.register(r'detections', PestDetectionViewSet, basename='detection')
router.register(r'farms', FarmerFarmViewSet, basename='farm')
router.register(r'advisories', AdvisoryViewSet, basename='advisory')
router.register(r'messages', MessageViewSet, basename='message')

admin_router = DefaultRouter()
admin_router.register(r'farmers', AdminFarmerViewSet, basename='admin-farmer')
admin_router.register(r'activity-logs', AdminActivityLogViewSet, basename='admin-activity')

urlpatterns = [
    # Authentication endpoints
    path('auth/register/', register_view, name='register'),
    path('auth/login/', login_view, name='login'),
    path('auth/logout/', logout_view, name='logout'),
    path('auth/profile/', user_profile, name='profile'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # AI vision proxy
    path('detect-pest/', DetectPestView.as_view(), name='detect-pest'),

    # Change feed
    path('changes/', changes_view, name='changes'),

    path('', include(router.urls)),
    path('admin/', include(admin_router.urls)),
]
