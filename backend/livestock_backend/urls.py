"""
URL configuration for the livestock backend.
"""

from django.urls import include, path

from common.views import health_check

urlpatterns = [
    path('health/', health_check, name='health_check'),
    path('api/', include('livestock.urls')),
]
