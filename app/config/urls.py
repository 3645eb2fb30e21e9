"""
URL configuration for the treasury backend.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT authentication (simplejwt)
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/treasury/              - Treasury endpoints
        cashboxes/                 - Cashbox list
        cashboxes/{id}/            - Cashbox detail/update
        cashboxes/{id}/daily-summary/ - Daily summary
        cashboxes/{id}/recalculate/   - Reconcile balance
        cashboxes/branch/{branch_id}/ - Branch's cashbox
        transactions/              - Transaction list
        transactions/{id}/         - Transaction detail
        transactions/{id}/reverse/ - Reverse transaction
        transactions/categories/   - Category list

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Treasury
    path("treasury/", include("treasury.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Treasury Admin"
admin.site.site_title = "Treasury Admin Portal"
admin.site.index_title = "Cashboxes and ledger"
