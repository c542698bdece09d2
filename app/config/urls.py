"""
URL configuration for the finance ledger service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface (read-only ledger views)
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT authentication
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/finance/               - Finance endpoints
        ar/                        - Receivable entries
        ap/                        - Payable entries
        entries/                   - Post entry
        entries/{id}/              - Entry detail
        payments/                  - Payment list/create
        payments/{id}/             - Payment detail
        payments/{id}/allocate/    - Allocate to one entry
        payments/{id}/auto-allocate/ - FIFO auto-allocation
        credit-notes/              - Credit note list/create
        credit-notes/{id}/         - Credit note detail
        credit-notes/{id}/allocate/
        credit-notes/{id}/auto-allocate/
        debit-notes/               - Debit note list/create
        debit-notes/{id}/          - Debit note detail

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
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Finance
    path("finance/", include("finance.urls")),
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
admin.site.site_header = "Finance Ledger Admin"
admin.site.site_title = "Finance Ledger"
admin.site.index_title = "Receivables, payables and allocations"
