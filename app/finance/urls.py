"""
URL configuration for finance API.

URL Structure:
    /ar/                                  GET
    /ap/                                  GET
    /entries/                             POST
    /entries/{id}/                        GET
    /payments/                            GET, POST
    /payments/{id}/                       GET
    /payments/{id}/allocate/              POST
    /payments/{id}/auto-allocate/         POST
    /credit-notes/                        GET, POST
    /credit-notes/{id}/                   GET
    /credit-notes/{id}/allocate/          POST
    /credit-notes/{id}/auto-allocate/     POST
    /debit-notes/                         GET, POST
    /debit-notes/{id}/                    GET

All URLs are prefixed with /api/v1/finance/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from finance.views import (
    CreditNoteViewSet,
    DebitNoteViewSet,
    LedgerEntryViewSet,
    PayableListView,
    PaymentViewSet,
    ReceivableListView,
)

router = DefaultRouter()
router.register(r"entries", LedgerEntryViewSet, basename="entry")
router.register(r"payments", PaymentViewSet, basename="payment")
router.register(r"credit-notes", CreditNoteViewSet, basename="credit-note")
router.register(r"debit-notes", DebitNoteViewSet, basename="debit-note")

app_name = "finance"

urlpatterns = [
    path("ar/", ReceivableListView.as_view(), name="receivables"),
    path("ap/", PayableListView.as_view(), name="payables"),
    path("", include(router.urls)),
]
