"""
URL routing for sales endpoints.
"""
from django.urls import path

from apps.sales import views

app_name = 'sales'

urlpatterns = [
    path('sales/summary', views.SalesSummaryView.as_view(), name='summary'),

    path('sales/products', views.ProductListView.as_view(), name='product-list'),
    path('sales/products/<uuid:pk>', views.ProductDetailView.as_view(), name='product-detail'),

    path('sales/quotes', views.QuoteListView.as_view(), name='quote-list'),
    path('sales/quotes/<uuid:pk>', views.QuoteDetailView.as_view(), name='quote-detail'),
]
