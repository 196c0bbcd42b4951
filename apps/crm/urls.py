"""
URL routing for CRM endpoints.
"""
from django.urls import path

from apps.crm import views

app_name = 'crm'

urlpatterns = [
    path('crm/dashboard', views.CRMDashboardView.as_view(), name='dashboard'),

    path('crm/customers', views.CustomerListView.as_view(), name='customer-list'),
    path('crm/customers/<uuid:pk>', views.CustomerDetailView.as_view(), name='customer-detail'),

    path('crm/contacts', views.ContactListView.as_view(), name='contact-list'),
    path('crm/contacts/<uuid:pk>', views.ContactDetailView.as_view(), name='contact-detail'),

    path('crm/leads', views.LeadListView.as_view(), name='lead-list'),
    path('crm/leads/<uuid:pk>', views.LeadDetailView.as_view(), name='lead-detail'),
    path('crm/leads/<uuid:pk>/convert', views.LeadConvertView.as_view(), name='lead-convert'),

    path('crm/opportunities', views.OpportunityListView.as_view(), name='opportunity-list'),
    path('crm/opportunities/<uuid:pk>', views.OpportunityDetailView.as_view(), name='opportunity-detail'),

    path('crm/deals', views.DealListView.as_view(), name='deal-list'),
    path('crm/deals/<uuid:pk>', views.DealDetailView.as_view(), name='deal-detail'),

    path('crm/activities', views.ActivityListView.as_view(), name='activity-list'),
    path('crm/activities/<uuid:pk>', views.ActivityDetailView.as_view(), name='activity-detail'),
]
