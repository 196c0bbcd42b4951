from django.contrib import admin

from apps.crm.models import Activity, Contact, Customer, Deal, Lead, Opportunity


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'tenant', 'status', 'industry', 'created_at']
    list_filter = ['status', 'industry']
    search_fields = ['company_name', 'email']


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'customer', 'tenant', 'is_primary']
    search_fields = ['first_name', 'last_name', 'email']


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'tenant', 'status', 'source', 'score', 'created_at']
    list_filter = ['status', 'source']
    search_fields = ['name', 'company', 'email']


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'stage', 'probability', 'value', 'currency']
    list_filter = ['stage']
    search_fields = ['name']


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'status', 'amount', 'currency', 'close_date']
    list_filter = ['status']
    search_fields = ['name']


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ['subject', 'type', 'status', 'tenant', 'due_at']
    list_filter = ['type', 'status']
    search_fields = ['subject']
