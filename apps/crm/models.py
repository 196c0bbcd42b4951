"""
CRM models.

Customers and their contacts, the lead -> opportunity -> deal pipeline,
and the activities logged against any of them. Every model is tenant
scoped and soft deleted.
"""
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import TenantModel


class Customer(TenantModel):
    """A company (or person) the tenant does business with."""

    STATUS_CHOICES = [
        ('PROSPECT', 'Prospect'),
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('CHURNED', 'Churned'),
    ]

    company_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    website = models.URLField(blank=True)
    industry = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PROSPECT', db_index=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    address = models.JSONField(default=dict, blank=True)
    tags = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'crm_customers'
        indexes = [
            models.Index(fields=['tenant', 'status'], name='crm_customers_status_idx'),
        ]

    def __str__(self):
        return self.company_name


class Contact(TenantModel):
    """A person at a customer."""

    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='contacts'
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    position = models.CharField(max_length=100, blank=True)
    is_primary = models.BooleanField(default=False)
    notes = models.TextField(blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'crm_contacts'

    def __str__(self):
        return f"{self.first_name} {self.last_name}".strip()


class Lead(TenantModel):
    """A potential customer that has not been qualified yet."""

    STATUS_CHOICES = [
        ('NEW', 'New'),
        ('CONTACTED', 'Contacted'),
        ('QUALIFIED', 'Qualified'),
        ('UNQUALIFIED', 'Unqualified'),
        ('CONVERTED', 'Converted'),
        ('LOST', 'Lost'),
    ]
    SOURCE_CHOICES = [
        ('WEBSITE', 'Website'),
        ('REFERRAL', 'Referral'),
        ('CAMPAIGN', 'Campaign'),
        ('COLD_CALL', 'Cold call'),
        ('EVENT', 'Event'),
        ('OTHER', 'Other'),
    ]

    name = models.CharField(max_length=255)
    company = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='OTHER')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='NEW', db_index=True)
    score = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    estimated_value = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    notes = models.TextField(blank=True)
    converted_customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='source_leads'
    )
    converted_at = models.DateTimeField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'crm_leads'
        indexes = [
            models.Index(fields=['tenant', 'status'], name='crm_leads_status_idx'),
        ]

    def __str__(self):
        return self.name


class Opportunity(TenantModel):
    """A qualified sales opportunity moving through the pipeline stages."""

    STAGE_CHOICES = [
        ('PROSPECTING', 'Prospecting'),
        ('QUALIFICATION', 'Qualification'),
        ('PROPOSAL', 'Proposal'),
        ('NEGOTIATION', 'Negotiation'),
        ('CLOSED_WON', 'Closed won'),
        ('CLOSED_LOST', 'Closed lost'),
    ]

    name = models.CharField(max_length=255)
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='opportunities'
    )
    lead = models.ForeignKey(
        Lead, on_delete=models.SET_NULL, null=True, blank=True, related_name='opportunities'
    )
    stage = models.CharField(max_length=20, choices=STAGE_CHOICES, default='PROSPECTING', db_index=True)
    probability = models.PositiveSmallIntegerField(
        default=10, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default='EUR')
    expected_close_date = models.DateField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    description = models.TextField(blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'crm_opportunities'
        verbose_name_plural = 'opportunities'

    def __str__(self):
        return self.name


class Deal(TenantModel):
    """A concrete deal with an amount, open until won or lost."""

    STATUS_CHOICES = [
        ('OPEN', 'Open'),
        ('WON', 'Won'),
        ('LOST', 'Lost'),
    ]

    name = models.CharField(max_length=255)
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='deals'
    )
    opportunity = models.ForeignKey(
        Opportunity, on_delete=models.SET_NULL, null=True, blank=True, related_name='deals'
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default='EUR')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='OPEN', db_index=True)
    close_date = models.DateField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    description = models.TextField(blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'crm_deals'

    def __str__(self):
        return f"{self.name} ({self.amount} {self.currency})"


class Activity(TenantModel):
    """A call, email, meeting, task or note attached to CRM records."""

    TYPE_CHOICES = [
        ('CALL', 'Call'),
        ('EMAIL', 'Email'),
        ('MEETING', 'Meeting'),
        ('TASK', 'Task'),
        ('NOTE', 'Note'),
    ]
    STATUS_CHOICES = [
        ('SCHEDULED', 'Scheduled'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]

    subject = models.CharField(max_length=255)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='TASK', db_index=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='SCHEDULED', db_index=True)
    description = models.TextField(blank=True)
    outcome = models.TextField(blank=True)
    due_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities'
    )
    contact = models.ForeignKey(
        Contact, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities'
    )
    lead = models.ForeignKey(
        Lead, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities'
    )
    deal = models.ForeignKey(
        Deal, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities'
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta(TenantModel.Meta):
        db_table = 'crm_activities'
        verbose_name_plural = 'activities'

    def __str__(self):
        return f"{self.type}: {self.subject}"
