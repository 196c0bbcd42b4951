"""
HR models: departments, employees, leave requests and performance reviews.
"""
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import TenantModel


class Department(TenantModel):
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    manager = models.ForeignKey(
        'hr.Employee', on_delete=models.SET_NULL, null=True, blank=True, related_name='managed_departments'
    )
    parent = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children'
    )
    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta(TenantModel.Meta):
        db_table = 'hr_departments'

    def __str__(self):
        return self.name


class Employee(TenantModel):
    """
    An employee record. May be linked to a platform user account.

    employee_number is unique within a tenant.
    """

    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('ON_LEAVE', 'On leave'),
        ('TERMINATED', 'Terminated'),
    ]
    EMPLOYMENT_TYPE_CHOICES = [
        ('FULL_TIME', 'Full time'),
        ('PART_TIME', 'Part time'),
        ('CONTRACT', 'Contract'),
        ('INTERN', 'Intern'),
    ]

    employee_number = models.CharField(max_length=50)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    position = models.CharField(max_length=150, blank=True)
    department = models.ForeignKey(
        Department, on_delete=models.SET_NULL, null=True, blank=True, related_name='employees'
    )
    manager = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='reports'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    employment_type = models.CharField(max_length=20, choices=EMPLOYMENT_TYPE_CHOICES, default='FULL_TIME')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)
    hire_date = models.DateField(null=True, blank=True)
    termination_date = models.DateField(null=True, blank=True)
    salary = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'hr_employees'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'employee_number'],
                condition=models.Q(deleted_at__isnull=True),
                name='unique_employee_number_per_tenant',
            ),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.employee_number})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class LeaveRequest(TenantModel):
    """A leave request; days is the inclusive number of calendar days."""

    TYPE_CHOICES = [
        ('VACATION', 'Vacation'),
        ('SICK', 'Sick'),
        ('PERSONAL', 'Personal'),
        ('MATERNITY', 'Maternity'),
        ('PATERNITY', 'Paternity'),
        ('UNPAID', 'Unpaid'),
        ('OTHER', 'Other'),
    ]
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('CANCELLED', 'Cancelled'),
    ]

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='leave_requests')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='VACATION', db_index=True)
    start_date = models.DateField()
    end_date = models.DateField()
    days = models.PositiveIntegerField(default=1)
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    decision_note = models.TextField(blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'hr_leave_requests'
        indexes = [
            models.Index(fields=['tenant', 'status'], name='leave_tenant_status_idx'),
            models.Index(fields=['tenant', 'start_date', 'end_date'], name='leave_tenant_dates_idx'),
        ]

    def __str__(self):
        return f"{self.employee} {self.type} {self.start_date}..{self.end_date}"

    @staticmethod
    def count_days(start_date, end_date):
        return (end_date - start_date).days + 1

    def save(self, *args, **kwargs):
        if self.start_date and self.end_date:
            self.days = self.count_days(self.start_date, self.end_date)
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'days' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['days']
        super().save(*args, **kwargs)


class PerformanceReview(TenantModel):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SUBMITTED', 'Submitted'),
        ('COMPLETED', 'Completed'),
    ]

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='reviews')
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    period_start = models.DateField(null=True, blank=True)
    period_end = models.DateField(null=True, blank=True)
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    goals = models.JSONField(default=list, blank=True)
    strengths = models.TextField(blank=True)
    improvements = models.TextField(blank=True)
    comments = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT', db_index=True)

    class Meta(TenantModel.Meta):
        db_table = 'hr_performance_reviews'

    def __str__(self):
        return f"Review {self.employee} ({self.rating})"
