"""
HR business logic: leave decisions, period filters and the dashboard.
"""
import calendar
import logging
from datetime import date

from django.db import transaction
from django.db.models import Avg, Count, Q
from django.utils import timezone

from apps.core.cache import CacheKeys, CacheService, CacheTTL
from apps.core.exceptions import ResourceConflict, ValidationError
from apps.hr.models import Department, Employee, LeaveRequest, PerformanceReview
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)

LEAVE_PERIODS = ('current_month', 'next_month', 'current_quarter', 'current_year')


def _month_end(year, month):
    return date(year, month, calendar.monthrange(year, month)[1])


def period_bounds(period, today=None):
    """
    First and last day (inclusive) of a named period.

    Raises:
        ValidationError: unknown period name
    """
    today = today or timezone.localdate()

    if period == 'current_month':
        return date(today.year, today.month, 1), _month_end(today.year, today.month)

    if period == 'next_month':
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        return date(year, month, 1), _month_end(year, month)

    if period == 'current_quarter':
        first_month = 3 * ((today.month - 1) // 3) + 1
        return date(today.year, first_month, 1), _month_end(today.year, first_month + 2)

    if period == 'current_year':
        return date(today.year, 1, 1), date(today.year, 12, 31)

    raise ValidationError(
        f"Invalid period '{period}'",
        details={'field': 'period', 'allowed': list(LEAVE_PERIODS)},
    )


def overlapping(queryset, start, end):
    """Leave requests whose [start_date, end_date] range overlaps [start, end]."""
    return queryset.filter(start_date__lte=end, end_date__gte=start)


class LeaveService:

    @classmethod
    def decide(cls, leave_request, approve, user, note='', request=None):
        """
        Approve or reject a pending leave request.

        Raises:
            ResourceConflict: the request was already decided
        """
        with transaction.atomic():
            locked = LeaveRequest.objects.select_for_update().get(pk=leave_request.pk)
            if locked.status != 'PENDING':
                raise ResourceConflict(
                    f"Leave request is already {locked.status.lower()}",
                    details={'status': locked.status},
                )

            locked.status = 'APPROVED' if approve else 'REJECTED'
            locked.approver = user
            locked.decided_at = timezone.now()
            locked.decision_note = note or ''
            locked.save(update_fields=['status', 'approver', 'decided_at', 'decision_note', 'updated_at'])

            AuditLog.log_action(
                action='leave_approved' if approve else 'leave_rejected',
                user=user,
                tenant=locked.tenant,
                target_type='LeaveRequest',
                target_id=locked.id,
                diff={'status': {'old': 'PENDING', 'new': locked.status}},
                request=request,
            )

        CacheService.delete(CacheKeys.format(CacheKeys.HR_DASHBOARD, tenant_id=locked.tenant_id))
        logger.info(
            f"Leave request {locked.status.lower()}",
            extra={'leave_request_id': str(locked.id), 'tenant_id': str(locked.tenant_id)}
        )
        return locked


class HRService:

    @classmethod
    def dashboard(cls, tenant):
        key = CacheKeys.format(CacheKeys.HR_DASHBOARD, tenant_id=tenant.id)
        data = CacheService.get(key)
        if data is None:
            data = cls._build_dashboard(tenant)
            CacheService.set(key, data, CacheTTL.DASHBOARD, tags=[f'tenant:{tenant.id}'])
        return data

    @staticmethod
    def _build_dashboard(tenant):
        active = Q(employees__deleted_at__isnull=True) & ~Q(employees__status='TERMINATED')
        by_department = [
            {'department_id': str(row['id']), 'name': row['name'], 'headcount': row['headcount']}
            for row in Department.objects.for_tenant(tenant)
            .annotate(headcount=Count('employees', filter=active))
            .values('id', 'name', 'headcount')
            .order_by('name')
        ]

        employees = Employee.objects.for_tenant(tenant).exclude(status='TERMINATED')
        average = PerformanceReview.objects.for_tenant(tenant).aggregate(avg=Avg('rating'))['avg']

        today = timezone.localdate()
        leave = LeaveRequest.objects.for_tenant(tenant)

        return {
            'headcount': {
                'total': employees.count(),
                'unassigned': employees.filter(department__isnull=True).count(),
                'by_department': by_department,
            },
            'pending_leave_requests': leave.filter(status='PENDING').count(),
            'on_leave_today': leave.filter(status='APPROVED', start_date__lte=today, end_date__gte=today).count(),
            'average_review_rating': round(float(average), 2) if average is not None else None,
            'generated_at': timezone.now().isoformat(),
        }
