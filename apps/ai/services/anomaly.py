"""
Statistical anomaly detection.

Series detection flags a point when it falls outside the 1.5 x IQR fences
(score +0.4) or its z-score exceeds 2.5 (score +0.6). Project detection
flags projects past their end date or with too many overdue tasks.
"""
import logging

import numpy as np
from django.db.models import Count, Q
from django.utils import timezone

from apps.ai.models import Anomaly
from apps.core.exceptions import ResourceNotFound, ValidationError

logger = logging.getLogger(__name__)

MIN_SERIES_POINTS = 10
IQR_FACTOR = 1.5
Z_SCORE_THRESHOLD = 2.5
OVERDUE_RATIO_THRESHOLD = 0.3

SEVERITY_ORDER = ['LOW', 'MEDIUM', 'HIGH', 'CRITICAL']


def iqr_bounds(values):
    """Tukey fences: (q1 - 1.5 x IQR, q3 + 1.5 x IQR)."""
    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1
    return float(q1 - IQR_FACTOR * iqr), float(q3 + IQR_FACTOR * iqr)


def severity_for(z_score, iqr_outlier):
    """
    Severity of a flagged point.

    z > 4 is CRITICAL, z > 3 HIGH, any other z-score outlier MEDIUM; a point
    flagged only by the IQR fences is LOW. Returns None for normal points.
    """
    if z_score > Z_SCORE_THRESHOLD:
        if z_score > 4:
            return 'CRITICAL'
        if z_score > 3:
            return 'HIGH'
        return 'MEDIUM'
    if iqr_outlier:
        return 'LOW'
    return None


def score_series(values):
    """
    Score every value of a series.

    Returns a list of dicts (index, value, z_score, score, severity) for the
    flagged points only. Fewer than MIN_SERIES_POINTS values flag nothing.
    """
    if len(values) < MIN_SERIES_POINTS:
        return []

    series = np.asarray(values, dtype=float)
    lower_bound, upper_bound = iqr_bounds(series)
    mean = np.mean(series)
    std_dev = np.std(series)
    if std_dev > 0:
        z_scores = np.abs(series - mean) / std_dev
    else:
        z_scores = np.zeros(len(series))
    iqr_outliers = (series < lower_bound) | (series > upper_bound)

    flagged = []
    for index, value in enumerate(values):
        z_score = float(z_scores[index])
        iqr_outlier = bool(iqr_outliers[index])

        score = 0.0
        if iqr_outlier:
            score += 0.4
        if z_score > Z_SCORE_THRESHOLD:
            score += 0.6

        severity = severity_for(z_score, iqr_outlier)
        if severity is None:
            continue

        flagged.append({
            'index': index,
            'value': value,
            'z_score': round(z_score, 4),
            'score': min(1.0, round(score, 4)),
            'severity': severity,
            'bounds': {'lower': lower_bound, 'upper': upper_bound},
        })
    return flagged


class AnomalyDetectionService:

    @classmethod
    def detect_series(cls, tenant, data_source, points, anomaly_type=Anomaly.AnomalyType.METRIC):
        """
        Detect outliers in a series and store one Anomaly per flagged point.

        points: list of numbers, or of dicts with a numeric 'value' (other
        keys such as 'id' or 'timestamp' are kept as input_data).
        """
        if not isinstance(points, list):
            raise ValidationError('points must be a list', details={'field': 'points'})

        records, values = [], []
        for point in points:
            record = point if isinstance(point, dict) else {'value': point}
            try:
                values.append(float(record['value']))
            except (KeyError, TypeError, ValueError):
                raise ValidationError('Every point needs a numeric value', details={'field': 'points'})
            records.append(record)

        anomalies = []
        for item in score_series(values):
            record = records[item['index']]
            anomalies.append(Anomaly.objects.create(
                tenant=tenant,
                anomaly_type=anomaly_type,
                data_source=data_source,
                input_data=record,
                anomaly_score=item['score'],
                threshold=Z_SCORE_THRESHOLD,
                severity=item['severity'],
                description=f"Unusual value {item['value']:.2f} in {data_source}",
                explanation=f"Value {item['value']:.2f} is unusual (Z-score: {item['z_score']:.2f})",
                recommendations=['Verify the source data', 'Monitor for similar unusual values'],
                detection_method='IQR_ZSCORE',
                resource_type=str(record.get('resource_type', '')),
                resource_id=str(record.get('id', '')),
            ))

        logger.info(
            "Series anomaly detection finished",
            extra={'tenant_id': str(tenant.id), 'data_source': data_source,
                   'points': len(values), 'anomalies': len(anomalies)}
        )
        return anomalies

    @classmethod
    def detect_project_anomalies(cls, tenant):
        """Flag active projects that are past their end date or have > 30% overdue tasks."""
        from apps.projects.models import Project

        today = timezone.localdate()
        projects = (
            Project.objects.for_tenant(tenant)
            .exclude(status__in=['COMPLETED', 'CANCELLED'])
            .annotate(
                task_total=Count('tasks', filter=Q(tasks__deleted_at__isnull=True)),
                task_overdue=Count('tasks', filter=Q(
                    tasks__deleted_at__isnull=True, tasks__due_date__lt=today
                ) & ~Q(tasks__status='DONE')),
            )
        )

        anomalies = []
        for project in projects:
            reasons = []
            score = 0.0
            overdue_ratio = project.task_overdue / project.task_total if project.task_total else 0.0

            if project.end_date and project.end_date < today:
                days_late = (today - project.end_date).days
                reasons.append(f'{days_late} days past end date')
                score += 0.5
            if overdue_ratio > OVERDUE_RATIO_THRESHOLD:
                reasons.append(f'{overdue_ratio:.0%} of tasks overdue')
                score += 0.5

            if not reasons:
                continue

            anomalies.append(Anomaly.objects.create(
                tenant=tenant,
                anomaly_type=Anomaly.AnomalyType.PROJECT,
                data_source='projects',
                input_data={
                    'project_id': str(project.id),
                    'end_date': project.end_date.isoformat() if project.end_date else None,
                    'task_total': project.task_total,
                    'task_overdue': project.task_overdue,
                },
                anomaly_score=min(1.0, score),
                threshold=OVERDUE_RATIO_THRESHOLD,
                severity='HIGH' if score >= 1.0 else 'MEDIUM',
                description=f"Project '{project.name}' is at risk",
                explanation='; '.join(reasons),
                recommendations=['Review the project timeline', 'Reassign or reprioritise overdue tasks'],
                detection_method='PROJECT_RULES',
                resource_type='PROJECT',
                resource_id=str(project.id),
            ))

        return anomalies

    @staticmethod
    def list(tenant, anomaly_type=None, severity=None, status=None):
        queryset = Anomaly.objects.for_tenant(tenant)
        if anomaly_type:
            queryset = queryset.filter(anomaly_type=anomaly_type)
        if severity:
            queryset = queryset.filter(severity=severity)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')

    @staticmethod
    def _get(tenant, anomaly_id):
        anomaly = Anomaly.objects.for_tenant(tenant).filter(id=anomaly_id).first()
        if anomaly is None:
            raise ResourceNotFound('Anomaly not found')
        return anomaly

    @classmethod
    def acknowledge(cls, tenant, anomaly_id, user):
        anomaly = cls._get(tenant, anomaly_id)
        anomaly.status = Anomaly.Status.ACKNOWLEDGED
        anomaly.acknowledged_at = timezone.now()
        anomaly.handled_by = user
        anomaly.save(update_fields=['status', 'acknowledged_at', 'handled_by', 'updated_at'])
        return anomaly

    @classmethod
    def resolve(cls, tenant, anomaly_id, user):
        anomaly = cls._get(tenant, anomaly_id)
        anomaly.status = Anomaly.Status.RESOLVED
        anomaly.resolved_at = timezone.now()
        anomaly.handled_by = user
        anomaly.save(update_fields=['status', 'resolved_at', 'handled_by', 'updated_at'])
        return anomaly

    @classmethod
    def mark_false_positive(cls, tenant, anomaly_id, user):
        anomaly = cls._get(tenant, anomaly_id)
        anomaly.status = Anomaly.Status.FALSE_POSITIVE
        anomaly.false_positive = True
        anomaly.resolved_at = timezone.now()
        anomaly.handled_by = user
        anomaly.save(update_fields=['status', 'false_positive', 'resolved_at', 'handled_by', 'updated_at'])
        return anomaly
