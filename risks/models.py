"""
Risk models for the Risk Management Application.
"""

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from risks import scoring

RATING_VALIDATORS = [MinValueValidator(scoring.RATING_MIN), MaxValueValidator(scoring.RATING_MAX)]
RATING_CHOICES = [(i, i) for i in range(scoring.RATING_MIN, scoring.RATING_MAX + 1)]
SCORE_QUANTUM = Decimal('0.1')


def as_score(value):
    """Store scores with one decimal place."""
    if value is None:
        return None
    return Decimal(value).quantize(SCORE_QUANTUM)


def bump_version(instance):
    """Increment the version in the database so concurrent saves never reuse a number."""
    instance.version = 1 if instance._state.adding else F('version') + 1


def settle_version(instance):
    if not isinstance(instance.version, int):
        instance.refresh_from_db(fields=['version'])


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet whose delete() tombstones rows instead of removing them."""

    def delete(self):
        now = timezone.now()
        return self.update(deleted_at=now, updated_at=now)

    delete.queryset_only = True

    def hard_delete(self):
        return super().delete()

    hard_delete.queryset_only = True

    def alive(self):
        return self.filter(deleted_at__isnull=True)


class SoftDeleteManager(models.Manager):
    """Default manager hiding tombstoned rows. Build with from_queryset()."""

    def get_queryset(self):
        return super().get_queryset().alive()


class SoftDeleteModel(models.Model):
    """Abstract base for recoverable deletion."""

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = SoftDeleteManager.from_queryset(SoftDeleteQuerySet)()
    all_objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    def delete(self, using=None, keep_parents=False):
        """Tombstone the row; use hard_delete() to remove it."""
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])

    def hard_delete(self, using=None, keep_parents=False):
        return super().delete(using=using, keep_parents=keep_parents)

    def restore(self):
        self.deleted_at = None
        self.save(update_fields=['deleted_at', 'updated_at'])

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class RiskQuerySet(SoftDeleteQuerySet):

    def by_category(self, category):
        return self.filter(category=category)

    def by_status(self, status):
        return self.filter(status=status)

    def by_owner(self, owner_id):
        return self.filter(owner_id=owner_id)

    def by_risk_level(self, level):
        """Filter on the score bucket; unknown levels leave the query as is."""
        bounds = scoring.level_bounds(level)
        if bounds is None:
            return self
        low, high = bounds
        queryset = self
        if low is not None:
            queryset = queryset.filter(risk_score__gte=low)
        if high is not None:
            queryset = queryset.filter(risk_score__lte=high)
        return queryset

    def high(self):
        return self.by_risk_level(scoring.LEVEL_HIGH)

    def open(self):
        return self.exclude(status=Risk.STATUS_CLOSED)


class Risk(SoftDeleteModel):
    """Model representing a risk in the risk register."""

    STATUS_IDENTIFIED = 'identified'
    STATUS_ASSESSED = 'assessed'
    STATUS_MITIGATING = 'mitigating'
    STATUS_CLOSED = 'closed'

    # Status choices
    STATUS_CHOICES = [
        (STATUS_IDENTIFIED, 'Identified'),
        (STATUS_ASSESSED, 'Assessed'),
        (STATUS_MITIGATING, 'Mitigating'),
        (STATUS_CLOSED, 'Closed'),
    ]

    OPEN_STATUSES = [STATUS_IDENTIFIED, STATUS_ASSESSED, STATUS_MITIGATING]

    # Risk category choices
    CATEGORY_CHOICES = [
        ('operational', 'Operational'),
        ('financial', 'Financial'),
        ('compliance', 'Compliance'),
        ('strategic', 'Strategic'),
        ('reputational', 'Reputational'),
    ]

    # Fields
    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    likelihood = models.IntegerField(choices=RATING_CHOICES, validators=RATING_VALIDATORS, default=1)
    impact = models.IntegerField(choices=RATING_CHOICES, validators=RATING_VALIDATORS, default=1)
    risk_score = models.DecimalField(max_digits=3, decimal_places=1, default=1, editable=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_IDENTIFIED)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_risks',
    )
    department = models.CharField(max_length=255, blank=True, null=True)
    identified_date = models.DateField()
    target_closure_date = models.DateField(blank=True, null=True)
    actual_closure_date = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    version = models.PositiveIntegerField(default=1, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SoftDeleteManager.from_queryset(RiskQuerySet)()
    all_objects = RiskQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Risk'
        verbose_name_plural = 'Risks'
        indexes = [
            models.Index(fields=['category', 'status'], name='risk_category_status_idx'),
            models.Index(fields=['risk_score'], name='risk_score_idx'),
        ]
        permissions = [
            ('manage_all_risks', 'Can manage all risks regardless of owner'),
            ('view_reports', 'Can view risk reports'),
            ('export_reports', 'Can export risk reports'),
        ]

    def save(self, *args, **kwargs):
        """Calculate risk score before saving."""
        self.calculate_risk_score()
        bump_version(self)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'risk_score', 'version'}
        super().save(*args, **kwargs)
        settle_version(self)

    def calculate_risk_score(self):
        self.risk_score = as_score(scoring.score(self.likelihood, self.impact))

    def __str__(self):
        return f"#{self.pk}: {self.title}"

    @property
    def risk_level(self):
        """Return risk level based on risk score."""
        return scoring.level(self.risk_score)

    @property
    def is_high_risk(self):
        return scoring.is_high(self.risk_score)

    @property
    def category_label(self):
        return dict(self.CATEGORY_CHOICES).get(self.category, self.category)

    @property
    def status_label(self):
        return dict(self.STATUS_CHOICES).get(self.status, self.status)

    @property
    def latest_assessment(self):
        """Assessment with the latest date; ties go to the most recent id."""
        return max(
            self.assessments.all(),
            key=lambda assessment: (assessment.assessment_date, assessment.pk),
            default=None,
        )


class MitigationActionQuerySet(SoftDeleteQuerySet):

    def by_status(self, status):
        return self.filter(status=status)

    def by_assigned_user(self, user_id):
        return self.filter(assigned_to_id=user_id)

    def pending(self):
        return self.exclude(status__in=MitigationAction.CLOSED_STATUSES)

    def overdue(self, today=None):
        today = today or timezone.localdate()
        return self.pending().filter(due_date__lt=today)

    def due_soon(self, days=7, today=None):
        today = today or timezone.localdate()
        return self.pending().filter(
            due_date__range=(today, today + timedelta(days=days))
        )


class MitigationAction(SoftDeleteModel):
    """A remedial task tied to a risk."""

    STATUS_PLANNED = 'planned'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PLANNED, 'Planned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    CLOSED_STATUSES = [STATUS_COMPLETED, STATUS_CANCELLED]

    # 1 is the highest priority
    PRIORITY_LABELS = {
        1: 'Critical',
        2: 'High',
        3: 'Medium',
        4: 'Low',
        5: 'Very Low',
    }

    risk = models.ForeignKey(Risk, on_delete=models.CASCADE, related_name='mitigation_actions')
    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PLANNED)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='assigned_actions',
    )
    due_date = models.DateField()
    completed_date = models.DateField(blank=True, null=True)
    priority = models.IntegerField(choices=RATING_CHOICES, validators=RATING_VALIDATORS, default=3)
    cost_estimate = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    version = models.PositiveIntegerField(default=1, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SoftDeleteManager.from_queryset(MitigationActionQuerySet)()
    all_objects = MitigationActionQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'due_date'], name='action_status_due_idx'),
        ]
        permissions = [
            ('assign_mitigation_actions', 'Can reassign mitigation actions'),
        ]

    def save(self, *args, **kwargs):
        """Stamp the completion date the first time the action completes."""
        update_fields = kwargs.get('update_fields')
        extra = {'version'}
        if self.status == self.STATUS_COMPLETED and not self.completed_date:
            self.completed_date = timezone.localdate()
            extra.add('completed_date')
        bump_version(self)
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | extra
        super().save(*args, **kwargs)
        settle_version(self)

    def __str__(self):
        return f"{self.title} (risk #{self.risk_id})"

    @staticmethod
    def priority_label_for(priority):
        return MitigationAction.PRIORITY_LABELS.get(priority, 'Unknown')

    @property
    def priority_label(self):
        return self.priority_label_for(self.priority)

    @property
    def status_label(self):
        return dict(self.STATUS_CHOICES).get(self.status, self.status)

    def is_overdue(self, today=None):
        """Open actions whose due date has passed."""
        if self.status in self.CLOSED_STATUSES:
            return False
        today = today or timezone.localdate()
        return self.due_date < today

    def days_until_due(self, today=None):
        if not self.due_date:
            return None
        today = today or timezone.localdate()
        return (self.due_date - today).days


class RiskAssessmentQuerySet(models.QuerySet):

    def by_assessor(self, assessor_id):
        return self.filter(assessor_id=assessor_id)

    def by_date_range(self, start_date, end_date):
        return self.filter(assessment_date__range=(start_date, end_date))


class RiskAssessment(models.Model):
    """A point-in-time re-evaluation of a risk. Deleted for real, never tombstoned."""

    risk = models.ForeignKey(Risk, on_delete=models.CASCADE, related_name='assessments')
    assessor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='risk_assessments',
    )
    likelihood_before = models.IntegerField(
        choices=RATING_CHOICES, validators=RATING_VALIDATORS, blank=True, null=True
    )
    impact_before = models.IntegerField(
        choices=RATING_CHOICES, validators=RATING_VALIDATORS, blank=True, null=True
    )
    risk_score_before = models.DecimalField(
        max_digits=3, decimal_places=1, blank=True, null=True, editable=False
    )
    likelihood_after = models.IntegerField(choices=RATING_CHOICES, validators=RATING_VALIDATORS)
    impact_after = models.IntegerField(choices=RATING_CHOICES, validators=RATING_VALIDATORS)
    risk_score_after = models.DecimalField(max_digits=3, decimal_places=1, editable=False)
    assessment_notes = models.TextField(blank=True, null=True)
    assessment_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RiskAssessmentQuerySet.as_manager()

    class Meta:
        ordering = ['-assessment_date', '-id']
        indexes = [
            models.Index(fields=['risk', 'assessment_date'], name='assessment_risk_date_idx'),
        ]

    def save(self, *args, **kwargs):
        self.calculate_risk_scores()
        super().save(*args, **kwargs)

    def calculate_risk_scores(self):
        self.risk_score_before = as_score(scoring.optional_score(self.likelihood_before, self.impact_before))
        self.risk_score_after = as_score(scoring.score(self.likelihood_after, self.impact_after))

    def __str__(self):
        return f"Assessment of risk #{self.risk_id} on {self.assessment_date}"

    @property
    def risk_improvement(self):
        return scoring.improvement(self.risk_score_before, self.risk_score_after)

    @property
    def improvement_percentage(self):
        return scoring.improvement_pct(self.risk_score_before, self.risk_score_after)
