"""
Assessment recording and risk synchronisation.

Recording an assessment rewrites the parent risk's likelihood and impact
with the assessment's "after" values. Both writes share one transaction.
"""

import logging

from django.db import transaction

from risks.exceptions import NotFound, ValidationFailed
from risks.models import Risk, RiskAssessment
from risks.permissions import Operation, SubjectKind, assessment_subject, risk_child_subject

from .base import (
    ActorService,
    apply_fields,
    check_not_null,
    check_ratings,
    parse_date,
    parse_int,
    require_fields,
)
from .risk_service import RiskService

logger = logging.getLogger(__name__)

FIELDS = [
    'likelihood_before', 'impact_before', 'likelihood_after', 'impact_after',
    'assessment_notes', 'assessment_date',
]
REQUIRED_FIELDS = ['likelihood_after', 'impact_after', 'assessment_date']
RATING_FIELDS = ['likelihood_before', 'impact_before', 'likelihood_after', 'impact_after']
SYNCED_FIELDS = ('likelihood_after', 'impact_after')


class RiskAssessmentService(ActorService):
    """Service for recording risk assessments."""

    def __init__(self, actor):
        super().__init__(actor)
        self.risks = RiskService(actor)

    def visible(self):
        queryset = RiskAssessment.objects.filter(risk__deleted_at__isnull=True)
        if not self.actor.manages_all:
            queryset = queryset.filter(risk__owner_id=self.actor.id)
        return queryset

    def list(self, filters=None):
        """
        List visible assessments, newest first.
        Filters: assessor_id, start_date + end_date.
        """
        filters = filters or {}
        queryset = self.visible().select_related('risk', 'assessor')

        # Filter by assessor
        if filters.get('assessor_id'):
            queryset = queryset.by_assessor(parse_int(filters['assessor_id'], 'assessor_id'))

        # Date range needs both ends
        if filters.get('start_date') and filters.get('end_date'):
            queryset = queryset.by_date_range(
                parse_date(filters['start_date'], 'start_date'),
                parse_date(filters['end_date'], 'end_date'),
            )

        return queryset.order_by('-assessment_date', '-id')

    def fetch(self, pk):
        try:
            return RiskAssessment.objects.filter(risk__deleted_at__isnull=True).select_related('risk', 'assessor').get(pk=pk)
        except (RiskAssessment.DoesNotExist, ValueError, TypeError):
            raise NotFound('Risk assessment not found.')

    def for_risk(self, risk_id):
        risk = self.risks.fetch(risk_id)
        self.authorize(
            risk_child_subject(SubjectKind.RISK_ASSESSMENT, risk),
            Operation.VIEW,
            'Unauthorized to view assessments for this risk',
        )
        return risk.assessments.select_related('assessor').order_by('-assessment_date', '-id')

    def get(self, pk):
        assessment = self.fetch(pk)
        self.authorize(assessment_subject(assessment), Operation.VIEW, 'Unauthorized to view this risk assessment')
        return assessment

    def create(self, risk_id, data):
        """Record an assessment and carry its "after" values onto the risk."""
        risk = self.risks.fetch(risk_id)
        self.authorize(
            risk_child_subject(SubjectKind.RISK_ASSESSMENT, risk),
            Operation.CREATE,
            'Unauthorized to create assessments for this risk',
        )
        require_fields(data, REQUIRED_FIELDS)
        check_ratings(data, RATING_FIELDS)
        data = {**data, 'assessment_date': parse_date(data['assessment_date'], 'assessment_date')}

        with transaction.atomic():
            assessment = RiskAssessment(risk=risk, assessor_id=self.actor.id)
            apply_fields(assessment, data, FIELDS)
            assessment.save()
            self._sync_risk(assessment)

        logger.info(
            f"Assessment {assessment.pk} recorded on risk {risk.pk} by user {self.actor.id}: "
            f"score {assessment.risk_score_before} -> {assessment.risk_score_after}"
        )
        return assessment

    def update(self, pk, patch):
        assessment = self.fetch(pk)
        self.authorize(assessment_subject(assessment), Operation.EDIT, 'Unauthorized to edit this risk assessment')
        check_not_null(patch, REQUIRED_FIELDS)
        check_ratings(patch, RATING_FIELDS)
        if 'assessment_date' in patch:
            patch = {**patch, 'assessment_date': parse_date(patch['assessment_date'], 'assessment_date')}

        with transaction.atomic():
            apply_fields(assessment, patch, FIELDS)
            assessment.save()
            if any(field in patch for field in SYNCED_FIELDS):
                self._sync_risk(assessment)

        logger.info(f"Assessment {assessment.pk} updated by user {self.actor.id}")
        return assessment

    def delete(self, pk):
        """Assessments are removed outright; the risk keeps its current rating."""
        assessment = self.fetch(pk)
        self.authorize(assessment_subject(assessment), Operation.DELETE, 'Unauthorized to delete this risk assessment')
        assessment.delete()
        logger.info(f"Assessment {pk} deleted by user {self.actor.id}")
        return assessment

    def _sync_risk(self, assessment):
        try:
            risk = Risk.objects.select_for_update().get(pk=assessment.risk_id)
        except Risk.DoesNotExist:
            raise ValidationFailed({'risk_id': ['The assessed risk no longer exists.']})
        self.risks.rerate(risk, assessment.likelihood_after, assessment.impact_after)
        assessment.risk = risk
