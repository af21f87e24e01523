"""
Mitigation action lifecycle.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from risks.exceptions import ConflictState, NotFound, ValidationFailed
from risks.models import MitigationAction, Risk
from risks.permissions import (
    Operation,
    SubjectKind,
    action_subject,
    can_reassign_action,
    risk_child_subject,
)

from .base import (
    ActorService,
    apply_fields,
    check_not_null,
    check_ratings,
    check_version,
    ordering,
    parse_bool,
    parse_date,
    parse_int,
    require_fields,
    resolve_user,
    save_patch,
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = ['title', 'description', 'due_date', 'priority', 'cost_estimate', 'notes']
UPDATE_FIELDS = CREATE_FIELDS + ['status']
REQUIRED_FIELDS = ['risk_id', 'title', 'description', 'assigned_to', 'due_date']
SORTABLE_FIELDS = {'created_at', 'updated_at', 'due_date', 'priority', 'status', 'title', 'completed_date'}


class MitigationActionService(ActorService):
    """Service for handling mitigation action operations."""

    def visible(self):
        """Actions under live risks the actor owns or is assigned to."""
        queryset = MitigationAction.objects.filter(risk__deleted_at__isnull=True)
        if not self.actor.manages_all:
            queryset = queryset.filter(
                Q(risk__owner_id=self.actor.id) | Q(assigned_to_id=self.actor.id)
            )
        return queryset

    def list(self, filters=None):
        """
        List visible actions.
        Filters: status, assigned_to, risk, overdue, due_soon, sort_by, sort_order.
        """
        filters = filters or {}
        queryset = self.visible().select_related('risk', 'assigned_to')

        # Filter by status
        if filters.get('status'):
            queryset = queryset.by_status(filters['status'])

        # Filter by assignee
        if filters.get('assigned_to'):
            queryset = queryset.by_assigned_user(parse_int(filters['assigned_to'], 'assigned_to'))

        # Filter by parent risk
        if filters.get('risk'):
            queryset = queryset.filter(risk_id=parse_int(filters['risk'], 'risk'))

        if parse_bool(filters.get('overdue')):
            queryset = queryset.overdue()

        if parse_bool(filters.get('due_soon')):
            queryset = queryset.due_soon(days=settings.RISKS_DUE_SOON_DAYS)

        return queryset.order_by(ordering(filters, SORTABLE_FIELDS))

    def fetch(self, pk, queryset=None):
        if queryset is None:
            queryset = MitigationAction.objects.filter(risk__deleted_at__isnull=True)
        try:
            return queryset.select_related('risk', 'assigned_to').get(pk=pk)
        except (MitigationAction.DoesNotExist, ValueError, TypeError):
            raise NotFound('Mitigation action not found.')

    def for_risk(self, risk_id):
        """Actions of one risk, most urgent first."""
        risk = self._fetch_risk(risk_id)
        self.authorize(
            risk_child_subject(SubjectKind.MITIGATION_ACTION, risk),
            Operation.VIEW,
            'Unauthorized to view actions for this risk',
        )
        return risk.mitigation_actions.select_related('assigned_to').order_by('priority', 'due_date')

    def get(self, pk):
        action = self.fetch(pk)
        self.authorize(action_subject(action), Operation.VIEW, 'Unauthorized to view this mitigation action')
        return action

    def create(self, data):
        require_fields(data, REQUIRED_FIELDS)
        check_ratings(data, ['priority'])

        try:
            risk = Risk.objects.get(pk=data['risk_id'])
        except (Risk.DoesNotExist, ValueError, TypeError):
            raise ValidationFailed({'risk_id': ['The selected risk id is invalid.']})

        # Check if user can create actions for this risk
        self.authorize(
            risk_child_subject(SubjectKind.MITIGATION_ACTION, risk),
            Operation.CREATE,
            'Unauthorized to create actions for this risk',
        )

        data = {**data, 'due_date': parse_date(data['due_date'], 'due_date')}
        if data['due_date'] <= timezone.localdate():
            raise ValidationFailed({'due_date': ['The due date must be a date after today.']})

        assignee = resolve_user(data['assigned_to'], 'assigned_to')
        action = MitigationAction(risk=risk, assigned_to=assignee)
        apply_fields(action, {k: v for k, v in data.items() if v is not None}, CREATE_FIELDS)
        action.save()
        logger.info(f"Mitigation action {action.pk} created on risk {risk.pk} by user {self.actor.id}")
        return action

    def update(self, pk, patch):
        queryset = MitigationAction.objects.select_for_update().filter(risk__deleted_at__isnull=True)
        with transaction.atomic():
            action = self.fetch(pk, queryset)

            # Check if user can edit this action
            self.authorize(action_subject(action), Operation.EDIT, 'Unauthorized to edit this mitigation action')
            check_version(action, patch.get('version'))
            check_not_null(patch, ['title', 'description', 'status', 'due_date', 'priority'])
            check_ratings(patch, ['priority'])
            if patch.get('due_date') is not None:
                patch = {**patch, 'due_date': parse_date(patch['due_date'], 'due_date')}

            changed = []
            # Only allow assignment change if user has permission
            if patch.get('assigned_to') is not None:
                if can_reassign_action(self.actor):
                    action.assigned_to = resolve_user(patch['assigned_to'], 'assigned_to')
                    changed.append('assigned_to')
                else:
                    logger.info(
                        f"Ignoring reassignment of mitigation action {action.pk} "
                        f"requested by user {self.actor.id}"
                    )

            changed += apply_fields(action, patch, UPDATE_FIELDS)
            save_patch(action, changed, patch.get('version'))
        logger.info(f"Mitigation action {action.pk} updated by user {self.actor.id}")
        return action

    def delete(self, pk):
        action = self.fetch(pk)
        self.authorize(action_subject(action), Operation.DELETE, 'Unauthorized to delete this mitigation action')
        action.delete()
        logger.info(f"Mitigation action {action.pk} deleted by user {self.actor.id}")
        return action

    def restore(self, pk):
        action = self.fetch(pk, MitigationAction.all_objects.filter(risk__deleted_at__isnull=True))
        self.authorize(action_subject(action), Operation.RESTORE, 'Unauthorized to restore this mitigation action')
        if not action.is_deleted:
            raise ConflictState('Mitigation action is not deleted.')
        action.restore()
        logger.info(f"Mitigation action {action.pk} restored by user {self.actor.id}")
        return action

    def _fetch_risk(self, risk_id):
        try:
            return Risk.objects.get(pk=risk_id)
        except (Risk.DoesNotExist, ValueError, TypeError):
            raise NotFound('Risk not found.')
