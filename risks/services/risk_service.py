"""
Risk lifecycle: create, update, soft delete and restore risks.
"""

import logging

from django.db import transaction

from risks.exceptions import ConflictState, NotFound
from risks.models import Risk
from risks.permissions import Operation, can_assign_owner, risk_subject
from risks.signals import notify_high_risk

from .base import (
    ActorService,
    apply_fields,
    check_not_null,
    check_ratings,
    check_version,
    ordering,
    parse_int,
    require_fields,
    resolve_user,
    save_patch,
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = [
    'title', 'description', 'category', 'likelihood', 'impact',
    'department', 'identified_date', 'target_closure_date', 'notes',
]
UPDATE_FIELDS = CREATE_FIELDS + ['status', 'actual_closure_date']
REQUIRED_FIELDS = ['title', 'description', 'category', 'likelihood', 'impact', 'identified_date']
RATING_FIELDS = ['likelihood', 'impact']
SORTABLE_FIELDS = {
    'created_at', 'updated_at', 'title', 'category', 'status', 'risk_score',
    'likelihood', 'impact', 'identified_date', 'target_closure_date', 'department',
}


class RiskService(ActorService):
    """Service for handling risk lifecycle operations."""

    def visible(self):
        """Risks the actor may list: all of them, or only their own."""
        queryset = Risk.objects.all()
        if not self.actor.manages_all:
            queryset = queryset.by_owner(self.actor.id)
        return queryset

    def list(self, filters=None):
        """
        List visible risks.
        Filters: category, status, risk_level, owner_id, sort_by, sort_order.
        """
        filters = filters or {}
        queryset = self.visible().select_related('owner').prefetch_related(
            'mitigation_actions', 'assessments'
        )

        # Filter by category
        if filters.get('category'):
            queryset = queryset.by_category(filters['category'])

        # Filter by status
        if filters.get('status'):
            queryset = queryset.by_status(filters['status'])

        # Filter by risk level
        if filters.get('risk_level'):
            queryset = queryset.by_risk_level(filters['risk_level'])

        # Owner filter only means something to actors who see every owner
        if filters.get('owner_id') and self.actor.manages_all:
            queryset = queryset.by_owner(parse_int(filters['owner_id'], 'owner_id'))

        return queryset.order_by(ordering(filters, SORTABLE_FIELDS))

    def fetch(self, pk, queryset=None):
        queryset = Risk.objects.all() if queryset is None else queryset
        try:
            return queryset.get(pk=pk)
        except (Risk.DoesNotExist, ValueError, TypeError):
            raise NotFound('Risk not found.')

    def get(self, pk):
        queryset = Risk.objects.select_related('owner').prefetch_related(
            'mitigation_actions__assigned_to', 'assessments__assessor'
        )
        risk = self.fetch(pk, queryset)
        self.authorize(risk_subject(risk), Operation.VIEW, 'Unauthorized to view this risk')
        return risk

    def create(self, data):
        """Create a risk owned by the actor unless a manage-all actor names another owner."""
        require_fields(data, REQUIRED_FIELDS)
        check_ratings(data, RATING_FIELDS)

        owner_id = data.get('owner_id')
        if owner_id is None or not can_assign_owner(self.actor):
            owner_id = self.actor.id
        else:
            owner_id = resolve_user(owner_id, 'owner_id').pk

        risk = Risk(owner_id=owner_id)
        apply_fields(risk, data, CREATE_FIELDS)
        risk.save()
        logger.info(f"Risk {risk.pk} created by user {self.actor.id} with score {risk.risk_score}")

        if risk.is_high_risk:
            notify_high_risk(risk)
        return risk

    def update(self, pk, patch):
        with transaction.atomic():
            risk = self.fetch(pk, Risk.objects.select_for_update())
            self.authorize(risk_subject(risk), Operation.EDIT, 'Unauthorized to edit this risk')
            check_version(risk, patch.get('version'))
            check_not_null(patch, REQUIRED_FIELDS + ['status'])
            check_ratings(patch, RATING_FIELDS)

            changed = []
            # Only allow owner change if user has permission
            if patch.get('owner_id') is not None:
                if can_assign_owner(self.actor):
                    risk.owner_id = resolve_user(patch['owner_id'], 'owner_id').pk
                    changed.append('owner')
                else:
                    logger.info(f"Ignoring owner change on risk {risk.pk} requested by user {self.actor.id}")

            was_high_risk = risk.is_high_risk
            changed += apply_fields(risk, patch, UPDATE_FIELDS)
            save_patch(risk, changed, patch.get('version'))
        logger.info(f"Risk {risk.pk} updated by user {self.actor.id}")

        # Only the crossing into the high band notifies
        if not was_high_risk and risk.is_high_risk:
            notify_high_risk(risk)
        return risk

    def delete(self, pk):
        risk = self.fetch(pk)
        self.authorize(risk_subject(risk), Operation.DELETE, 'Unauthorized to delete this risk')
        risk.delete()
        logger.info(f"Risk {risk.pk} deleted by user {self.actor.id}")
        return risk

    def restore(self, pk):
        risk = self.fetch(pk, Risk.all_objects.all())
        self.authorize(risk_subject(risk), Operation.RESTORE, 'Unauthorized to restore this risk')
        if not risk.is_deleted:
            raise ConflictState('Risk is not deleted.')
        risk.restore()
        logger.info(f"Risk {risk.pk} restored by user {self.actor.id}")
        return risk

    def rerate(self, risk, likelihood, impact):
        """
        Overwrite a risk's likelihood and impact, recomputing its score.
        Must run inside the caller's transaction; the high-risk
        notification waits for that transaction to commit.
        """
        was_high_risk = risk.is_high_risk
        risk.likelihood = likelihood
        risk.impact = impact
        risk.save(update_fields=['likelihood', 'impact', 'updated_at'])
        if not was_high_risk and risk.is_high_risk:
            transaction.on_commit(lambda: notify_high_risk(risk))
        return risk
