"""
Shared builders for the risk register tests.
"""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission
from django.utils import timezone

from risks.models import MitigationAction, Risk, RiskAssessment
from risks.permissions import ROLES, Actor

User = get_user_model()

PASSWORD = 'correct-horse-battery'


def grant(user, *capabilities):
    """Give a user the Django permissions behind the capabilities."""
    for capability in capabilities:
        user.user_permissions.add(Permission.objects.get(
            content_type__app_label=capability.app_label,
            codename=capability.codename,
        ))


def create_user(username, *capabilities):
    """Create a user holding the given capabilities, with a fresh permission cache."""
    user = User.objects.create_user(username=username, email=f'{username}@example.com', password=PASSWORD)
    grant(user, *capabilities)
    return User.objects.get(pk=user.pk)


def create_role_user(username, role):
    return create_user(username, *ROLES[role])


def actor_for(user):
    return Actor.from_user(User.objects.get(pk=user.pk))


def create_risk(owner, **overrides):
    fields = {
        'title': 'Supplier insolvency',
        'description': 'Key supplier may fail to deliver',
        'category': 'operational',
        'likelihood': 2,
        'impact': 3,
        'identified_date': timezone.localdate(),
    }
    fields.update(overrides)
    return Risk.objects.create(owner=owner, **fields)


def create_action(risk, assignee, **overrides):
    fields = {
        'title': 'Qualify a second supplier',
        'description': 'Run a tender for a backup supplier',
        'due_date': timezone.localdate() + timedelta(days=14),
    }
    fields.update(overrides)
    return MitigationAction.objects.create(risk=risk, assigned_to=assignee, **fields)


def create_assessment(risk, assessor, **overrides):
    fields = {
        'likelihood_after': risk.likelihood,
        'impact_after': risk.impact,
        'assessment_date': timezone.localdate(),
    }
    fields.update(overrides)
    return RiskAssessment.objects.create(risk=risk, assessor=assessor, **fields)
