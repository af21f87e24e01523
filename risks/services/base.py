"""
Shared plumbing for the actor-scoped services.
"""

import datetime

from django.contrib.auth import get_user_model

from risks import scoring
from risks.exceptions import ConflictState, Forbidden, ValidationFailed
from risks.permissions import can_act

REQUIRED_MESSAGE = 'This field is required.'


class ActorService:
    """Base for services that act on behalf of one actor."""

    def __init__(self, actor):
        self.actor = actor

    def authorize(self, subject, operation, message):
        if not can_act(self.actor, subject, operation):
            raise Forbidden(message)


def require_fields(data, fields):
    """Raise ValidationFailed listing every missing or empty field."""
    missing = [name for name in fields if data.get(name) in (None, '')]
    if missing:
        raise ValidationFailed({name: [REQUIRED_MESSAGE] for name in missing})


def check_ratings(data, fields):
    """Reject present rating values outside the 1-5 scale."""
    errors = {}
    for name in fields:
        if name in data and data[name] is not None and not scoring.is_valid_rating(data[name]):
            errors[name] = [
                f'The {name.replace("_", " ")} must be between '
                f'{scoring.RATING_MIN} and {scoring.RATING_MAX}.'
            ]
    if errors:
        raise ValidationFailed(errors)


def check_not_null(data, fields):
    """Fields that may be omitted from a patch but never cleared."""
    nulled = [name for name in fields if name in data and data[name] in (None, '')]
    if nulled:
        raise ValidationFailed({name: [REQUIRED_MESSAGE] for name in nulled})


def resolve_user(user_id, field):
    """Look up a referenced user or fail validation on that field."""
    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise ValidationFailed({field: [f'The selected {field.replace("_", " ")} is invalid.']})


def check_version(instance, expected):
    """Reject a patch made against a stale copy of the entity."""
    if expected is not None and expected != instance.version:
        raise ConflictState(
            f'{instance._meta.verbose_name.capitalize()} was modified by another request '
            f'(expected version {expected}, current version {instance.version}).'
        )


def apply_fields(instance, data, fields):
    """Copy the present keys of data onto the instance and return their names."""
    applied = []
    for name in fields:
        if name in data:
            setattr(instance, name, data[name])
            applied.append(name)
    return applied


def save_patch(instance, fields, expected=None):
    """
    Write only the patched fields of a versioned entity.

    Must run inside a transaction. With an expected version the row is
    re-read under lock right before the write, so a write that landed
    after the first check raises ConflictState instead of being lost.
    """
    if expected is not None:
        current = type(instance).all_objects.select_for_update().get(pk=instance.pk)
        check_version(current, expected)
    instance.save(update_fields=[*fields, 'updated_at'])


def parse_int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed({field: [f'The {field.replace("_", " ")} must be an integer.']})


def parse_bool(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def parse_date(value, field):
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed({field: [f'The {field.replace("_", " ")} is not a valid date.']})


def ordering(filters, sortable, default='created_at'):
    """Translate sort_by/sort_order into an order_by() argument."""
    sort_by = filters.get('sort_by') or default
    sort_order = (filters.get('sort_order') or 'desc').lower()
    if sort_by not in sortable:
        raise ValidationFailed({'sort_by': [f'Cannot sort by {sort_by}.']})
    if sort_order not in ('asc', 'desc'):
        raise ValidationFailed({'sort_order': ['The sort order must be asc or desc.']})
    return f'-{sort_by}' if sort_order == 'desc' else sort_by
