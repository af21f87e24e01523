"""
Access policy for the risk register.

Capabilities are a closed set of Django permission labels. An Actor is the
acting user reduced to its id and capability set; policy checks are pure
functions of (actor, subject, operation).
"""

from dataclasses import dataclass, field
from enum import Enum


class Capability(str, Enum):
    """Named grants an actor may hold."""

    VIEW_RISKS = 'risks.view_risk'
    CREATE_RISKS = 'risks.add_risk'
    EDIT_RISKS = 'risks.change_risk'
    DELETE_RISKS = 'risks.delete_risk'
    MANAGE_ALL_RISKS = 'risks.manage_all_risks'

    VIEW_ACTIONS = 'risks.view_mitigationaction'
    CREATE_ACTIONS = 'risks.add_mitigationaction'
    EDIT_ACTIONS = 'risks.change_mitigationaction'
    DELETE_ACTIONS = 'risks.delete_mitigationaction'
    ASSIGN_ACTIONS = 'risks.assign_mitigation_actions'

    VIEW_ASSESSMENTS = 'risks.view_riskassessment'
    CREATE_ASSESSMENTS = 'risks.add_riskassessment'
    EDIT_ASSESSMENTS = 'risks.change_riskassessment'
    DELETE_ASSESSMENTS = 'risks.delete_riskassessment'

    VIEW_REPORTS = 'risks.view_reports'
    EXPORT_REPORTS = 'risks.export_reports'

    @property
    def app_label(self):
        return self.value.split('.', 1)[0]

    @property
    def codename(self):
        return self.value.split('.', 1)[1]


class Operation(str, Enum):
    VIEW = 'view'
    CREATE = 'create'
    EDIT = 'edit'
    DELETE = 'delete'
    RESTORE = 'restore'


class SubjectKind(str, Enum):
    RISK = 'risk'
    MITIGATION_ACTION = 'mitigation_action'
    RISK_ASSESSMENT = 'risk_assessment'


@dataclass(frozen=True)
class Actor:
    """The acting user as seen by the policy."""

    id: int
    capabilities: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user):
        """Resolve the capability set of a Django user."""
        capabilities = frozenset(
            capability for capability in Capability if user.has_perm(capability.value)
        )
        return cls(id=user.pk, capabilities=capabilities)

    def has(self, capability):
        return capability in self.capabilities

    @property
    def manages_all(self):
        return self.has(Capability.MANAGE_ALL_RISKS)


@dataclass(frozen=True)
class Subject:
    """Ownership chain of an entity: risk owner plus direct parties."""

    kind: SubjectKind
    owner_id: int
    assignee_id: int = None
    assessor_id: int = None


# Which parties, beyond the risk owner, may perform an operation.
DIRECT_PARTIES = {
    SubjectKind.RISK: {
        Operation.VIEW: ('owner',),
        Operation.EDIT: ('owner',),
        Operation.DELETE: ('owner',),
        Operation.RESTORE: ('owner',),
    },
    SubjectKind.MITIGATION_ACTION: {
        Operation.VIEW: ('owner', 'assignee'),
        Operation.CREATE: ('owner',),
        Operation.EDIT: ('owner', 'assignee'),
        Operation.DELETE: ('owner',),
        Operation.RESTORE: ('owner',),
    },
    SubjectKind.RISK_ASSESSMENT: {
        Operation.VIEW: ('owner',),
        Operation.CREATE: ('owner',),
        Operation.EDIT: ('owner', 'assessor'),
        Operation.DELETE: ('owner', 'assessor'),
    },
}


def has_global_override(actor):
    return actor.manages_all


def is_owner_or_direct_party(actor, subject, operation):
    """Return True when the actor is a party the operation admits."""
    parties = DIRECT_PARTIES[subject.kind].get(operation, ())
    ids = {
        'owner': subject.owner_id,
        'assignee': subject.assignee_id,
        'assessor': subject.assessor_id,
    }
    return any(ids[party] is not None and ids[party] == actor.id for party in parties)


def can_act(actor, subject, operation):
    """Decide whether the actor may perform the operation on the subject."""
    return has_global_override(actor) or is_owner_or_direct_party(actor, subject, operation)


def can_assign_owner(actor):
    """Only manage-all actors may choose a risk owner other than themselves."""
    return actor.manages_all


def can_reassign_action(actor):
    return actor.has(Capability.ASSIGN_ACTIONS)


def risk_subject(risk):
    return Subject(SubjectKind.RISK, owner_id=risk.owner_id)


def action_subject(action, risk=None):
    risk = risk or action.risk
    return Subject(
        SubjectKind.MITIGATION_ACTION,
        owner_id=risk.owner_id,
        assignee_id=action.assigned_to_id,
    )


def assessment_subject(assessment, risk=None):
    risk = risk or assessment.risk
    return Subject(
        SubjectKind.RISK_ASSESSMENT,
        owner_id=risk.owner_id,
        assessor_id=assessment.assessor_id,
    )


def risk_child_subject(kind, risk):
    """Subject for creating or listing children under a risk."""
    return Subject(kind, owner_id=risk.owner_id)


# Groups created by the seed_roles command
ROLES = {
    'Admin': tuple(Capability),
    'Risk Manager': (
        Capability.VIEW_RISKS, Capability.CREATE_RISKS, Capability.EDIT_RISKS, Capability.MANAGE_ALL_RISKS,
        Capability.VIEW_ACTIONS, Capability.CREATE_ACTIONS, Capability.EDIT_ACTIONS, Capability.ASSIGN_ACTIONS,
        Capability.VIEW_ASSESSMENTS, Capability.CREATE_ASSESSMENTS, Capability.EDIT_ASSESSMENTS,
        Capability.VIEW_REPORTS, Capability.EXPORT_REPORTS,
    ),
    'Risk Owner': (
        Capability.VIEW_RISKS, Capability.CREATE_RISKS, Capability.EDIT_RISKS,
        Capability.VIEW_ACTIONS, Capability.CREATE_ACTIONS, Capability.EDIT_ACTIONS,
        Capability.VIEW_ASSESSMENTS, Capability.CREATE_ASSESSMENTS,
        Capability.VIEW_REPORTS,
    ),
    'Auditor': (
        Capability.VIEW_RISKS,
        Capability.VIEW_ACTIONS,
        Capability.VIEW_ASSESSMENTS,
        Capability.VIEW_REPORTS, Capability.EXPORT_REPORTS,
    ),
}
