"""
Request-level capability checks.

These only gate the endpoint by grant; ownership is decided by the services.
"""

from rest_framework.permissions import BasePermission

from risks.permissions import Capability


class HasCapability(BasePermission):
    """
    Require the capability a view maps to the request method.

    Views declare ``required_capabilities = {'GET': Capability.VIEW_RISKS, ...}``.
    Methods without an entry are refused.
    """

    message = 'User does not have the right permissions.'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        required = getattr(view, 'required_capabilities', {})
        method = 'GET' if request.method in ('HEAD', 'OPTIONS') else request.method
        capability = required.get(method)
        if capability is None:
            return False
        return request.user.has_perm(capability.value)


def capability_required(capability):
    """Permission class requiring one capability for every method."""

    class CapabilityRequired(HasCapability):
        def has_permission(self, request, view):
            if not (request.user and request.user.is_authenticated):
                return False
            return request.user.has_perm(capability.value)

    CapabilityRequired.__name__ = f'Requires{capability.name.title().replace("_", "")}'
    return CapabilityRequired


# Per-entity grant by HTTP method
RISK_CAPABILITIES = {
    'GET': Capability.VIEW_RISKS,
    'POST': Capability.CREATE_RISKS,
    'PUT': Capability.EDIT_RISKS,
    'PATCH': Capability.EDIT_RISKS,
    'DELETE': Capability.DELETE_RISKS,
}

ACTION_CAPABILITIES = {
    'GET': Capability.VIEW_ACTIONS,
    'POST': Capability.CREATE_ACTIONS,
    'PUT': Capability.EDIT_ACTIONS,
    'PATCH': Capability.EDIT_ACTIONS,
    'DELETE': Capability.DELETE_ACTIONS,
}

ASSESSMENT_CAPABILITIES = {
    'GET': Capability.VIEW_ASSESSMENTS,
    'POST': Capability.CREATE_ASSESSMENTS,
    'PUT': Capability.EDIT_ASSESSMENTS,
    'PATCH': Capability.EDIT_ASSESSMENTS,
    'DELETE': Capability.DELETE_ASSESSMENTS,
}
