"""
API Views for the risk register.

Views authenticate, check the per-entity grant, validate the payload shape
and hand over to the services with an explicit Actor.
"""

from django.conf import settings
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from risks.permissions import Actor, Capability
from risks.services.action_service import MitigationActionService
from risks.services.assessment_service import RiskAssessmentService
from risks.services.report_service import ReportService
from risks.services.risk_service import RiskService

from .permissions import (
    ACTION_CAPABILITIES,
    ASSESSMENT_CAPABILITIES,
    RISK_CAPABILITIES,
    HasCapability,
    capability_required,
)
from .serializers import (
    MitigationActionCreateSerializer,
    MitigationActionSerializer,
    MitigationActionUpdateSerializer,
    NestedActionSerializer,
    NestedAssessmentSerializer,
    OverdueActionSerializer,
    RiskAssessmentCreateSerializer,
    RiskAssessmentSerializer,
    RiskAssessmentUpdateSerializer,
    RiskCreateSerializer,
    RiskDetailSerializer,
    RiskSerializer,
    RiskUpdateSerializer,
)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def get_actor(request):
    """The acting user reduced to id and capabilities, built once per request."""
    actor = getattr(request, '_register_actor', None)
    if actor is None:
        actor = Actor.from_user(request.user)
        request._register_actor = actor
    return actor


def envelope(message, data=None, status_code=status.HTTP_200_OK):
    body = {'message': message}
    if data is not None:
        body['data'] = data
    return Response(body, status=status_code)


def validated(serializer_class, request):
    serializer = serializer_class(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class RegisterPagination(PageNumberPagination):
    """Page-numbered lists wrapped in the message/data envelope."""
    page_size = settings.RISKS_PAGE_SIZE
    page_size_query_param = 'per_page'
    max_page_size = 100

    def paginate_queryset(self, queryset, request, view=None):
        self.view = view
        return super().paginate_queryset(queryset, request, view=view)

    def get_paginated_response(self, data):
        return Response({
            'message': getattr(self.view, 'list_message', 'Records retrieved successfully'),
            'data': data,
            'meta': {
                'total': self.page.paginator.count,
                'current_page': self.page.number,
                'per_page': self.page.paginator.per_page,
                'last_page': self.page.paginator.num_pages,
            },
            'links': {
                'next': self.get_next_link(),
                'previous': self.get_previous_link(),
            },
        })


class RegisterView(generics.GenericAPIView):
    """Base for the entity views: capability gate plus an actor-bound service."""
    permission_classes = [HasCapability]
    pagination_class = RegisterPagination
    service_class = None

    @property
    def service(self):
        return self.service_class(get_actor(self.request))


# ---------------------------------------------------------------------------
# Risks
# ---------------------------------------------------------------------------

class RiskListView(RegisterView, generics.ListCreateAPIView):
    """
    GET: List visible risks with optional filtering.
    Query params: category, status, risk_level, owner_id, sort_by, sort_order, per_page
    POST: Create a risk.
    """
    serializer_class = RiskSerializer
    required_capabilities = RISK_CAPABILITIES
    service_class = RiskService
    list_message = 'Risks retrieved successfully'

    def get_queryset(self):
        return self.service.list(self.request.query_params)

    def create(self, request, *args, **kwargs):
        risk = self.service.create(validated(RiskCreateSerializer, request))
        return envelope(
            'Risk created successfully',
            RiskDetailSerializer(risk).data,
            status.HTTP_201_CREATED,
        )


class RiskDetailView(RegisterView, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a single risk.
    PATCH/PUT: Update a risk.
    DELETE: Soft delete a risk.
    """
    serializer_class = RiskDetailSerializer
    required_capabilities = RISK_CAPABILITIES
    service_class = RiskService

    def retrieve(self, request, *args, **kwargs):
        risk = self.service.get(kwargs['pk'])
        return envelope('Risk retrieved successfully', RiskDetailSerializer(risk).data)

    def update(self, request, *args, **kwargs):
        risk = self.service.update(kwargs['pk'], validated(RiskUpdateSerializer, request))
        return envelope('Risk updated successfully', RiskDetailSerializer(risk).data)

    def destroy(self, request, *args, **kwargs):
        self.service.delete(kwargs['pk'])
        return envelope('Risk deleted successfully')


@api_view(['POST'])
@permission_classes([capability_required(Capability.DELETE_RISKS)])
def restore_risk(request, pk):
    """Bring back a soft-deleted risk."""
    risk = RiskService(get_actor(request)).restore(pk)
    return envelope('Risk restored successfully', RiskDetailSerializer(risk).data)


class RiskAssessmentsView(RegisterView):
    """
    GET: Assessments of one risk, newest first.
    POST: Record an assessment and re-rate the risk.
    """
    required_capabilities = ASSESSMENT_CAPABILITIES
    service_class = RiskAssessmentService

    def get(self, request, pk):
        assessments = self.service.for_risk(pk)
        return envelope(
            'Risk assessments retrieved successfully',
            NestedAssessmentSerializer(assessments, many=True).data,
        )

    def post(self, request, pk):
        assessment = self.service.create(pk, validated(RiskAssessmentCreateSerializer, request))
        return envelope(
            'Risk assessment created successfully',
            RiskAssessmentSerializer(assessment).data,
            status.HTTP_201_CREATED,
        )


class RiskActionsView(RegisterView):
    """GET: Mitigation actions of one risk, most urgent first."""
    required_capabilities = ACTION_CAPABILITIES
    service_class = MitigationActionService

    def get(self, request, pk):
        actions = self.service.for_risk(pk)
        return envelope(
            'Mitigation actions retrieved successfully',
            NestedActionSerializer(actions, many=True).data,
        )


# ---------------------------------------------------------------------------
# Mitigation actions
# ---------------------------------------------------------------------------

class MitigationActionListView(RegisterView, generics.ListCreateAPIView):
    """
    GET: List visible mitigation actions.
    Query params: status, assigned_to, risk, overdue, due_soon, sort_by, sort_order, per_page
    POST: Create an action under a risk.
    """
    serializer_class = MitigationActionSerializer
    required_capabilities = ACTION_CAPABILITIES
    service_class = MitigationActionService
    list_message = 'Mitigation actions retrieved successfully'

    def get_queryset(self):
        return self.service.list(self.request.query_params)

    def create(self, request, *args, **kwargs):
        action = self.service.create(validated(MitigationActionCreateSerializer, request))
        return envelope(
            'Mitigation action created successfully',
            MitigationActionSerializer(action).data,
            status.HTTP_201_CREATED,
        )


class MitigationActionDetailView(RegisterView, generics.RetrieveUpdateDestroyAPIView):
    serializer_class = MitigationActionSerializer
    required_capabilities = ACTION_CAPABILITIES
    service_class = MitigationActionService

    def retrieve(self, request, *args, **kwargs):
        action = self.service.get(kwargs['pk'])
        return envelope('Mitigation action retrieved successfully', MitigationActionSerializer(action).data)

    def update(self, request, *args, **kwargs):
        action = self.service.update(kwargs['pk'], validated(MitigationActionUpdateSerializer, request))
        return envelope('Mitigation action updated successfully', MitigationActionSerializer(action).data)

    def destroy(self, request, *args, **kwargs):
        self.service.delete(kwargs['pk'])
        return envelope('Mitigation action deleted successfully')


@api_view(['POST'])
@permission_classes([capability_required(Capability.DELETE_ACTIONS)])
def restore_mitigation_action(request, pk):
    action = MitigationActionService(get_actor(request)).restore(pk)
    return envelope('Mitigation action restored successfully', MitigationActionSerializer(action).data)


# ---------------------------------------------------------------------------
# Risk assessments
# ---------------------------------------------------------------------------

class RiskAssessmentListView(RegisterView, generics.ListAPIView):
    """
    GET: List visible assessments.
    Query params: assessor_id, start_date, end_date, per_page
    """
    serializer_class = RiskAssessmentSerializer
    required_capabilities = ASSESSMENT_CAPABILITIES
    service_class = RiskAssessmentService
    list_message = 'Risk assessments retrieved successfully'

    def get_queryset(self):
        return self.service.list(self.request.query_params)


class RiskAssessmentDetailView(RegisterView, generics.RetrieveUpdateDestroyAPIView):
    serializer_class = RiskAssessmentSerializer
    required_capabilities = ASSESSMENT_CAPABILITIES
    service_class = RiskAssessmentService

    def retrieve(self, request, *args, **kwargs):
        assessment = self.service.get(kwargs['pk'])
        return envelope('Risk assessment retrieved successfully', RiskAssessmentSerializer(assessment).data)

    def update(self, request, *args, **kwargs):
        assessment = self.service.update(kwargs['pk'], validated(RiskAssessmentUpdateSerializer, request))
        return envelope('Risk assessment updated successfully', RiskAssessmentSerializer(assessment).data)

    def destroy(self, request, *args, **kwargs):
        self.service.delete(kwargs['pk'])
        return envelope('Risk assessment deleted successfully')


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def report_service(request):
    return ReportService(get_actor(request))


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def dashboard(request):
    """Get dashboard counters."""
    return envelope('Dashboard data retrieved successfully', report_service(request).dashboard())


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def risk_summary(request):
    return envelope('Risk summary retrieved successfully', report_service(request).risk_summary())


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def risk_matrix(request):
    """Get risk matrix data (5x5 grid with risk counts)."""
    return envelope('Risk matrix data retrieved successfully', report_service(request).risk_matrix())


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def risks_by_category(request):
    return envelope('Risks by category retrieved successfully', report_service(request).risks_by_category())


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def risks_by_department(request):
    return envelope('Risks by department retrieved successfully', report_service(request).risks_by_department())


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def overdue_actions(request):
    actions = report_service(request).overdue_actions()
    return envelope('Overdue actions retrieved successfully', OverdueActionSerializer(actions, many=True).data)


@api_view(['GET'])
@permission_classes([capability_required(Capability.VIEW_REPORTS)])
def high_risk_items(request):
    """Open risks with a score of 15 or more."""
    risks = report_service(request).high_risk_items()
    return envelope('High risk items retrieved successfully', RiskSerializer(risks, many=True).data)


def export_filename(extension):
    return f"risk_register_{timezone.localtime().strftime('%Y%m%d_%H%M%S')}.{extension}"


@api_view(['GET'])
@permission_classes([capability_required(Capability.EXPORT_REPORTS)])
def export_csv(request):
    """Download the visible register as CSV."""
    content = report_service(request).generate_csv_report()
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{export_filename("csv")}"'
    return response


@api_view(['GET'])
@permission_classes([capability_required(Capability.EXPORT_REPORTS)])
def export_excel(request):
    """Download the visible register as an Excel workbook."""
    content = report_service(request).generate_excel_report()
    response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{export_filename("xlsx")}"'
    return response


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def current_user(request):
    """The authenticated user with their groups and capabilities."""
    user = request.user
    actor = get_actor(request)
    return envelope('User retrieved successfully', {
        'id': user.pk,
        'username': user.get_username(),
        'name': user.get_full_name() or user.get_username(),
        'email': user.email,
        'groups': sorted(user.groups.values_list('name', flat=True)),
        'capabilities': sorted(capability.value for capability in actor.capabilities),
    })
