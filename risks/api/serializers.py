"""
Serializers for the risk register API.

Output serializers shape entity snapshots with their derived fields.
Input serializers only check types and shapes; ownership and lifecycle
rules are enforced by the services.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from risks import scoring
from risks.models import MitigationAction, Risk, RiskAssessment

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in entities."""

    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'email']

    def get_name(self, obj):
        return obj.get_full_name() or obj.get_username()


class RiskSummarySerializer(serializers.ModelSerializer):
    """Parent risk as embedded in actions and assessments."""

    risk_score = serializers.FloatField(read_only=True)
    risk_level = serializers.ReadOnlyField()

    class Meta:
        model = Risk
        fields = ['id', 'title', 'category', 'status', 'risk_score', 'risk_level', 'owner_id']


class RiskAssessmentSerializer(serializers.ModelSerializer):
    """Serializer for RiskAssessment model."""

    risk = RiskSummarySerializer(read_only=True)
    assessor = UserSummarySerializer(read_only=True)
    risk_score_before = serializers.FloatField(read_only=True, allow_null=True)
    risk_score_after = serializers.FloatField(read_only=True)
    risk_improvement = serializers.FloatField(read_only=True, allow_null=True)
    improvement_percentage = serializers.ReadOnlyField()

    class Meta:
        model = RiskAssessment
        fields = [
            'id', 'risk_id', 'risk', 'assessor_id', 'assessor',
            'likelihood_before', 'impact_before', 'risk_score_before',
            'likelihood_after', 'impact_after', 'risk_score_after',
            'risk_improvement', 'improvement_percentage',
            'assessment_notes', 'assessment_date', 'created_at', 'updated_at',
        ]


class NestedAssessmentSerializer(RiskAssessmentSerializer):
    """Assessment embedded under its risk."""

    class Meta(RiskAssessmentSerializer.Meta):
        fields = [name for name in RiskAssessmentSerializer.Meta.fields if name != 'risk']


class MitigationActionSerializer(serializers.ModelSerializer):
    """Serializer for MitigationAction model."""

    risk = RiskSummarySerializer(read_only=True)
    assigned_user = UserSummarySerializer(source='assigned_to', read_only=True)
    assigned_to = serializers.IntegerField(source='assigned_to_id', read_only=True)
    status_label = serializers.ReadOnlyField()
    priority_label = serializers.ReadOnlyField()
    cost_estimate = serializers.FloatField(read_only=True, allow_null=True)
    is_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = MitigationAction
        fields = [
            'id', 'risk_id', 'risk', 'title', 'description', 'status', 'status_label',
            'assigned_to', 'assigned_user', 'due_date', 'completed_date',
            'priority', 'priority_label', 'cost_estimate', 'notes',
            'is_overdue', 'days_until_due', 'version', 'created_at', 'updated_at',
        ]

    def get_is_overdue(self, obj):
        return obj.is_overdue()

    def get_days_until_due(self, obj):
        return obj.days_until_due()


class NestedActionSerializer(MitigationActionSerializer):
    """Action embedded under its risk."""

    class Meta(MitigationActionSerializer.Meta):
        fields = [name for name in MitigationActionSerializer.Meta.fields if name != 'risk']


class OverdueActionSerializer(MitigationActionSerializer):
    days_overdue = serializers.IntegerField(read_only=True)

    class Meta(MitigationActionSerializer.Meta):
        fields = MitigationActionSerializer.Meta.fields + ['days_overdue']


class RiskSerializer(serializers.ModelSerializer):
    """Risk as listed: owner, actions and latest assessment embedded."""

    owner = UserSummarySerializer(read_only=True)
    risk_score = serializers.FloatField(read_only=True)
    risk_level = serializers.ReadOnlyField()
    is_high_risk = serializers.ReadOnlyField()
    category_label = serializers.ReadOnlyField()
    status_label = serializers.ReadOnlyField()
    mitigation_actions = NestedActionSerializer(many=True, read_only=True)
    latest_assessment = NestedAssessmentSerializer(read_only=True)

    class Meta:
        model = Risk
        fields = [
            'id', 'title', 'description', 'category', 'category_label',
            'likelihood', 'impact', 'risk_score', 'risk_level', 'is_high_risk',
            'status', 'status_label', 'owner_id', 'owner', 'department',
            'identified_date', 'target_closure_date', 'actual_closure_date', 'notes',
            'mitigation_actions', 'latest_assessment', 'version', 'created_at', 'updated_at',
        ]


class RiskDetailSerializer(RiskSerializer):
    """Single risk with its full assessment history."""

    assessments = NestedAssessmentSerializer(many=True, read_only=True)

    class Meta(RiskSerializer.Meta):
        fields = RiskSerializer.Meta.fields + ['assessments']


class RatingField(serializers.IntegerField):
    """An integer on the 1-5 likelihood/impact/priority scale."""

    def __init__(self, **kwargs):
        kwargs.setdefault('min_value', scoring.RATING_MIN)
        kwargs.setdefault('max_value', scoring.RATING_MAX)
        super().__init__(**kwargs)


class RiskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    category = serializers.ChoiceField(choices=Risk.CATEGORY_CHOICES)
    likelihood = RatingField()
    impact = RatingField()
    owner_id = serializers.IntegerField(required=False, allow_null=True)
    department = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)
    identified_date = serializers.DateField()
    target_closure_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate(self, attrs):
        target = attrs.get('target_closure_date')
        if target and target <= attrs['identified_date']:
            raise serializers.ValidationError({
                'target_closure_date': ['The target closure date must be a date after identified date.']
            })
        return attrs


class RiskUpdateSerializer(serializers.Serializer):
    """Partial risk update; absent fields are left untouched."""

    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False)
    category = serializers.ChoiceField(choices=Risk.CATEGORY_CHOICES, required=False)
    likelihood = RatingField(required=False)
    impact = RatingField(required=False)
    status = serializers.ChoiceField(choices=Risk.STATUS_CHOICES, required=False)
    owner_id = serializers.IntegerField(required=False)
    department = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)
    identified_date = serializers.DateField(required=False)
    target_closure_date = serializers.DateField(required=False, allow_null=True)
    actual_closure_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    version = serializers.IntegerField(required=False, min_value=1)


class MitigationActionCreateSerializer(serializers.Serializer):
    risk_id = serializers.IntegerField()
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    assigned_to = serializers.IntegerField()
    due_date = serializers.DateField()
    priority = RatingField(required=False, allow_null=True)
    cost_estimate = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_due_date(self, value):
        if value <= timezone.localdate():
            raise serializers.ValidationError('The due date must be a date after today.')
        return value


class MitigationActionUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=MitigationAction.STATUS_CHOICES, required=False)
    assigned_to = serializers.IntegerField(required=False)
    due_date = serializers.DateField(required=False)
    priority = RatingField(required=False)
    cost_estimate = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    version = serializers.IntegerField(required=False, min_value=1)


class RiskAssessmentCreateSerializer(serializers.Serializer):
    likelihood_before = RatingField(required=False, allow_null=True)
    impact_before = RatingField(required=False, allow_null=True)
    likelihood_after = RatingField()
    impact_after = RatingField()
    assessment_notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    assessment_date = serializers.DateField()


class RiskAssessmentUpdateSerializer(serializers.Serializer):
    likelihood_before = RatingField(required=False, allow_null=True)
    impact_before = RatingField(required=False, allow_null=True)
    likelihood_after = RatingField(required=False)
    impact_after = RatingField(required=False)
    assessment_notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    assessment_date = serializers.DateField(required=False)
