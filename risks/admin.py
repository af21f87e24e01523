"""
Admin configuration for the risks app.
"""

from django.contrib import admin
from .models import MitigationAction, Risk, RiskAssessment


class MitigationActionInline(admin.TabularInline):
    model = MitigationAction
    extra = 0
    fields = ['title', 'status', 'assigned_to', 'due_date', 'completed_date', 'priority']
    readonly_fields = ['completed_date']


class RiskAssessmentInline(admin.TabularInline):
    model = RiskAssessment
    extra = 0
    fields = ['assessor', 'assessment_date', 'likelihood_after', 'impact_after', 'risk_score_after']
    readonly_fields = ['risk_score_after']


@admin.register(Risk)
class RiskAdmin(admin.ModelAdmin):
    """Admin configuration for Risk model."""

    list_display = [
        'id', 'title', 'owner', 'category', 'likelihood', 'impact',
        'risk_score', 'status', 'department', 'deleted_at', 'updated_at',
    ]
    list_filter = ['status', 'category', 'department']
    search_fields = ['title', 'description']
    ordering = ['-risk_score', '-updated_at']
    readonly_fields = ['risk_score', 'version', 'deleted_at', 'created_at', 'updated_at']
    inlines = [MitigationActionInline, RiskAssessmentInline]

    def get_queryset(self, request):
        # Tombstoned risks stay visible here so they can be inspected
        return Risk.all_objects.select_related('owner')


@admin.register(MitigationAction)
class MitigationActionAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'risk', 'assigned_to', 'status', 'priority', 'due_date', 'completed_date']
    list_filter = ['status', 'priority']
    search_fields = ['title', 'risk__title']
    readonly_fields = ['completed_date', 'version', 'deleted_at', 'created_at', 'updated_at']

    def get_queryset(self, request):
        return MitigationAction.all_objects.select_related('risk', 'assigned_to')


@admin.register(RiskAssessment)
class RiskAssessmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'risk', 'assessor', 'assessment_date', 'risk_score_before', 'risk_score_after']
    list_filter = ['assessment_date']
    search_fields = ['risk__title', 'assessment_notes']
    readonly_fields = ['risk_score_before', 'risk_score_after', 'created_at', 'updated_at']
