"""
URL patterns for the risk register API.
"""

from django.urls import path
from . import views

app_name = 'risks_api'

urlpatterns = [
    # Risk endpoints
    path('risks/', views.RiskListView.as_view(), name='risk-list'),
    path('risks/<int:pk>/', views.RiskDetailView.as_view(), name='risk-detail'),
    path('risks/<int:pk>/restore/', views.restore_risk, name='risk-restore'),
    path('risks/<int:pk>/assessments/', views.RiskAssessmentsView.as_view(), name='risk-assessments'),
    path('risks/<int:pk>/mitigation-actions/', views.RiskActionsView.as_view(), name='risk-actions'),

    # Mitigation action endpoints
    path('mitigation-actions/', views.MitigationActionListView.as_view(), name='action-list'),
    path('mitigation-actions/<int:pk>/', views.MitigationActionDetailView.as_view(), name='action-detail'),
    path('mitigation-actions/<int:pk>/restore/', views.restore_mitigation_action, name='action-restore'),

    # Risk assessment endpoints
    path('risk-assessments/', views.RiskAssessmentListView.as_view(), name='assessment-list'),
    path('risk-assessments/<int:pk>/', views.RiskAssessmentDetailView.as_view(), name='assessment-detail'),

    # Report endpoints
    path('reports/dashboard/', views.dashboard, name='report-dashboard'),
    path('reports/risk-summary/', views.risk_summary, name='report-risk-summary'),
    path('reports/risk-matrix/', views.risk_matrix, name='report-risk-matrix'),
    path('reports/risks-by-category/', views.risks_by_category, name='report-risks-by-category'),
    path('reports/risks-by-department/', views.risks_by_department, name='report-risks-by-department'),
    path('reports/overdue-actions/', views.overdue_actions, name='report-overdue-actions'),
    path('reports/high-risk-items/', views.high_risk_items, name='report-high-risk-items'),

    # Export endpoints
    path('reports/export/csv/', views.export_csv, name='export-csv'),
    path('reports/export/excel/', views.export_excel, name='export-excel'),

    # Current user
    path('user/', views.current_user, name='current-user'),
]
