"""
Report generation service for the risk register.
Aggregates risk and mitigation data and exports the register as CSV or Excel.
"""

import io
import logging

import pandas as pd
from django.db.models import Avg, Count, Q
from django.utils import timezone
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from risks import scoring
from risks.models import MitigationAction, Risk

logger = logging.getLogger(__name__)

HIGH = Q(risk_score__gte=scoring.HIGH_THRESHOLD)
MEDIUM = Q(risk_score__gte=scoring.MEDIUM_THRESHOLD, risk_score__lt=scoring.HIGH_THRESHOLD)
LOW = Q(risk_score__lt=scoring.MEDIUM_THRESHOLD)

RISK_COLUMNS = {
    'id': 'Risk ID',
    'title': 'Title',
    'category': 'Category',
    'owner__username': 'Owner',
    'department': 'Department',
    'likelihood': 'Likelihood',
    'impact': 'Impact',
    'risk_score': 'Score',
    'status': 'Status',
    'identified_date': 'Identified',
    'target_closure_date': 'Target Closure',
    'actual_closure_date': 'Closed On',
    'updated_at': 'Last Updated',
}

ACTION_COLUMNS = {
    'id': 'Action ID',
    'risk_id': 'Risk ID',
    'risk__title': 'Risk',
    'title': 'Title',
    'status': 'Status',
    'assigned_to__username': 'Assigned To',
    'priority': 'Priority',
    'due_date': 'Due Date',
    'completed_date': 'Completed On',
    'cost_estimate': 'Cost Estimate',
}


def _average(value):
    return round(float(value), 2) if value is not None else 0.0


class ReportService:
    """Service for generating risk register reports for one actor."""

    def __init__(self, actor):
        self.actor = actor
        self.generated_at = timezone.now()

    def risks(self):
        """Live risks in the actor's reporting scope."""
        queryset = Risk.objects.all()
        if not self.actor.manages_all:
            queryset = queryset.by_owner(self.actor.id)
        return queryset

    def actions(self):
        """Live actions under live risks in the actor's reporting scope."""
        queryset = MitigationAction.objects.filter(risk__deleted_at__isnull=True)
        if not self.actor.manages_all:
            queryset = queryset.filter(risk__owner_id=self.actor.id)
        return queryset

    def dashboard(self):
        """Headline counters for the dashboard."""
        risk_counts = self.risks().aggregate(
            total_risks=Count('id'),
            high_risks=Count('id', filter=HIGH),
            medium_risks=Count('id', filter=MEDIUM),
            low_risks=Count('id', filter=LOW),
            open_risks=Count('id', filter=Q(status__in=Risk.OPEN_STATUSES)),
            closed_risks=Count('id', filter=Q(status=Risk.STATUS_CLOSED)),
        )
        actions = self.actions()
        action_counts = actions.aggregate(
            total_actions=Count('id'),
            completed_actions=Count('id', filter=Q(status=MitigationAction.STATUS_COMPLETED)),
            in_progress_actions=Count('id', filter=Q(status=MitigationAction.STATUS_IN_PROGRESS)),
        )
        action_counts['overdue_actions'] = actions.overdue().count()
        return {**risk_counts, **action_counts}

    def risk_summary(self):
        risks = self.risks()
        totals = risks.aggregate(
            total_risks=Count('id'),
            average_risk_score=Avg('risk_score'),
            high=Count('id', filter=HIGH),
            medium=Count('id', filter=MEDIUM),
            low=Count('id', filter=LOW),
        )
        by_status = {
            row['status']: row['count']
            for row in risks.order_by().values('status').annotate(count=Count('id'))
        }
        by_category = {
            row['category']: row['count']
            for row in risks.order_by().values('category').annotate(count=Count('id'))
        }
        return {
            'by_status': by_status,
            'by_category': by_category,
            'by_risk_level': {
                scoring.LEVEL_HIGH: totals['high'],
                scoring.LEVEL_MEDIUM: totals['medium'],
                scoring.LEVEL_LOW: totals['low'],
            },
            'average_risk_score': _average(totals['average_risk_score']),
            'total_risks': totals['total_risks'],
        }

    def risk_matrix(self):
        """
        5x5 grid keyed by likelihood then impact.
        Each cell carries the count, the risks in it and the cell's score.
        """
        cells = {}
        for risk in self.risks().values('id', 'title', 'likelihood', 'impact', 'risk_score', 'category'):
            risk['risk_score'] = float(risk['risk_score'])
            cells.setdefault((risk['likelihood'], risk['impact']), []).append(risk)

        ratings = range(scoring.RATING_MIN, scoring.RATING_MAX + 1)
        matrix = {}
        for likelihood in ratings:
            matrix[likelihood] = {}
            for impact in ratings:
                risks = cells.get((likelihood, impact), [])
                matrix[likelihood][impact] = {
                    'count': len(risks),
                    'risks': risks,
                    'risk_score': scoring.score(likelihood, impact),
                }
        return matrix

    def _breakdown(self, field, queryset):
        rows = (
            queryset.order_by()
            .values(field)
            .annotate(
                total_count=Count('id'),
                high_count=Count('id', filter=HIGH),
                medium_count=Count('id', filter=MEDIUM),
                low_count=Count('id', filter=LOW),
                avg_risk_score=Avg('risk_score'),
            )
            .order_by(field)
        )
        return [{**row, 'avg_risk_score': _average(row['avg_risk_score'])} for row in rows]

    def risks_by_category(self):
        return self._breakdown('category', self.risks())

    def risks_by_department(self):
        # Risks without a department are left out
        return self._breakdown('department', self.risks().filter(department__isnull=False))

    def overdue_actions(self):
        """Overdue actions, oldest due date first, each tagged with days_overdue."""
        today = timezone.localdate()
        actions = list(
            self.actions().overdue(today=today).select_related('risk', 'assigned_to').order_by('due_date')
        )
        for action in actions:
            action.days_overdue = (today - action.due_date).days
        return actions

    def high_risk_items(self):
        """Open risks in the high band, highest score first."""
        return (
            self.risks().high().filter(status__in=Risk.OPEN_STATUSES)
            .select_related('owner')
            .prefetch_related('mitigation_actions')
            .order_by('-risk_score')
        )

    def risk_dataframe(self):
        """The visible register as a DataFrame with display headers."""
        rows = list(self.risks().order_by('id').values(*RISK_COLUMNS))
        df = pd.DataFrame(rows, columns=list(RISK_COLUMNS))
        df['risk_score'] = df['risk_score'].astype(float)
        df['category'] = df['category'].map(dict(Risk.CATEGORY_CHOICES))
        df['status'] = df['status'].map(dict(Risk.STATUS_CHOICES))
        df['updated_at'] = df['updated_at'].apply(
            lambda value: value.strftime('%Y-%m-%d %H:%M') if pd.notna(value) else ''
        )
        df.insert(df.columns.get_loc('risk_score') + 1, 'risk_level', df['risk_score'].apply(
            lambda value: scoring.level(value).capitalize()
        ))
        return df.rename(columns={**RISK_COLUMNS, 'risk_level': 'Level'})

    def action_dataframe(self):
        rows = list(self.actions().order_by('risk_id', 'priority', 'due_date').values(*ACTION_COLUMNS))
        df = pd.DataFrame(rows, columns=list(ACTION_COLUMNS))
        df['status'] = df['status'].map(dict(MitigationAction.STATUS_CHOICES))
        df['priority'] = df['priority'].apply(MitigationAction.priority_label_for)
        df['cost_estimate'] = df['cost_estimate'].apply(lambda value: float(value) if value is not None else None)
        return df.rename(columns=ACTION_COLUMNS)

    def generate_csv_report(self):
        """Generate the risk register as CSV text."""
        df = self.risk_dataframe()
        logger.info(f"CSV register export generated for user {self.actor.id} ({len(df)} risks)")
        return df.to_csv(index=False)

    def generate_excel_report(self):
        """Generate the risk register workbook as xlsx bytes."""
        df = self.risk_dataframe()
        actions_df = self.action_dataframe()
        summary = self.risk_summary()
        open_risks = df[df['Status'] != dict(Risk.STATUS_CHOICES)[Risk.STATUS_CLOSED]]

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            # --- Sheet 1: Report Info ---
            report_info = pd.DataFrame([
                ["Report Generated", timezone.localtime(self.generated_at).strftime('%Y-%m-%d %H:%M')],
                ["Total Risks", summary['total_risks']],
                ["Open Risks", len(open_risks)],
                ["High Risks", summary['by_risk_level'][scoring.LEVEL_HIGH]],
                ["Medium Risks", summary['by_risk_level'][scoring.LEVEL_MEDIUM]],
                ["Low Risks", summary['by_risk_level'][scoring.LEVEL_LOW]],
                ["Average Risk Score", summary['average_risk_score']],
                ["Mitigation Actions", len(actions_df)],
            ])
            report_info.to_excel(writer, index=False, header=False, sheet_name='Report_Info')

            ws_info = writer.sheets['Report_Info']
            ws_info.column_dimensions['A'].width = 25
            ws_info.column_dimensions['B'].width = 30
            for row in ws_info.iter_rows():
                for cell in row:
                    cell.font = Font(size=12)
                    if cell.column == 1:
                        cell.font = Font(bold=True, size=12, color='0D9488')

            # --- Sheets 2-4: register data ---
            df.to_excel(writer, index=False, sheet_name='All_Risks')
            open_risks.to_excel(writer, index=False, sheet_name='Open_Risks')
            actions_df.to_excel(writer, index=False, sheet_name='Mitigation_Actions')

            header_fill = PatternFill(start_color='0D9488', end_color='0D9488', fill_type='solid')
            header_font = Font(bold=True, color='FFFFFF')
            border = Border(left=Side(style='thin'), right=Side(style='thin'), top=Side(style='thin'), bottom=Side(style='thin'))

            for sheet_name, worksheet in writer.sheets.items():
                if sheet_name == 'Report_Info':
                    continue

                # Format header
                for cell in worksheet[1]:
                    cell.fill = header_fill
                    cell.font = header_font
                    cell.alignment = Alignment(horizontal='center')

                # Auto-adjust columns
                for column in worksheet.columns:
                    max_length = 0
                    for cell in column:
                        cell.border = border
                        if cell.value is not None:
                            max_length = max(max_length, len(str(cell.value)))
                    worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

        logger.info(f"Excel register export generated for user {self.actor.id} ({len(df)} risks)")
        return output.getvalue()
