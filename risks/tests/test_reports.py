"""
Tests for the report service and register exports.
"""

import io
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from openpyxl import load_workbook

from risks.models import MitigationAction
from risks.services.report_service import ReportService

from .helpers import actor_for, create_action, create_risk, create_role_user


class ReportTestBase(TestCase):

    def setUp(self):
        self.owner = create_role_user('olivia', 'Risk Owner')
        self.other = create_role_user('sam', 'Risk Owner')
        self.manager = create_role_user('morgan', 'Risk Manager')
        self.today = timezone.localdate()

        self.high = create_risk(self.owner, likelihood=5, impact=4, department='IT', category='operational')
        self.medium = create_risk(self.owner, likelihood=2, impact=4, department='IT', category='financial')
        self.low = create_risk(self.owner, likelihood=1, impact=3, category='financial', status='closed')
        self.foreign = create_risk(self.other, likelihood=5, impact=5, department='Finance')

        self.late = create_action(self.high, self.owner, due_date=self.today - timedelta(days=4))
        self.done = create_action(self.high, self.owner, status=MitigationAction.STATUS_COMPLETED)
        self.running = create_action(self.medium, self.other, status=MitigationAction.STATUS_IN_PROGRESS)
        self.foreign_late = create_action(self.foreign, self.other, due_date=self.today - timedelta(days=1))

        self.owner_reports = ReportService(actor_for(self.owner))
        self.manager_reports = ReportService(actor_for(self.manager))


class DashboardTests(ReportTestBase):

    def test_owner_dashboard_is_scoped(self):
        self.assertEqual(self.owner_reports.dashboard(), {
            'total_risks': 3,
            'high_risks': 1,
            'medium_risks': 1,
            'low_risks': 1,
            'open_risks': 2,
            'closed_risks': 1,
            'total_actions': 3,
            'overdue_actions': 1,
            'completed_actions': 1,
            'in_progress_actions': 1,
        })

    def test_manager_dashboard_counts_everything(self):
        data = self.manager_reports.dashboard()
        self.assertEqual(data['total_risks'], 4)
        self.assertEqual(data['high_risks'], 2)
        self.assertEqual(data['overdue_actions'], 2)

    def test_deleted_risks_excluded(self):
        self.high.delete()
        data = self.owner_reports.dashboard()
        self.assertEqual(data['total_risks'], 2)
        self.assertEqual(data['total_actions'], 1)


class SummaryTests(ReportTestBase):

    def test_risk_summary(self):
        summary = self.owner_reports.risk_summary()
        self.assertEqual(summary['total_risks'], 3)
        self.assertEqual(summary['by_status'], {'identified': 2, 'closed': 1})
        self.assertEqual(summary['by_category'], {'operational': 1, 'financial': 2})
        self.assertEqual(summary['by_risk_level'], {'high': 1, 'medium': 1, 'low': 1})
        # (20 + 8 + 3) / 3
        self.assertEqual(summary['average_risk_score'], 10.33)

    def test_empty_summary(self):
        newcomer = create_role_user('nina', 'Risk Owner')
        summary = ReportService(actor_for(newcomer)).risk_summary()
        self.assertEqual(summary['total_risks'], 0)
        self.assertEqual(summary['average_risk_score'], 0.0)

    def test_risk_matrix(self):
        matrix = self.owner_reports.risk_matrix()
        self.assertEqual(sorted(matrix), [1, 2, 3, 4, 5])
        self.assertEqual(sorted(matrix[3]), [1, 2, 3, 4, 5])

        cell = matrix[5][4]
        self.assertEqual(cell['count'], 1)
        self.assertEqual(cell['risk_score'], 20)
        self.assertEqual(cell['risks'][0]['id'], self.high.pk)
        self.assertEqual(cell['risks'][0]['risk_score'], 20.0)

        self.assertEqual(matrix[5][5]['count'], 0)
        self.assertEqual(matrix[5][5]['risks'], [])

    def test_risks_by_category(self):
        rows = {row['category']: row for row in self.manager_reports.risks_by_category()}
        self.assertEqual(rows['financial']['total_count'], 2)
        self.assertEqual(rows['financial']['medium_count'], 1)
        self.assertEqual(rows['financial']['low_count'], 1)
        self.assertEqual(rows['financial']['avg_risk_score'], 5.5)
        self.assertEqual(rows['operational']['high_count'], 2)

    def test_risks_by_department_skips_missing_department(self):
        rows = self.manager_reports.risks_by_department()
        self.assertEqual([row['department'] for row in rows], ['Finance', 'IT'])
        it = rows[1]
        self.assertEqual(it['total_count'], 2)
        self.assertEqual(it['avg_risk_score'], 14.0)


class ActionReportTests(ReportTestBase):

    def test_overdue_actions_with_days_overdue(self):
        actions = self.manager_reports.overdue_actions()
        self.assertEqual(actions, [self.late, self.foreign_late])
        self.assertEqual(actions[0].days_overdue, 4)
        self.assertEqual(actions[1].days_overdue, 1)

    def test_overdue_actions_scoped_to_owner(self):
        self.assertEqual(self.owner_reports.overdue_actions(), [self.late])

    def test_high_risk_items_exclude_closed(self):
        create_risk(self.owner, likelihood=5, impact=5, status='closed')
        top = create_risk(self.owner, likelihood=5, impact=5)
        self.assertEqual(list(self.owner_reports.high_risk_items()), [top, self.high])


class ExportTests(ReportTestBase):

    def test_csv_export(self):
        content = self.owner_reports.generate_csv_report()
        lines = content.strip().splitlines()
        self.assertTrue(lines[0].startswith('Risk ID,Title,Category,Owner'))
        self.assertIn('Level', lines[0])
        self.assertEqual(len(lines), 4)
        self.assertIn('Supplier insolvency', lines[1])
        self.assertIn('High', lines[1])

    def test_csv_export_without_risks(self):
        newcomer = create_role_user('nina', 'Risk Owner')
        content = ReportService(actor_for(newcomer)).generate_csv_report()
        self.assertEqual(len(content.strip().splitlines()), 1)

    def test_excel_export(self):
        content = self.manager_reports.generate_excel_report()
        workbook = load_workbook(io.BytesIO(content))
        self.assertEqual(workbook.sheetnames, ['Report_Info', 'All_Risks', 'Open_Risks', 'Mitigation_Actions'])

        all_risks = workbook['All_Risks']
        self.assertEqual(all_risks['A1'].value, 'Risk ID')
        self.assertEqual(all_risks.max_row, 5)
        self.assertTrue(all_risks['A1'].font.bold)
        self.assertEqual(workbook['Open_Risks'].max_row, 4)
        self.assertEqual(workbook['Mitigation_Actions'].max_row, 5)

        info = workbook['Report_Info']
        self.assertEqual(info['A2'].value, 'Total Risks')
        self.assertEqual(info['B2'].value, 4)

    def test_excel_export_without_risks(self):
        newcomer = create_role_user('nina', 'Risk Owner')
        content = ReportService(actor_for(newcomer)).generate_excel_report()
        workbook = load_workbook(io.BytesIO(content))
        self.assertEqual(workbook['All_Risks'].max_row, 1)
