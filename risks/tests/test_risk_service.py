"""
Tests for the risk lifecycle service.
"""

from decimal import Decimal
from unittest import mock

from django.db.models import F
from django.test import TestCase
from django.utils import timezone

from risks.exceptions import ConflictState, Forbidden, NotFound, ValidationFailed
from risks.models import Risk
from risks.permissions import Capability
from risks.services.base import check_version
from risks.services.risk_service import RiskService

from .helpers import actor_for, create_risk, create_role_user, create_user


def risk_data(**overrides):
    data = {
        'title': 'Data centre outage',
        'description': 'Single site hosting with no failover',
        'category': 'operational',
        'likelihood': 4,
        'impact': 5,
        'identified_date': timezone.localdate(),
    }
    data.update(overrides)
    return data


class RiskCreateTests(TestCase):

    def setUp(self):
        self.owner = create_role_user('olivia', 'Risk Owner')
        self.manager = create_role_user('morgan', 'Risk Manager')
        self.service = RiskService(actor_for(self.owner))

    @mock.patch('risks.services.risk_service.notify_high_risk')
    def test_high_risk_creation(self, notify):
        risk = self.service.create(risk_data())
        self.assertEqual(risk.risk_score, Decimal('20.0'))
        self.assertEqual(risk.risk_level, 'high')
        self.assertTrue(risk.is_high_risk)
        self.assertEqual(risk.owner_id, self.owner.pk)
        self.assertEqual(risk.status, Risk.STATUS_IDENTIFIED)
        notify.assert_called_once_with(risk)

    @mock.patch('risks.services.risk_service.notify_high_risk')
    def test_low_risk_creation_does_not_notify(self, notify):
        self.service.create(risk_data(likelihood=1, impact=2))
        notify.assert_not_called()

    def test_high_risk_notification_is_logged(self):
        with self.assertLogs('risks.signals', level='INFO') as logs:
            risk = self.service.create(risk_data())
        self.assertIn(
            f"High risk notification: Risk 'Data centre outage' (ID: {risk.pk}) has a high risk score of 20.0",
            logs.output[0],
        )

    def test_failing_receiver_does_not_fail_creation(self):
        from risks.signals import high_risk_identified

        def broken(sender, **kwargs):
            raise RuntimeError('mail server down')

        high_risk_identified.connect(broken)
        try:
            with self.assertLogs('risks.signals', level='ERROR'):
                risk = self.service.create(risk_data())
        finally:
            high_risk_identified.disconnect(broken)
        self.assertTrue(Risk.objects.filter(pk=risk.pk).exists())

    def test_owner_id_ignored_without_manage_all(self):
        risk = self.service.create(risk_data(owner_id=self.manager.pk))
        self.assertEqual(risk.owner_id, self.owner.pk)

    def test_manager_may_assign_owner(self):
        risk = RiskService(actor_for(self.manager)).create(risk_data(owner_id=self.owner.pk))
        self.assertEqual(risk.owner_id, self.owner.pk)

    def test_manager_assigning_unknown_owner_fails(self):
        with self.assertRaises(ValidationFailed) as ctx:
            RiskService(actor_for(self.manager)).create(risk_data(owner_id=99999))
        self.assertIn('owner_id', ctx.exception.errors)

    def test_missing_fields(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self.service.create({'title': 'Incomplete'})
        self.assertEqual(
            set(ctx.exception.errors),
            {'description', 'category', 'likelihood', 'impact', 'identified_date'},
        )

    def test_out_of_range_rating(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self.service.create(risk_data(likelihood=6))
        self.assertIn('likelihood', ctx.exception.errors)
        self.assertFalse(Risk.objects.exists())


class RiskUpdateTests(TestCase):

    def setUp(self):
        self.owner = create_role_user('olivia', 'Risk Owner')
        self.stranger = create_role_user('sam', 'Risk Owner')
        self.manager = create_role_user('morgan', 'Risk Manager')
        self.service = RiskService(actor_for(self.owner))

    @mock.patch('risks.services.risk_service.notify_high_risk')
    def test_notifies_only_when_crossing_into_high(self, notify):
        risk = self.service.create(risk_data(likelihood=4, impact=5))
        self.assertEqual(notify.call_count, 1)

        risk = self.service.update(risk.pk, {'likelihood': 1})
        self.assertEqual(risk.risk_score, Decimal('5.0'))
        self.assertEqual(notify.call_count, 1)

        risk = self.service.update(risk.pk, {'likelihood': 5})
        self.assertEqual(risk.risk_score, Decimal('25.0'))
        self.assertEqual(notify.call_count, 2)

        # Still high, no new crossing
        self.service.update(risk.pk, {'impact': 4})
        self.assertEqual(notify.call_count, 2)

    def test_patch_without_ratings_keeps_score(self):
        risk = create_risk(self.owner, likelihood=3, impact=4)
        updated = self.service.update(risk.pk, {'title': 'New title', 'status': 'assessed'})
        self.assertEqual(updated.risk_score, Decimal('12.0'))
        self.assertEqual(updated.status, 'assessed')

    def test_any_status_may_be_set(self):
        risk = create_risk(self.owner)
        updated = self.service.update(risk.pk, {'status': Risk.STATUS_CLOSED})
        self.assertEqual(updated.status, Risk.STATUS_CLOSED)

    def test_stranger_cannot_update_or_delete(self):
        risk = create_risk(self.owner)
        service = RiskService(actor_for(self.stranger))
        with self.assertRaises(Forbidden):
            service.update(risk.pk, {'title': 'Hijacked'})
        with self.assertRaises(Forbidden):
            service.delete(risk.pk)
        risk.refresh_from_db()
        self.assertEqual(risk.title, 'Supplier insolvency')

    def test_manager_can_update_any_risk(self):
        risk = create_risk(self.owner)
        updated = RiskService(actor_for(self.manager)).update(risk.pk, {'impact': 5})
        self.assertEqual(updated.risk_score, Decimal('10.0'))

    def test_owner_change_dropped_without_manage_all(self):
        risk = create_risk(self.owner)
        updated = self.service.update(risk.pk, {'owner_id': self.stranger.pk, 'title': 'Kept'})
        self.assertEqual(updated.owner_id, self.owner.pk)
        self.assertEqual(updated.title, 'Kept')

    def test_manager_can_change_owner(self):
        risk = create_risk(self.owner)
        updated = RiskService(actor_for(self.manager)).update(risk.pk, {'owner_id': self.stranger.pk})
        self.assertEqual(updated.owner_id, self.stranger.pk)

    def test_unknown_risk(self):
        with self.assertRaises(NotFound):
            self.service.update(12345, {'title': 'Nothing'})

    def test_required_field_cannot_be_cleared(self):
        risk = create_risk(self.owner)
        with self.assertRaises(ValidationFailed) as ctx:
            self.service.update(risk.pk, {'title': ''})
        self.assertIn('title', ctx.exception.errors)

    def test_stale_version_conflicts(self):
        risk = create_risk(self.owner)
        self.service.update(risk.pk, {'title': 'First edit', 'version': 1})
        with self.assertRaises(ConflictState):
            self.service.update(risk.pk, {'title': 'Second edit', 'version': 1})
        risk.refresh_from_db()
        self.assertEqual(risk.title, 'First edit')
        self.assertEqual(risk.version, 2)

    def edit_after_check(self, risk, **changes):
        """Land another write on the risk right after the service checks the version."""
        real_check = check_version

        def check_then_edit(instance, expected):
            real_check(instance, expected)
            Risk.objects.filter(pk=risk.pk).update(version=F('version') + 1, **changes)

        return mock.patch('risks.services.risk_service.check_version', side_effect=check_then_edit)

    def test_write_landing_after_version_check_conflicts(self):
        risk = create_risk(self.owner)
        with self.edit_after_check(risk, title='Edited elsewhere'):
            with self.assertRaises(ConflictState):
                self.service.update(risk.pk, {'notes': 'Mine', 'version': 1})
        risk.refresh_from_db()
        self.assertIsNone(risk.notes)

    def test_unversioned_update_writes_only_patched_fields(self):
        risk = create_risk(self.owner)
        with self.edit_after_check(risk, title='Edited elsewhere'):
            updated = self.service.update(risk.pk, {'notes': 'Mine', 'likelihood': 2})
        self.assertEqual(updated.version, 3)
        risk.refresh_from_db()
        self.assertEqual(risk.title, 'Edited elsewhere')
        self.assertEqual(risk.notes, 'Mine')
        self.assertEqual(risk.likelihood, 2)


class RiskDeleteRestoreTests(TestCase):

    def setUp(self):
        self.owner = create_role_user('olivia', 'Risk Owner')
        self.service = RiskService(actor_for(self.owner))

    def test_delete_is_soft(self):
        risk = create_risk(self.owner)
        self.service.delete(risk.pk)
        self.assertFalse(Risk.objects.filter(pk=risk.pk).exists())
        self.assertIsNotNone(Risk.all_objects.get(pk=risk.pk).deleted_at)
        with self.assertRaises(NotFound):
            self.service.get(risk.pk)

    def test_restore(self):
        risk = create_risk(self.owner)
        self.service.delete(risk.pk)
        restored = self.service.restore(risk.pk)
        self.assertFalse(restored.is_deleted)
        self.assertEqual(self.service.get(risk.pk).pk, risk.pk)

    def test_restore_live_risk_conflicts(self):
        risk = create_risk(self.owner)
        with self.assertRaises(ConflictState):
            self.service.restore(risk.pk)


class RiskListTests(TestCase):

    def setUp(self):
        self.owner = create_role_user('olivia', 'Risk Owner')
        self.other = create_role_user('sam', 'Risk Owner')
        self.manager = create_role_user('morgan', 'Risk Manager')
        self.low = create_risk(self.owner, likelihood=1, impact=2, category='financial')
        self.high = create_risk(self.owner, likelihood=5, impact=5, category='operational')
        self.others = create_risk(self.other, likelihood=3, impact=3, category='financial')

    def test_owner_sees_only_own_risks(self):
        risks = RiskService(actor_for(self.owner)).list()
        self.assertEqual(set(risks), {self.low, self.high})

    def test_user_without_risks_gets_empty_list(self):
        newcomer = create_user('nina', Capability.VIEW_RISKS)
        self.assertEqual(list(RiskService(actor_for(newcomer)).list()), [])

    def test_manager_sees_everything_and_filters_by_owner(self):
        service = RiskService(actor_for(self.manager))
        self.assertEqual(service.list().count(), 3)
        self.assertEqual(list(service.list({'owner_id': str(self.other.pk)})), [self.others])

    def test_owner_filter_ignored_for_owners(self):
        risks = RiskService(actor_for(self.owner)).list({'owner_id': str(self.other.pk)})
        self.assertEqual(set(risks), {self.low, self.high})

    def test_filters(self):
        service = RiskService(actor_for(self.manager))
        self.assertEqual(set(service.list({'category': 'financial'})), {self.low, self.others})
        self.assertEqual(list(service.list({'risk_level': 'high'})), [self.high])
        self.assertEqual(list(service.list({'risk_level': 'medium'})), [self.others])
        self.assertEqual(service.list({'status': 'closed'}).count(), 0)

    def test_sorting(self):
        service = RiskService(actor_for(self.manager))
        ordered = list(service.list({'sort_by': 'risk_score', 'sort_order': 'asc'}))
        self.assertEqual(ordered, [self.low, self.others, self.high])

    def test_unknown_sort_field(self):
        with self.assertRaises(ValidationFailed):
            RiskService(actor_for(self.manager)).list({'sort_by': 'password'})

    def test_deleted_risks_hidden(self):
        self.high.delete()
        self.assertEqual(list(RiskService(actor_for(self.owner)).list()), [self.low])

    def test_get_forbidden_for_stranger(self):
        with self.assertRaises(Forbidden):
            RiskService(actor_for(self.other)).get(self.high.pk)
