"""
Tests for the scoring rules.
"""

from decimal import Decimal

from django.test import SimpleTestCase

from risks import scoring


class ScoreTests(SimpleTestCase):

    def test_score_is_product_within_range(self):
        for likelihood in range(1, 6):
            for impact in range(1, 6):
                value = scoring.score(likelihood, impact)
                self.assertEqual(value, likelihood * impact)
                self.assertTrue(1 <= value <= 25)

    def test_optional_score_needs_both_values(self):
        self.assertEqual(scoring.optional_score(3, 4), 12)
        self.assertIsNone(scoring.optional_score(None, 4))
        self.assertIsNone(scoring.optional_score(3, None))


class LevelTests(SimpleTestCase):

    def test_high_boundary(self):
        self.assertEqual(scoring.level(14), 'medium')
        self.assertEqual(scoring.level(15), 'high')

    def test_medium_boundary(self):
        self.assertEqual(scoring.level(7), 'low')
        self.assertEqual(scoring.level(8), 'medium')

    def test_decimal_scores(self):
        self.assertEqual(scoring.level(Decimal('20.0')), 'high')
        self.assertEqual(scoring.level(Decimal('6.0')), 'low')

    def test_is_high_matches_level(self):
        for likelihood in range(1, 6):
            for impact in range(1, 6):
                value = scoring.score(likelihood, impact)
                self.assertEqual(scoring.is_high(value), scoring.level(value) == 'high')
        self.assertFalse(scoring.is_high(None))

    def test_level_bounds(self):
        self.assertEqual(scoring.level_bounds('high'), (15, None))
        self.assertEqual(scoring.level_bounds('medium'), (8, 14))
        self.assertEqual(scoring.level_bounds('low'), (None, 7))
        self.assertIsNone(scoring.level_bounds('extreme'))


class ImprovementTests(SimpleTestCase):

    def test_improvement_pct(self):
        self.assertEqual(scoring.improvement_pct(20, 10), 50.0)
        self.assertEqual(scoring.improvement_pct(Decimal('12.0'), Decimal('8.0')), 33.33)

    def test_improvement_pct_without_before(self):
        self.assertIsNone(scoring.improvement_pct(None, 5))
        self.assertIsNone(scoring.improvement_pct(0, 5))

    def test_improvement_pct_can_be_negative(self):
        self.assertEqual(scoring.improvement_pct(10, 15), -50.0)

    def test_improvement(self):
        self.assertEqual(scoring.improvement(Decimal('20.0'), Decimal('6.0')), Decimal('14.0'))
        self.assertIsNone(scoring.improvement(None, Decimal('6.0')))


class RatingTests(SimpleTestCase):

    def test_valid_ratings(self):
        for value in range(1, 6):
            self.assertTrue(scoring.is_valid_rating(value))

    def test_invalid_ratings(self):
        for value in (0, 6, -1, '3', 2.5, True, None):
            self.assertFalse(scoring.is_valid_rating(value))
