"""Survey scoring: averages, clamping, NPS buckets and summaries."""
import unittest
from collections import namedtuple

from errors import ValidationError
from scoring import DETRACTOR, PASSIVE, PROMOTER, nps_category, score_survey, summarize_scores

Row = namedtuple('Row', ['overall', 'category'])


class ScoreSurveyTest(unittest.TestCase):

    def test_overall_is_mean_of_four_scores(self):
        scores = score_survey(5, 4, 3, 4)
        self.assertEqual(scores.overall, 4.0)
        self.assertEqual(scores.category, PROMOTER)

    def test_overall_rounded_to_two_places(self):
        self.assertEqual(score_survey(5, 4, 4, 4).overall, 4.25)
        self.assertEqual(score_survey(1, 2, 2, 2).overall, 1.75)

    def test_numeric_strings_accepted(self):
        scores = score_survey('3', '3', '4', '3')
        self.assertEqual((scores.satisfaction, scores.instructor), (3, 4))
        self.assertEqual(scores.category, PASSIVE)

    def test_out_of_range_scores_are_clamped(self):
        scores = score_survey(9, 0, -3, 7)
        self.assertEqual(
            (scores.satisfaction, scores.usefulness, scores.instructor, scores.recommendation),
            (5, 1, 1, 5),
        )
        self.assertEqual(scores.overall, 3.0)

    def test_missing_score_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            score_survey(None, 4, 4, 4)
        self.assertEqual(ctx.exception.message, 'Satisfaction score is required.')

        with self.assertRaises(ValidationError):
            score_survey(4, 4, '  ', 4)

    def test_non_numeric_score_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            score_survey(4, 'great', 4, 4)
        self.assertEqual(ctx.exception.message, 'Usefulness score must be a number.')

        with self.assertRaises(ValidationError):
            score_survey(4, 4, 4, True)

    def test_fractional_score_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            score_survey('4.9', '4.9', '4.9', '3.9')
        self.assertEqual(ctx.exception.message, 'Satisfaction score must be a whole number.')
        self.assertEqual(score_survey('4.0', 4, 4, 4.0).recommendation, 4)


class NpsCategoryTest(unittest.TestCase):

    def test_buckets(self):
        self.assertEqual(nps_category(5), PROMOTER)
        self.assertEqual(nps_category(4), PROMOTER)
        self.assertEqual(nps_category(3), PASSIVE)
        self.assertEqual(nps_category(2), DETRACTOR)
        self.assertEqual(nps_category(1), DETRACTOR)


class SummarizeScoresTest(unittest.TestCase):

    def test_empty(self):
        summary = summarize_scores([])
        self.assertEqual(summary.count, 0)
        self.assertEqual(summary.nps, 0.0)

    def test_nps_is_promoter_share_minus_detractor_share(self):
        rows = [
            Row(5.0, PROMOTER),
            Row(4.5, PROMOTER),
            Row(3.0, PASSIVE),
            Row(1.5, DETRACTOR),
        ]
        summary = summarize_scores(rows)
        self.assertEqual(summary.count, 4)
        self.assertEqual((summary.promoters, summary.passives, summary.detractors), (2, 1, 1))
        self.assertEqual(summary.nps, 25.0)
        self.assertEqual(summary.average_overall, 3.5)
