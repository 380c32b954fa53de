from datetime import datetime, timedelta
from unittest import mock

import id_allocation
import queries
from app_models import Survey
from errors import DuplicateError, ResourceExhausted, ValidationError
from extensions import db
from scoring import DETRACTOR, PROMOTER

from tests.base import AppTestCase

NOW = datetime(2024, 6, 15, 12, 0)


class SubmitSurveyTest(AppTestCase):

    def setUp(self):
        super().setUp()
        self.participant = self.make_participant(id=7)
        self.event = self.make_event(id=42, start_at=NOW - timedelta(days=3))

    def submit(self, participant_id=7, event_id=42, scores=(5, 4, 3, 4), **kwargs):
        return queries.submit_survey(participant_id, event_id, *scores, now=NOW, **kwargs)

    def test_stores_derived_fields(self):
        survey = self.submit(comments='  Loved it ')
        stored = db.session.get(Survey, survey.id)
        self.assertEqual(stored.id, 1)
        self.assertEqual(stored.overall, 4.0)
        self.assertEqual(stored.category, PROMOTER)
        self.assertEqual(stored.comments, 'Loved it')
        self.assertEqual(stored.submitted_at, NOW)

    def test_second_survey_for_same_event_rejected(self):
        self.submit()
        with self.assertRaises(DuplicateError) as ctx:
            self.submit(scores=(1, 1, 1, 1))
        self.assertEqual(ctx.exception.message, 'A survey has already been submitted for this event.')
        self.assertEqual(Survey.query.count(), 1)

    def test_duplicate_found_during_id_retry(self):
        # The pair check passes, then the insert collides with a row another writer just stored
        with mock.patch.object(queries, '_ensure_no_survey', side_effect=[None, DuplicateError('dup')]):
            self.make_survey(self.participant, self.event, survey_id=1)
            db.session.expunge_all()
            with self.assertRaises(DuplicateError):
                self.submit()

    def test_ids_continue_from_max(self):
        other_event = self.make_event(start_at=NOW - timedelta(days=1))
        self.make_survey(self.participant, other_event, survey_id=10)
        survey = self.submit()
        self.assertEqual(survey.id, 11)

    def test_allocation_exhausted(self):
        other = [self.make_event(start_at=NOW - timedelta(days=1)) for _ in range(3)]
        for survey_id, event in zip((11, 12, 13), other):
            self.make_survey(self.participant, event, survey_id=survey_id)
        db.session.expunge_all()
        with mock.patch.object(id_allocation, '_max_id', return_value=10):
            with self.assertRaises(ResourceExhausted):
                self.submit()
        self.assertEqual(Survey.query.count(), 3)

    def test_missing_participant_or_event(self):
        with self.assertRaises(ValidationError):
            self.submit(participant_id=None)
        with self.assertRaises(ValidationError):
            self.submit(participant_id=999)
        with self.assertRaises(ValidationError):
            self.submit(event_id=999)

    def test_invalid_scores_rejected_before_lookup(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(participant_id=None, scores=(5, 5, 5, 'x'))
        self.assertEqual(ctx.exception.message, 'Recommendation score must be a number.')

    def test_window_applies_to_user_submissions(self):
        old_event = self.make_event(start_at=NOW - timedelta(days=45))
        with self.assertRaises(ValidationError):
            self.submit(event_id=old_event.id, window_days=30)

        future_event = self.make_event(start_at=NOW + timedelta(days=2))
        with self.assertRaises(ValidationError) as ctx:
            self.submit(event_id=future_event.id, window_days=30)
        self.assertEqual(ctx.exception.message, 'Surveys open once the event has taken place.')

        # Managers enter surveys without a window
        survey = self.submit(event_id=old_event.id)
        self.assertEqual(survey.event_occurrence_id, old_event.id)


class SurveyEditTest(AppTestCase):

    def test_update_rescores(self):
        participant = self.make_participant()
        event = self.make_event()
        survey = self.make_survey(participant, event, survey_id=5)
        queries.update_survey(survey.id, participant.id, event.id, 2, 2, 2, 1)
        stored = db.session.get(Survey, 5)
        self.assertEqual(stored.overall, 1.75)
        self.assertEqual(stored.category, DETRACTOR)

    def test_update_cannot_create_duplicate_pair(self):
        participant = self.make_participant()
        first, second = self.make_event(), self.make_event()
        self.make_survey(participant, first, survey_id=1)
        survey = self.make_survey(participant, second, survey_id=2)
        with self.assertRaises(DuplicateError):
            queries.update_survey(survey.id, participant.id, first.id, 3, 3, 3, 3)

    def test_summary_by_event(self):
        a, b = self.make_participant(), self.make_participant(first_name='Ana')
        event = self.make_event()
        self.make_survey(a, event, survey_id=1)
        self.make_survey(b, event, survey_id=2, recommendation=1, overall=2.0, category=DETRACTOR)
        summary = queries.survey_summary(event.id)
        self.assertEqual(summary.count, 2)
        self.assertEqual(summary.nps, 0.0)
        self.assertEqual(queries.survey_summary(event.id + 1).count, 0)


class SurveyPageTest(AppTestCase):

    def setUp(self):
        super().setUp()
        self.participant = self.make_participant()
        self.user = self.make_user(participant=self.participant)
        self.event = self.make_event(start_at=datetime.now() - timedelta(days=1))

    def post_survey(self, **overrides):
        data = {
            'event_occurrence_id': self.event.id,
            'satisfaction': 5,
            'usefulness': 4,
            'instructor': 3,
            'recommendation': 4,
            'comments': 'Great mentors',
        }
        data.update(overrides)
        return self.client.post('/surveys', data=data, follow_redirects=True)

    def test_requires_login(self):
        response = self.client.get('/surveys')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login', response.headers['Location'])

    def test_submit_and_duplicate(self):
        self.login(self.user)
        response = self.post_survey()
        self.assertIn(b'Thanks for sharing your feedback!', response.data)
        self.assertEqual(Survey.query.count(), 1)

        response = self.post_survey(recommendation=1)
        self.assertIn(b'A survey has already been submitted for this event.', response.data)
        self.assertEqual(Survey.query.count(), 1)

    def test_account_without_participant(self):
        self.login(self.make_user(username='staff'))
        response = self.post_survey()
        self.assertIn(b'No participant profile is linked to this account.', response.data)
        self.assertEqual(Survey.query.count(), 0)
