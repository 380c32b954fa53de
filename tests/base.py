import unittest
from datetime import date, datetime, timedelta

from app import create_app
from app_models import Donation, EventOccurrence, EventTemplate, Milestone, Participant, Survey, User
from config import TestingConfig
from extensions import db
from identity import normalize_role
from security import hash_password


class AppTestCase(unittest.TestCase):
    """Fresh app and in-memory database per test."""

    def setUp(self):
        self.app = create_app(TestingConfig)
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.create_all()
        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    # seeding helpers

    def make_participant(self, first_name='Maria', last_name='Lopez', **fields):
        participant = Participant(
            first_name=first_name,
            last_name=last_name,
            role='participant',
            total_donations=0.0,
            **fields
        )
        db.session.add(participant)
        db.session.commit()
        return participant

    def make_user(self, username='maria', password='secret', level='user', participant=None):
        user = User(
            username=username,
            password=hash_password(password),
            level=level,
            participant_id=participant.id if participant else None,
        )
        db.session.add(user)
        db.session.commit()
        return user

    def make_template(self, name='Robotics Workshop', **fields):
        template = EventTemplate(name=name, **fields)
        db.session.add(template)
        db.session.commit()
        return template

    def make_event(self, template=None, start_at=None, **fields):
        template = template or self.make_template()
        event = EventOccurrence(
            template_id=template.id,
            start_at=start_at or datetime.now() - timedelta(days=2),
            **fields
        )
        db.session.add(event)
        db.session.commit()
        return event

    def make_survey(self, participant, event, survey_id, recommendation=5, overall=5.0, category='Promoter'):
        survey = Survey(
            id=survey_id,
            participant_id=participant.id,
            event_occurrence_id=event.id,
            satisfaction=5,
            usefulness=5,
            instructor=5,
            recommendation=recommendation,
            overall=overall,
            category=category,
        )
        db.session.add(survey)
        db.session.commit()
        return survey

    def make_donation(self, donation_id, amount=25.0, participant=None, donor_name=None):
        donation = Donation(
            id=donation_id,
            participant_id=participant.id if participant else None,
            donor_name=donor_name,
            amount=amount,
            donation_date=date(2024, 5, 1),
        )
        db.session.add(donation)
        db.session.commit()
        return donation

    def make_milestone(self, participant, title='Finished first robot', milestone_date=None):
        milestone = Milestone(participant_id=participant.id, title=title, milestone_date=milestone_date)
        db.session.add(milestone)
        db.session.commit()
        return milestone

    def login(self, user):
        """Put user in the test client's session without going through the form."""
        with self.client.session_transaction() as sess:
            sess['user'] = {
                'id': user.id,
                'username': user.username,
                'role': normalize_role(user.level).value,
                'participant_id': user.participant_id,
            }

    def login_as_manager(self, level='manager'):
        manager = self.make_user(username=f'{level}-account', password='pw', level=level)
        self.login(manager)
        return manager
