# Database Models
from datetime import datetime

from extensions import db


class Participant(db.Model):
    __tablename__ = 'participant'

    id = db.Column('participantid', db.Integer, primary_key=True)
    email = db.Column('participantemail', db.String(255))
    first_name = db.Column('participantfirstname', db.String(100))
    last_name = db.Column('participantlastname', db.String(100))
    dob = db.Column('participantdob', db.Date)
    role = db.Column('participantrole', db.String(30), default='participant')
    phone = db.Column('participantphone', db.String(30))
    city = db.Column('participantcity', db.String(100))
    state = db.Column('participantstate', db.String(50))
    zip_code = db.Column('participantzip', db.String(20))
    affiliation_type = db.Column('participantaffiliationtype', db.String(50))
    affiliation_name = db.Column('participantaffiliationname', db.String(200))
    field_of_interest = db.Column('participantfieldofinterest', db.String(20))  # arts, stem or both
    total_donations = db.Column('totaldonations', db.Float, default=0.0)

    surveys = db.relationship('Survey', backref='participant', lazy='dynamic')
    milestones = db.relationship('Milestone', backref='participant', lazy='dynamic')
    donations = db.relationship('Donation', backref='participant', lazy='dynamic')

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column('userid', db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False, unique=True)
    password = db.Column(db.String(255), nullable=False)  # bcrypt hash; legacy rows hold plaintext
    level = db.Column(db.String(20), nullable=False, default='user')
    participant_id = db.Column('participantid', db.Integer, db.ForeignKey('participant.participantid'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    participant = db.relationship('Participant', backref=db.backref('user', uselist=False))


class EventTemplate(db.Model):
    __tablename__ = 'eventtemplate'

    id = db.Column('eventtemplateid', db.Integer, primary_key=True)
    name = db.Column('eventname', db.String(200), nullable=False)
    event_type = db.Column('eventtype', db.String(50))
    description = db.Column('eventdescription', db.Text)
    recurrence_pattern = db.Column('eventrecurrencepattern', db.String(50))
    default_capacity = db.Column('eventdefaultcapacity', db.Integer)

    occurrences = db.relationship('EventOccurrence', backref='template', lazy='dynamic')


class EventOccurrence(db.Model):
    __tablename__ = 'eventoccurrence'

    id = db.Column('eventoccurrenceid', db.Integer, primary_key=True)
    template_id = db.Column('eventtemplateid', db.Integer, db.ForeignKey('eventtemplate.eventtemplateid'), nullable=False)
    name = db.Column('eventname', db.String(200))  # Falls back to the template name
    start_at = db.Column('eventdatetimestart', db.DateTime, nullable=False)
    end_at = db.Column('eventdatetimeend', db.DateTime)
    location = db.Column('eventlocation', db.String(200))
    capacity = db.Column('eventcapacity', db.Integer)
    registration_deadline = db.Column('eventregistrationdeadline', db.DateTime)

    surveys = db.relationship('Survey', backref='event', lazy='dynamic')

    @property
    def display_name(self):
        if self.name:
            return self.name
        return self.template.name if self.template else f'Event #{self.id}'


class Survey(db.Model):
    __tablename__ = 'survey'

    # Allocated by id_allocation.insert_with_next_id, never by the database
    id = db.Column('surveyid', db.Integer, primary_key=True, autoincrement=False)
    participant_id = db.Column('participantid', db.Integer, db.ForeignKey('participant.participantid'), nullable=False)
    event_occurrence_id = db.Column('eventoccurrenceid', db.Integer, db.ForeignKey('eventoccurrence.eventoccurrenceid'), nullable=False)
    satisfaction = db.Column('surveysatisfactionscore', db.Integer, nullable=False)
    usefulness = db.Column('surveyusefulnessscore', db.Integer, nullable=False)
    instructor = db.Column('surveyinstructorscore', db.Integer, nullable=False)
    recommendation = db.Column('surveyrecommendationscore', db.Integer, nullable=False)
    overall = db.Column('surveyoverallscore', db.Float, nullable=False)
    category = db.Column('surveynpsbucket', db.String(20), nullable=False)
    comments = db.Column('surveycomments', db.Text)
    submitted_at = db.Column('surveysubmissiondate', db.DateTime, default=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('participantid', 'eventoccurrenceid', name='unique_survey_participant_event'),
    )


class Donation(db.Model):
    __tablename__ = 'donation'

    id = db.Column('donationid', db.Integer, primary_key=True, autoincrement=False)
    participant_id = db.Column('participantid', db.Integer, db.ForeignKey('participant.participantid'), nullable=True)
    donor_name = db.Column('donorname', db.String(200))  # Used when no participant is linked
    amount = db.Column('donationamount', db.Float, nullable=False)
    donation_date = db.Column('donationdate', db.Date, nullable=False)

    @property
    def display_donor(self):
        if self.participant is not None and self.participant.full_name:
            return self.participant.full_name
        return self.donor_name or 'Anonymous'


class Milestone(db.Model):
    __tablename__ = 'milestone'

    id = db.Column('milestoneid', db.Integer, primary_key=True)
    participant_id = db.Column('participantid', db.Integer, db.ForeignKey('participant.participantid'), nullable=False)
    title = db.Column('milestonetitle', db.String(200), nullable=False)
    milestone_date = db.Column('milestonedate', db.Date)
