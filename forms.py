import math
from datetime import date

from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    DateField,
    DateTimeLocalField,
    FloatField,
    IntegerField,
    PasswordField,
    SelectField,
    StringField,
    TextAreaField,
)
from wtforms.validators import DataRequired, EqualTo, InputRequired, Length, NumberRange, Optional, StopValidation

from app_models import EventOccurrence, EventTemplate, Participant
from identity import Role

SCORE_CHOICES = [(n, str(n)) for n in range(1, 6)]
NO_PARTICIPANT = 0


def finite_number(form, field):
    # float() accepts 'inf' and 'nan'
    if field.data is not None and not math.isfinite(field.data):
        raise StopValidation('Amount must be a number.')


def participant_choices(blank_label=None):
    participants = Participant.query.order_by(Participant.last_name, Participant.first_name).all()
    choices = [(p.id, f'{p.full_name or "(no name)"} (#{p.id})') for p in participants]
    if blank_label:
        choices.insert(0, (NO_PARTICIPANT, blank_label))
    return choices


def template_choices():
    return [(t.id, t.name) for t in EventTemplate.query.order_by(EventTemplate.name).all()]


def occurrence_choices(occurrences=None):
    if occurrences is None:
        occurrences = EventOccurrence.query.order_by(EventOccurrence.start_at.desc()).all()
    return [(e.id, f'{e.display_name} ({e.start_at:%Y-%m-%d})') for e in occurrences]


class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


class RegisterForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(message='Username is required.'), Length(max=100)])
    password = PasswordField('Password', validators=[DataRequired(message='Password is required.')])
    confirm_password = PasswordField(
        'Confirm password', validators=[EqualTo('password', message='Passwords do not match.')]
    )
    first_name = StringField('First name', validators=[Optional(), Length(max=100)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=100)])
    email = StringField('Email', validators=[Optional(), Length(max=255)])
    dob = DateField('Date of birth', validators=[Optional()])
    school_or_job = StringField('School or employer', validators=[Optional(), Length(max=200)])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    state = StringField('State', validators=[Optional(), Length(max=50)])
    zipcode = StringField('Zip code', validators=[Optional(), Length(max=20)])
    interest_arts = BooleanField('Arts')
    interest_stem = BooleanField('STEM')
    interest_both = BooleanField('Both')

    def field_of_interest(self):
        if self.interest_both.data or (self.interest_arts.data and self.interest_stem.data):
            return 'both'
        if self.interest_arts.data:
            return 'arts'
        if self.interest_stem.data:
            return 'stem'
        return None


class SurveyForm(FlaskForm):
    event_occurrence_id = SelectField('Event', coerce=int, validators=[InputRequired()])
    satisfaction = SelectField('Overall satisfaction', coerce=int, choices=SCORE_CHOICES, validators=[InputRequired()])
    usefulness = SelectField('Usefulness', coerce=int, choices=SCORE_CHOICES, validators=[InputRequired()])
    instructor = SelectField('Instructor', coerce=int, choices=SCORE_CHOICES, validators=[InputRequired()])
    recommendation = SelectField('Would recommend', coerce=int, choices=SCORE_CHOICES, validators=[InputRequired()])
    comments = TextAreaField('Comments', validators=[Optional(), Length(max=2000)])


class AdminSurveyForm(SurveyForm):
    participant_id = SelectField('Participant', coerce=int, validators=[InputRequired()])


class ParticipantForm(FlaskForm):
    first_name = StringField('First name', validators=[DataRequired(), Length(max=100)])
    last_name = StringField('Last name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[Optional(), Length(max=255)])
    dob = DateField('Date of birth', validators=[Optional()])
    role = SelectField('Role', choices=[('participant', 'Participant'), ('volunteer', 'Volunteer'), ('mentor', 'Mentor')])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    state = StringField('State', validators=[Optional(), Length(max=50)])
    zip_code = StringField('Zip code', validators=[Optional(), Length(max=20)])
    affiliation_type = StringField('Affiliation type', validators=[Optional(), Length(max=50)])
    affiliation_name = StringField('Affiliation', validators=[Optional(), Length(max=200)])
    field_of_interest = SelectField(
        'Field of interest',
        choices=[('', '(none)'), ('arts', 'Arts'), ('stem', 'STEM'), ('both', 'Both')],
        validators=[Optional()],
    )


class EventTemplateForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    event_type = StringField('Type', validators=[Optional(), Length(max=50)])
    description = TextAreaField('Description', validators=[Optional()])
    recurrence_pattern = StringField('Recurrence', validators=[Optional(), Length(max=50)])
    default_capacity = IntegerField('Default capacity', validators=[Optional(), NumberRange(min=0)])


class EventOccurrenceForm(FlaskForm):
    template_id = SelectField('Event type', coerce=int, validators=[InputRequired()])
    name = StringField('Name', validators=[Optional(), Length(max=200)])
    start_at = DateTimeLocalField('Starts', validators=[DataRequired()])
    end_at = DateTimeLocalField('Ends', validators=[Optional()])
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    capacity = IntegerField('Capacity', validators=[Optional(), NumberRange(min=0)])
    registration_deadline = DateTimeLocalField('Registration deadline', validators=[Optional()])


class DonationForm(FlaskForm):
    donor_name = StringField('Your name', validators=[Optional(), Length(max=200)])
    amount = FloatField('Amount', validators=[
        InputRequired(), finite_number, NumberRange(min=0.01, message='Amount must be positive.'),
    ])
    donation_date = DateField('Date', default=date.today, validators=[DataRequired()])


class AdminDonationForm(DonationForm):
    participant_id = SelectField('Participant', coerce=int, default=NO_PARTICIPANT)


class MilestoneForm(FlaskForm):
    participant_id = SelectField('Participant', coerce=int, validators=[InputRequired()])
    title = StringField('Milestone', validators=[DataRequired(), Length(max=200)])
    milestone_date = DateField('Date', validators=[Optional()])


class UserForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=100)])
    password = PasswordField('Password', validators=[Optional()])
    level = SelectField('Role', choices=[(role.value, role.label) for role in Role])
    participant_id = SelectField('Participant', coerce=int, default=NO_PARTICIPANT)
