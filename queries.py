"""
Data access functions, one per query or mutation.

Mutations commit their own unit of work and roll it back on any error.
Expected failures surface as errors.PortalError subclasses carrying a
message the route can show on the originating form.
"""
import logging
import math
from collections import namedtuple
from contextlib import contextmanager
from datetime import date, datetime, timedelta

from sqlalchemy import func, or_, text
from sqlalchemy.exc import IntegrityError

from app_models import Donation, EventOccurrence, EventTemplate, Milestone, Participant, Survey, User
from errors import DuplicateError, NotFound, ValidationError
from extensions import db
from id_allocation import insert_with_next_id, is_unique_violation
from identity import Role, normalize_role
from pagination import CATALOG_PAGE_SIZES, PEOPLE_PAGE_SIZES, page_query, paginate, resolve_sort
from scoring import score_survey, summarize_scores
from security import check_password, hash_password

logger = logging.getLogger(__name__)

Listing = namedtuple('Listing', ['rows', 'page', 'sort', 'search'])

PARTICIPANT_SORTS = {
    'name': Participant.last_name,
    'first_name': Participant.first_name,
    'email': Participant.email,
    'city': Participant.city,
    'donations': Participant.total_donations,
    'id': Participant.id,
}
TEMPLATE_SORTS = {
    'name': EventTemplate.name,
    'type': EventTemplate.event_type,
    'id': EventTemplate.id,
}
OCCURRENCE_SORTS = {
    'start': EventOccurrence.start_at,
    'name': EventOccurrence.name,
    'location': EventOccurrence.location,
    'id': EventOccurrence.id,
}
SURVEY_SORTS = {
    'submitted': Survey.submitted_at,
    'overall': Survey.overall,
    'recommendation': Survey.recommendation,
    'id': Survey.id,
}
DONATION_SORTS = {
    'date': Donation.donation_date,
    'amount': Donation.amount,
    'donor': Donation.donor_name,
    'id': Donation.id,
}
MILESTONE_SORTS = {
    'date': Milestone.milestone_date,
    'title': Milestone.title,
    'id': Milestone.id,
}
USER_SORTS = {
    'username': User.username,
    'level': User.level,
    'id': User.id,
}


@contextmanager
def unit_of_work():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


LIKE_ESCAPE = '\\'


def _like(search):
    """Substring pattern with the user's own % and _ matched literally."""
    for char in (LIKE_ESCAPE, '%', '_'):
        search = search.replace(char, LIKE_ESCAPE + char)
    return f'%{search}%'


def _listing(query, sorts, sort_key, default_sort, page, page_size, allowed_sizes, search=None):
    sort_state, order = resolve_sort(sort_key, sorts, default_sort)
    total = query.order_by(None).count()
    pg = paginate(total, page, page_size, allowed_sizes)
    rows = page_query(query.order_by(order), pg)
    return Listing(rows, pg, sort_state, search or '')


def _get_or_raise(model, row_id, label):
    row = db.session.get(model, row_id) if row_id is not None else None
    if row is None:
        raise NotFound(f'{label} not found.')
    return row


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ---------------------------------------------------------------- accounts

def find_user_by_username(username):
    return User.query.filter_by(username=username).first()


def authenticate(username, password):
    user = find_user_by_username((username or '').strip())
    if user is None or not check_password(user.password, password):
        logger.info("Failed login for %r", username)
        return None
    return user


def register_account(username, password, first_name=None, last_name=None, email=None, dob=None,
                     school_or_job=None, phone=None, city=None, state=None, zipcode=None,
                     field_of_interest=None):
    """Create a participant profile and a user login for it in one transaction."""
    username = _clean(username)
    if not username:
        raise ValidationError('Username is required.')
    if not password:
        raise ValidationError('Password is required.')

    try:
        with unit_of_work():
            participant = Participant(
                email=_clean(email),
                first_name=_clean(first_name),
                last_name=_clean(last_name),
                dob=dob,
                role='participant',
                phone=_clean(phone),
                city=_clean(city),
                state=_clean(state),
                zip_code=_clean(zipcode),
                affiliation_type='school_or_job' if _clean(school_or_job) else None,
                affiliation_name=_clean(school_or_job),
                field_of_interest=field_of_interest,
                total_donations=0.0,
            )
            db.session.add(participant)
            db.session.flush()
            user = User(
                username=username,
                password=hash_password(password),
                level=Role.USER.value,
                participant_id=participant.id,
            )
            db.session.add(user)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError('Username already exists.')
        raise
    logger.info("Registered account %r (participant %s)", username, participant.id)
    return user


def list_users(search=None, sort=None, page=None, page_size=None):
    query = User.query
    if search:
        query = query.filter(User.username.ilike(_like(search), escape=LIKE_ESCAPE))
    return _listing(query, USER_SORTS, sort, 'username', page, page_size, PEOPLE_PAGE_SIZES, search)


def get_user(user_id):
    return _get_or_raise(User, user_id, 'User')


def create_user(username, password, level=Role.USER.value, participant_id=None):
    username = _clean(username)
    if not username:
        raise ValidationError('Username is required.')
    if not password:
        raise ValidationError('Password is required for new users.')
    if participant_id:
        _get_or_raise(Participant, participant_id, 'Participant')
    try:
        with unit_of_work():
            user = User(
                username=username,
                password=hash_password(password),
                level=normalize_role(level).value,
                participant_id=participant_id or None,
            )
            db.session.add(user)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError('Username already exists.')
        raise
    return user


def update_user(user_id, username, level, password=None, participant_id=None):
    user = get_user(user_id)
    username = _clean(username)
    if not username:
        raise ValidationError('Username is required.')
    if participant_id:
        _get_or_raise(Participant, participant_id, 'Participant')
    try:
        with unit_of_work():
            user.username = username
            user.level = normalize_role(level).value
            user.participant_id = participant_id or None
            if password:
                user.password = hash_password(password)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError('Username already exists.')
        raise
    return user


def delete_user(user_id, acting_user_id=None):
    if acting_user_id is not None and user_id == acting_user_id:
        raise ValidationError('You cannot delete your own account.')
    user = get_user(user_id)
    with unit_of_work():
        db.session.delete(user)
    logger.info("Deleted user %s", user_id)


# ------------------------------------------------------------ participants

def list_participants(search=None, sort=None, page=None, page_size=None):
    query = Participant.query
    if search:
        pattern = _like(search)
        query = query.filter(or_(
            Participant.first_name.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.last_name.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.email.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.city.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    return _listing(query, PARTICIPANT_SORTS, sort, 'name', page, page_size, PEOPLE_PAGE_SIZES, search)


def get_participant(participant_id):
    return _get_or_raise(Participant, participant_id, 'Participant')


PARTICIPANT_FIELDS = (
    'first_name', 'last_name', 'email', 'dob', 'role', 'phone', 'city', 'state',
    'zip_code', 'affiliation_type', 'affiliation_name', 'field_of_interest',
)


def create_participant(**fields):
    participant = Participant(total_donations=0.0)
    _apply_participant_fields(participant, fields)
    with unit_of_work():
        db.session.add(participant)
    return participant


def update_participant(participant_id, **fields):
    participant = get_participant(participant_id)
    with unit_of_work():
        _apply_participant_fields(participant, fields)
    return participant


def _apply_participant_fields(participant, fields):
    for name in PARTICIPANT_FIELDS:
        if name in fields:
            setattr(participant, name, _clean(fields[name]))
    if not participant.role:
        participant.role = 'participant'


def delete_participant(participant_id):
    """Delete a participant with their surveys and milestones.

    Donations are kept; the donor's name is copied onto them first.
    """
    participant = get_participant(participant_id)
    name = participant.full_name or None
    with unit_of_work():
        Survey.query.filter_by(participant_id=participant_id).delete(synchronize_session=False)
        Milestone.query.filter_by(participant_id=participant_id).delete(synchronize_session=False)
        Donation.query.filter_by(participant_id=participant_id).update(
            {Donation.donor_name: func.coalesce(Donation.donor_name, name), Donation.participant_id: None},
            synchronize_session=False,
        )
        User.query.filter_by(participant_id=participant_id).update(
            {User.participant_id: None}, synchronize_session=False
        )
        Participant.query.filter_by(id=participant_id).delete(synchronize_session=False)
    db.session.expunge_all()
    logger.info("Deleted participant %s", participant_id)


def _refresh_total_donations(participant_id):
    participant = db.session.get(Participant, participant_id)
    if participant is None:
        return
    total = db.session.query(func.coalesce(func.sum(Donation.amount), 0.0)).filter(
        Donation.participant_id == participant_id
    ).scalar()
    participant.total_donations = round(float(total), 2)


# ------------------------------------------------------------------ events

def list_event_templates(search=None, sort=None, page=None, page_size=None):
    query = EventTemplate.query
    if search:
        query = query.filter(EventTemplate.name.ilike(_like(search), escape=LIKE_ESCAPE))
    return _listing(query, TEMPLATE_SORTS, sort, 'name', page, page_size, CATALOG_PAGE_SIZES, search)


def get_event_template(template_id):
    return _get_or_raise(EventTemplate, template_id, 'Event type')


def create_event_template(name, event_type=None, description=None, recurrence_pattern=None, default_capacity=None):
    template = EventTemplate(
        name=_clean(name),
        event_type=_clean(event_type),
        description=_clean(description),
        recurrence_pattern=_clean(recurrence_pattern),
        default_capacity=default_capacity,
    )
    if not template.name:
        raise ValidationError('Event name is required.')
    with unit_of_work():
        db.session.add(template)
    return template


def update_event_template(template_id, name, event_type=None, description=None, recurrence_pattern=None,
                          default_capacity=None):
    template = get_event_template(template_id)
    if not _clean(name):
        raise ValidationError('Event name is required.')
    with unit_of_work():
        template.name = _clean(name)
        template.event_type = _clean(event_type)
        template.description = _clean(description)
        template.recurrence_pattern = _clean(recurrence_pattern)
        template.default_capacity = default_capacity
    return template


def delete_event_template(template_id):
    """Delete an event type together with its occurrences and their surveys."""
    get_event_template(template_id)
    occurrence_ids = [row.id for row in EventOccurrence.query.filter_by(template_id=template_id).all()]
    with unit_of_work():
        if occurrence_ids:
            Survey.query.filter(Survey.event_occurrence_id.in_(occurrence_ids)).delete(synchronize_session=False)
            EventOccurrence.query.filter(EventOccurrence.id.in_(occurrence_ids)).delete(synchronize_session=False)
        EventTemplate.query.filter_by(id=template_id).delete(synchronize_session=False)
    db.session.expunge_all()
    logger.info("Deleted event template %s with %s occurrences", template_id, len(occurrence_ids))


def list_event_occurrences(search=None, sort=None, page=None, page_size=None, upcoming_only=False, now=None):
    query = EventOccurrence.query.join(EventTemplate)
    if upcoming_only:
        query = query.filter(EventOccurrence.start_at >= (now or datetime.now()))
    if search:
        pattern = _like(search)
        query = query.filter(or_(
            EventOccurrence.name.ilike(pattern, escape=LIKE_ESCAPE),
            EventTemplate.name.ilike(pattern, escape=LIKE_ESCAPE),
            EventOccurrence.location.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    default_sort = 'start'
    if sort is None and not upcoming_only:
        sort = '-start'
    return _listing(query, OCCURRENCE_SORTS, sort, default_sort, page, page_size, CATALOG_PAGE_SIZES, search)


def get_event_occurrence(occurrence_id):
    return _get_or_raise(EventOccurrence, occurrence_id, 'Event')


def recent_event_occurrences(window_days, now=None):
    """Events that started within the last window_days days, newest first."""
    now = now or datetime.now()
    return EventOccurrence.query.filter(
        EventOccurrence.start_at <= now,
        EventOccurrence.start_at >= now - timedelta(days=window_days),
    ).order_by(EventOccurrence.start_at.desc()).all()


def _check_occurrence_times(start_at, end_at, registration_deadline):
    if start_at is None:
        raise ValidationError('Start time is required.')
    if end_at is not None and end_at < start_at:
        raise ValidationError('An event cannot end before it starts.')
    if registration_deadline is not None and registration_deadline > start_at:
        raise ValidationError('Registration must close before the event starts.')


def create_event_occurrence(template_id, start_at, name=None, end_at=None, location=None, capacity=None,
                            registration_deadline=None):
    template = get_event_template(template_id)
    _check_occurrence_times(start_at, end_at, registration_deadline)
    occurrence = EventOccurrence(
        template_id=template.id,
        name=_clean(name),
        start_at=start_at,
        end_at=end_at,
        location=_clean(location),
        capacity=capacity if capacity is not None else template.default_capacity,
        registration_deadline=registration_deadline,
    )
    with unit_of_work():
        db.session.add(occurrence)
    return occurrence


def update_event_occurrence(occurrence_id, template_id, start_at, name=None, end_at=None, location=None,
                            capacity=None, registration_deadline=None):
    occurrence = get_event_occurrence(occurrence_id)
    get_event_template(template_id)
    _check_occurrence_times(start_at, end_at, registration_deadline)
    with unit_of_work():
        occurrence.template_id = template_id
        occurrence.name = _clean(name)
        occurrence.start_at = start_at
        occurrence.end_at = end_at
        occurrence.location = _clean(location)
        occurrence.capacity = capacity
        occurrence.registration_deadline = registration_deadline
    return occurrence


def delete_event_occurrence(occurrence_id):
    get_event_occurrence(occurrence_id)
    with unit_of_work():
        Survey.query.filter_by(event_occurrence_id=occurrence_id).delete(synchronize_session=False)
        EventOccurrence.query.filter_by(id=occurrence_id).delete(synchronize_session=False)
    db.session.expunge_all()
    logger.info("Deleted event occurrence %s", occurrence_id)


# ----------------------------------------------------------------- surveys

def survey_exists(participant_id, event_occurrence_id, exclude_id=None):
    query = Survey.query.filter_by(participant_id=participant_id, event_occurrence_id=event_occurrence_id)
    if exclude_id is not None:
        query = query.filter(Survey.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _ensure_no_survey(participant_id, event_occurrence_id, exclude_id=None):
    if survey_exists(participant_id, event_occurrence_id, exclude_id):
        raise DuplicateError('A survey has already been submitted for this event.')


def check_survey_window(event, window_days, now=None):
    now = now or datetime.now()
    if event.start_at > now:
        raise ValidationError('Surveys open once the event has taken place.')
    if event.start_at < now - timedelta(days=window_days):
        raise ValidationError(f'Surveys can only be submitted within {window_days} days of the event.')


def _resolve_survey_context(participant_id, event_occurrence_id):
    if not participant_id:
        raise ValidationError('No participant profile is linked to this account.')
    participant = db.session.get(Participant, participant_id)
    if participant is None:
        raise ValidationError('Participant not found.')
    if not event_occurrence_id:
        raise ValidationError('Please choose an event.')
    event = db.session.get(EventOccurrence, event_occurrence_id)
    if event is None:
        raise ValidationError('Event not found.')
    return participant, event


def submit_survey(participant_id, event_occurrence_id, satisfaction, usefulness, instructor, recommendation,
                  comments=None, window_days=None, now=None):
    """Score and store a survey.

    window_days limits user submissions to recent events; managers pass None.
    """
    scores = score_survey(satisfaction, usefulness, instructor, recommendation)
    participant, event = _resolve_survey_context(participant_id, event_occurrence_id)
    if window_days is not None:
        check_survey_window(event, window_days, now)
    _ensure_no_survey(participant.id, event.id)

    def build(new_id):
        return Survey(
            id=new_id,
            participant_id=participant.id,
            event_occurrence_id=event.id,
            satisfaction=scores.satisfaction,
            usefulness=scores.usefulness,
            instructor=scores.instructor,
            recommendation=scores.recommendation,
            overall=scores.overall,
            category=scores.category,
            comments=_clean(comments),
            submitted_at=now or datetime.now(),
        )

    with unit_of_work():
        survey = insert_with_next_id(
            Survey, build, conflict_check=lambda: _ensure_no_survey(participant.id, event.id)
        )
    logger.info("Survey %s stored for participant %s, event %s", survey.id, participant.id, event.id)
    return survey


def list_surveys(search=None, sort=None, page=None, page_size=None, category=None, event_occurrence_id=None):
    query = Survey.query.join(Participant)
    if category:
        query = query.filter(Survey.category == category)
    if event_occurrence_id:
        query = query.filter(Survey.event_occurrence_id == event_occurrence_id)
    if search:
        pattern = _like(search)
        query = query.filter(or_(Participant.first_name.ilike(pattern, escape=LIKE_ESCAPE), Participant.last_name.ilike(pattern, escape=LIKE_ESCAPE)))
    return _listing(query, SURVEY_SORTS, sort or '-submitted', 'submitted', page, page_size, PEOPLE_PAGE_SIZES, search)


def get_survey(survey_id):
    return _get_or_raise(Survey, survey_id, 'Survey')


def participant_surveys(participant_id):
    return Survey.query.filter_by(participant_id=participant_id).order_by(Survey.submitted_at.desc()).all()


def update_survey(survey_id, participant_id, event_occurrence_id, satisfaction, usefulness, instructor,
                  recommendation, comments=None):
    survey = get_survey(survey_id)
    scores = score_survey(satisfaction, usefulness, instructor, recommendation)
    participant, event = _resolve_survey_context(participant_id, event_occurrence_id)
    _ensure_no_survey(participant.id, event.id, exclude_id=survey.id)
    try:
        with unit_of_work():
            survey.participant_id = participant.id
            survey.event_occurrence_id = event.id
            survey.satisfaction = scores.satisfaction
            survey.usefulness = scores.usefulness
            survey.instructor = scores.instructor
            survey.recommendation = scores.recommendation
            survey.overall = scores.overall
            survey.category = scores.category
            survey.comments = _clean(comments)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError('A survey has already been submitted for this event.')
        raise
    return survey


def delete_survey(survey_id):
    survey = get_survey(survey_id)
    with unit_of_work():
        db.session.delete(survey)


def survey_summary(event_occurrence_id=None):
    query = db.session.query(Survey.overall, Survey.category)
    if event_occurrence_id:
        query = query.filter(Survey.event_occurrence_id == event_occurrence_id)
    return summarize_scores(query.all())


# --------------------------------------------------------------- donations

def _positive_amount(amount):
    try:
        amount = round(float(amount), 2)
    except (TypeError, ValueError):
        raise ValidationError('Amount must be a number.')
    if not math.isfinite(amount):
        raise ValidationError('Amount must be a number.')
    if amount <= 0:
        raise ValidationError('Amount must be positive.')
    return amount


def _resolve_donor(participant_id, donor_name):
    participant_id = participant_id or None
    if participant_id is not None:
        _get_or_raise(Participant, participant_id, 'Participant')
    donor_name = _clean(donor_name)
    if participant_id is None and donor_name is None:
        raise ValidationError('Please enter a donor name.')
    return participant_id, donor_name


def record_donation(amount, donation_date=None, participant_id=None, donor_name=None):
    amount = _positive_amount(amount)
    participant_id, donor_name = _resolve_donor(participant_id, donor_name)
    donation_date = donation_date or date.today()

    def build(new_id):
        return Donation(
            id=new_id,
            participant_id=participant_id,
            donor_name=donor_name,
            amount=amount,
            donation_date=donation_date,
        )

    with unit_of_work():
        donation = insert_with_next_id(Donation, build)
        if participant_id is not None:
            _refresh_total_donations(participant_id)
    logger.info("Donation %s recorded (%.2f)", donation.id, amount)
    return donation


def list_donations(search=None, sort=None, page=None, page_size=None):
    query = Donation.query.outerjoin(Participant)
    if search:
        pattern = _like(search)
        query = query.filter(or_(
            Donation.donor_name.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.first_name.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.last_name.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    return _listing(query, DONATION_SORTS, sort or '-date', 'date', page, page_size, PEOPLE_PAGE_SIZES, search)


def get_donation(donation_id):
    return _get_or_raise(Donation, donation_id, 'Donation')


def update_donation(donation_id, amount, donation_date, participant_id=None, donor_name=None):
    donation = get_donation(donation_id)
    amount = _positive_amount(amount)
    participant_id, donor_name = _resolve_donor(participant_id, donor_name)
    previous_participant = donation.participant_id
    with unit_of_work():
        donation.amount = amount
        donation.donation_date = donation_date or donation.donation_date
        donation.participant_id = participant_id
        donation.donor_name = donor_name
        db.session.flush()
        for pid in {previous_participant, participant_id} - {None}:
            _refresh_total_donations(pid)
    return donation


def delete_donation(donation_id):
    donation = get_donation(donation_id)
    participant_id = donation.participant_id
    with unit_of_work():
        db.session.delete(donation)
        db.session.flush()
        if participant_id is not None:
            _refresh_total_donations(participant_id)


def donation_total():
    return round(float(db.session.query(func.coalesce(func.sum(Donation.amount), 0.0)).scalar()), 2)


def participant_donations(participant_id):
    return Donation.query.filter_by(participant_id=participant_id).order_by(Donation.donation_date.desc()).all()


# -------------------------------------------------------------- milestones

def list_milestones(search=None, sort=None, page=None, page_size=None):
    query = Milestone.query.join(Participant)
    if search:
        pattern = _like(search)
        query = query.filter(or_(
            Milestone.title.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.first_name.ilike(pattern, escape=LIKE_ESCAPE),
            Participant.last_name.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    return _listing(query, MILESTONE_SORTS, sort or '-date', 'date', page, page_size, PEOPLE_PAGE_SIZES, search)


def participant_milestones(participant_id):
    return Milestone.query.filter_by(participant_id=participant_id).order_by(
        Milestone.milestone_date.desc()
    ).all()


def get_milestone(milestone_id):
    return _get_or_raise(Milestone, milestone_id, 'Milestone')


def create_milestone(participant_id, title, milestone_date=None):
    get_participant(participant_id)
    if not _clean(title):
        raise ValidationError('Milestone title is required.')
    milestone = Milestone(participant_id=participant_id, title=_clean(title), milestone_date=milestone_date)
    with unit_of_work():
        db.session.add(milestone)
    return milestone


def update_milestone(milestone_id, participant_id, title, milestone_date=None):
    milestone = get_milestone(milestone_id)
    get_participant(participant_id)
    if not _clean(title):
        raise ValidationError('Milestone title is required.')
    with unit_of_work():
        milestone.participant_id = participant_id
        milestone.title = _clean(title)
        milestone.milestone_date = milestone_date
    return milestone


def delete_milestone(milestone_id):
    milestone = get_milestone(milestone_id)
    with unit_of_work():
        db.session.delete(milestone)


# --------------------------------------------------------------- dashboard

def dashboard_counts():
    return {
        'participants': Participant.query.count(),
        'events': EventOccurrence.query.count(),
        'surveys': Survey.query.count(),
        'donations': Donation.query.count(),
        'milestones': Milestone.query.count(),
        'users': User.query.count(),
    }


def ping_database():
    db.session.execute(text("SELECT 1"))
