"""Manager screens: dashboard, CRUD listings and CSV exports."""
import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

import queries
from app_models import Donation, Milestone, Participant, Survey
from csv_export import csv_response
from errors import PortalError
from forms import (
    NO_PARTICIPANT,
    AdminDonationForm,
    AdminSurveyForm,
    EventOccurrenceForm,
    EventTemplateForm,
    MilestoneForm,
    ParticipantForm,
    UserForm,
    occurrence_choices,
    participant_choices,
    template_choices,
)
from identity import Role, manager_required, normalize_role
from pagination import CATALOG_PAGE_SIZES, PEOPLE_PAGE_SIZES, page_request
from scoring import DETRACTOR, PASSIVE, PROMOTER

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _list_args(category, allowed_sizes=PEOPLE_PAGE_SIZES):
    page, page_size = page_request(category, allowed_sizes)
    return {
        'search': request.args.get('q', '').strip() or None,
        'sort': request.args.get('sort') or None,
        'page': page,
        'page_size': page_size,
    }


def _render_list(title, listing, columns, endpoint, id_arg, page_sizes=PEOPLE_PAGE_SIZES, **extra):
    return render_template(
        'admin/list.html',
        title=title,
        listing=listing,
        columns=columns,
        endpoint=endpoint,
        endpoint_arg=id_arg,
        page_sizes=page_sizes,
        **extra
    )


def _render_form(title, form, cancel_endpoint):
    return render_template('form.html', title=title, form=form, cancel_url=url_for(cancel_endpoint))


def _attempt(action, what):
    """Run a data access call, flashing the outcome on failure."""
    try:
        action()
        return True
    except PortalError as e:
        flash(e.message, 'error')
    except Exception:
        logger.exception("Failed to %s", what)
        flash(f'Could not {what}. Please try again.', 'error')
    return False


def _optional_participant(value):
    return None if value in (None, NO_PARTICIPANT) else value


# ---------------------------------------------------------------- dashboard

@admin_bp.route('/')
@manager_required
def dashboard(user):
    return render_template(
        'admin/dashboard.html',
        title='Manager Dashboard',
        counts=queries.dashboard_counts(),
        summary=queries.survey_summary(),
        donation_total=queries.donation_total(),
    )


# ------------------------------------------------------------- participants

PARTICIPANT_COLUMNS = [
    ('id', 'ID', 'id'),
    ('full_name', 'Name', 'name'),
    ('email', 'Email', 'email'),
    ('city', 'City', 'city'),
    ('field_of_interest', 'Interest', None),
    ('total_donations', 'Donations', 'donations'),
]


@admin_bp.route('/participants')
@manager_required
def participants(user):
    listing = queries.list_participants(**_list_args('participants'))
    return _render_list(
        'Participants', listing, PARTICIPANT_COLUMNS, 'admin.participants', 'participant_id',
        new_endpoint='admin.new_participant',
        edit_endpoint='admin.edit_participant',
        delete_endpoint='admin.delete_participant',
        export_endpoint='admin.export_participants',
    )


def _participant_fields(form):
    return {name: getattr(form, name).data for name in queries.PARTICIPANT_FIELDS}


@admin_bp.route('/participants/new', methods=['GET', 'POST'])
@manager_required
def new_participant(user):
    form = ParticipantForm()
    if form.validate_on_submit():
        if _attempt(lambda: queries.create_participant(**_participant_fields(form)), 'add participant'):
            flash('Participant added successfully!', 'success')
            return redirect(url_for('admin.participants'))
    return _render_form('Add Participant', form, 'admin.participants')


@admin_bp.route('/participants/<int:participant_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_participant(user, participant_id):
    participant = queries.get_participant(participant_id)
    form = ParticipantForm(obj=participant)
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_participant(participant_id, **_participant_fields(form)),
                    'update participant'):
            flash('Participant updated successfully!', 'success')
            return redirect(url_for('admin.participants'))
    return _render_form(f'Edit {participant.full_name or "Participant"}', form, 'admin.participants')


@admin_bp.route('/participants/<int:participant_id>/delete', methods=['POST'])
@manager_required
def delete_participant(user, participant_id):
    if _attempt(lambda: queries.delete_participant(participant_id), 'delete participant'):
        flash('Participant and related surveys and milestones deleted.', 'success')
    return redirect(url_for('admin.participants'))


@admin_bp.route('/participants/export.csv')
@manager_required
def export_participants(user):
    rows = Participant.query.order_by(Participant.id).all()
    return csv_response(
        'participants.csv',
        ['id', 'first_name', 'last_name', 'email', 'dob', 'phone', 'city', 'state', 'zip',
         'affiliation_type', 'affiliation_name', 'field_of_interest', 'total_donations'],
        [[p.id, p.first_name, p.last_name, p.email, p.dob, p.phone, p.city, p.state, p.zip_code,
          p.affiliation_type, p.affiliation_name, p.field_of_interest, p.total_donations] for p in rows],
    )


# ------------------------------------------------------------------ events

TEMPLATE_COLUMNS = [
    ('id', 'ID', 'id'),
    ('name', 'Name', 'name'),
    ('event_type', 'Type', 'type'),
    ('recurrence_pattern', 'Recurrence', None),
    ('default_capacity', 'Capacity', None),
]

OCCURRENCE_COLUMNS = [
    ('id', 'ID', 'id'),
    ('display_name', 'Event', 'name'),
    ('start_at', 'Starts', 'start'),
    ('location', 'Location', 'location'),
    ('capacity', 'Capacity', None),
]


@admin_bp.route('/event-templates')
@manager_required
def event_templates(user):
    listing = queries.list_event_templates(**_list_args('event_templates', CATALOG_PAGE_SIZES))
    return _render_list(
        'Event Types', listing, TEMPLATE_COLUMNS, 'admin.event_templates', 'template_id',
        page_sizes=CATALOG_PAGE_SIZES,
        new_endpoint='admin.new_event_template',
        edit_endpoint='admin.edit_event_template',
        delete_endpoint='admin.delete_event_template',
    )


def _template_fields(form):
    return {
        'name': form.name.data,
        'event_type': form.event_type.data,
        'description': form.description.data,
        'recurrence_pattern': form.recurrence_pattern.data,
        'default_capacity': form.default_capacity.data,
    }


@admin_bp.route('/event-templates/new', methods=['GET', 'POST'])
@manager_required
def new_event_template(user):
    form = EventTemplateForm()
    if form.validate_on_submit():
        if _attempt(lambda: queries.create_event_template(**_template_fields(form)), 'add event type'):
            flash('Event type added successfully!', 'success')
            return redirect(url_for('admin.event_templates'))
    return _render_form('Add Event Type', form, 'admin.event_templates')


@admin_bp.route('/event-templates/<int:template_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_event_template(user, template_id):
    template = queries.get_event_template(template_id)
    form = EventTemplateForm(obj=template)
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_event_template(template_id, **_template_fields(form)),
                    'update event type'):
            flash('Event type updated successfully!', 'success')
            return redirect(url_for('admin.event_templates'))
    return _render_form(f'Edit {template.name}', form, 'admin.event_templates')


@admin_bp.route('/event-templates/<int:template_id>/delete', methods=['POST'])
@manager_required
def delete_event_template(user, template_id):
    if _attempt(lambda: queries.delete_event_template(template_id), 'delete event type'):
        flash('Event type and its scheduled events deleted.', 'success')
    return redirect(url_for('admin.event_templates'))


@admin_bp.route('/events')
@manager_required
def events(user):
    listing = queries.list_event_occurrences(**_list_args('admin_events', CATALOG_PAGE_SIZES))
    return _render_list(
        'Scheduled Events', listing, OCCURRENCE_COLUMNS, 'admin.events', 'occurrence_id',
        page_sizes=CATALOG_PAGE_SIZES,
        new_endpoint='admin.new_event',
        edit_endpoint='admin.edit_event',
        delete_endpoint='admin.delete_event',
    )


def _occurrence_fields(form):
    return {
        'template_id': form.template_id.data,
        'name': form.name.data,
        'start_at': form.start_at.data,
        'end_at': form.end_at.data,
        'location': form.location.data,
        'capacity': form.capacity.data,
        'registration_deadline': form.registration_deadline.data,
    }


@admin_bp.route('/events/new', methods=['GET', 'POST'])
@manager_required
def new_event(user):
    form = EventOccurrenceForm()
    form.template_id.choices = template_choices()
    if form.validate_on_submit():
        if _attempt(lambda: queries.create_event_occurrence(**_occurrence_fields(form)), 'schedule event'):
            flash('Event scheduled successfully!', 'success')
            return redirect(url_for('admin.events'))
    return _render_form('Schedule Event', form, 'admin.events')


@admin_bp.route('/events/<int:occurrence_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_event(user, occurrence_id):
    occurrence = queries.get_event_occurrence(occurrence_id)
    form = EventOccurrenceForm(obj=occurrence)
    form.template_id.choices = template_choices()
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_event_occurrence(occurrence_id, **_occurrence_fields(form)),
                    'update event'):
            flash('Event updated successfully!', 'success')
            return redirect(url_for('admin.events'))
    return _render_form(f'Edit {occurrence.display_name}', form, 'admin.events')


@admin_bp.route('/events/<int:occurrence_id>/delete', methods=['POST'])
@manager_required
def delete_event(user, occurrence_id):
    if _attempt(lambda: queries.delete_event_occurrence(occurrence_id), 'delete event'):
        flash('Event and its surveys deleted.', 'success')
    return redirect(url_for('admin.events'))


# ----------------------------------------------------------------- surveys

SURVEY_COLUMNS = [
    ('id', 'ID', 'id'),
    ('participant.full_name', 'Participant', None),
    ('event.display_name', 'Event', None),
    ('overall', 'Overall', 'overall'),
    ('recommendation', 'Recommend', 'recommendation'),
    ('category', 'NPS', None),
    ('submitted_at', 'Submitted', 'submitted'),
]


@admin_bp.route('/surveys')
@manager_required
def surveys(user):
    category = request.args.get('category')
    if category not in (PROMOTER, PASSIVE, DETRACTOR):
        category = None
    event_id = request.args.get('event', type=int)
    listing = queries.list_surveys(category=category, event_occurrence_id=event_id, **_list_args('surveys'))
    return _render_list(
        'Surveys', listing, SURVEY_COLUMNS, 'admin.surveys', 'survey_id',
        new_endpoint='admin.new_survey',
        edit_endpoint='admin.edit_survey',
        delete_endpoint='admin.delete_survey',
        export_endpoint='admin.export_surveys',
        summary=queries.survey_summary(event_id),
        categories=(PROMOTER, PASSIVE, DETRACTOR),
        category=category,
    )


def _survey_form(obj=None):
    form = AdminSurveyForm(obj=obj)
    form.participant_id.choices = participant_choices()
    form.event_occurrence_id.choices = occurrence_choices()
    return form


def _survey_fields(form):
    return {
        'participant_id': form.participant_id.data,
        'event_occurrence_id': form.event_occurrence_id.data,
        'satisfaction': form.satisfaction.data,
        'usefulness': form.usefulness.data,
        'instructor': form.instructor.data,
        'recommendation': form.recommendation.data,
        'comments': form.comments.data,
    }


@admin_bp.route('/surveys/new', methods=['GET', 'POST'])
@manager_required
def new_survey(user):
    form = _survey_form()
    if form.validate_on_submit():
        if _attempt(lambda: queries.submit_survey(**_survey_fields(form)), 'add survey'):
            flash('Survey added successfully!', 'success')
            return redirect(url_for('admin.surveys'))
    return _render_form('Add Survey', form, 'admin.surveys')


@admin_bp.route('/surveys/<int:survey_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_survey(user, survey_id):
    survey = queries.get_survey(survey_id)
    form = _survey_form(obj=survey)
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_survey(survey_id, **_survey_fields(form)), 'update survey'):
            flash('Survey updated successfully!', 'success')
            return redirect(url_for('admin.surveys'))
    return _render_form(f'Edit Survey #{survey.id}', form, 'admin.surveys')


@admin_bp.route('/surveys/<int:survey_id>/delete', methods=['POST'])
@manager_required
def delete_survey(user, survey_id):
    if _attempt(lambda: queries.delete_survey(survey_id), 'delete survey'):
        flash('Survey deleted.', 'success')
    return redirect(url_for('admin.surveys'))


@admin_bp.route('/surveys/export.csv')
@manager_required
def export_surveys(user):
    rows = Survey.query.order_by(Survey.id).all()
    return csv_response(
        'surveys.csv',
        ['id', 'participant_id', 'participant', 'event_occurrence_id', 'event', 'satisfaction',
         'usefulness', 'instructor', 'recommendation', 'overall', 'category', 'comments', 'submitted'],
        [[s.id, s.participant_id, s.participant.full_name, s.event_occurrence_id, s.event.display_name,
          s.satisfaction, s.usefulness, s.instructor, s.recommendation, s.overall, s.category,
          s.comments, s.submitted_at] for s in rows],
    )


# --------------------------------------------------------------- donations

DONATION_COLUMNS = [
    ('id', 'ID', 'id'),
    ('display_donor', 'Donor', 'donor'),
    ('amount', 'Amount', 'amount'),
    ('donation_date', 'Date', 'date'),
]


@admin_bp.route('/donations')
@manager_required
def donations(user):
    listing = queries.list_donations(**_list_args('donations'))
    return _render_list(
        'Donations', listing, DONATION_COLUMNS, 'admin.donations', 'donation_id',
        new_endpoint='admin.new_donation',
        edit_endpoint='admin.edit_donation',
        delete_endpoint='admin.delete_donation',
        export_endpoint='admin.export_donations',
        donation_total=queries.donation_total(),
    )


def _donation_form(obj=None):
    form = AdminDonationForm(obj=obj)
    form.participant_id.choices = participant_choices(blank_label='(no participant)')
    if obj is not None and request.method == 'GET' and obj.participant_id is None:
        form.participant_id.data = NO_PARTICIPANT
    return form


def _donation_fields(form):
    return {
        'amount': form.amount.data,
        'donation_date': form.donation_date.data,
        'participant_id': _optional_participant(form.participant_id.data),
        'donor_name': form.donor_name.data,
    }


@admin_bp.route('/donations/new', methods=['GET', 'POST'])
@manager_required
def new_donation(user):
    form = _donation_form()
    if form.validate_on_submit():
        if _attempt(lambda: queries.record_donation(**_donation_fields(form)), 'record donation'):
            flash('Donation recorded successfully!', 'success')
            return redirect(url_for('admin.donations'))
    return _render_form('Record Donation', form, 'admin.donations')


@admin_bp.route('/donations/<int:donation_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_donation(user, donation_id):
    donation = queries.get_donation(donation_id)
    form = _donation_form(obj=donation)
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_donation(donation_id, **_donation_fields(form)), 'update donation'):
            flash('Donation updated successfully!', 'success')
            return redirect(url_for('admin.donations'))
    return _render_form(f'Edit Donation #{donation.id}', form, 'admin.donations')


@admin_bp.route('/donations/<int:donation_id>/delete', methods=['POST'])
@manager_required
def delete_donation(user, donation_id):
    if _attempt(lambda: queries.delete_donation(donation_id), 'delete donation'):
        flash('Donation deleted.', 'success')
    return redirect(url_for('admin.donations'))


@admin_bp.route('/donations/export.csv')
@manager_required
def export_donations(user):
    rows = Donation.query.order_by(Donation.id).all()
    return csv_response(
        'donations.csv',
        ['id', 'participant_id', 'donor', 'amount', 'date'],
        [[d.id, d.participant_id, d.display_donor, d.amount, d.donation_date] for d in rows],
    )


# -------------------------------------------------------------- milestones

MILESTONE_COLUMNS = [
    ('id', 'ID', 'id'),
    ('participant.full_name', 'Participant', None),
    ('title', 'Milestone', 'title'),
    ('milestone_date', 'Date', 'date'),
]


@admin_bp.route('/milestones')
@manager_required
def milestones(user):
    listing = queries.list_milestones(**_list_args('milestones'))
    return _render_list(
        'Manage Milestones', listing, MILESTONE_COLUMNS, 'admin.milestones', 'milestone_id',
        new_endpoint='admin.new_milestone',
        edit_endpoint='admin.edit_milestone',
        delete_endpoint='admin.delete_milestone',
        export_endpoint='admin.export_milestones',
    )


def _milestone_form(obj=None):
    form = MilestoneForm(obj=obj)
    form.participant_id.choices = participant_choices()
    return form


@admin_bp.route('/milestones/new', methods=['GET', 'POST'])
@manager_required
def new_milestone(user):
    form = _milestone_form()
    if form.validate_on_submit():
        if _attempt(lambda: queries.create_milestone(form.participant_id.data, form.title.data,
                                                     form.milestone_date.data), 'add milestone'):
            flash('Milestone added successfully!', 'success')
            return redirect(url_for('admin.milestones'))
    return _render_form('Add Milestone', form, 'admin.milestones')


@admin_bp.route('/milestones/<int:milestone_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_milestone(user, milestone_id):
    milestone = queries.get_milestone(milestone_id)
    form = _milestone_form(obj=milestone)
    if form.validate_on_submit():
        if _attempt(lambda: queries.update_milestone(milestone_id, form.participant_id.data, form.title.data,
                                                     form.milestone_date.data), 'update milestone'):
            flash('Milestone updated successfully!', 'success')
            return redirect(url_for('admin.milestones'))
    return _render_form(f'Edit {milestone.title}', form, 'admin.milestones')


@admin_bp.route('/milestones/<int:milestone_id>/delete', methods=['POST'])
@manager_required
def delete_milestone(user, milestone_id):
    if _attempt(lambda: queries.delete_milestone(milestone_id), 'delete milestone'):
        flash('Milestone deleted.', 'success')
    return redirect(url_for('admin.milestones'))


@admin_bp.route('/milestones/export.csv')
@manager_required
def export_milestones(user):
    rows = Milestone.query.order_by(Milestone.id).all()
    return csv_response(
        'milestones.csv',
        ['id', 'participant_id', 'participant', 'title', 'date'],
        [[m.id, m.participant_id, m.participant.full_name, m.title, m.milestone_date] for m in rows],
    )


# ------------------------------------------------------------------- users

USER_COLUMNS = [
    ('id', 'ID', 'id'),
    ('username', 'Username', 'username'),
    ('level', 'Role', 'level'),
    ('participant.full_name', 'Participant', None),
]


@admin_bp.route('/users')
@manager_required
def users(user):
    listing = queries.list_users(**_list_args('users'))
    return _render_list(
        'Users', listing, USER_COLUMNS, 'admin.users', 'user_id',
        new_endpoint='admin.new_user',
        edit_endpoint='admin.edit_user',
        delete_endpoint='admin.delete_user',
    )


def _user_form(obj=None):
    form = UserForm(obj=obj)
    form.participant_id.choices = participant_choices(blank_label='(no participant)')
    if obj is not None and request.method == 'GET':
        form.password.data = ''
        form.level.data = normalize_role(obj.level).value
        if obj.participant_id is None:
            form.participant_id.data = NO_PARTICIPANT
    return form


def _can_assign(user, level):
    if Role(level) is Role.ADMIN and not user.is_admin:
        flash('Only administrators can grant the admin role.', 'error')
        return False
    return True


@admin_bp.route('/users/new', methods=['GET', 'POST'])
@manager_required
def new_user(user):
    form = _user_form()
    if form.validate_on_submit() and _can_assign(user, form.level.data):
        if _attempt(lambda: queries.create_user(form.username.data, form.password.data, form.level.data,
                                                _optional_participant(form.participant_id.data)), 'add user'):
            flash('User added successfully!', 'success')
            return redirect(url_for('admin.users'))
    return _render_form('Add User', form, 'admin.users')


@admin_bp.route('/users/<int:user_id>/edit', methods=['GET', 'POST'])
@manager_required
def edit_user(user, user_id):
    account = queries.get_user(user_id)
    if normalize_role(account.level) is Role.ADMIN and not user.is_admin:
        flash('Only administrators can edit administrator accounts.', 'error')
        return redirect(url_for('admin.users'))
    form = _user_form(obj=account)
    if form.validate_on_submit() and _can_assign(user, form.level.data):
        if _attempt(lambda: queries.update_user(user_id, form.username.data, form.level.data,
                                                form.password.data,
                                                _optional_participant(form.participant_id.data)), 'update user'):
            flash('User updated successfully!', 'success')
            return redirect(url_for('admin.users'))
    return _render_form(f'Edit {account.username}', form, 'admin.users')


@admin_bp.route('/users/<int:user_id>/delete', methods=['POST'])
@manager_required
def delete_user(user, user_id):
    account = queries.get_user(user_id)
    if normalize_role(account.level) is Role.ADMIN and not user.is_admin:
        flash('Only administrators can delete administrator accounts.', 'error')
        return redirect(url_for('admin.users'))
    if _attempt(lambda: queries.delete_user(user_id, acting_user_id=user.id), 'delete user'):
        flash('User deleted.', 'success')
    return redirect(url_for('admin.users'))
