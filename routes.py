import logging

from flask import Blueprint, current_app, flash, redirect, render_template, url_for

import queries
from errors import PortalError
from forms import DonationForm, SurveyForm, occurrence_choices
from identity import current_identity, login_required
from pagination import CATALOG_PAGE_SIZES, page_request

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    upcoming = queries.list_event_occurrences(upcoming_only=True, page=1, page_size=10)
    return render_template('index.html', title='Ella Rises', upcoming=upcoming.rows[:3])


@main_bp.route('/events')
def events():
    page, page_size = page_request('events', CATALOG_PAGE_SIZES)
    listing = queries.list_event_occurrences(upcoming_only=True, page=page, page_size=page_size)
    return render_template('events.html', title='Events', listing=listing, page_sizes=CATALOG_PAGE_SIZES)


@main_bp.route('/donations', methods=['GET', 'POST'])
def donations():
    user = current_identity()
    form = DonationForm()
    if form.validate_on_submit():
        participant_id = user.participant_id if user else None
        try:
            queries.record_donation(
                amount=form.amount.data,
                donation_date=form.donation_date.data,
                participant_id=participant_id,
                donor_name=form.donor_name.data,
            )
        except PortalError as e:
            flash(e.message, 'error')
        except Exception:
            logger.exception("Donation error")
            flash('We could not record your donation. Please try again.', 'error')
        else:
            flash('Thank you for your donation!', 'success')
            return redirect(url_for('main.donations'))
    return render_template('donations.html', title='Donations', form=form, user=user)


@main_bp.route('/surveys', methods=['GET', 'POST'])
@login_required
def surveys(user):
    window_days = current_app.config['SURVEY_WINDOW_DAYS']
    form = SurveyForm()
    form.event_occurrence_id.choices = occurrence_choices(queries.recent_event_occurrences(window_days))

    if form.validate_on_submit():
        try:
            queries.submit_survey(
                participant_id=user.participant_id,
                event_occurrence_id=form.event_occurrence_id.data,
                satisfaction=form.satisfaction.data,
                usefulness=form.usefulness.data,
                instructor=form.instructor.data,
                recommendation=form.recommendation.data,
                comments=form.comments.data,
                window_days=window_days,
            )
        except PortalError as e:
            flash(e.message, 'error')
        except Exception:
            logger.exception("Survey submission error")
            flash('Could not save your survey. Please try again.', 'error')
        else:
            flash('Thanks for sharing your feedback!', 'success')
            return redirect(url_for('main.surveys'))

    past = queries.participant_surveys(user.participant_id) if user.participant_id else []
    return render_template('surveys.html', title='Surveys', form=form, past_surveys=past, window_days=window_days)


@main_bp.route('/milestones')
def milestones():
    user = current_identity()
    mine = []
    if user and user.participant_id:
        mine = queries.participant_milestones(user.participant_id)
    return render_template('milestones.html', title='Milestones', milestones=mine, user=user)


@main_bp.route('/my-account')
@login_required
def my_account(user):
    participant = None
    if user.participant_id:
        try:
            participant = queries.get_participant(user.participant_id)
        except PortalError:
            participant = None
    return render_template(
        'account.html',
        title='My Account',
        participant=participant,
        surveys=queries.participant_surveys(participant.id) if participant else [],
        donations=queries.participant_donations(participant.id) if participant else [],
        milestones=queries.participant_milestones(participant.id) if participant else [],
    )
