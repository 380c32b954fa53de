import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

import queries
from errors import PortalError
from forms import LoginForm, RegisterForm
from identity import login_user, logout_user

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    # Never accept credentials from the query string
    if request.method == 'GET' and request.args.get('password'):
        return redirect(url_for('auth.login'))

    form = LoginForm()
    if form.validate_on_submit():
        try:
            user = queries.authenticate(form.username.data, form.password.data)
        except Exception:
            logger.exception("Login error")
            flash('Unexpected error. Please try again.', 'error')
            return render_template('login.html', form=form), 500
        if user is None:
            flash('Invalid username or password', 'error')
            return render_template('login.html', form=form)
        login_user(user)
        logger.info("User %r logged in", user.username)
        return redirect(url_for('main.index'))

    return render_template('login.html', form=form)


@auth_bp.route('/login/register')
def legacy_register():
    return redirect(url_for('auth.register'))


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    form = RegisterForm()
    if form.validate_on_submit():
        try:
            queries.register_account(
                username=form.username.data,
                password=form.password.data,
                first_name=form.first_name.data,
                last_name=form.last_name.data,
                email=form.email.data,
                dob=form.dob.data,
                school_or_job=form.school_or_job.data,
                phone=form.phone.data,
                city=form.city.data,
                state=form.state.data,
                zipcode=form.zipcode.data,
                field_of_interest=form.field_of_interest(),
            )
        except PortalError as e:
            flash(e.message, 'error')
            return render_template('register.html', form=form)
        except Exception:
            logger.exception("Register error")
            flash('Could not create account.', 'error')
            return render_template('register.html', form=form)

        flash('Your account was created successfully. Please log in.', 'success')
        return render_template('login.html', form=LoginForm(formdata=None))

    return render_template('register.html', form=form)


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout():
    logout_user()
    return redirect(url_for('main.index'))
