from app_models import Participant, User
from extensions import db
from identity import CurrentUser, Role, normalize_role
from security import check_password, hash_password

import unittest

from tests.base import AppTestCase


class RoleTest(unittest.TestCase):

    def test_normalize_role(self):
        self.assertIs(normalize_role('a'), Role.ADMIN)
        self.assertIs(normalize_role('Admin'), Role.ADMIN)
        self.assertIs(normalize_role('m'), Role.MANAGER)
        self.assertIs(normalize_role('manager'), Role.MANAGER)
        self.assertIs(normalize_role('u'), Role.USER)
        self.assertIs(normalize_role(None), Role.USER)
        self.assertIs(normalize_role('superuser'), Role.USER)
        self.assertIs(normalize_role(Role.MANAGER), Role.MANAGER)

    def test_current_user_permissions(self):
        admin = CurrentUser(1, 'root', Role.ADMIN, None)
        manager = CurrentUser(2, 'boss', Role.MANAGER, None)
        user = CurrentUser(3, 'kid', Role.USER, 9)
        self.assertTrue(admin.is_manager and admin.is_admin)
        self.assertTrue(manager.is_manager)
        self.assertFalse(manager.is_admin)
        self.assertFalse(user.is_manager)


class PasswordTest(unittest.TestCase):

    def test_bcrypt_round_trip(self):
        stored = hash_password('s3cret')
        self.assertTrue(stored.startswith('$2'))
        self.assertTrue(check_password(stored, 's3cret'))
        self.assertFalse(check_password(stored, 'wrong'))

    def test_legacy_plaintext(self):
        self.assertTrue(check_password('plain', 'plain'))
        self.assertFalse(check_password('plain', 'Plain'))
        self.assertFalse(check_password(None, 'x'))


class LoginTest(AppTestCase):

    def test_login_and_logout(self):
        self.make_user(username='maria', password='secret')
        response = self.client.post('/login', data={'username': 'maria', 'password': 'secret'})
        self.assertEqual(response.status_code, 302)
        with self.client.session_transaction() as sess:
            self.assertEqual(sess['user']['username'], 'maria')
            self.assertEqual(sess['user']['role'], 'user')

        self.client.post('/logout')
        with self.client.session_transaction() as sess:
            self.assertNotIn('user', sess)

    def test_legacy_plaintext_account_can_log_in(self):
        db.session.add(User(username='old', password='letmein', level='m'))
        db.session.commit()
        self.client.post('/login', data={'username': 'old', 'password': 'letmein'})
        with self.client.session_transaction() as sess:
            self.assertEqual(sess['user']['role'], 'manager')

    def test_bad_password(self):
        self.make_user(username='maria', password='secret')
        response = self.client.post('/login', data={'username': 'maria', 'password': 'nope'})
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'Invalid username or password', response.data)

    def test_legacy_register_path_redirects(self):
        response = self.client.get('/login/register')
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers['Location'].endswith('/register'))


class RegisterTest(AppTestCase):

    def form(self, **overrides):
        data = {
            'username': 'newkid',
            'password': 'pw12345',
            'confirm_password': 'pw12345',
            'first_name': 'Lucia',
            'last_name': 'Reyes',
            'email': 'lucia@example.org',
            'school_or_job': 'Provo High',
            'city': 'Provo',
            'interest_arts': 'y',
            'interest_stem': 'y',
        }
        data.update(overrides)
        return data

    def test_creates_user_and_participant(self):
        response = self.client.post('/register', data=self.form())
        self.assertIn(b'Your account was created successfully. Please log in.', response.data)

        user = User.query.filter_by(username='newkid').one()
        self.assertEqual(user.level, 'user')
        self.assertTrue(check_password(user.password, 'pw12345'))
        participant = user.participant
        self.assertEqual(participant.full_name, 'Lucia Reyes')
        self.assertEqual(participant.field_of_interest, 'both')
        self.assertEqual(participant.affiliation_name, 'Provo High')

    def test_duplicate_username(self):
        self.make_user(username='newkid')
        response = self.client.post('/register', data=self.form())
        self.assertIn(b'Username already exists.', response.data)
        # The participant row is rolled back with the user
        self.assertEqual(Participant.query.count(), 0)

    def test_password_mismatch(self):
        response = self.client.post('/register', data=self.form(confirm_password='other'))
        self.assertIn(b'Passwords do not match.', response.data)
        self.assertEqual(User.query.count(), 0)


class AccessControlTest(AppTestCase):

    def test_admin_pages_forbidden_for_anonymous_and_users(self):
        response = self.client.get('/admin/participants')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_data(as_text=True), 'Forbidden (manager only)')

        self.login(self.make_user())
        self.assertEqual(self.client.get('/admin/').status_code, 403)
        self.assertEqual(self.client.get('/admin/donations/export.csv').status_code, 403)

    def test_manager_allowed(self):
        self.login_as_manager()
        self.assertEqual(self.client.get('/admin/').status_code, 200)

    def test_demoted_or_removed_manager_loses_access(self):
        manager = self.login_as_manager()
        manager.level = 'user'
        db.session.commit()
        self.assertEqual(self.client.get('/admin/').status_code, 403)

        manager.level = 'manager'
        db.session.commit()
        self.assertEqual(self.client.get('/admin/').status_code, 200)

        db.session.delete(manager)
        db.session.commit()
        self.assertEqual(self.client.get('/admin/').status_code, 403)
        with self.client.session_transaction() as sess:
            self.assertNotIn('user', sess)

    def test_my_account_requires_login(self):
        self.assertEqual(self.client.get('/my-account').status_code, 302)
        participant = self.make_participant()
        self.login(self.make_user(participant=participant))
        response = self.client.get('/my-account')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'Maria Lopez', response.data)
