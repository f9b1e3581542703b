import unittest

from models.user import User
from tests.base import DashboardTestCase


class TestCommands(DashboardTestCase):
    def setUp(self):
        super().setUp()
        self.runner = self.app.test_cli_runner()

    def test_create_user(self):
        result = self.runner.invoke(args=['create-user', 'New@X.com', '--name', 'New Person', '--password', 'pw123456'])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('created', result.output)
        user = User.query.filter_by(email='new@x.com').one()
        self.assertEqual(user.full_name, 'New Person')
        self.assertFalse(user.is_admin)
        self.assertTrue(user.check_password('pw123456'))

    def test_create_admin_updates_existing(self):
        result = self.runner.invoke(args=['create-user', self.user_email, '--password', 'new-pass', '--admin'])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('updated', result.output)
        user = User.query.filter_by(email=self.user_email).one()
        self.assertTrue(user.is_admin)
        self.assertTrue(user.check_password('new-pass'))

    def test_create_user_rejects_bad_email(self):
        result = self.runner.invoke(args=['create-user', 'nobody', '--password', 'pw'])
        self.assertNotEqual(result.exit_code, 0)

    def test_reset_password(self):
        result = self.runner.invoke(args=['reset-password', self.user_email, '--password', 'fresh-pass'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(User.query.filter_by(email=self.user_email).one().check_password('fresh-pass'))

    def test_reset_password_unknown_user(self):
        result = self.runner.invoke(args=['reset-password', 'ghost@x.com', '--password', 'x'])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('No user found', result.output)


if __name__ == '__main__':
    unittest.main()
