import unittest
from unittest.mock import patch

from models.audit_entry import AuditEntry
from routes.dashboard import build_subject
from tests.base import DashboardTestCase
from utils.audit import SEND_EMAIL, SEND_EMAIL_FAILED, log_audit_event
from utils.email_limits import set_user_email_limit
from utils.mail import mail


class TestBuildSubject(unittest.TestCase):
    def test_format(self):
        self.assertEqual(build_subject('UAT4', 'ADD_NEW_LINE'), 'SITE | UAT4 | ADD_NEW_LINE')


class TestDashboardAccess(DashboardTestCase):
    def test_requires_login(self):
        response = self.client.get('/dashboard')
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.get_json()['success'])

    def test_form_data(self):
        self.login()
        data = self.client.get('/dashboard').get_json()
        self.assertEqual(data['user']['email'], self.user_email)
        self.assertEqual(data['environments'], ['UAT1', 'UAT4', 'PROD'])
        self.assertEqual(data['emailsSent'], 0)
        self.assertEqual(data['emailLimit'], 20)
        self.assertEqual(data['limitStatus'], 'ok')


class TestNotify(DashboardTestCase):
    def setUp(self):
        super().setUp()
        self.login()

    def notify(self, **payload):
        with mail.record_messages() as outbox:
            response = self.client.post('/dashboard/notify', json=payload)
        return response, outbox

    def test_sends_to_configured_recipients(self):
        response, outbox = self.notify(environment='UAT4', businessFlow='add_new_line')
        data = response.get_json()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['subject'], 'SITE | UAT4 | ADD_NEW_LINE')
        self.assertEqual(data['emailsSent'], 1)
        self.assertEqual(len(outbox), 1)
        self.assertEqual(outbox[0].subject, 'SITE | UAT4 | ADD_NEW_LINE')
        self.assertEqual(outbox[0].recipients, ['ops@example.com', 'qa@example.com'])
        self.assertEqual(outbox[0].reply_to, self.user_email)

        entry = AuditEntry.query.filter_by(action=SEND_EMAIL).one()
        self.assertEqual(entry.user_email, self.user_email)
        self.assertEqual(entry.details['businessFlow'], 'ADD_NEW_LINE')

    def test_custom_from_email(self):
        response, outbox = self.notify(environment='PROD', businessFlow='PORT_IN', email='Team@X.com')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(outbox[0].reply_to, 'team@x.com')

    def test_unknown_environment(self):
        response, outbox = self.notify(environment='UAT9', businessFlow='PORT_IN')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(outbox, [])

    def test_invalid_flow(self):
        response, _ = self.notify(environment='UAT1', businessFlow='port in!')
        self.assertEqual(response.status_code, 400)

    def test_invalid_from_email(self):
        response, _ = self.notify(environment='UAT1', businessFlow='PORT_IN', email='nobody')
        self.assertEqual(response.status_code, 400)

    def test_no_recipients_configured(self):
        self.app.config['NOTIFICATION_RECIPIENTS'] = []
        response, _ = self.notify(environment='UAT1', businessFlow='PORT_IN')
        self.assertEqual(response.status_code, 500)

    def test_delivery_failure_is_audited(self):
        with patch('routes.dashboard.send_site_notification', side_effect=RuntimeError('smtp down')):
            response = self.client.post('/dashboard/notify', json={'environment': 'UAT1', 'businessFlow': 'PORT_IN'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'Failed to send email')
        entry = AuditEntry.query.filter_by(action=SEND_EMAIL_FAILED).one()
        self.assertEqual(entry.details['reason'], 'delivery_failed')
        self.assertEqual(AuditEntry.query.filter_by(action=SEND_EMAIL).count(), 0)

    def test_limit_reached(self):
        set_user_email_limit(self.user_email, 1)
        first, _ = self.notify(environment='UAT1', businessFlow='PORT_IN')
        second, outbox = self.notify(environment='UAT1', businessFlow='PORT_IN')

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 429)
        self.assertEqual(second.get_json()['emailLimit'], 1)
        self.assertEqual(outbox, [])
        entry = AuditEntry.query.filter_by(action=SEND_EMAIL_FAILED).one()
        self.assertEqual(entry.details['reason'], 'limit_reached')

    def test_near_limit_status(self):
        set_user_email_limit(self.user_email, 5)
        for _ in range(4):
            log_audit_event(self.user_email, SEND_EMAIL, {'subject': 'x'})
        self.assertEqual(self.client.get('/dashboard').get_json()['limitStatus'], 'near')


class TestSendNotification(DashboardTestCase):
    def setUp(self):
        super().setUp()
        self.login()

    def test_missing_fields(self):
        response = self.client.post('/api/send-notification', json={'subject': 'Hello'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'Missing required fields (to_email, subject)')

    def test_invalid_recipient(self):
        response = self.client.post('/api/send-notification', json={'to_email': 'a@x.com, nope', 'subject': 'Hi'})
        self.assertEqual(response.status_code, 400)

    def test_sends_with_cc(self):
        with mail.record_messages() as outbox:
            response = self.client.post('/api/send-notification', json={
                'to_email': 'a@x.com, B@x.com',
                'cc_email': 'c@x.com',
                'subject': 'Release done',
                'message': 'All green.',
                'from_name': 'Release Bot',
            })

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['success'])
        self.assertEqual(outbox[0].recipients, ['a@x.com', 'b@x.com'])
        self.assertEqual(outbox[0].cc, ['c@x.com'])
        self.assertIn('All green.', outbox[0].body)
        self.assertIn('Release Bot', outbox[0].sender)

    def test_requires_login(self):
        response = self.app.test_client().post('/api/send-notification', json={'to_email': 'a@x.com', 'subject': 'Hi'})
        self.assertEqual(response.status_code, 401)


if __name__ == '__main__':
    unittest.main()
