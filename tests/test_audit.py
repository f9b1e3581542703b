import unittest
from unittest.mock import patch

from models.audit_entry import AuditEntry
from tests.base import DashboardTestCase
from utils.audit import (
    LOGIN_SUCCESS,
    SEND_EMAIL,
    audit_logs_to_csv,
    count_user_emails,
    filter_audit_logs,
    get_audit_logs_by_date_range,
    get_audit_logs_by_user,
    get_audit_stats,
    log_audit_event,
)
from utils.email_limits import limit_status
from utils.validators import parse_email_list, validate_flow_code, validate_limit


class TestLogAuditEvent(DashboardTestCase):
    def test_writes_entry(self):
        with patch('utils.time_helper.now_ms', return_value=1_700_000_000_000):
            entry_id = log_audit_event('a@x.com', LOGIN_SUCCESS, {'method': 'test'}, client_descriptor='pytest')

        entry = AuditEntry.query.filter_by(id=entry_id).one()
        self.assertEqual(entry.date, '2023-11-14')
        self.assertEqual(entry.details, {'method': 'test'})
        self.assertEqual(entry.client_descriptor, 'pytest')

    def test_never_raises(self):
        with patch('utils.audit.db.session.commit', side_effect=RuntimeError('db down')):
            self.assertIsNone(log_audit_event('a@x.com', LOGIN_SUCCESS))
        self.assertEqual(AuditEntry.query.count(), 0)

    def test_queries(self):
        day = 24 * 60 * 60 * 1000
        for offset, email in ((0, 'a@x.com'), (day, 'a@x.com'), (day, 'b@x.com')):
            with patch('utils.time_helper.now_ms', return_value=1_700_000_000_000 + offset):
                log_audit_event(email, SEND_EMAIL)

        self.assertEqual(count_user_emails('a@x.com'), 2)
        self.assertEqual(len(get_audit_logs_by_user('a@x.com', limit=1)), 1)
        self.assertEqual(len(get_audit_logs_by_date_range('2023-11-15', '2023-11-15')), 2)
        stats = get_audit_stats(today='2023-11-15')
        self.assertEqual(stats['totalEmails'], 3)
        self.assertEqual(stats['todayEmails'], 2)
        self.assertEqual(stats['todayLogins'], 0)

    def test_csv_quotes_every_field(self):
        log_audit_event('a@x.com', SEND_EMAIL, {'subject': 'SITE | UAT1 | PORT_IN'})
        text = audit_logs_to_csv(AuditEntry.query.all())
        lines = text.splitlines()
        self.assertEqual(lines[0], '"Timestamp","User Email","Action","Details"')
        self.assertIn('"a@x.com","SEND_EMAIL"', lines[1])


class TestFilterAuditLogs(DashboardTestCase):
    def setUp(self):
        super().setUp()
        for offset, email, details in (
            (0, 'ops@x.com', {'subject': 'SITE | UAT1 | PORT_IN'}),
            (1000, 'qa@x.com', {'subject': 'Done 100% of PORT_OUT'}),
            (2000, 'qa@x.com', {'subject': 'SITE | PROD | PORTXIN'}),
        ):
            with patch('utils.time_helper.now_ms', return_value=1_700_000_000_000 + offset):
                log_audit_event(email, SEND_EMAIL, details)

    def test_search_is_case_insensitive_and_limited(self):
        results = filter_audit_logs(search='Port', limit=2)
        self.assertEqual([entry.details['subject'] for entry in results],
                         ['SITE | PROD | PORTXIN', 'Done 100% of PORT_OUT'])

    def test_search_treats_wildcards_literally(self):
        self.assertEqual([entry.user_email for entry in filter_audit_logs(search='port_in')], ['ops@x.com'])
        self.assertEqual(len(filter_audit_logs(search='100%')), 1)

    def test_search_matches_email_and_action(self):
        self.assertEqual(len(filter_audit_logs(search='QA@X')), 2)
        self.assertEqual(len(filter_audit_logs(search='send_email')), 3)


class TestHelpers(unittest.TestCase):
    def test_limit_status(self):
        self.assertEqual(limit_status(0, 20), 'ok')
        self.assertEqual(limit_status(16, 20), 'near')
        self.assertEqual(limit_status(20, 20), 'reached')
        self.assertEqual(limit_status(0, 0), 'reached')

    def test_flow_codes(self):
        self.assertTrue(validate_flow_code('NEW_B2B_CUSTOMER'))
        self.assertFalse(validate_flow_code('new flow'))
        self.assertFalse(validate_flow_code('_LEADING'))
        self.assertFalse(validate_flow_code(''))

    def test_parse_email_list(self):
        self.assertEqual(parse_email_list(' A@x.com, ,b@x.com '), ['a@x.com', 'b@x.com'])
        self.assertEqual(parse_email_list(None), [])

    def test_validate_limit(self):
        self.assertEqual(validate_limit('7'), (True, 7))
        self.assertFalse(validate_limit('x')[0])


if __name__ == '__main__':
    unittest.main()
