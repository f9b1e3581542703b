import unittest
from unittest.mock import MagicMock, patch

from models import db
from models.active_session import ActiveSession
from tests.base import DashboardTestCase
from utils.session_registry import (
    SessionWatch,
    claim_session,
    get_session_record,
    idle_expired,
    release_session,
    sanitize_session_key,
    session_changed,
)


class TestSanitizeSessionKey(unittest.TestCase):
    def test_replaces_reserved_characters(self):
        self.assertEqual(sanitize_session_key('first.last@x.com'), 'first_last@x_com')
        self.assertEqual(sanitize_session_key('a#b$c[d]e'), 'a_b_c_d_e')

    def test_plain_key_unchanged(self):
        self.assertEqual(sanitize_session_key('user@localhost'), 'user@localhost')


class TestIdleExpired(unittest.TestCase):
    def test_within_timeout(self):
        self.assertFalse(idle_expired(1_000, 15, now=1_000 + 15 * 60 * 1000))

    def test_past_timeout(self):
        self.assertTrue(idle_expired(1_000, 15, now=1_000 + 15 * 60 * 1000 + 1))

    def test_no_activity_recorded(self):
        self.assertFalse(idle_expired(None, 15, now=10**12))


class TestSessionRegistry(DashboardTestCase):
    def test_claim_writes_record_under_sanitized_key(self):
        record = claim_session('user@x.com', 'pytest-agent')
        stored = db.session.get(ActiveSession, 'user@x_com')

        self.assertIsNotNone(stored)
        self.assertEqual(stored.session_id, record.session_id)
        self.assertEqual(stored.email, 'user@x.com')
        self.assertEqual(stored.client_descriptor, 'pytest-agent')
        self.assertGreater(stored.login_time, 0)

    def test_second_claim_overwrites_first(self):
        first = claim_session('user@x.com').session_id
        second = claim_session('user@x.com').session_id

        self.assertNotEqual(first, second)
        self.assertEqual(ActiveSession.query.count(), 1)
        self.assertEqual(get_session_record('user@x.com').session_id, second)

    def test_release_only_by_owner(self):
        old = claim_session('user@x.com').session_id
        current = claim_session('user@x.com').session_id

        self.assertFalse(release_session('user@x.com', old))
        self.assertIsNotNone(get_session_record('user@x.com'))
        self.assertTrue(release_session('user@x.com', current))
        self.assertIsNone(get_session_record('user@x.com'))

    def test_claim_publishes_change(self):
        receiver = MagicMock()
        session_changed.connect(receiver, sender='user@x_com', weak=False)
        try:
            record = claim_session('user@x.com')
        finally:
            session_changed.disconnect(receiver)

        receiver.assert_called_once()
        self.assertEqual(receiver.call_args.args[0], 'user@x_com')
        self.assertEqual(receiver.call_args.kwargs['record']['sessionId'], record.session_id)

    def test_claim_uses_clock(self):
        with patch('utils.time_helper.now_ms', return_value=1_767_225_600_000):
            record = claim_session('user@x.com')
        self.assertEqual(record.login_time, 1_767_225_600_000)


class TestSessionWatch(DashboardTestCase):
    def test_own_record_is_not_superseded(self):
        record = claim_session('user@x.com')
        watch = SessionWatch('user@x.com', record.session_id)
        self.assertFalse(watch.observe(record))
        self.assertFalse(watch.superseded)

    def test_mismatch_fires_once(self):
        first = claim_session('user@x.com').session_id
        callback = MagicMock()
        watch = SessionWatch('user@x.com', first, on_superseded=callback)

        second = claim_session('user@x.com')
        self.assertTrue(watch.observe(second))
        self.assertTrue(watch.observe(second))
        callback.assert_called_once_with(second.to_dict())

    def test_missing_record_supersedes(self):
        callback = MagicMock()
        watch = SessionWatch('user@x.com', 'some-id', on_superseded=callback)
        self.assertTrue(watch.observe(None))
        callback.assert_called_once_with(None)

    def test_subscribed_watch_is_notified_by_next_login(self):
        first = claim_session('user@x.com').session_id
        callback = MagicMock()
        watch = SessionWatch('user@x.com', first, on_superseded=callback).start()
        try:
            claim_session('user@x.com')
        finally:
            watch.stop()

        self.assertTrue(watch.superseded)
        callback.assert_called_once()

    def test_other_users_logins_are_ignored(self):
        mine = claim_session('user@x.com').session_id
        callback = MagicMock()
        watch = SessionWatch('user@x.com', mine, on_superseded=callback).start()
        try:
            claim_session('admin@x.com')
        finally:
            watch.stop()

        self.assertFalse(watch.superseded)
        callback.assert_not_called()

    def test_stopped_watch_is_not_notified(self):
        first = claim_session('user@x.com').session_id
        callback = MagicMock()
        watch = SessionWatch('user@x.com', first, on_superseded=callback).start()
        watch.stop()
        claim_session('user@x.com')
        callback.assert_not_called()

    def test_stop_releases_receiver(self):
        watch = SessionWatch('user@x.com', 'abc').start()
        self.assertEqual(len(session_changed.receivers), 1)
        watch.stop()
        watch.stop()
        self.assertEqual(dict(session_changed.receivers), {})


if __name__ == '__main__':
    unittest.main()
