"""
Tests for PII masking, the JSON log formatter and the request log context.
"""
import json
import logging
import sys
from unittest.mock import patch

import pytest

from apps.core.logging import JSONFormatter, PIIMasker, SecurityLogger
from apps.core.middleware import LoggingFilter, clear_log_context, get_log_context, set_log_context


class TestPIIMasker:

    def test_mask_email(self):
        assert PIIMasker.mask_email('contact jane@example.com now') == 'contact j***@example.com now'

    def test_mask_text(self):
        text = 'Authorization: Bearer abc.def.ghi phone +254712345678'

        masked = PIIMasker.mask_text(text)

        assert 'abc.def.ghi' not in masked
        assert '+25**********' in masked

    def test_secret_assignment(self):
        assert PIIMasker.mask_text('api_key=sk-12345') == 'api_key: ********'

    def test_non_strings_pass_through(self):
        assert PIIMasker.mask_text(42) == 42
        assert PIIMasker.mask_text(None) is None

    def test_mask_dict(self):
        data = {
            'email': 'jane@example.com',
            'password': 'hunter2',
            'profile': {'salary': 5000, 'city': 'Nairobi'},
            'tokens': [{'access_token': 'abc'}],
        }

        masked = PIIMasker.mask_dict(data)

        assert masked['email'] == 'j***@example.com'
        assert masked['password'] == '********'
        assert masked['profile'] == {'salary': '********', 'city': 'Nairobi'}
        assert masked['tokens'] == [{'access_token': '********'}]
        assert data['password'] == 'hunter2'


class TestJSONFormatter:

    def _record(self, msg, **extra):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 10, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format(self):
        record = self._record('Lead created for jane@example.com', request_id='r-1', lead_id=7)

        output = json.loads(JSONFormatter().format(record))

        assert output['level'] == 'INFO'
        assert output['logger'] == 'apps.test'
        assert output['message'] == 'Lead created for j***@example.com'
        assert output['request_id'] == 'r-1'
        assert output['lead_id'] == 7

    def test_sensitive_extras_are_masked(self):
        record = self._record('login', password='hunter2', detail={'api_key': 'k'})

        output = json.loads(JSONFormatter().format(record))

        assert output['password'] == '********'
        assert output['detail'] == {'api_key': '********'}

    def test_exception_info(self):
        try:
            raise ValueError('bad value for jane@example.com')
        except ValueError:
            record = logging.LogRecord('apps.test', logging.ERROR, __file__, 10, 'failed', None, sys.exc_info())

        output = json.loads(JSONFormatter().format(record))

        assert output['exception']['type'] == 'ValueError'
        assert 'jane@' not in output['exception']['message']


class TestLogContext:

    def teardown_method(self):
        clear_log_context()

    def test_filter_copies_context(self):
        set_log_context(request_id='r-9', tenant_id=None)
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'x', None, None)

        assert LoggingFilter().filter(record) is True
        assert record.request_id == 'r-9'
        assert record.tenant_id is None

    def test_explicit_extra_wins(self):
        set_log_context(request_id='r-9')
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'x', None, None)
        record.request_id = 'explicit'

        LoggingFilter().filter(record)

        assert record.request_id == 'explicit'

    def test_clear(self):
        set_log_context(user_id='u-1')
        clear_log_context()

        assert get_log_context() == {}


class TestSecurityLogger:

    def test_failed_login_is_masked(self):
        with patch.object(logging.getLogger('security'), 'warning') as warning:
            SecurityLogger.log_failed_login('jane@example.com', '10.0.0.1', reason='invalid_password')

        message = warning.call_args.args[0]
        extra = warning.call_args.kwargs['extra']
        assert message == 'Security event: failed_login'
        assert extra['user_email'] == 'j***@example.com'
        assert extra['reason'] == 'invalid_password'

    @pytest.mark.django_db
    def test_permission_denied(self, owner):
        with patch.object(logging.getLogger('security'), 'warning') as warning:
            SecurityLogger.log_permission_denied(owner.user, owner.tenant, {'crm:edit', 'ai:use'}, '10.0.0.1')

        extra = warning.call_args.kwargs['extra']
        assert extra['event_type'] == 'permission_denied'
        assert extra['user_id'] == str(owner.user.id)

    def test_critical_events_reach_sentry(self):
        with patch('apps.core.logging.sentry_sdk.capture_message') as capture:
            SecurityLogger.log_event('cross_tenant_access', user_id='u-1')

        capture.assert_called_once()
