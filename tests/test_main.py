"""Tests for the receiver entry point helpers"""

import logging

import pytest

from syslogkit.main import describe, log_message
from syslogkit.syslog_parser import SyslogParser


@pytest.mark.unit
class TestDescribe:
    """Test the one line message summaries"""

    def test_rfc3164(self, sample_syslog_messages):
        """Test RFC 3164 summary"""
        message = SyslogParser.parse(sample_syslog_messages['rfc3164_error'])

        assert describe(message) == "RFC3164 user.error server1 app: 'Failed to process request'"

    def test_rfc5424(self, sample_syslog_messages):
        """Test RFC 5424 summary with structured data ids"""
        message = SyslogParser.parse(sample_syslog_messages['rfc5424_with_structured'])

        assert describe(message) == "RFC5424 user.info web01 nginx REQ [request@12345] 'Request completed'"

    def test_undecoded(self):
        """Test undecoded summary"""
        message = SyslogParser.parse(b'garbage')

        assert describe(message) == "undecoded 7 bytes 'garbage'"

    def test_log_message(self, caplog):
        """Test messages are logged with their source"""
        message = SyslogParser.parse(b'<14>Jan 15 10:30:45 server1 app: hello\n')
        with caplog.at_level(logging.INFO, logger='syslogkit.main'):
            log_message(message, '10.0.0.5')

        assert "10.0.0.5: RFC3164 user.info server1 app: 'hello'" in caplog.text
