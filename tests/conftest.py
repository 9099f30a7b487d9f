"""Pytest configuration and shared fixtures for test suite"""

import shutil
import ssl
import threading
from typing import Generator, List, Tuple

import pytest

from syslogkit.syslog_message import SyslogMessage
from syslogkit.tcp_syslog_receiver import TCPSyslogReceiver
from syslogkit.tls_syslog_receiver import TLSSyslogReceiver
from syslogkit.udp_syslog_receiver import UDPSyslogReceiver


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests requiring network")
    config.addinivalue_line("markers", "scenario: Real-world scenario and performance tests")
    config.addinivalue_line("markers", "slow: Tests that take longer than 1 second")


class MessageCollector:
    """Receiver callback recording every decoded message"""

    def __init__(self) -> None:
        self.messages: List[SyslogMessage] = []
        self.sources: List[str] = []
        self.condition = threading.Condition()

    def __call__(self, message: SyslogMessage, source_ip: str) -> None:
        with self.condition:
            self.messages.append(message)
            self.sources.append(source_ip)
            self.condition.notify_all()

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        """Wait until at least count messages arrived"""
        with self.condition:
            return self.condition.wait_for(lambda: len(self.messages) >= count, timeout)


def _start(receiver) -> None:
    thread = threading.Thread(target=receiver.start, daemon=True)
    thread.start()
    assert receiver.listening.wait(5.0), "Receiver did not start listening"


@pytest.fixture
def collector() -> MessageCollector:
    """Collect all messages delivered by a receiver"""
    return MessageCollector()


@pytest.fixture
def udp_receiver_with_port(
    collector: MessageCollector
) -> Generator[Tuple[UDPSyslogReceiver, int], None, None]:
    """Create UDP receiver on available port"""
    receiver = UDPSyslogReceiver(host='127.0.0.1', port=0, handler=collector)
    _start(receiver)

    yield receiver, receiver.port

    receiver.stop()


@pytest.fixture
def tcp_receiver_with_port(
    collector: MessageCollector
) -> Generator[Tuple[TCPSyslogReceiver, int], None, None]:
    """Create TCP receiver on available port"""
    receiver = TCPSyslogReceiver(host='127.0.0.1', port=0, handler=collector)
    _start(receiver)

    yield receiver, receiver.port

    receiver.stop()


@pytest.fixture
def tls_receiver_with_port(
    collector: MessageCollector,
    tmp_path
) -> Generator[Tuple[TLSSyslogReceiver, int, str, str], None, None]:
    """Create TLS receiver on available port with self-signed certificates"""
    if shutil.which('openssl') is None:
        pytest.skip("openssl is required to generate test certificates")

    cert_file = str(tmp_path / 'test_cert.pem')
    key_file = str(tmp_path / 'test_key.pem')

    receiver = TLSSyslogReceiver(
        host='127.0.0.1',
        port=0,
        cert_file=cert_file,
        key_file=key_file,
        handler=collector
    )
    _start(receiver)

    yield receiver, receiver.port, cert_file, key_file

    receiver.stop()


@pytest.fixture
def client_ssl_context() -> ssl.SSLContext:
    """Client context accepting the receiver's self-signed certificate"""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


@pytest.fixture
def sample_syslog_messages() -> dict:
    """Sample syslog messages for testing various scenarios"""
    return {
        'rfc3164_emergency': b'<8>Jan 15 10:30:45 server1 kernel: System panic - critical failure\n',
        'rfc3164_alert': b'<9>Jan 15 10:30:46 server1 security: Intrusion detected from 192.168.1.100\n',
        'rfc3164_critical': b'<10>Jan 15 10:30:47 server1 db: Database connection lost\n',
        'rfc3164_error': b'<11>Jan 15 10:30:48 server1 app: Failed to process request\n',
        'rfc3164_warning': b'<12>Jan 15 10:30:49 server1 app: Slow query detected (5.2s)\n',
        'rfc3164_notice': b'<13>Jan 15 10:30:50 server1 app: Configuration reload completed\n',
        'rfc3164_info': b'<14>Jan 15 10:30:51 server1 app: User logged in: admin\n',
        'rfc3164_debug': b'<15>Jan  5 10:30:52 server1 app: Debug: Processing item 42\n',

        'rfc5424_emergency': b'<8>1 2025-11-17T10:30:45.123Z server1 kernel 1234 - - System panic\n',
        'rfc5424_with_structured': (
            b'<14>1 2025-11-17T10:30:45.123Z web01 nginx 5678 REQ '
            b'[request@12345 method="GET" path="/api/users" status="200"] Request completed\n'
        ),

        'malformed_no_priority': b'Jan 15 10:30:45 server1 app: Missing priority tag\n',
        'malformed_invalid_priority': b'<>Jan 15 10:30:45 server1 app: Empty priority\n',
        'malformed_high_priority': b'<999>Jan 15 10:30:45 server1 app: Priority too high\n',

        'long_message': b'<14>Jan 15 10:30:45 server1 app: ' + b'A' * 5000 + b'\n',  # 5KB message
        'unicode_message': '<14>Jan 15 10:30:45 server1 app: Unicode test: 你好世界 🚀\n'.encode('utf-8'),
    }


@pytest.fixture
def real_world_log_samples() -> dict:
    """Real-world log message examples from various systems"""
    return {
        'nginx_access': b'<14>Jan 15 10:30:45 web01 nginx: 192.168.1.100 - - [15/Jan/2025:10:30:45 +0000] "GET /api/v1/users HTTP/1.1" 200 1234 "-" "Mozilla/5.0"\n',
        'apache_error': b'<11>Jan 15 10:30:45 web02 apache2: [error] [client 192.168.1.100:54321] File does not exist: /var/www/html/favicon.ico\n',
        'mysql_error': b'<11>Jan 15 10:30:45 db01 mysqld: [ERROR] InnoDB: Cannot allocate memory for the buffer pool\n',
        'ssh_auth_success': b'<38>Jan 15 10:30:45 server1 sshd[12345]: Accepted publickey for admin from 192.168.1.50 port 54321 ssh2\n',
        'ssh_auth_failure': b'<36>Jan 15 10:30:45 server1 sshd[12346]: Failed password for invalid user hacker from 203.0.113.100 port 54322 ssh2\n',
        'kernel_oom': b'<2>Jan 15 10:30:45 server1 kernel: Out of memory: Kill process 12345 (java) score 789 or sacrifice child\n',
        'systemd_service': b'<30>Jan 15 10:30:45 server1 systemd[1]: Started My Application Service.\n',
        'cron_job': b'<78>Jan 15 10:30:45 server1 CRON[12345]: (root) CMD (/usr/local/bin/backup.sh)\n',
        'rsyslog_5424': b'<165>1 2003-10-11T22:14:15.003Z mymachine.example.com evntslog - ID47 [exampleSDID@32473 iut="3" eventSource="Application" eventID="1011"] An application event log entry...\n',
    }


@pytest.fixture
def performance_test_config() -> dict:
    """Configuration for performance testing"""
    return {
        'burst_count': 100,  # Messages in burst
        'concurrent_connections': 10,
        'messages_per_connection': 20,
    }
