"""Unit tests for SyslogWriter"""

import logging
import socket

import pytest

from syslogkit.syslog_writer import SyslogWriter, parse_address


class FakeSocket:
    """Stream socket stand-in recording sent data"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self.closed = False

    def sendall(self, data: bytes) -> None:
        if self.fail:
            raise BrokenPipeError("broken pipe")
        self.sent.append(data)

    def send(self, data: bytes) -> int:
        self.sendall(data)
        return len(data)

    def close(self) -> None:
        self.closed = True


@pytest.mark.unit
class TestAddress:
    """Test address and network handling"""

    @pytest.mark.parametrize("address,expected", [
        ('localhost:514', ('localhost', 514)),
        ('10.0.0.1:6514', ('10.0.0.1', 6514)),
        ('[::1]:514', ('::1', 514)),
        (':514', ('localhost', 514)),
        (('127.0.0.1', '1514'), ('127.0.0.1', 1514)),
    ])
    def test_parse_address(self, address, expected):
        """Test host and port extraction"""
        assert parse_address(address) == expected

    @pytest.mark.parametrize("address", ['localhost', 'localhost:', 'localhost:syslog'])
    def test_parse_invalid_address(self, address):
        """Test malformed addresses are rejected"""
        with pytest.raises(ValueError):
            parse_address(address)

    def test_address_rendering(self):
        """Test IPv6 hosts are bracketed"""
        assert SyslogWriter('[::1]:514').address == '[::1]:514'
        assert SyslogWriter('example.com:514').address == 'example.com:514'

    @pytest.mark.parametrize("network,tls,datagram", [
        ('udp', False, True),
        ('udp6', False, True),
        ('tcp', False, False),
        ('TCP4', False, False),
        ('tcp+tls', True, False),
        ('tcp6+tls', True, False),
    ])
    def test_networks(self, network, tls, datagram):
        """Test network scheme properties"""
        writer = SyslogWriter('localhost:514', network=network)

        assert writer.network == network.lower()
        assert writer.tls == tls
        assert writer.datagram == datagram

    def test_unknown_network(self, caplog):
        """Test an unknown scheme falls back to tcp with a warning"""
        with caplog.at_level(logging.WARNING, logger='syslogkit.syslog_writer'):
            writer = SyslogWriter('localhost:514', network='sctp')

        assert writer.network == 'tcp'
        assert 'Unrecognized syslog network' in caplog.text

    @pytest.mark.parametrize("network,family,socktype", [
        ('udp', socket.AF_UNSPEC, socket.SOCK_DGRAM),
        ('udp4', socket.AF_INET, socket.SOCK_DGRAM),
        ('tcp6', socket.AF_INET6, socket.SOCK_STREAM),
        ('tcp4+tls', socket.AF_INET, socket.SOCK_STREAM),
    ])
    def test_dial_family(self, monkeypatch, network, family, socktype):
        """Test the address family and socket type requested per scheme"""
        calls = []

        def fake_getaddrinfo(host, port, fam, st):
            calls.append((host, port, fam, st))
            raise socket.gaierror("lookup disabled")

        monkeypatch.setattr(socket, 'getaddrinfo', fake_getaddrinfo)
        writer = SyslogWriter('logs.example.com:514', network=network)

        with pytest.raises(OSError):
            writer.write(b'x')

        assert calls == [('logs.example.com', 514, family, socktype)]
        assert not writer.connected


@pytest.mark.unit
class TestConnectionHandling:
    """Test lazy connect, reuse and reconnect"""

    def test_lazy_dial(self):
        """Test construction does not connect"""
        writer = SyslogWriter('127.0.0.1:9', network='tcp')

        assert not writer.connected

    def test_connection_reused(self, monkeypatch):
        """Test consecutive writes share one connection"""
        dialed = []
        monkeypatch.setattr(SyslogWriter, '_dial', lambda self: dialed.append(FakeSocket()) or dialed[-1])
        writer = SyslogWriter('localhost:514')

        assert writer.write(b'one') == 3
        assert writer.write(b'two') == 3

        assert len(dialed) == 1
        assert dialed[0].sent == [b'one', b'two']

    def test_reconnect_after_failure(self, monkeypatch):
        """Test a failed write drops the connection and the next write redials"""
        sockets = [FakeSocket(fail=True), FakeSocket()]
        dialed = []

        def dial(self):
            dialed.append(sockets[len(dialed)])
            return dialed[-1]

        monkeypatch.setattr(SyslogWriter, '_dial', dial)
        writer = SyslogWriter('localhost:514')

        with pytest.raises(OSError):
            writer.write(b'lost')
        assert not writer.connected
        assert sockets[0].closed

        writer.write(b'delivered')
        assert writer.connected
        assert sockets[1].sent == [b'delivered']
        assert len(dialed) == 2

    def test_dial_failure(self):
        """Test a refused connection raises and leaves the writer unconnected"""
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(('127.0.0.1', 0))
        port = server.getsockname()[1]
        server.close()

        writer = SyslogWriter(('127.0.0.1', port), timeout=2.0)
        with pytest.raises(OSError):
            writer.write(b'x')
        assert not writer.connected

    def test_close(self, monkeypatch):
        """Test close drops the connection and the context manager closes"""
        fake = FakeSocket()
        monkeypatch.setattr(SyslogWriter, '_dial', lambda self: fake)

        with SyslogWriter('localhost:514') as writer:
            writer.write(b'x')
            assert writer.connected

        assert not writer.connected
        assert fake.closed


@pytest.mark.integration
class TestNetworkDelivery:
    """Test delivery over real sockets"""

    def test_udp(self):
        """Test each write is one datagram"""
        server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        server.bind(('127.0.0.1', 0))
        server.settimeout(2.0)
        try:
            with SyslogWriter(server.getsockname(), network='udp4') as writer:
                writer.write(b'<14>first')
                writer.write(b'<14>second')

                assert server.recv(1024) == b'<14>first'
                assert server.recv(1024) == b'<14>second'
        finally:
            server.close()

    def test_tcp(self):
        """Test writes are delivered in order over a single connection"""
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(('127.0.0.1', 0))
        server.listen(1)
        server.settimeout(2.0)
        try:
            host, port = server.getsockname()
            with SyslogWriter(f'{host}:{port}', network='tcp') as writer:
                writer.write(b'3 abc')
                writer.write(b'3 def')

                conn, _ = server.accept()
                conn.settimeout(2.0)
                received = b''
                while len(received) < 10:
                    received += conn.recv(1024)
                conn.close()

            assert received == b'3 abc3 def'
        finally:
            server.close()
