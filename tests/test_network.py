import socket

from medrec.services import network


class FakeSocket:
    def __init__(self, address=None, error=None):
        self.address = address
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def connect(self, target):
        if self.error:
            raise self.error

    def getsockname(self):
        return (self.address, 50000)


def test_lan_ip_uses_routed_interface(monkeypatch):
    monkeypatch.setattr(socket, "socket", lambda *args: FakeSocket("10.0.113.116"))
    assert network.get_lan_ip() == "10.0.113.116"


def test_lan_ip_falls_back_to_localhost_without_network(monkeypatch):
    monkeypatch.setattr(socket, "socket", lambda *args: FakeSocket(error=OSError("unreachable")))
    assert network.get_lan_ip() == "localhost"


def test_lan_ip_ignores_loopback(monkeypatch):
    monkeypatch.setattr(socket, "socket", lambda *args: FakeSocket("127.0.1.1"))
    assert network.get_lan_ip() == "localhost"
