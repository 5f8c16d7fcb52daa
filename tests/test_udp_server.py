import logging
import threading

import pytest

from rana.network import MAX_NAME_SIZE, MAX_UDP_CONNECTIONS, NetworkError
from rana.udp_client import UdpClient, UdpClientMaster
from rana.udp_server import UdpServer, UdpServerMaster


@pytest.fixture
def master():
    server_master = UdpServerMaster(0)
    yield server_master
    server_master.close()


@pytest.fixture
def linked(master):
    server = UdpServer(master, 3)
    client_master = UdpClientMaster(master.port, "127.0.0.1")
    client = UdpClient(client_master, 3)
    worker = threading.Thread(target=server.accept)
    worker.start()
    client.connect()
    worker.join()
    yield server, client
    if client.id >= 0:
        client.close()
    client_master.close()
    if server.id >= 0:
        server.close()


def test_master_binds_an_ephemeral_port(master):
    assert 0 < master.port <= 0xFFFF
    assert master.accepted is False


def test_port_out_of_range():
    with pytest.raises(ValueError):
        UdpServerMaster(70000)


def test_channel_id_out_of_range(master):
    with pytest.raises(ValueError):
        UdpServer(master, MAX_UDP_CONNECTIONS)


def test_name_too_long(master):
    server = UdpServer(master, 0)
    with pytest.raises(ValueError):
        server.set_name("x" * MAX_NAME_SIZE)


def test_accept_marks_master(linked):
    server, _ = linked
    assert server.master.accepted is True
    assert server.master.client_address is not None


def test_server_to_client(linked):
    server, client = linked
    server.send(b"hello")
    assert client.receive(5) == b"hello"


def test_client_to_server(linked):
    server, client = linked
    client.send(b"world!")
    assert server.receive(6) == b"world!"
    client.send(b"abc")
    assert server.receive_unsafe() == b"abc"


def test_receive_size_mismatch(linked):
    server, client = linked
    client.send(b"abc")
    with pytest.raises(NetworkError):
        server.receive(10)


def test_other_channel_not_delivered(linked, master):
    server, client = linked
    other = UdpClient(client.master, 4)
    other.send(b"stray")
    server.set_recv_timeout(0, 200000)
    assert server.receive_unsafe() == b""


def test_receive_timeout(linked):
    server, _ = linked
    server.set_recv_timeout(0, 100000)
    assert server.receive_unsafe() == b""
    with pytest.raises(NetworkError):
        server.receive(1)


def test_second_accept_is_noop(linked, master):
    server, _ = linked
    another = UdpServer(master, 5)
    another.accept()
    assert master.accepted is True
    assert master.recv_thread is not None


def test_accept_times_out(master):
    server = UdpServer(master, 0)
    server.accept_timeout = 0.2
    with pytest.raises(NetworkError):
        server.accept()
    assert master.accepted is False


def test_send_before_accept(master):
    server = UdpServer(master, 0)
    with pytest.raises(NetworkError):
        server.send(b"data")


def test_close_releases_channel(linked, master):
    server, _ = linked
    server.close()
    assert server.id == -1
    assert master.accepted is False
    assert master.recv_thread is None
    with pytest.raises(NetworkError):
        server.receive_unsafe()
    with pytest.raises(NetworkError):
        server.send(b"x")


def test_double_close_warns(master, caplog):
    server = UdpServer(master, 1)
    server.close()
    with caplog.at_level(logging.WARNING):
        server.close()
    assert "already been closed" in caplog.text


def test_master_double_close_warns(caplog):
    server_master = UdpServerMaster(0)
    server_master.close()
    with caplog.at_level(logging.WARNING):
        server_master.close()
    assert "already been closed" in caplog.text