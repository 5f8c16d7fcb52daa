"""UDP client endpoints multiplexed over one socket by a channel byte."""

from __future__ import annotations

import logging
import queue
import socket
import sys
import threading

from .dns import resolve_ipv4
from .network import (
    ARBITRARILY_LARGE_PACKET,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_RECV_TIMEOUT,
    MAX_NAME_SIZE,
    MAX_UDP_CONNECTIONS,
    TEST_BUFF_SIZE,
    NetworkError,
    UdpPacket,
)

logger = logging.getLogger(__name__)

_DNS_TIMEOUT = 2
_RECEIVE_BUFFER = 1000000
_HIGH_PRIORITY = 6


def _checked_name(name: str) -> str:
    if len(name) >= MAX_NAME_SIZE:
        raise ValueError(f"name must be shorter than {MAX_NAME_SIZE} characters")
    return name


class UdpClientMaster:
    """Owns the UDP socket and sorts incoming datagrams into per-channel queues."""

    def __init__(self, port: int, ip: str) -> None:
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} out of range")
        self.name = "unknown"
        self.running = False
        self.connected = False
        self.recv_thread: threading.Thread | None = None
        self._queues: list[queue.Queue[bytes]] = [
            queue.Queue() for _ in range(MAX_UDP_CONNECTIONS)
        ]
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            logger.error("Client socket failed to open (%s)", self.name)
            raise NetworkError(f"Client socket failed to open: {exc}") from exc
        self._sock: socket.socket | None = sock
        try:
            if sys.platform.startswith("linux"):
                self._setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, _RECEIVE_BUFFER, "recvbuf")
            self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1, "reuseaddr")
            if hasattr(socket, "SO_REUSEPORT"):
                self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1, "reuseport")
            self.server_address = (self._resolve(ip), port)
        except NetworkError:
            sock.close()
            self._sock = None
            raise

    def _setsockopt(self, level: int, option: int, value: int, label: str) -> None:
        try:
            self._socket().setsockopt(level, option, value)
        except OSError as exc:
            logger.error("bad setsockopt: %s (%s)", label, self.name)
            raise NetworkError(f"bad setsockopt: {label}") from exc

    def _resolve(self, ip: str) -> str:
        try:
            socket.inet_pton(socket.AF_INET, ip)
        except OSError:
            try:
                return resolve_ipv4(ip, _DNS_TIMEOUT)
            except NetworkError as exc:
                logger.error("Failed to connect: lookup of %s failed (%s)", ip, self.name)
                raise NetworkError(f"Failed to connect: cannot resolve {ip!r}") from exc
        return ip

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise NetworkError("socket is closed")
        return self._sock

    def set_name(self, name: str) -> None:
        """Set the name used in log messages."""
        self.name = _checked_name(name)

    def set_recv_timeout(self, sec: int, usec: int) -> None:
        """Limit how long a socket read may block; zero means no limit."""
        sock = self._socket()
        total = sec + usec / 1_000_000
        try:
            sock.settimeout(total if total > 0 else None)
        except OSError as exc:
            logger.error("bad setsockopt: rcvtimeo (%s)", self.name)
            raise NetworkError("bad setsockopt: rcvtimeo") from exc

    def set_high_priority(self) -> None:
        """Raise the socket's queueing priority where the platform supports it."""
        if sys.platform.startswith("linux") and hasattr(socket, "SO_PRIORITY"):
            self._setsockopt(socket.SOL_SOCKET, socket.SO_PRIORITY, _HIGH_PRIORITY, "priority")

    def recv_loop(self) -> None:
        """Read datagrams and queue their payloads by channel until stopped."""
        while self.running:
            sock = self._sock
            if sock is None or sock.fileno() == -1:
                break
            try:
                data, _ = sock.recvfrom(ARBITRARILY_LARGE_PACKET)
            except socket.timeout:
                continue
            except OSError:
                if not self.running:
                    break
                continue
            try:
                packet = UdpPacket.parse(data)
            except NetworkError:
                continue
            self._queues[packet.channel].put(packet.payload)

    def _start_receiving(self) -> None:
        if self.recv_thread is not None:
            raise NetworkError("receive loop is already running")
        self.running = True
        self.recv_thread = threading.Thread(
            target=self.recv_loop, name=f"udp-recv-{self.name}", daemon=True
        )
        self.recv_thread.start()

    def _stop_receiving(self) -> None:
        self.running = False
        if self.recv_thread is not None:
            self.recv_thread.join()
            self.recv_thread = None

    def _drain(self, channel: int) -> None:
        pending = self._queues[channel]
        while True:
            try:
                pending.get_nowait()
            except queue.Empty:
                return

    def close(self) -> None:
        """Stop the receive loop and release the socket; twice only warns."""
        if self._sock is None:
            logger.warning("Client connection has already been closed (%s)", self.name)
            return
        self._stop_receiving()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        self._sock = None
        for channel in range(MAX_UDP_CONNECTIONS):
            self._drain(channel)
        self.connected = False

    def __enter__(self) -> "UdpClientMaster":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class UdpClient:
    """One virtual channel over a ``UdpClientMaster``'s socket."""

    def __init__(self, master: UdpClientMaster, id: int = 0) -> None:
        if not 0 <= id < MAX_UDP_CONNECTIONS:
            raise ValueError(f"channel id must be in [0, {MAX_UDP_CONNECTIONS})")
        self.master = master
        self.id = id
        self.name = "unknown"
        self.timeout: float = DEFAULT_RECV_TIMEOUT

    def set_name(self, name: str) -> None:
        """Set the name used in log messages."""
        self.name = _checked_name(name)

    def set_recv_timeout(self, sec: int, usec: int) -> None:
        """Set how long a receive waits for a packet on this channel."""
        self.timeout = sec + usec / 1_000_000

    def set_high_priority(self) -> None:
        """Raise the shared socket's priority."""
        self.master.set_high_priority()

    def connect(self) -> None:
        """Exchange a test datagram with the server and start receiving."""
        master = self.master
        if master.connected:
            return
        sock = master._socket()
        master.set_recv_timeout(0, DEFAULT_CONNECT_TIMEOUT)
        try:
            sent = sock.sendto(bytes(TEST_BUFF_SIZE), master.server_address)
        except OSError as exc:
            sent = -1
            logger.debug("sendto failed: %s", exc)
        if sent != TEST_BUFF_SIZE:
            logger.error("Failed to connect: Error sending test buff (%s)", self.name)
            raise NetworkError("Failed to connect: Error sending test buff")
        try:
            reply, _ = sock.recvfrom(TEST_BUFF_SIZE)
        except OSError as exc:
            logger.error("Failed to connect: Error receiving test buff (%s)", self.name)
            raise NetworkError("Failed to connect: Error receiving test buff") from exc
        if len(reply) != TEST_BUFF_SIZE:
            logger.error("Failed to connect: Error receiving test buff (%s)", self.name)
            raise NetworkError("Failed to connect: Error receiving test buff")
        master.set_recv_timeout(DEFAULT_RECV_TIMEOUT, 0)
        master._start_receiving()
        master.connected = True

    def _check_open(self) -> None:
        if self.id < 0:
            raise NetworkError("client is closed")

    def send(self, data: bytes) -> None:
        """Send ``data`` on this client's channel."""
        self._check_open()
        wire = UdpPacket(self.id, bytes(data)).encode()
        try:
            sent = self.master._socket().sendto(wire, self.master.server_address)
        except OSError as exc:
            raise NetworkError(f"send failed: {exc}") from exc
        if sent != len(wire):
            raise NetworkError("send failed: datagram truncated")

    def _next_payload(self) -> bytes | None:
        self._check_open()
        pending = self.master._queues[self.id]
        try:
            if self.timeout > 0:
                return pending.get(timeout=self.timeout)
            return pending.get_nowait()
        except queue.Empty:
            return None

    def receive(self, size: int) -> bytes:
        """Receive one packet whose payload must be exactly ``size`` bytes."""
        payload = self._next_payload()
        if payload is None:
            raise NetworkError("no packet arrived in time")
        if len(payload) != size:
            raise NetworkError(f"expected {size} bytes, got {len(payload)}")
        return payload

    def receive_unsafe(self) -> bytes:
        """Receive one packet of any size; empty bytes if none arrived in time."""
        payload = self._next_payload()
        return b"" if payload is None else payload

    def close(self) -> None:
        """Release this channel and stop the shared receive loop."""
        if self.id < 0:
            logger.warning("Client connection has already been closed (%s)", self.name)
            return
        self.master._drain(self.id)
        self.id = -1
        self.master._stop_receiving()
        self.master.connected = False