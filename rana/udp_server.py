"""UDP server endpoints multiplexed over one bound socket by a channel byte."""

from __future__ import annotations

import logging
import queue
import socket
import sys
import threading

from .network import (
    ARBITRARILY_LARGE_PACKET,
    DEFAULT_ACCEPT_TIMEOUT,
    DEFAULT_RECV_TIMEOUT,
    MAX_NAME_SIZE,
    MAX_UDP_CONNECTIONS,
    TEST_BUFF_SIZE,
    NetworkError,
    UdpPacket,
)

logger = logging.getLogger(__name__)

_SEND_BUFFER = 1000000
_HIGH_PRIORITY = 6


def _checked_name(name: str) -> str:
    if len(name) >= MAX_NAME_SIZE:
        raise ValueError(f"name must be shorter than {MAX_NAME_SIZE} characters")
    return name


class UdpServerMaster:
    """Owns the bound UDP socket and sorts incoming datagrams by channel."""

    def __init__(self, port: int = 0) -> None:
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} out of range")
        self.name = "master"
        self.running = False
        self.accepted = False
        self.recv_thread: threading.Thread | None = None
        self.client_address: tuple[str, int] | None = None
        self._queues: list[queue.Queue[bytes]] = [
            queue.Queue() for _ in range(MAX_UDP_CONNECTIONS)
        ]
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            logger.error("Server socket failed to open (%s)", self.name)
            raise NetworkError(f"Server socket failed to open: {exc}") from exc
        self._sock: socket.socket | None = sock
        try:
            self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1, "reuseaddr")
            if hasattr(socket, "SO_REUSEPORT"):
                self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1, "reuseport")
            self._setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, _SEND_BUFFER, "sndbuf")
            try:
                sock.bind(("", port))
            except OSError as exc:
                logger.error("Failed to accept: Failed to bind UDP server (%s)", self.name)
                raise NetworkError("Failed to accept: Failed to bind UDP server") from exc
        except NetworkError:
            sock.close()
            self._sock = None
            raise
        self.port: int = sock.getsockname()[1]

    def _setsockopt(self, level: int, option: int, value: int, label: str) -> None:
        try:
            self._socket().setsockopt(level, option, value)
        except OSError as exc:
            logger.error("bad setsockopt: %s (%s)", label, self.name)
            raise NetworkError(f"bad setsockopt: {label}") from exc

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
            logger.error("bad setsockopt: timeout (%s)", self.name)
            raise NetworkError("bad setsockopt: timeout") from exc

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
            logger.warning("Server connection has already been closed (%s)", self.name)
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
        self.accepted = False

    def __enter__(self) -> "UdpServerMaster":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class UdpServer:
    """One virtual channel over a ``UdpServerMaster``'s socket."""

    def __init__(self, master: UdpServerMaster, id: int = 0) -> None:
        if not 0 <= id < MAX_UDP_CONNECTIONS:
            raise ValueError(f"channel id must be in [0, {MAX_UDP_CONNECTIONS})")
        self.master = master
        self.id = id
        self.name = "unknown"
        self.timeout: float = DEFAULT_RECV_TIMEOUT
        self.accept_timeout: float = DEFAULT_ACCEPT_TIMEOUT

    def set_name(self, name: str) -> None:
        """Set the name used in log messages."""
        self.name = _checked_name(name)

    def set_recv_timeout(self, sec: int, usec: int) -> None:
        """Set how long a receive waits for a packet on this channel."""
        self.timeout = sec + usec / 1_000_000

    def set_high_priority(self) -> None:
        """Raise the shared socket's priority."""
        self.master.set_high_priority()

    def accept(self) -> None:
        """Wait for a client's test datagram, echo it and start receiving."""
        master = self.master
        if master.accepted:
            return
        sock = master._socket()
        whole = int(self.accept_timeout)
        master.set_recv_timeout(whole, int(round((self.accept_timeout - whole) * 1_000_000)))
        try:
            probe, address = sock.recvfrom(TEST_BUFF_SIZE)
        except OSError as exc:
            logger.error("Failed to accept: error receiving test buffer (%s)", self.name)
            raise NetworkError(
                "Failed to accept: There was an error receiving test buffer from client"
            ) from exc
        if len(probe) != TEST_BUFF_SIZE:
            logger.error("Failed to accept: error receiving test buffer (%s)", self.name)
            raise NetworkError(
                "Failed to accept: There was an error receiving test buffer from client"
            )
        try:
            sent = sock.sendto(probe, address)
        except OSError as exc:
            logger.debug("sendto failed: %s", exc)
            sent = -1
        if sent != TEST_BUFF_SIZE:
            logger.error("Failed to accept: error sending test buffer (%s)", self.name)
            raise NetworkError(
                "Failed to accept: There was an error sending test buffer to client"
            )
        master.client_address = address
        master.set_recv_timeout(DEFAULT_RECV_TIMEOUT, 0)
        if master.recv_thread is not None:
            logger.error("Failed to accept: Weird, unresolvable error occured (%s)", self.name)
            raise NetworkError("Failed to accept: receive loop is already running")
        master._start_receiving()
        master.accepted = True

    def _check_open(self) -> None:
        if self.id < 0:
            raise NetworkError("server is closed")

    def send(self, data: bytes) -> None:
        """Send ``data`` to the accepted client on this server's channel."""
        self._check_open()
        address = self.master.client_address
        if address is None:
            raise NetworkError("no client has been accepted")
        wire = UdpPacket(self.id, bytes(data)).encode()
        try:
            sent = self.master._socket().sendto(wire, address)
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
        channel = self.id
        self.id = -1
        if channel < 0:
            logger.warning("Client connection has already been closed (%s)", self.name)
            return
        self.master._stop_receiving()
        self.master._drain(channel)
        self.master.accepted = False