"""WebSocket client endpoints multiplexed over one connection by a host byte."""

from __future__ import annotations

import logging
import queue
import threading
import time

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect

from .network import DEFAULT_RECV_TIMEOUT, MAX_NAME_SIZE, NetworkError

logger = logging.getLogger(__name__)

WEB_SOCKET_POOL_SIZE = 80
MAX_WEBSOCKET_PACKET_SIZE = 100000
WEB_SOCKET_SLEEP_TIME = 1
MAX_HOSTS = 20
MAX_ACCUMULATED_FRAMES = 4
WEB_SOCKET_TIME_OUT = 10

_OPEN_TIMEOUT = 10


def _checked_name(name: str) -> str:
    if len(name) >= MAX_NAME_SIZE:
        raise ValueError(f"name must be shorter than {MAX_NAME_SIZE} characters")
    return name


def _checked_index(index: int) -> int:
    if not 0 <= index < MAX_HOSTS:
        raise ValueError(f"host index must be in [0, {MAX_HOSTS})")
    return index


class WsClientMaster:
    """One WebSocket connection whose frames are routed to virtual hosts."""

    def __init__(self, port: int, ip: str) -> None:
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} out of range")
        self.port = port
        self.ip = ip
        self.name = "unknown"
        self.host_count = 0
        self.accept = False
        self._queues: list[queue.Queue[bytes]] = [queue.Queue() for _ in range(MAX_HOSTS)]
        self._conn: ClientConnection | None = None
        self._reader: threading.Thread | None = None

    @property
    def address(self) -> str:
        """The WebSocket URI this master connects to."""
        return f"ws://{self.ip}:{self.port}"

    def open(self) -> None:
        """Connect to the server and start routing incoming frames."""
        if self._conn is not None:
            raise NetworkError("connection is already open")
        try:
            conn = connect(self.address, open_timeout=_OPEN_TIMEOUT, max_size=None)
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.error("Failed to open %s: %s (%s)", self.address, exc, self.name)
            raise NetworkError(f"Failed to open {self.address}: {exc}") from exc
        self._conn = conn
        self.accept = True
        self._reader = threading.Thread(
            target=self._read_frames, args=(conn,), name=f"ws-recv-{self.name}", daemon=True
        )
        self._reader.start()

    def _read_frames(self, conn: ClientConnection) -> None:
        try:
            for message in conn:
                data = message.encode() if isinstance(message, str) else message
                self.handle_message(data)
        except ConnectionClosed:
            pass
        finally:
            self.accept = False

    def handle_message(self, data: bytes) -> bool:
        """Queue a frame for the host named by its first byte; False if dropped."""
        data = bytes(data)
        if not data:
            return False
        host = data[0]
        if host >= MAX_HOSTS:
            logger.debug("invalid host id %s", host)
            return False
        pending = self._queues[host]
        if pending.qsize() >= MAX_ACCUMULATED_FRAMES:
            logger.debug("reader of host %s is behind; dropping frame", host)
            return False
        length = min(len(data), MAX_WEBSOCKET_PACKET_SIZE)
        pending.put(data[1:length])
        return True

    def send(self, data: bytes, client_index: int) -> None:
        """Send ``data`` tagged with ``client_index``, truncated to the packet limit."""
        _checked_index(client_index)
        conn = self._conn
        if conn is None:
            raise NetworkError("connection is not open")
        payload = bytes(data)[:MAX_WEBSOCKET_PACKET_SIZE - 1]
        try:
            conn.send(bytes((client_index,)) + payload)
        except (ConnectionClosed, OSError) as exc:
            raise NetworkError(f"send failed: {exc}") from exc

    def _take(self, recv_timeout: int, client_index: int) -> bytes | None:
        pending = self._queues[_checked_index(client_index)]
        pause = max(recv_timeout, 0) // WEB_SOCKET_TIME_OUT / 1000
        polls = 0
        while pending.empty() and polls < WEB_SOCKET_TIME_OUT and self.accept:
            polls += 1
            time.sleep(pause)
        if polls >= WEB_SOCKET_TIME_OUT or not self.accept:
            return None
        try:
            return pending.get_nowait()
        except queue.Empty:
            return None

    def receive(self, size: int, recv_timeout: int, client_index: int) -> bytes:
        """Receive one frame for a host; it must carry exactly ``size`` bytes.

        ``recv_timeout`` is in milliseconds.
        """
        payload = self._take(recv_timeout, client_index)
        if payload is None:
            raise NetworkError("no frame arrived in time")
        if len(payload) != size:
            raise NetworkError(f"expected {size} bytes, got {len(payload)}")
        return payload

    def receive_unsafe(self, recv_timeout: int, client_index: int) -> bytes:
        """Receive one frame of any size; empty bytes if none arrived in time."""
        payload = self._take(recv_timeout, client_index)
        return b"" if payload is None else payload

    def register_vhost(self) -> int:
        """Reserve the next host index."""
        if self.host_count >= MAX_HOSTS:
            raise NetworkError("Too many hosts")
        index = self.host_count
        self.host_count += 1
        return index

    def set_name(self, name: str) -> None:
        """Set the name used in log messages."""
        self.name = _checked_name(name)

    def close(self) -> None:
        """Close the connection and stop routing frames."""
        self.accept = False
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.join()


class WsClient:
    """One virtual host over a ``WsClientMaster``'s connection."""

    def __init__(self, master: WsClientMaster, id: int = 0) -> None:
        self.master = master
        self.id = id
        self.name = "unknown"
        self.client_id: int | None = None
        self.recv_timeout = DEFAULT_RECV_TIMEOUT * 1000

    def set_name(self, name: str) -> None:
        """Set the name used in log messages."""
        self.name = _checked_name(name)

    def set_recv_timeout(self, sec: int, usec: int) -> None:
        """Set how long a receive waits, kept in milliseconds."""
        self.recv_timeout = sec * 1000 + usec // 1000

    def set_high_priority(self) -> None:
        """Accepted for interface parity; WebSocket frames have no priority."""

    def connect(self) -> None:
        """Reserve a host index on the master."""
        self.client_id = self.master.register_vhost()
        self.set_recv_timeout(DEFAULT_RECV_TIMEOUT, 0)

    def _index(self) -> int:
        if self.client_id is None:
            raise NetworkError("client is not connected")
        return self.client_id

    def send(self, data: bytes) -> None:
        """Send ``data`` on this client's host index."""
        self.master.send(data, self._index())

    def receive(self, size: int) -> bytes:
        """Receive one frame that must carry exactly ``size`` bytes."""
        return self.master.receive(size, self.recv_timeout, self._index())

    def receive_unsafe(self) -> bytes:
        """Receive one frame of any size; empty bytes if none arrived in time."""
        return self.master.receive_unsafe(self.recv_timeout, self._index())

    def close(self) -> None:
        """Forget this client's host index."""
        self.client_id = None