"""Shared networking constants, errors and the channel-tagged UDP packet."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable

NETWORKING_BUFFER_SIZE = 3000
NETWORKING_NO_TIMEOUT = 0

ARBITRARILY_LARGE_PACKET = 100000
MAX_NAME_SIZE = 100

TEST_BUFF_SIZE = 4

DEFAULT_RECV_TIMEOUT = 1
DEFAULT_CONNECT_TIMEOUT = 500000  # microseconds
DEFAULT_ACCEPT_TIMEOUT = 5
RECV_ATTEMPTS = 100
MAX_UDP_PACKET_SIZE = 1454
MAX_UDP_CONNECTIONS = 20
POOL_QUEUE_SIZE = 50

IP_ADDR_STR_LEN = 15

ReceiveCallback = Callable[[Any, bytes], None]
"""Called as ``callback(user_ptr, payload)`` when a server endpoint gets data."""


class NetworkError(OSError):
    """Raised when a socket operation fails."""


class NetworkType(IntEnum):
    """Transport used by a connection."""

    TCP = 1
    UDP = 2
    WS = 3


class RootSocketType(IntEnum):
    """Transport backing the shared root socket of a server registry."""

    TCP = 0
    UDP = 1
    WS = 2


@dataclass(frozen=True)
class UdpPacket:
    """A datagram whose first byte names the virtual channel it belongs to."""

    channel: int
    payload: bytes

    @classmethod
    def parse(cls, data: bytes) -> "UdpPacket":
        """Split a received datagram into channel and payload.

        Raises NetworkError for datagrams a receive loop would drop.
        """
        data = bytes(data)
        if len(data) <= 1:
            raise NetworkError("datagram too short to carry a payload")
        if len(data) > MAX_UDP_PACKET_SIZE + 1:
            raise NetworkError("datagram larger than the maximum packet size")
        channel = data[0]
        if channel >= MAX_UDP_CONNECTIONS:
            raise NetworkError(f"invalid channel id {channel}")
        return cls(channel, data[1:])

    def encode(self) -> bytes:
        """Return the wire form: one channel byte followed by the payload."""
        if not 0 <= self.channel <= 0xFF:
            raise NetworkError(f"channel id {self.channel} does not fit in a byte")
        if len(self.payload) > MAX_UDP_PACKET_SIZE:
            raise NetworkError("payload larger than the maximum packet size")
        return bytes((self.channel,)) + bytes(self.payload)