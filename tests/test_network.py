import pytest

from rana.network import (
    MAX_UDP_CONNECTIONS,
    MAX_UDP_PACKET_SIZE,
    NetworkError,
    UdpPacket,
)


def test_parse_splits_channel_and_payload():
    packet = UdpPacket.parse(b"\x03hello")
    assert (packet.channel, packet.payload) == (3, b"hello")


def test_encode_prefixes_channel_byte():
    assert UdpPacket(7, b"abc").encode() == b"\x07abc"


@pytest.mark.parametrize("channel", [0, 5, MAX_UDP_CONNECTIONS - 1])
def test_round_trip(channel):
    packet = UdpPacket(channel, b"payload")
    assert UdpPacket.parse(packet.encode()) == packet


@pytest.mark.parametrize(
    "data",
    [
        b"\x01",
        b"",
        bytes((MAX_UDP_CONNECTIONS,)) + b"data",
        b"\x00" + b"x" * (MAX_UDP_PACKET_SIZE + 1),
    ],
    ids=["single-byte", "empty", "channel-out-of-range", "oversized"],
)
def test_parse_rejects(data):
    with pytest.raises(NetworkError) as info:
        UdpPacket.parse(data)
    assert isinstance(info.value, OSError)


def test_parse_accepts_maximum_payload():
    packet = UdpPacket.parse(b"\x02" + b"x" * MAX_UDP_PACKET_SIZE)
    assert len(packet.payload) == MAX_UDP_PACKET_SIZE


@pytest.mark.parametrize(
    "channel, payload",
    [(1, b"x" * (MAX_UDP_PACKET_SIZE + 1)), (256, b"x")],
    ids=["oversized-payload", "channel-outside-byte"],
)
def test_encode_rejects(channel, payload):
    with pytest.raises(NetworkError):
        UdpPacket(channel, payload).encode()