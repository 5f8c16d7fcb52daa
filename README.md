# rana

A small networking toolkit built around one idea: several logical endpoints
share a single socket or connection, and the first byte of every datagram or
frame names the endpoint it belongs to.

What it contains:

- `rana.udp_server` and `rana.udp_client`: UDP masters that own one socket and
  share it between up to 20 channels (`MAX_UDP_CONNECTIONS`). A background
  thread reads datagrams and sorts their payloads into per-channel queues.
- `rana.ws_client`: a WebSocket client master that routes incoming frames to
  up to 20 virtual hosts (`MAX_HOSTS`) over one connection.
- `rana.network`: shared constants, `NetworkError`, the `NetworkType` and
  `RootSocketType` enums, and `UdpPacket`, the channel-tagged datagram.
- `rana.dns`: `resolve_ipv4(host, timeout)`, a host-name lookup with a time limit.
- `rana.fps_limiter`: `FpsLimiter`, which keeps a loop at or below a frame rate.
- `rana.c_array`: `CircularArray`, a fixed-size ring that always exposes its
  newest five elements as one window.

## Installation

```
pip install .
```

## The wire format

Every UDP datagram and WebSocket frame is one channel byte followed by the
payload:

```python
from rana.network import UdpPacket

wire = UdpPacket(3, b"hello").encode()   # b"\x03hello"
packet = UdpPacket.parse(wire)           # UdpPacket(channel=3, payload=b"hello")
```

`UdpPacket.parse` raises `NetworkError` for datagrams the receive loops drop:
those of one byte or less, those longer than `MAX_UDP_PACKET_SIZE + 1` bytes,
and those whose channel byte is 20 or more. `encode` raises `NetworkError` for
payloads longer than `MAX_UDP_PACKET_SIZE` (1454) bytes.

## Multiplexed UDP

A `UdpServerMaster` binds a port (port 0 picks a free one, readable from
`.port`). A `UdpClientMaster` takes the server's port and an address; a host
name is resolved to IPv4 with a two-second limit. `UdpServer` and `UdpClient`
are single channels over their master, with ids 0 to 19.

The handshake is one four-byte datagram: `UdpClient.connect()` sends it and
waits up to half a second for the echo, and `UdpServer.accept()` waits up to
five seconds for it, echoes it back and remembers the sender as the client.
Both then start their master's receive thread. Accept in another thread so the
two can meet:

```python
import threading

from rana.udp_client import UdpClient, UdpClientMaster
from rana.udp_server import UdpServer, UdpServerMaster

with UdpServerMaster() as server_master, \
        UdpClientMaster(server_master.port, "127.0.0.1") as client_master:
    server = UdpServer(server_master, 3)
    client = UdpClient(client_master, 3)

    accepting = threading.Thread(target=server.accept)
    accepting.start()
    client.connect()
    accepting.join()

    client.send(b"hello")
    print(server.receive(5))          # b"hello"
    server.send(b"reply")
    print(client.receive_unsafe())    # b"reply"

    client.close()
    server.close()
```

Receiving:

- `receive(size)` waits up to the channel's timeout (one second by default,
  changed with `set_recv_timeout(sec, usec)`) for one packet, and raises
  `NetworkError` if none arrives or if its payload is not exactly `size` bytes.
- `receive_unsafe()` returns the next payload of any size, or `b""` if none
  arrived in time.

`close()` on a channel drains its queue and stops the master's receive thread;
`close()` on a master, or leaving its `with` block, releases the socket. A
second `close()` only logs a warning. `set_high_priority()` raises the socket
priority on Linux and does nothing elsewhere. `set_name(name)` sets the name
used in log messages; names must be shorter than 100 characters.

## WebSocket client

`WsClientMaster(port, ip)` connects to `ws://<ip>:<port>` when `open()` is
called, then reads frames in a background thread. Each frame goes to the queue
of the host named by its first byte; a frame is dropped if that byte is 20 or
more, or if four frames are already waiting for that host.
`handle_message(data)` does this routing and returns whether the frame was
kept.

```python
from rana.ws_client import WsClient, WsClientMaster

master = WsClientMaster(8765, "127.0.0.1")
master.open()

client = WsClient(master)
client.connect()                 # reserves host index 0
client.send(b"ping")             # sent as b"\x00ping"
reply = client.receive_unsafe()  # b"" if nothing came in time

master.close()
```

`WsClient.connect()` reserves the next host index with
`WsClientMaster.register_vhost()`; more than 20 raise `NetworkError`. Outgoing
payloads are cut to `MAX_WEBSOCKET_PACKET_SIZE - 1` bytes. The receive
timeout is kept in milliseconds (one second by default); the master polls the
queue ten times across it and gives up early if the connection closes.
`WsClient.receive(size)` raises `NetworkError` on a timeout or a size mismatch.

## IPv4 lookup

```python
from rana.dns import resolve_ipv4

resolve_ipv4("localhost", 2)   # "127.0.0.1"
```

It raises `DnsLookupError` (a `NetworkError`) if the name cannot be resolved
or the lookup takes longer than `timeout` seconds, and `ValueError` if the
timeout is not positive. Lookups are serialised by a lock.

## Frame limiting

```python
from rana.fps_limiter import FpsLimiter

limiter = FpsLimiter(60)
for _ in range(120):
    with limiter:
        render()
```

`stop()` (called on leaving the `with` block) sleeps out whatever is left of
the frame's budget of `1000 // fps` milliseconds and returns how long the
frame took, in whole milliseconds. After every 31 frames the average of the
previous 30 is stored in `average_frame_time`. With `verbose=True` each frame
time is printed and each average is logged at debug level.

## Circular array

```python
from rana.c_array import CircularArray

arr = CircularArray(4)
arr.put(b"\x01\x00\x00\x00")
arr.get()   # five 4-byte elements, oldest first, the newest last
```

Elements must be exactly `elem_size` bytes. The buffer is 50000 bytes, and the
element size must leave room for at least two windows of five, otherwise the
constructor raises `ValueError`. Before five elements have been put, the window
is padded with zero-filled elements. It is not thread safe.

## What the package does not do

- It has no TCP transport.
- It has no WebSocket server. `WsClientMaster` needs a server that speaks the
  same one-byte host framing.
- It has no HTTP or RPC layer.
- It has no command-line program. It is a library only.

## Errors

Failures raise exceptions:

- Socket, handshake, timeout and size-mismatch failures raise
  `rana.network.NetworkError`, a subclass of `OSError`.
- Lookup failures raise `rana.dns.DnsLookupError`.
- Out-of-range ports, channel ids, host indices and over-long names raise
  `ValueError`.

## Running the tests

```
pip install .[test]
pytest
```