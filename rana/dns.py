"""IPv4 host name lookup with a time limit."""

from __future__ import annotations

import socket
import threading

from .network import NetworkError

_lookup_lock = threading.Lock()


class DnsLookupError(NetworkError):
    """Raised when a host name cannot be resolved to an IPv4 address."""


def resolve_ipv4(host: str, timeout: float) -> str:
    """Resolve ``host`` to a dotted IPv4 address within ``timeout`` seconds."""
    if timeout <= 0:
        raise ValueError("timeout must be positive")
    if not host:
        raise DnsLookupError("no host name given")

    outcome: dict[str, object] = {}

    def lookup() -> None:
        try:
            infos = socket.getaddrinfo(host, None, socket.AF_INET, socket.SOCK_STREAM)
        except (OSError, UnicodeError) as exc:
            outcome["error"] = exc
            return
        if infos:
            outcome["address"] = infos[0][4][0]

    worker = threading.Thread(target=lookup, name="dns-lookup", daemon=True)
    with _lookup_lock:
        worker.start()
        worker.join(timeout)

    if worker.is_alive():
        raise DnsLookupError(f"lookup of {host!r} timed out")
    error = outcome.get("error")
    if isinstance(error, BaseException):
        raise DnsLookupError(f"failed to look up {host!r}: {error}") from error
    address = outcome.get("address")
    if not isinstance(address, str):
        raise DnsLookupError(f"no IPv4 address found for {host!r}")
    return address