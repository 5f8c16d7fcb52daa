import pytest

from rana.dns import DnsLookupError, resolve_ipv4
from rana.network import NetworkError


@pytest.mark.parametrize(
    "host, prefix",
    [("127.0.0.1", "127.0.0.1"), ("localhost", "127.")],
)
def test_resolves_to_loopback(host, prefix):
    assert resolve_ipv4(host, 2).startswith(prefix)


@pytest.mark.parametrize("host", ["no-such-host.invalid", ""])
def test_unresolvable_host_raises(host):
    with pytest.raises(DnsLookupError) as info:
        resolve_ipv4(host, 2)
    assert isinstance(info.value, NetworkError)


@pytest.mark.parametrize("timeout", [0, -1])
def test_non_positive_timeout_rejected(timeout):
    with pytest.raises(ValueError):
        resolve_ipv4("127.0.0.1", timeout)