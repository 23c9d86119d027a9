import pytest

from winboat.core.exceptions import PortBindingError
from winboat.types.ports import PortBinding, PortRange, parse_port_or_range


@pytest.mark.parametrize(
    ("entry", "expected"),
    [
        ("8006", "0.0.0.0:8006:8006/tcp"),
        ("8006:8006", "0.0.0.0:8006:8006/tcp"),
        ("3389:3389/udp", "0.0.0.0:3389:3389/udp"),
        ("127.0.0.1:8149:7149", "127.0.0.1:8149:7149/tcp"),
        ("127.0.0.1::8006", "127.0.0.1::8006/tcp"),
        ("[::1]:8006:8006", "[::1]:8006:8006/tcp"),
        ("5000-5010:5000-5010/udp", "0.0.0.0:5000-5010:5000-5010/udp"),
    ],
)
def test_parse_fills_defaults_in_canonical_entry(entry: str, expected: str):
    assert PortBinding.parse(entry).entry == expected


def test_canonical_entry_parses_to_equal_binding():
    binding = PortBinding.parse("127.0.0.1:8149:7149/udp")
    assert PortBinding.parse(binding.entry) == binding


def test_empty_host_port_is_runtime_assigned():
    binding = PortBinding.parse("127.0.0.1::7148")
    assert binding.host_port is None
    assert binding.container_port == 7148
    assert binding.host_address == "127.0.0.1"


def test_range_parses_to_port_range():
    binding = PortBinding.parse("5000-5010:6000-6010")
    assert binding.host_port == PortRange(start=5000, end=5010)
    assert binding.guest_port is None
    assert len(binding.container_port) == 11


@pytest.mark.parametrize(
    ("entry", "message"),
    [
        ("8006:8006/sctp", "not supported"),
        ("999.1.1.1:8006:8006", "Invalid bind address"),
        ("[::1:8006:8006", "unbalanced"),
        ("8006:70000", "outside the valid range"),
        ("8006:abc", "Invalid port"),
        ("5010-5000:5000", "start is greater than end"),
        ("8006:", "missing container port"),
        ("", "Empty port entry"),
    ],
)
def test_parse_rejects_invalid_entries(entry: str, message: str):
    with pytest.raises(PortBindingError, match=message):
        PortBinding.parse(entry)


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        PortBinding.parse("abc")


def test_from_ports_builds_wildcard_binding():
    assert PortBinding.from_ports(3390, 3389, "udp").entry == "0.0.0.0:3390:3389/udp"


def test_parse_port_or_range():
    assert parse_port_or_range(" 80 ") == 80
    assert parse_port_or_range("80-90") == PortRange(start=80, end=90)
    assert str(PortRange.parse("80-90")) == "80-90"
