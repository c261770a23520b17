"""Tests for profile and policy-settings models."""

import dataclasses

import pytest

from veilbox.errors import (
    ConfigurationError,
    ProfileError,
    UnsupportedModeError,
    UnsupportedTransportError,
)
from veilbox.policy.models import (
    Mode,
    PolicySettings,
    Profile,
    SplitTunnelSettings,
    Transport,
)


def test_mode_values():
    assert Mode.PROXY.value == "proxy"
    assert Mode.TUN.value == "tun"


def test_mode_parse_is_case_insensitive():
    assert Mode.parse("TUN") is Mode.TUN
    assert Mode.parse(" Proxy ") is Mode.PROXY


def test_mode_parse_blank_defaults_to_proxy():
    assert Mode.parse("") is Mode.PROXY
    assert Mode.parse(None) is Mode.PROXY


def test_mode_parse_rejects_unknown():
    with pytest.raises(UnsupportedModeError, match="bogus"):
        Mode.parse("bogus")


def test_mode_parse_non_string_value():
    with pytest.raises(UnsupportedModeError, match="'2'"):
        Mode.parse(2)  # type: ignore[arg-type]


def test_transport_parse():
    assert Transport.parse("GRPC") is Transport.GRPC
    assert Transport.parse("") is Transport.GRPC
    assert Transport.parse("tcp") is Transport.TCP
    assert Transport.GRPC.multiplexed
    assert not Transport.TCP.multiplexed


def test_transport_parse_rejects_unknown():
    with pytest.raises(UnsupportedTransportError, match="quic"):
        Transport.parse("quic")


def test_configuration_errors_are_value_errors():
    assert issubclass(UnsupportedModeError, ConfigurationError)
    assert issubclass(ConfigurationError, ValueError)


def test_profile_frozen(profile: Profile):
    with pytest.raises(dataclasses.FrozenInstanceError):
        profile.host = "other.example"  # type: ignore[misc]


def test_profile_blank_transport_defaults_to_grpc():
    p = Profile(uuid="u", host="h", port=1, transport="")
    assert p.transport == "grpc"


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"uuid": "", "host": "h", "port": 443}, "user id"),
        ({"uuid": "u", "host": "  ", "port": 443}, "host"),
        ({"uuid": "u", "host": "h", "port": 0}, "out of range"),
        ({"uuid": "u", "host": "h", "port": 65536}, "out of range"),
    ],
)
def test_profile_validation(kwargs: dict, message: str):
    with pytest.raises(ProfileError, match=message):
        Profile(**kwargs)


def test_policy_settings_defaults_are_empty():
    settings = PolicySettings()
    assert settings.split_tunnel is None
    assert settings.dns is None
    assert settings.region_routing is None
    assert settings.metrics is None


def test_split_tunnel_defaults():
    split = SplitTunnelSettings()
    assert split.block_domains == ()
    assert split.proxy_processes == ()
