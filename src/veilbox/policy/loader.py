"""Load ConnectionRequest objects (profile + mode + policy settings) from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from veilbox.errors import SettingsError
from veilbox.policy.models import (
    ConnectionRequest,
    DNSSettings,
    DNSUpstream,
    MetricsSettings,
    Mode,
    PolicySettings,
    Profile,
    RegionRoutingSettings,
    SplitTunnelSettings,
)

_SPLIT_TUNNEL_KEYS = (
    "bypass_domains",
    "bypass_ips",
    "bypass_processes",
    "proxy_domains",
    "proxy_ips",
    "proxy_processes",
    "block_domains",
    "block_ips",
    "block_processes",
)


def load_settings(path: str | Path) -> ConnectionRequest:
    """Load a connection request from a YAML file path."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"cannot read settings file {path}: {exc}") from exc
    return load_settings_from_string(text)


def load_settings_from_string(text: str) -> ConnectionRequest:
    """Parse a YAML string into a ConnectionRequest."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SettingsError(f"invalid settings YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError("Settings YAML must be a mapping")
    return _build_request(data)


def _build_request(data: dict) -> ConnectionRequest:
    profile_data = _section(data, "profile")
    if profile_data is None:
        raise SettingsError("Settings YAML must contain a 'profile' section")

    return ConnectionRequest(
        profile=parse_profile(profile_data),
        mode=Mode.parse(_str(data.get("mode"))),
        settings=parse_policy_settings(data),
    )


def parse_profile(data: dict) -> Profile:
    """Build a Profile from a mapping; validation happens in Profile itself."""
    port_raw = data.get("port", 0)
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        raise SettingsError(f"profile port must be a number, got {port_raw!r}") from None

    return Profile(
        uuid=_str(data.get("uuid")),
        host=_str(data.get("host")),
        port=port,
        sni=_str(data.get("sni")),
        public_key=_str(data.get("public_key")),
        short_id=_str(data.get("short_id")),
        transport=_str(data.get("transport")) or "grpc",
        service_name=_str(data.get("service_name")),
        flow=_str(data.get("flow")),
        packet_encoding=_str(data.get("packet_encoding")),
        spider_x=_str(data.get("spider_x")),
    )


def parse_policy_settings(data: dict) -> PolicySettings:
    split = _section(data, "split_tunnel")
    dns = _section(data, "dns")
    region = _section(data, "region_routing")
    metrics = _section(data, "metrics")

    return PolicySettings(
        split_tunnel=_parse_split_tunnel(split) if split is not None else None,
        dns=_parse_dns(dns) if dns is not None else None,
        region_routing=_parse_region(region) if region is not None else None,
        metrics=_parse_metrics(metrics) if metrics is not None else None,
    )


def _parse_split_tunnel(data: dict) -> SplitTunnelSettings:
    return SplitTunnelSettings(
        **{key: _str_list(data.get(key), key) for key in _SPLIT_TUNNEL_KEYS}
    )


def _parse_dns(data: dict) -> DNSSettings:
    servers: list[DNSUpstream] = []
    raw_servers = data.get("servers") or []
    if not isinstance(raw_servers, (list, tuple)):
        raw_servers = [raw_servers]
    for s in raw_servers:
        if isinstance(s, str):
            servers.append(DNSUpstream(address=s))
            continue
        if not isinstance(s, dict):
            continue
        servers.append(
            DNSUpstream(
                address=_str(s.get("address")),
                tag=_str(s.get("tag")),
                type=_str(s.get("type")),
                detour=_str(s.get("detour")),
                strategy=_str(s.get("strategy")),
            )
        )
    return DNSSettings(strategy=_str(data.get("strategy")), servers=tuple(servers))


def _parse_region(data: dict) -> RegionRoutingSettings:
    return RegionRoutingSettings(
        proxy_countries=_str_list(data.get("proxy_countries"), "proxy_countries"),
        direct_countries=_str_list(data.get("direct_countries"), "direct_countries"),
        block_countries=_str_list(data.get("block_countries"), "block_countries"),
    )


def _parse_metrics(data: dict) -> MetricsSettings:
    return MetricsSettings(
        enable_observatory=bool(data.get("enable_observatory", False)),
        listen=_str(data.get("listen")),
        token=_str(data.get("token")),
    )


def _section(data: dict, key: str) -> dict | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise SettingsError(f"'{key}' must be a mapping")
    return value


def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _str_list(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, dict):
        raise SettingsError(f"'{key}' must be a list, not a mapping")
    if not isinstance(value, (list, tuple)):
        value = [value]
    return tuple(str(v) for v in value if v is not None)
