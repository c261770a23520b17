"""Profile and policy-settings models: immutable dataclasses used across the codebase."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from veilbox.errors import ProfileError, UnsupportedModeError, UnsupportedTransportError


class Mode(enum.Enum):
    """Connection template: local proxy listeners only, or a full TUN tunnel."""

    PROXY = "proxy"
    TUN = "tun"

    @classmethod
    def parse(cls, value: str | Mode | None) -> Mode:
        if isinstance(value, Mode):
            return value
        text = ("" if value is None else str(value)).strip().lower()
        if not text:
            return cls.PROXY
        try:
            return cls(text)
        except ValueError:
            raise UnsupportedModeError(text) from None


class Transport(enum.Enum):
    """Stream transport between the engine and the remote server."""

    GRPC = "grpc"
    TCP = "tcp"

    @property
    def multiplexed(self) -> bool:
        return self is Transport.GRPC

    @classmethod
    def parse(cls, value: str | Transport | None) -> Transport:
        if isinstance(value, Transport):
            return value
        text = ("" if value is None else str(value)).strip().lower()
        if not text:
            return cls.GRPC
        try:
            return cls(text)
        except ValueError:
            raise UnsupportedTransportError(text) from None


@dataclass(frozen=True)
class Profile:
    """A normalized VLESS/REALITY connection profile."""

    uuid: str
    host: str
    port: int
    sni: str = ""
    public_key: str = ""
    short_id: str = ""
    transport: str = "grpc"
    service_name: str = ""
    flow: str = ""
    packet_encoding: str = ""
    spider_x: str = ""

    def __post_init__(self) -> None:
        if not self.uuid.strip():
            raise ProfileError("profile is missing the user id")
        if not self.host.strip():
            raise ProfileError("profile is missing the server host")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ProfileError(f"profile port must be an integer, got {self.port!r}")
        if not 1 <= self.port <= 65535:
            raise ProfileError(f"profile port {self.port} is out of range 1-65535")
        if not self.transport:
            object.__setattr__(self, "transport", "grpc")


@dataclass(frozen=True)
class SplitTunnelSettings:
    """Per-destination overrides: bypass (direct), force-proxy, and block lists."""

    bypass_domains: tuple[str, ...] = ()
    bypass_ips: tuple[str, ...] = ()
    bypass_processes: tuple[str, ...] = ()
    proxy_domains: tuple[str, ...] = ()
    proxy_ips: tuple[str, ...] = ()
    proxy_processes: tuple[str, ...] = ()
    block_domains: tuple[str, ...] = ()
    block_ips: tuple[str, ...] = ()
    block_processes: tuple[str, ...] = ()


@dataclass(frozen=True)
class DNSUpstream:
    """One upstream resolver. ``type`` is inferred from ``address`` when blank."""

    address: str
    tag: str = ""
    type: str = ""
    detour: str = ""
    strategy: str = ""


@dataclass(frozen=True)
class DNSSettings:
    strategy: str = ""
    servers: tuple[DNSUpstream, ...] = ()


@dataclass(frozen=True)
class RegionRoutingSettings:
    """Country codes (GeoIP) routed through the proxy, directly, or blocked."""

    proxy_countries: tuple[str, ...] = ()
    direct_countries: tuple[str, ...] = ()
    block_countries: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricsSettings:
    enable_observatory: bool = False
    listen: str = ""
    token: str = ""


@dataclass(frozen=True)
class PolicySettings:
    """The four independent, optional settings groups layered on a profile."""

    split_tunnel: SplitTunnelSettings | None = None
    dns: DNSSettings | None = None
    region_routing: RegionRoutingSettings | None = None
    metrics: MetricsSettings | None = None


@dataclass(frozen=True)
class ConnectionRequest:
    """Everything needed to synthesize a document: profile, mode, and settings."""

    profile: Profile
    mode: Mode = Mode.PROXY
    settings: PolicySettings = field(default_factory=PolicySettings)
