"""Connection templates: a tagged variant over (mode, transport).

The mode decides which local inbound listeners exist; the transport decides the
shape of the VLESS outbound (gRPC stream plus connection multiplexing, or plain TCP).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from veilbox.policy.models import Mode, Profile, Transport

logger = logging.getLogger(__name__)

SOCKS_INBOUND = "socks-in"
HTTP_INBOUND = "http-in"
TUN_INBOUND = "tun-in"

LOCAL_LISTEN = "127.0.0.1"
SOCKS_PORT = 10808
HTTP_PORT = 10809

TUN_INTERFACE = "veilbox-tun"
TUN_ADDRESS = "172.19.0.1/30"

GRPC_IDLE_TIMEOUT = "15s"
MULTIPLEX_MAX_CONNECTIONS = 8
MULTIPLEX_MIN_STREAMS = 4
MULTIPLEX_MAX_STREAMS = 32

UTLS_FINGERPRINT = "chrome"

PROXY_OUTBOUND = "proxy"
DIRECT_OUTBOUND = "direct"
BLOCK_OUTBOUND = "block"


@dataclass(frozen=True)
class Template:
    mode: Mode
    transport: Transport

    @property
    def inbound_tags(self) -> tuple[str, ...]:
        if self.mode is Mode.TUN:
            return (SOCKS_INBOUND, HTTP_INBOUND, TUN_INBOUND)
        return (SOCKS_INBOUND, HTTP_INBOUND)

    def inbounds(self) -> list[dict[str, Any]]:
        inbounds: list[dict[str, Any]] = [
            {
                "type": "socks",
                "tag": SOCKS_INBOUND,
                "listen": LOCAL_LISTEN,
                "listen_port": SOCKS_PORT,
            },
            {
                "type": "http",
                "tag": HTTP_INBOUND,
                "listen": LOCAL_LISTEN,
                "listen_port": HTTP_PORT,
            },
        ]
        if self.mode is Mode.TUN:
            inbounds.append(
                {
                    "type": "tun",
                    "tag": TUN_INBOUND,
                    "interface_name": TUN_INTERFACE,
                    "address": [TUN_ADDRESS],
                    "auto_route": True,
                    "strict_route": True,
                    "stack": "system",
                }
            )
        return inbounds

    def outbounds(self, profile: Profile) -> list[dict[str, Any]]:
        return [
            self.proxy_outbound(profile),
            {"type": "direct", "tag": DIRECT_OUTBOUND},
            {"type": "block", "tag": BLOCK_OUTBOUND},
        ]

    def proxy_outbound(self, profile: Profile) -> dict[str, Any]:
        outbound: dict[str, Any] = {
            "type": "vless",
            "tag": PROXY_OUTBOUND,
            "server": profile.host,
            "server_port": profile.port,
            "uuid": profile.uuid,
        }
        if profile.flow:
            outbound["flow"] = profile.flow
        if profile.packet_encoding:
            outbound["packet_encoding"] = profile.packet_encoding
        outbound["tls"] = {
            "enabled": True,
            "server_name": profile.sni,
            "utls": {"enabled": True, "fingerprint": UTLS_FINGERPRINT},
            "reality": {
                "enabled": True,
                "public_key": profile.public_key,
                "short_id": profile.short_id,
            },
        }

        if self.transport.multiplexed:
            if not profile.service_name:
                # Accepted as-is; the engine decides whether an empty name is usable
                logger.warning(
                    "gRPC transport selected for %s without a service name", profile.host
                )
            outbound["transport"] = {
                "type": "grpc",
                "service_name": profile.service_name,
                "idle_timeout": GRPC_IDLE_TIMEOUT,
                "permit_without_stream": True,
            }
            outbound["multiplex"] = {
                "enabled": True,
                "max_connections": MULTIPLEX_MAX_CONNECTIONS,
                "min_streams": MULTIPLEX_MIN_STREAMS,
                "max_streams": MULTIPLEX_MAX_STREAMS,
            }
        else:
            outbound["multiplex"] = {"enabled": False}
        return outbound


def select_template(mode: str | Mode | None, transport: str | Transport | None) -> Template:
    """Resolve user-facing mode/transport strings into a Template.

    Raises UnsupportedModeError / UnsupportedTransportError for unknown values.
    """
    return Template(mode=Mode.parse(mode), transport=Transport.parse(transport))
