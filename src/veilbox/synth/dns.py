"""DNS block construction."""

from __future__ import annotations

from typing import Any

from veilbox.policy.models import DNSSettings

DEFAULT_STRATEGY = "prefer_ipv4"
FALLBACK_TAG = "dns"

_TAG_SCHEMES = ("https://", "tls://", "udp://", "tcp://")


def default_servers() -> list[dict[str, Any]]:
    return [
        {
            "tag": "secure",
            "type": "https",
            "server": "dns.google",
            "domain_resolver": "local",
        },
        {"tag": "local", "type": "local"},
    ]


def infer_server_type(address: str) -> str:
    """Guess the resolver kind from the address scheme."""
    if address.startswith("https://"):
        return "https"
    if address.startswith("tls://"):
        return "tls"
    if address == "local":
        return "local"
    return "udp"


def address_tag(address: str) -> str:
    """Default tag: the address without scheme prefix or trailing path."""
    address = address.strip()
    if not address:
        return FALLBACK_TAG
    for scheme in _TAG_SCHEMES:
        if address.startswith(scheme):
            address = address[len(scheme) :]
            break
    idx = address.find("/")
    if idx > 0:
        address = address[:idx]
    return address


def build_dns_block(settings: DNSSettings | None) -> dict[str, Any]:
    block: dict[str, Any] = {
        "servers": default_servers(),
        "strategy": DEFAULT_STRATEGY,
    }
    if settings is None:
        return block

    servers: list[dict[str, Any]] = []
    for upstream in settings.servers:
        address = upstream.address.strip()
        if not address:
            continue
        server_type = upstream.type.strip() or infer_server_type(address)
        entry: dict[str, Any] = {
            "tag": upstream.tag.strip() or address_tag(address),
            "type": server_type,
        }
        if server_type != "local":
            entry["server"] = address
        if upstream.detour.strip():
            entry["detour"] = upstream.detour.strip()
        if upstream.strategy.strip():
            entry["strategy"] = upstream.strategy.strip()
        servers.append(entry)

    if servers:
        block["servers"] = servers
    if settings.strategy.strip():
        block["strategy"] = settings.strategy.strip()
    return block
