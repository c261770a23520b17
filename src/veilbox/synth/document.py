"""Config synthesizer. It turns a Profile plus PolicySettings into a sing-box document.

The document is built as a plain dict tree and only serialized at the edge
(``render_document``), so every user-supplied string is escaped by the JSON
encoder regardless of which block it lands in.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from veilbox.policy.models import ConnectionRequest, Mode, PolicySettings, Profile
from veilbox.synth.dns import build_dns_block
from veilbox.synth.experimental import build_experimental_block
from veilbox.synth.routing import build_route
from veilbox.synth.templates import select_template

logger = logging.getLogger(__name__)

LOG_LEVEL = "info"

Document = dict[str, Any]


def synthesize(
    profile: Profile,
    mode: str | Mode | None = None,
    settings: PolicySettings | None = None,
) -> Document:
    """Build the complete runtime configuration document.

    Raises UnsupportedModeError / UnsupportedTransportError before building
    anything; every other input is normalized.
    """
    template = select_template(mode, profile.transport)
    settings = settings or PolicySettings()

    document: Document = {
        "log": {"level": LOG_LEVEL, "timestamp": True},
        "dns": build_dns_block(settings.dns),
        "inbounds": template.inbounds(),
        "outbounds": template.outbounds(profile),
        "route": build_route(
            settings.split_tunnel, settings.region_routing, template.inbound_tags
        ),
        "experimental": build_experimental_block(settings.metrics),
    }
    logger.debug(
        "Synthesized %s/%s document for %s:%d with %d route rules",
        template.mode.value,
        template.transport.value,
        profile.host,
        profile.port,
        len(document["route"]["rules"]),
    )
    return document


def synthesize_request(request: ConnectionRequest) -> Document:
    return synthesize(request.profile, request.mode, request.settings)


def render_document(document: Document) -> str:
    """Serialize a document to the UTF-8 JSON text the engine reads."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def substitute_placeholder(document: Document, placeholder: str, value: str) -> Document:
    """Return a deep copy with every string equal to ``placeholder`` replaced."""

    def _walk(node: Any) -> Any:
        if isinstance(node, dict):
            return {k: _walk(v) for k, v in node.items()}
        if isinstance(node, list):
            return [_walk(v) for v in node]
        if isinstance(node, str) and node == placeholder:
            return value
        return node

    return _walk(document)
