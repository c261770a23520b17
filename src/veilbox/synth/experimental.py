"""Experimental block: cache file plus the optional observatory / Clash API endpoint."""

from __future__ import annotations

from typing import Any

from veilbox.policy.models import MetricsSettings

CACHE_FILE_PLACEHOLDER = "__CACHE_FILE_PATH__"
DEFAULT_OBSERVATORY_LISTEN = "127.0.0.1:9090"


def observatory_listen(settings: MetricsSettings) -> str:
    return settings.listen.strip() or DEFAULT_OBSERVATORY_LISTEN


def build_experimental_block(settings: MetricsSettings | None) -> dict[str, Any]:
    block: dict[str, Any] = {
        "cache_file": {"enabled": True, "path": CACHE_FILE_PLACEHOLDER},
    }
    if settings is None or not settings.enable_observatory:
        return block

    listen = observatory_listen(settings)
    token = settings.token.strip()

    observatory: dict[str, Any] = {"enabled": True, "listen": listen}
    if token:
        observatory["token"] = token
    block["observatory"] = observatory

    clash_api: dict[str, Any] = {
        "external_controller": listen,
        "access_control_allow_origin": ["*"],
    }
    if token:
        clash_api["secret"] = token
    block["clash_api"] = clash_api
    return block


def traffic_endpoint(settings: MetricsSettings | None) -> tuple[str, str] | None:
    """Return ``(url, token)`` of the JSON-lines traffic feed, or None if disabled.

    An external poller reads this with ``Authorization: Bearer <token>`` when the
    token is non-empty.
    """
    if settings is None or not settings.enable_observatory:
        return None
    base = observatory_listen(settings)
    if "://" not in base:
        base = "http://" + base
    return base.rstrip("/") + "/traffic", settings.token.strip()
