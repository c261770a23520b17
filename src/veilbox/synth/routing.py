"""Route rule sequence. The engine applies the first matching rule, so emission order matters.

Order:
  1. user block rules, then the ad rule-set block rule
  2. region block
  3. user bypass (direct) rules
  4. region direct
  5. private IP ranges → direct
  6. user proxy rules
  7. region proxy
  8. catch-all on the active inbounds → proxy
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from veilbox.policy.models import RegionRoutingSettings, SplitTunnelSettings
from veilbox.synth.templates import BLOCK_OUTBOUND, DIRECT_OUTBOUND, PROXY_OUTBOUND

ADS_RULE_SET_TAG = "geosite-category-ads-all"
ADS_RULE_SET_URL = (
    "https://raw.githubusercontent.com/SagerNet/sing-geosite/rule-set/"
    "geosite-category-ads-all.srs"
)

Rule = dict[str, Any]


def clean_list(values: Iterable[str]) -> list[str]:
    """Trim entries and drop blanks, preserving order."""
    return [v.strip() for v in values if v and v.strip()]


def country_codes(values: Iterable[str]) -> list[str]:
    return [code.upper() for code in clean_list(values)]


def _list_rules(
    outbound: str,
    domains: Iterable[str],
    ips: Iterable[str],
    processes: Iterable[str],
) -> list[Rule]:
    rules: list[Rule] = []
    for key, values in (
        ("domain", domains),
        ("ip_cidr", ips),
        ("process_name", processes),
    ):
        cleaned = clean_list(values)
        if cleaned:
            rules.append({key: cleaned, "outbound": outbound})
    return rules


def _region_rule(outbound: str, countries: Iterable[str]) -> list[Rule]:
    codes = country_codes(countries)
    if not codes:
        return []
    return [{"geoip": codes, "outbound": outbound}]


def build_rules(
    split: SplitTunnelSettings | None,
    region: RegionRoutingSettings | None,
    inbound_tags: Iterable[str],
) -> list[Rule]:
    split = split or SplitTunnelSettings()
    region = region or RegionRoutingSettings()

    rules: list[Rule] = []
    rules += _list_rules(
        BLOCK_OUTBOUND, split.block_domains, split.block_ips, split.block_processes
    )
    rules.append({"rule_set": ADS_RULE_SET_TAG, "outbound": BLOCK_OUTBOUND})
    rules += _region_rule(BLOCK_OUTBOUND, region.block_countries)

    rules += _list_rules(
        DIRECT_OUTBOUND, split.bypass_domains, split.bypass_ips, split.bypass_processes
    )
    rules += _region_rule(DIRECT_OUTBOUND, region.direct_countries)
    rules.append({"ip_is_private": True, "outbound": DIRECT_OUTBOUND})

    rules += _list_rules(
        PROXY_OUTBOUND, split.proxy_domains, split.proxy_ips, split.proxy_processes
    )
    rules += _region_rule(PROXY_OUTBOUND, region.proxy_countries)
    rules.append({"inbound": list(inbound_tags), "outbound": PROXY_OUTBOUND})
    return rules


def build_rule_sets() -> list[dict[str, Any]]:
    return [
        {
            "tag": ADS_RULE_SET_TAG,
            "type": "remote",
            "format": "binary",
            "url": ADS_RULE_SET_URL,
            "download_detour": DIRECT_OUTBOUND,
        }
    ]


def build_route(
    split: SplitTunnelSettings | None,
    region: RegionRoutingSettings | None,
    inbound_tags: Iterable[str],
) -> dict[str, Any]:
    return {
        "rules": build_rules(split, region, inbound_tags),
        "rule_set": build_rule_sets(),
        "auto_detect_interface": True,
    }
