"""Configuration synthesis: Profile + PolicySettings → sing-box document."""

from veilbox.synth.document import (
    Document,
    render_document,
    substitute_placeholder,
    synthesize,
    synthesize_request,
)
from veilbox.synth.experimental import CACHE_FILE_PLACEHOLDER, traffic_endpoint

__all__ = [
    "CACHE_FILE_PLACEHOLDER",
    "Document",
    "render_document",
    "substitute_placeholder",
    "synthesize",
    "synthesize_request",
    "traffic_endpoint",
]
