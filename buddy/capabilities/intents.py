"""Phrase-level intent detection for the first text waterfall slots.

Each gate wraps a collaborator handler and declines without calling it
when the text does not carry the intent.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Literal

from buddy.core.waterfall import CapabilityHandler, CapabilityOutcome, CapabilityRequest, Declined

GenerationType = Literal["image", "document"]

_IMAGE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(create|generate|make|draw|design)\b.{0,20}\b(image|picture|photo|illustration|art|artwork|logo|icon)\b",
        r"\b(image|picture|photo|illustration)\b.{0,20}\b(of|for|about|showing)\b",
    )
]

_DOCUMENT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        # word
        r"\b(create|generate|make|write)\b.{0,20}\b(word|docx|word document|word file)\b",
        r"\bword\s+(document|file)\b.{0,20}\b(about|for|on)\b",
        # slides
        r"\b(create|generate|make)\b.{0,20}\b(powerpoint|pptx|presentation|ppt|slides?)\b",
        r"\b(powerpoint|presentation|slides?)\b.{0,20}\b(about|for|on)\b",
        # spreadsheets
        r"\b(create|generate|make)\b.{0,20}\b(excel|xlsx|spreadsheet|worksheet)\b",
        r"\b(excel|spreadsheet)\b.{0,20}\b(about|for|on|with)\b",
        # pdf and generic documents
        r"\b(create|generate|make|write)\b.{0,20}\b(pdf|document|doc|file|report|guide|manual|instructions|recipe)\b",
        r"\b(document|doc|pdf|file|report|guide)\b.{0,20}\b(about|for|on|explaining)\b",
    )
]

_SEARCH_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^search\s+(?:for\s+)?(.+)",
        r"^look\s+up\s+(.+)",
        r"^google\s+(.+)",
        r"^find\s+(?:info|information)\s+(?:about|on)\s+(.+)",
        r"^what\s+(?:is|are)\s+the\s+latest\s+(.+)",
        r"^what'?s\s+(?:the\s+)?latest\s+(?:on|about|with)\s+(.+)",
    )
]

_SUMMARIZE_PATTERNS = [
    re.compile(
        r"\b(summarize|summary|tl;dr|tldr|give me the gist of"
        r"|what does this (article|page|link) say about"
        r"|explain this (article|link|url))\b",
        re.IGNORECASE,
    ),
    re.compile(r"^\s*https?://", re.IGNORECASE),
]

_URL_RE = re.compile(r"(https?://[^\s<>\"{}|\\^`\[\]]+)", re.IGNORECASE)
_TRAILING_PUNCT = re.compile(r"[.,;:!?)]+$")


def detect_generation_type(text: str) -> GenerationType | None:
    if any(p.search(text) for p in _IMAGE_PATTERNS):
        return "image"
    if any(p.search(text) for p in _DOCUMENT_PATTERNS):
        return "document"
    return None


def detect_search_query(text: str) -> str | None:
    stripped = text.strip()
    for pattern in _SEARCH_PATTERNS:
        match = pattern.match(stripped)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def extract_url(text: str) -> str | None:
    match = _URL_RE.search(text)
    if not match:
        return None
    return _TRAILING_PUNCT.sub("", match.group(1).strip())


def detect_summary_url(text: str) -> str | None:
    """The URL to summarize, when the text is a bare link or asks for a summary."""
    url = extract_url(text)
    if url is None:
        return None
    if text.strip() == url or any(p.search(text) for p in _SUMMARIZE_PATTERNS):
        return url
    return None


def generation_gate(kind: GenerationType, handler: CapabilityHandler) -> CapabilityHandler:
    async def gated(request: CapabilityRequest) -> CapabilityOutcome:
        if detect_generation_type(request.text) != kind:
            return Declined(f"no {kind} generation intent")
        return await handler(request)

    return gated


def url_gate(handler: CapabilityHandler) -> CapabilityHandler:
    async def gated(request: CapabilityRequest) -> CapabilityOutcome:
        url = detect_summary_url(request.text)
        if url is None:
            return Declined("no url to summarize")
        return await handler(replace(request, argument=url))

    return gated


def search_gate(handler: CapabilityHandler) -> CapabilityHandler:
    async def gated(request: CapabilityRequest) -> CapabilityOutcome:
        query = detect_search_query(request.text)
        if query is None:
            return Declined("no search intent")
        return await handler(replace(request, argument=query))

    return gated
