"""Static connector registry, built once at startup."""

from __future__ import annotations

import logging

import httpx

from config.settings import settings
from sources.base import BaseConnector
from sources.devto import DevToConnector
from sources.github import GitHubConnector
from sources.hackernews import HackerNewsConnector
from sources.reddit import RedditConnector
from sources.serper import SerperConnector

log = logging.getLogger(__name__)

CONNECTOR_TYPES: tuple[type[BaseConnector], ...] = (
    RedditConnector,
    HackerNewsConnector,
    GitHubConnector,
    DevToConnector,
    SerperConnector,
)


def build_connectors(
    enabled: list[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[BaseConnector]:
    names = enabled if enabled is not None else settings.enabled_sources
    known = {cls.source_name: cls for cls in CONNECTOR_TYPES}

    connectors: list[BaseConnector] = []
    for name in names:
        cls = known.get(name)
        if cls is None:
            log.warning("Unknown source '%s' in configuration, ignoring", name)
            continue
        connectors.append(cls(client))
    log.info("Enabled sources: %s", ", ".join(c.source_name for c in connectors) or "none")
    return connectors
