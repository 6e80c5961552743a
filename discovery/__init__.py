"""
Discovery & Enrichment.

This package provides:
- SourceDiscovery: new outlets from web search, suggested after repeat sightings
- AspirantDiscovery: adds announced aspirants, removes those who withdrew
- ProfileUpdater: daily party/coalition/role/slogan refresh
- ContextGenerator: cached narrative briefings

Usage:
    from discovery import SourceDiscovery

    discovery = SourceDiscovery(store, search_client)
    suggestions = await discovery.run(store.get_sources())
"""

from discovery.aspirants import (
    AspirantDiscovery,
    DiscoveredAspirant,
    find_known_names,
    infer_party,
    infer_status,
)
from discovery.context import ContextGenerator, recent_events
from discovery.profiles import ProfileUpdater
from discovery.sources import (
    SourceDiscovery,
    is_ignored_domain,
    is_tracked_domain,
)


__all__ = [
    # Sources
    "SourceDiscovery",
    "is_ignored_domain",
    "is_tracked_domain",

    # Aspirants
    "AspirantDiscovery",
    "DiscoveredAspirant",
    "find_known_names",
    "infer_party",
    "infer_status",

    # Enrichment
    "ContextGenerator",
    "ProfileUpdater",
    "recent_events",
]
