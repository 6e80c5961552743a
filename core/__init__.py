"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- constants: System-wide constants
- models: Domain records (entities, feed events, sources, schedule)
- config: Environment-driven tracker configuration
"""

from core.clock import (
    ClockFactory,
    ClockProtocol,
    MockClock,
    SystemClock,
    now_utc,
    parse_timestamp,
    to_iso8601,
)
from core.config import TrackerConfig, get_config, set_config
from core.exceptions import (
    ConfigurationError,
    ImportDataError,
    LegacyTierQuotaError,
    SchedulerError,
    StorageError,
    StorageTierError,
    TrackerError,
)
from core.models import (
    AspirantRecord,
    AspirantStatus,
    CandidateContext,
    DiscoveredSource,
    Entity,
    FeedEvent,
    HistoryPoint,
    ProfileChange,
    ProviderConfig,
    ProviderKind,
    ScheduleState,
    Sentiment,
    SimulationConfig,
    Source,
    SourceType,
    default_sources,
)


__all__ = [
    # Clock
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "now_utc",
    "parse_timestamp",
    "to_iso8601",
    # Config
    "TrackerConfig",
    "get_config",
    "set_config",
    # Exceptions
    "TrackerError",
    "ConfigurationError",
    "StorageError",
    "StorageTierError",
    "LegacyTierQuotaError",
    "ImportDataError",
    "SchedulerError",
    # Models
    "AspirantRecord",
    "AspirantStatus",
    "CandidateContext",
    "DiscoveredSource",
    "Entity",
    "FeedEvent",
    "HistoryPoint",
    "ProfileChange",
    "ProviderConfig",
    "ProviderKind",
    "ScheduleState",
    "Sentiment",
    "SimulationConfig",
    "Source",
    "SourceType",
    "default_sources",
]
