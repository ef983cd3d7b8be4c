"""
GRIMOIRE models.
Exports the main models for use in other modules.
"""

# Base
from .base import GrimoireBaseModel, TimestampMixin, StandardIdMixin

# Campaign assets
from grimoire.models.campaign_asset import (
    RecordType,
    PlotStatus,
    PlotUrgency,
    NpcData,
    LocationData,
    PlotRelationship,
    PlotData,
    SessionEventData,
    TypeData,
    CampaignAsset,
)

# Search
from grimoire.models.search import (
    Channel,
    SearchMode,
    SearchRequest,
    SearchCandidate,
    FusedCandidate,
    RankedResult,
    SearchTimings,
    SearchPayload,
)

# Telemetry
from grimoire.models.search_metric import (
    SAMPLED_FIELDS,
    SearchMetricParams,
    CaptureSearchMetricsInput,
    SearchMetric,
)

__all__ = [
    # Base
    "GrimoireBaseModel",
    "TimestampMixin",
    "StandardIdMixin",
    # Campaign assets
    "RecordType",
    "PlotStatus",
    "PlotUrgency",
    "NpcData",
    "LocationData",
    "PlotRelationship",
    "PlotData",
    "SessionEventData",
    "TypeData",
    "CampaignAsset",
    # Search
    "Channel",
    "SearchMode",
    "SearchRequest",
    "SearchCandidate",
    "FusedCandidate",
    "RankedResult",
    "SearchTimings",
    "SearchPayload",
    # Telemetry
    "SAMPLED_FIELDS",
    "SearchMetricParams",
    "CaptureSearchMetricsInput",
    "SearchMetric",
]
