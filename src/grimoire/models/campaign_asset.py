"""
Campaign asset models.
An asset belongs to exactly one campaign and carries one typed payload
chosen by its record type.
"""

from enum import Enum
from datetime import datetime
from typing import List, Optional, Union
from pydantic import Field, model_validator

from grimoire.models.base import GrimoireBaseModel


class RecordType(str, Enum):
    """Asset kinds. Each one selects its type-data payload."""

    NPC = "NPC"
    LOCATION = "Location"
    PLOT = "Plot"
    SESSION_EVENT = "SessionEvent"


class PlotStatus(str, Enum):
    UNKNOWN = "Unknown"
    RUMORED = "Rumored"
    IN_PROGRESS = "InProgress"
    WILL_NOT_DO = "WillNotDo"
    CLOSED = "Closed"


class PlotUrgency(str, Enum):
    ONGOING = "Ongoing"
    TIME_SENSITIVE = "TimeSensitive"
    CRITICAL = "Critical"
    RESOLVED = "Resolved"


class NpcData(GrimoireBaseModel):
    """NPC traits."""

    image_url: Optional[str] = Field(None, description="Portrait URL")
    physical_description: str = ""
    motivation: str = ""
    mannerisms: str = ""
    dm_notes: str = ""
    shared_with_players: str = ""


class LocationData(GrimoireBaseModel):
    """Location traits."""

    image_url: Optional[str] = Field(None, description="Illustration URL")
    description: str = ""
    condition: str = ""
    points_of_interest: str = ""
    characters: str = ""
    dm_notes: str = ""
    shared_with_players: str = ""


class PlotRelationship(GrimoireBaseModel):
    related_asset_id: str
    relationship_summary: str = ""


class PlotData(GrimoireBaseModel):
    """Plot thread status and links to the assets involved."""

    dm_notes: str = ""
    shared_with_players: str = ""
    status: PlotStatus = PlotStatus.UNKNOWN
    urgency: PlotUrgency = PlotUrgency.ONGOING
    related_asset_ids: List[str] = Field(default_factory=list)
    related_assets: List[PlotRelationship] = Field(default_factory=list)


class SessionEventData(GrimoireBaseModel):
    summary: str = ""
    session_date: Optional[datetime] = None


TypeData = Union[NpcData, LocationData, PlotData, SessionEventData]

# record type -> attribute holding its payload
TYPE_DATA_FIELDS = {
    RecordType.NPC.value: "npc_data",
    RecordType.LOCATION.value: "location_data",
    RecordType.PLOT.value: "plot_data",
    RecordType.SESSION_EVENT.value: "session_event_data",
}


class CampaignAsset(GrimoireBaseModel):
    """
    Versioned record scoped to one campaign.

    Exactly one of npc_data, location_data, plot_data and
    session_event_data is populated and it is the one record_type
    selects. A record breaking that rule is a data-integrity error
    and fails validation.
    """

    id: str = Field(..., min_length=1, description="Store identifier")
    campaign_id: str = Field(..., min_length=1, description="Owning campaign, never changes")
    name: str = ""
    gm_summary: Optional[str] = None
    gm_notes: Optional[str] = None
    player_summary: Optional[str] = None
    player_notes: Optional[str] = None
    record_type: RecordType

    npc_data: Optional[NpcData] = None
    location_data: Optional[LocationData] = None
    plot_data: Optional[PlotData] = None
    session_event_data: Optional[SessionEventData] = None

    session_event_link: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_type_data(self) -> "CampaignAsset":
        expected = TYPE_DATA_FIELDS[self.record_type]
        populated = [name for name in TYPE_DATA_FIELDS.values() if getattr(self, name) is not None]
        if populated != [expected]:
            raise ValueError(
                f"record_type {self.record_type} requires exactly {expected}, found {populated or 'none'}"
            )
        return self

    @property
    def type_data(self) -> TypeData:
        return getattr(self, TYPE_DATA_FIELDS[self.record_type])
