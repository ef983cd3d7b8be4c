"""
Result materializer.

Converts raw store documents (Mongo extended JSON: {"$oid": ...},
{"$date": ...}, camelCase keys) into CampaignAsset values.

Only the fields known to carry store encodings are converted:
- _id/id, campaignId: ObjectId -> str
- createdAt, updatedAt, sessionEventData.sessionDate: date -> UTC datetime
- sessionEventLink, plotData.relatedAssetList: ObjectId list -> str list
- plotData.relatedAssets[].relatedAssetId: ObjectId -> str

Everything else in the typed payloads passes through unchanged.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from grimoire.core.exceptions import MaterializationError
from grimoire.core.logging import logger
from grimoire.core.utils.datetime_utils import ensure_utc, from_epoch_millis, parse_iso_datetime
from grimoire.models.campaign_asset import CampaignAsset, RecordType


def convert_object_id(value: Any) -> str:
    """{"$oid": "abc"} -> "abc"; plain strings pass through."""
    if isinstance(value, Mapping) and "$oid" in value:
        value = value["$oid"]
    if isinstance(value, str) and value:
        return value
    raise MaterializationError(
        "Invalid object id", context={"value": repr(value)[:100]}
    )


def convert_date(value: Any) -> datetime:
    """
    Accepts every date encoding the store exports:
    {"$date": "2024-01-01T00:00:00Z"}, {"$date": 1704067200000},
    {"$date": {"$numberLong": "1704067200000"}}, ISO strings,
    epoch milliseconds and datetime values.
    """
    if isinstance(value, Mapping) and "$date" in value:
        value = value["$date"]
    if isinstance(value, Mapping) and "$numberLong" in value:
        value = value["$numberLong"]
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise MaterializationError("Invalid $numberLong date", context={"value": repr(value)[:100]})

    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        raise MaterializationError("Invalid date", context={"value": repr(value)})
    if isinstance(value, (int, float)):
        try:
            return from_epoch_millis(value)
        except (OverflowError, OSError, ValueError) as e:
            raise MaterializationError(
                "Epoch date out of range", context={"value": repr(value)[:100]}, cause=e
            )
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError as e:
            raise MaterializationError(str(e), context={"value": value[:100]}, cause=e)

    raise MaterializationError("Invalid date", context={"value": repr(value)[:100]})


def _pick(raw: Mapping[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    """camelCase source keys -> snake_case fields, skipping absent and null values."""
    return {target: raw[source] for source, target in mapping.items() if raw.get(source) is not None}


NPC_FIELDS = {
    "imageUrl": "image_url",
    "physicalDescription": "physical_description",
    "motivation": "motivation",
    "mannerisms": "mannerisms",
    "dmNotes": "dm_notes",
    "sharedWithPlayers": "shared_with_players",
}

LOCATION_FIELDS = {
    "imageUrl": "image_url",
    "description": "description",
    "condition": "condition",
    "pointsOfInterest": "points_of_interest",
    "characters": "characters",
    "dmNotes": "dm_notes",
    "sharedWithPlayers": "shared_with_players",
}

PLOT_FIELDS = {
    "dmNotes": "dm_notes",
    "sharedWithPlayers": "shared_with_players",
    "status": "status",
    "urgency": "urgency",
}


def _convert_npc(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return _pick(raw, NPC_FIELDS)


def _convert_location(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return _pick(raw, LOCATION_FIELDS)


def _convert_plot(raw: Mapping[str, Any]) -> Dict[str, Any]:
    data = _pick(raw, PLOT_FIELDS)
    data["related_asset_ids"] = [convert_object_id(oid) for oid in raw.get("relatedAssetList") or []]
    data["related_assets"] = [
        {
            "related_asset_id": convert_object_id(rel.get("relatedAssetId")),
            "relationship_summary": rel.get("relationshipSummary") or "",
        }
        for rel in raw.get("relatedAssets") or []
    ]
    return data


def _convert_session_event(raw: Mapping[str, Any]) -> Dict[str, Any]:
    data = _pick(raw, {"summary": "summary"})
    if raw.get("sessionDate") is not None:
        data["session_date"] = convert_date(raw["sessionDate"])
    return data


# raw key, model field, converter
TYPE_DATA_CONVERTERS: List[Tuple[str, str, Callable[[Mapping[str, Any]], Dict[str, Any]]]] = [
    ("npcData", "npc_data", _convert_npc),
    ("locationData", "location_data", _convert_location),
    ("plotData", "plot_data", _convert_plot),
    ("sessionEventData", "session_event_data", _convert_session_event),
]


def materialize_asset(raw: Mapping[str, Any]) -> CampaignAsset:
    """
    Converts one raw store document into a CampaignAsset.

    Pure: the input is never mutated. Missing optional fields become
    None or []; a missing id, campaignId or recordType, an unknown
    record type, or a type payload that does not match the record
    type raises MaterializationError.
    """
    if not isinstance(raw, Mapping):
        raise MaterializationError("Raw asset is not a mapping", context={"type": type(raw).__name__})

    raw_id = raw.get("_id", raw.get("id"))
    if raw_id is None:
        raise MaterializationError("Raw asset has no id")
    if raw.get("campaignId") is None:
        raise MaterializationError("Raw asset has no campaignId", context={"id": repr(raw_id)[:100]})

    record_type = raw.get("recordType")
    if record_type is None:
        raise MaterializationError("Raw asset has no recordType", context={"id": repr(raw_id)[:100]})
    valid_types = [t.value for t in RecordType]
    if record_type not in valid_types:
        raise MaterializationError(
            f"Unknown recordType {record_type!r}",
            context={"id": repr(raw_id)[:100], "valid": valid_types},
        )

    if raw.get("createdAt") is None:
        raise MaterializationError("Raw asset has no createdAt", context={"id": repr(raw_id)[:100]})
    created_at = convert_date(raw["createdAt"])
    updated_at = convert_date(raw["updatedAt"]) if raw.get("updatedAt") is not None else created_at

    fields: Dict[str, Any] = {
        "id": convert_object_id(raw_id),
        "campaign_id": convert_object_id(raw["campaignId"]),
        "name": raw.get("name") or "",
        "gm_summary": raw.get("gmSummary", raw.get("summary")),
        "gm_notes": raw.get("gmNotes"),
        "player_summary": raw.get("playerSummary"),
        "player_notes": raw.get("playerNotes"),
        "record_type": record_type,
        "session_event_link": [convert_object_id(oid) for oid in raw.get("sessionEventLink") or []],
        "created_at": created_at,
        "updated_at": updated_at,
    }

    for raw_key, field_name, converter in TYPE_DATA_CONVERTERS:
        payload = raw.get(raw_key)
        if payload is None:
            continue
        if not isinstance(payload, Mapping):
            raise MaterializationError(
                f"{raw_key} is not an object", context={"id": fields["id"], "type": type(payload).__name__}
            )
        try:
            fields[field_name] = converter(payload)
        except (AttributeError, TypeError) as e:
            raise MaterializationError(
                f"{raw_key} is malformed", context={"id": fields["id"]}, cause=e
            )

    try:
        return CampaignAsset(**fields)
    except PydanticValidationError as e:
        raise MaterializationError(
            "Raw asset failed validation",
            context={"id": fields["id"], "record_type": record_type, "errors": e.error_count()},
            cause=e,
        )


def materialize_many(raws: Iterable[Mapping[str, Any]]) -> Tuple[List[CampaignAsset], int]:
    """
    Materializes a batch, dropping malformed documents.

    Returns:
        (assets in input order, number of dropped documents)
    """
    assets: List[CampaignAsset] = []
    dropped = 0
    for position, raw in enumerate(raws):
        asset = try_materialize(raw, position=position)
        if asset is None:
            dropped += 1
        else:
            assets.append(asset)
    return assets, dropped


def try_materialize(raw: Mapping[str, Any], **log_context: Any) -> Optional[CampaignAsset]:
    """materialize_asset, logging and returning None for a malformed document."""
    try:
        return materialize_asset(raw)
    except MaterializationError as e:
        logger.warning("Dropping malformed asset", error=e.message, context=e.context, **log_context)
        return None
