"""
Unit tests for the result materializer.
"""

import copy
from datetime import datetime, timezone

import pytest

from conftest import make_raw_asset
from grimoire.core.exceptions import MaterializationError
from grimoire.models.campaign_asset import NpcData, PlotData, RecordType
from grimoire.retrieval.materializer import (
    convert_date,
    convert_object_id,
    materialize_asset,
    materialize_many,
)

NEW_YEAR = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestConvertObjectId:
    def test_extended_json(self):
        assert convert_object_id({"$oid": "abc123"}) == "abc123"

    def test_plain_string(self):
        assert convert_object_id("abc123") == "abc123"

    @pytest.mark.parametrize("value", [None, "", 42, {"id": "x"}])
    def test_invalid(self, value):
        with pytest.raises(MaterializationError):
            convert_object_id(value)


class TestConvertDate:
    @pytest.mark.parametrize(
        "value",
        [
            {"$date": "2024-01-01T00:00:00Z"},
            {"$date": 1704067200000},
            {"$date": {"$numberLong": "1704067200000"}},
            "2024-01-01T00:00:00+00:00",
            1704067200000,
            datetime(2024, 1, 1),
        ],
    )
    def test_encodings(self, value):
        assert convert_date(value) == NEW_YEAR

    def test_result_is_utc(self):
        assert convert_date("2024-01-01T02:00:00+02:00") == NEW_YEAR
        assert convert_date("2024-01-01T02:00:00+02:00").tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "value",
        [
            True,
            "yesterday",
            {"$date": {"$numberLong": "x"}},
            [2024],
            {"$date": 10**20},
            {"$date": {"$numberLong": str(10**20)}},
            float("nan"),
        ],
    )
    def test_invalid(self, value):
        with pytest.raises(MaterializationError):
            convert_date(value)


class TestMaterializeAsset:
    def test_npc(self):
        asset = materialize_asset(make_raw_asset("a1", name="Captain Vex"))

        assert asset.id == "a1"
        assert asset.campaign_id == "camp1"
        assert asset.name == "Captain Vex"
        assert asset.record_type == RecordType.NPC.value
        assert asset.created_at == NEW_YEAR
        assert asset.updated_at == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert isinstance(asset.type_data, NpcData)
        assert asset.npc_data.motivation == "Gold"
        assert asset.location_data is None

    def test_plain_id_key(self):
        raw = make_raw_asset("a1")
        raw["id"] = raw.pop("_id")

        assert materialize_asset(raw).id == "a1"

    def test_missing_updated_at_uses_created_at(self):
        raw = make_raw_asset("a1")
        del raw["updatedAt"]

        asset = materialize_asset(raw)
        assert asset.updated_at == asset.created_at

    def test_summary_fallback(self):
        raw = make_raw_asset("a1")
        del raw["gmSummary"]
        raw["summary"] = "Legacy summary"

        assert materialize_asset(raw).gm_summary == "Legacy summary"

    def test_optional_fields_default(self):
        asset = materialize_asset(make_raw_asset("a1"))

        assert asset.player_summary is None
        assert asset.session_event_link == []

    def test_plot_relations(self):
        raw = make_raw_asset(
            "p1",
            record_type="Plot",
            plotData={
                "status": "InProgress",
                "urgency": "Critical",
                "relatedAssetList": [{"$oid": "a1"}, "a2"],
                "relatedAssets": [{"relatedAssetId": {"$oid": "a1"}, "relationshipSummary": "Villain"}],
            },
            sessionEventLink=[{"$oid": "s1"}],
        )

        asset = materialize_asset(raw)
        assert isinstance(asset.type_data, PlotData)
        assert asset.plot_data.status == "InProgress"
        assert asset.plot_data.related_asset_ids == ["a1", "a2"]
        assert asset.plot_data.related_assets[0].related_asset_id == "a1"
        assert asset.plot_data.related_assets[0].relationship_summary == "Villain"
        assert asset.session_event_link == ["s1"]

    def test_session_event_date(self):
        asset = materialize_asset(make_raw_asset("s1", record_type="SessionEvent"))

        assert asset.session_event_data.session_date == NEW_YEAR
        assert asset.session_event_data.summary == "The party arrived"

    def test_location(self):
        asset = materialize_asset(make_raw_asset("l1", record_type="Location"))

        assert asset.location_data.condition == "Crumbling"

    def test_input_not_mutated(self):
        raw = make_raw_asset("p1", record_type="Plot", plotData={"relatedAssetList": [{"$oid": "a1"}]})
        snapshot = copy.deepcopy(raw)

        materialize_asset(raw)
        assert raw == snapshot

    @pytest.mark.parametrize("missing", ["_id", "campaignId", "recordType", "createdAt"])
    def test_required_fields(self, missing):
        raw = make_raw_asset("a1")
        del raw[missing]

        with pytest.raises(MaterializationError):
            materialize_asset(raw)

    def test_unknown_record_type(self):
        with pytest.raises(MaterializationError) as exc_info:
            materialize_asset(make_raw_asset("a1", record_type="Dragon"))
        assert "Dragon" in exc_info.value.message

    def test_mismatched_type_data(self):
        raw = make_raw_asset("a1", record_type="Location")
        raw["npcData"] = raw.pop("locationData")

        with pytest.raises(MaterializationError):
            materialize_asset(raw)

    def test_two_type_payloads(self):
        raw = make_raw_asset("a1", plotData={"status": "Closed"})

        with pytest.raises(MaterializationError):
            materialize_asset(raw)

    def test_missing_type_data(self):
        raw = make_raw_asset("a1")
        del raw["npcData"]

        with pytest.raises(MaterializationError):
            materialize_asset(raw)

    def test_type_data_not_an_object(self):
        with pytest.raises(MaterializationError):
            materialize_asset(make_raw_asset("a1", npcData="gold"))

    def test_not_a_mapping(self):
        with pytest.raises(MaterializationError):
            materialize_asset(["a1"])


class TestMaterializeMany:
    def test_drops_malformed(self, log_records):
        raws = [
            make_raw_asset("a1"),
            make_raw_asset("bad", record_type="Dragon"),
            make_raw_asset("a2"),
        ]

        assets, dropped = materialize_many(raws)

        assert [a.id for a in assets] == ["a1", "a2"]
        assert dropped == 1
        warnings = [r for r in log_records if r["message"] == "Dropping malformed asset"]
        assert len(warnings) == 1
        assert warnings[0]["extra"]["position"] == 1

    def test_empty(self):
        assert materialize_many([]) == ([], 0)
