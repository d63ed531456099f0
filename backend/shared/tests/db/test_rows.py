"""Tests for model <-> row conversion and lenient JSON decoding."""

import logging
from datetime import UTC, datetime

import pytest

from shared.dal.errors import MalformedDataWarning
from shared.dal.models import PlayerStats, ZombieMatch
from shared.db.rows import (
    decode_json_column,
    match_from_row,
    match_to_row,
    player_stats_from_row,
    player_stats_to_row,
)

T0 = datetime(2025, 3, 1, 20, 0, 0, 123_456, tzinfo=UTC)


class TestDecodeJsonColumn:
    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_values_decode_to_empty_container(self, raw):
        assert decode_json_column(raw, list) == []
        assert decode_json_column(raw, dict) == {}

    def test_decodes_nested_structures(self):
        assert decode_json_column('{"players": {"g1": {"kills": 2}}}', dict) == {"players": {"g1": {"kills": 2}}}

    def test_invalid_json_raises_warning(self):
        with pytest.raises(MalformedDataWarning, match="invalid JSON"):
            decode_json_column("{not json", dict)

    def test_wrong_container_type_raises_warning(self):
        with pytest.raises(MalformedDataWarning, match="expected list"):
            decode_json_column('{"a": 1}', list)


class TestMatchRows:
    def test_roundtrip_finished_match(self):
        match = ZombieMatch(
            match_id="zm_1",
            server_id="s1",
            map_name="nuked",
            round=12,
            max_round=12,
            start_time=T0,
            end_time=datetime(2025, 3, 1, 21, 0, 0, tzinfo=UTC),
            player_guids=["g1", "g2"],
            stats={"players": {"g1": {"kills": 50}}, "mode": "classic"},
        )
        assert match_from_row(match_to_row(match)) == match

    def test_roundtrip_active_match_with_empty_payloads(self):
        match = ZombieMatch(match_id="zm_2", server_id="s1", start_time=T0)
        row = match_to_row(match)
        assert row["end_time"] is None
        assert row["player_guids"] == "[]"
        assert row["stats"] == "{}"
        assert match_from_row(row) == match

    def test_malformed_columns_degrade_to_empty(self, caplog):
        row = match_to_row(ZombieMatch(match_id="zm_3", server_id="s1", start_time=T0))
        row["player_guids"] = "not json"
        row["stats"] = "[1, 2]"

        with caplog.at_level(logging.WARNING):
            match = match_from_row(row)

        assert match.player_guids == []
        assert match.stats == {}
        assert "malformed stored field" in caplog.text

    def test_legacy_zulu_timestamps_parse(self):
        row = match_to_row(ZombieMatch(match_id="zm_4", server_id="s1", start_time=T0))
        row["start_time"] = "2025-03-01T20:00:00.000Z"
        row["end_time"] = "2025-03-01T20:10:00.000Z"
        match = match_from_row(row)
        assert match.duration == 600

    def test_null_counters_default_to_zero(self):
        row = match_to_row(ZombieMatch(match_id="zm_5", server_id="s1", start_time=T0))
        row["round"] = None
        row["max_round"] = None
        match = match_from_row(row)
        assert match.round == 0
        assert match.max_round == 0


class TestPlayerStatsRows:
    def test_roundtrip(self):
        stats = PlayerStats(
            guid="g1",
            name="Alice",
            kills=120,
            deaths=8,
            downs=3,
            revives=5,
            headshot_kills=40,
            score=99_000,
            matches_played=4,
            highest_round=31,
            total_rounds=4,
            perks=12,
            power_ups=7,
            first_seen=T0,
            last_seen=datetime(2025, 3, 2, tzinfo=UTC),
        )
        assert player_stats_from_row(player_stats_to_row(stats)) == stats

    def test_row_uses_snake_case_columns(self):
        row = player_stats_to_row(PlayerStats(guid="g1", first_seen=T0, last_seen=T0))
        assert row["player_guid"] == "g1"
        assert row["player_name"] == "Unknown Player"
        assert row["first_seen"] == T0.isoformat()
