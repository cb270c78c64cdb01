"""Tests for marker layout and manifest export."""

import json
import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.markers import build_markers, markers_to_dataframe, save_marker_manifest
from src.utils.geo_utils import FlightPath, GeoPoint, distance, interpolate, position_at_time

CVG = GeoPoint(lon=-84.6627, lat=39.0458)
MCO = GeoPoint(lon=-81.3792, lat=28.4312)
PATH = FlightPath(origin=CVG, destination=MCO, total_duration_minutes=120)


def test_markers_ordered_by_priority():
    markers = build_markers(PATH, aircraft_elapsed_minutes=2.5)
    assert [m.marker_type for m in markers] == [
        "AIRCRAFT", "CITIES", "CITIES", "POI", "POI", "STORY", "STORY",
    ]
    assert [m.priority for m in markers] == sorted(m.priority for m in markers)


def test_aircraft_marker_position():
    markers = build_markers(PATH, aircraft_elapsed_minutes=2.5)
    aircraft = markers[0]
    assert aircraft.position == position_at_time(PATH, 2.5)
    assert aircraft.fraction == pytest.approx(2.5 / 120)


def test_poi_and_story_fractions():
    markers = {m.marker_id: m for m in build_markers(PATH, aircraft_elapsed_minutes=2.5)}
    assert markers["poi-1"].position == interpolate(CVG, MCO, 0.3)
    assert markers["poi-2"].position == interpolate(CVG, MCO, 0.7)
    assert markers["story-1"].position == interpolate(CVG, MCO, 0.2)
    assert markers["story-2"].position == interpolate(CVG, MCO, 0.8)
    assert markers["origin"].position == CVG
    assert markers["destination"].position == MCO


def test_dataframe_distance_column():
    markers = build_markers(PATH, aircraft_elapsed_minutes=60)
    df = markers_to_dataframe(markers, PATH)
    row = df[df["marker_id"] == "destination"].iloc[0]
    assert row["km_from_origin"] == pytest.approx(distance(CVG, MCO), abs=0.001)
    assert df[df["marker_id"] == "origin"].iloc[0]["km_from_origin"] == 0


def test_save_marker_manifest(tmp_path):
    markers = build_markers(PATH, aircraft_elapsed_minutes=2.5)
    csv_path, json_path = save_marker_manifest(markers, PATH, tmp_path / "out")

    df = pd.read_csv(csv_path)
    assert len(df) == 7
    assert list(df["marker_id"][:3]) == ["aircraft", "origin", "destination"]

    with open(json_path, encoding="utf-8") as f:
        records = json.load(f)
    assert records[1]["display"] == "39.0458°N, 84.6627°W"
    assert records[0]["color"] == "#FFFFFF"
