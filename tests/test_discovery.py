from __future__ import annotations

from datetime import date
from pathlib import Path

from tlmquery.discovery import describe_orbit_source, discover_ground_files, ground_root
from tlmquery.errors import DiscoveryError
from tlmquery.models import DateRange, Err, Ok


def test_ground_root_is_sibling_of_db_top(tmp_path: Path) -> None:
    assert ground_root(tmp_path / "db", "ground") == tmp_path / "ground"


def test_discover_by_date(ground_tree, ground_request) -> None:
    res = discover_ground_files(ground_request(["V"]), db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Ok)
    assert list(res.value.locators) == ground_tree["files"]
    assert res.value.mode == "ground"


def test_discover_single_day(ground_tree, ground_request) -> None:
    req = ground_request(["V"], date_range=DateRange.of(date(2022, 5, 19), date(2022, 5, 19)))
    res = discover_ground_files(req, db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Ok)
    assert list(res.value.locators) == [ground_tree["files"][1]]


def test_discover_by_test_case(ground_tree, ground_request) -> None:
    req = ground_request(["V"], use_test_cases=True, test_cases=("510_FlatSat",), date_range=None)
    res = discover_ground_files(req, db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Ok)
    assert list(res.value.locators) == [ground_tree["files"][0]]


def test_discover_stored_suffix(ground_tree, ground_request, ground_db) -> None:
    stored = ground_db(
        Path(ground_tree["root"]) / "510_FlatSat" / "run1" / "2022-05-18" / "DSX0201_All_Telemetry_stored.db",
        {"table_power": (["DATE", "V"], [])},
    )
    res = discover_ground_files(ground_request(["V"], stored=True), db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Ok)
    assert list(res.value.locators) == [str(stored)]


def test_discover_nothing_is_discovery_error(ground_tree, ground_request) -> None:
    req = ground_request(["V"], date_range=DateRange.of(date(2021, 1, 1), date(2021, 1, 2)))
    res = discover_ground_files(req, db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Err)
    assert isinstance(res.error, DiscoveryError)
    assert res.message.endswith("No telemetry database found")


def test_discover_skips_path_like_test_cases(ground_tree, ground_request) -> None:
    req = ground_request(["V"], use_test_cases=True, test_cases=("../ground",), date_range=None)
    res = discover_ground_files(req, db_top_path=ground_tree["db_top_path"])
    assert isinstance(res, Err)


def test_describe_orbit_source(orbit_request) -> None:
    d = describe_orbit_source(orbit_request([(1, ["A"])], stored=True), project="proj")
    assert d.locators == ("proj.strix_b_telemetry_v_6_17",)
    assert d.stored is True
