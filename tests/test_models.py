import pytest

from conftest import file
from m365_drive_scanner.scanner.models import (
    Item,
    ListingOutcome,
    ScanResult,
    join_path,
    rollup_folder_sizes,
)
from m365_drive_scanner.scanner.noise import is_noise, make_noise_filter


def test_item_rejects_negative_size():
    with pytest.raises(ValueError):
        Item(id="x", name="x", size=-1)


def test_folder_size_is_forced_to_zero():
    assert Item(id="d", name="d", is_folder=True, size=42).size == 0


def test_listing_outcome_states():
    ok = ListingOutcome.success([file("a", 1)])
    bad = ListingOutcome.failure("")

    assert ok.ok and len(ok.items) == 1
    assert not bad.ok
    assert bad.error == "unknown error"


def test_join_path_with_empty_parent():
    assert join_path("", "Docs") == "Docs"
    assert join_path("root/Docs", "2024") == "root/Docs/2024"


def test_merge_sums_sizes_by_key():
    left = ScanResult(root_path="R")
    left.add_file(Item(id="1", name="a", size=10, parent_path="R"))
    left.add_file(Item(id="2", name="b", size=5, parent_path="R/A"))
    right = ScanResult(root_path="R", noise_skipped=2, cancelled=True)
    right.add_file(Item(id="3", name="c", size=7, parent_path="R"))
    right.record_failure("B", "R/B", "timeout")

    merged = ScanResult.merge([left, right], root_path="R")

    assert merged.folder_sizes == {"R": 17, "R/A": 5}
    assert [f.id for f in merged.files] == ["1", "2", "3"]
    assert merged.noise_skipped == 2
    assert merged.cancelled
    assert merged.failures[0].node_id == "B"


def test_rollup_adds_sizes_to_every_ancestor():
    rolled = rollup_folder_sizes({"R": 500, "R/A": 1000, "R/A/B": 2000})
    assert rolled == {"R": 3500, "R/A": 3000, "R/A/B": 2000}


def test_rollup_matches_whole_segments_and_fills_gaps():
    rolled = rollup_folder_sizes({"R/A": 1, "R/AB": 10, "R/X/Y": 100})

    assert rolled["R/A"] == 1
    assert rolled["R/AB"] == 10
    assert rolled["R/X"] == 100
    assert rolled["R"] == 111


def test_to_dict_is_plain_data():
    result = ScanResult(root_path="R")
    result.add_file(Item(id="1", name="a.txt", size=3, parent_path="R"))
    data = result.to_dict()

    assert data["files"][0]["name"] == "a.txt"
    assert data["folder_sizes"] == {"R": 3}
    assert data["cancelled"] is False


@pytest.mark.parametrize("name", [
    "~$Budget.xlsx", "~temp.tmp", ".DS_Store", ".hidden", "Thumbs.db",
    "DESKTOP.INI", "upload.TMP", "ehthumbs.db",
])
def test_default_noise_names(name):
    assert is_noise(Item(id=name, name=name))


@pytest.mark.parametrize("name", ["Budget.xlsx", "notes~.txt", "tmp", "thumbs.db.bak"])
def test_default_keeps_regular_names(name):
    assert not is_noise(Item(id=name, name=name))


def test_custom_noise_filter():
    only_bak = make_noise_filter(prefixes=(), names=(), suffixes=(".bak",))

    assert only_bak(Item(id="1", name="db.BAK"))
    assert not only_bak(Item(id="2", name="~lock"))
