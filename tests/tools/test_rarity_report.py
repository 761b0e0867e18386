import json

import numpy as np

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.config import preset_config
from mergemint.engine.state_common import save_snapshot
from mergemint.tools import rarity_report
from support import make_context


def _collection():
    collection = CompositeCollection(preset_config("mini4"))
    collection.pool.medium.credit("alice", 1_000)
    collection.mint(make_context(), "alice", 4, 400)
    collection.composite(make_context(), 1, 2)
    return collection


def test_collect_traits_covers_live_units():
    traits = rarity_report.collect_traits(_collection())
    assert set(traits) == {"band", "gradient", "depth", "first_color"}
    assert all(isinstance(values, np.ndarray) for values in traits.values())
    assert sorted(traits["depth"].tolist()) == [0, 0, 1]


def test_histograms_have_table_lengths():
    collection = _collection()
    report = rarity_report.histograms(collection)
    assert len(report["band"]) == 7
    assert len(report["gradient"]) == 7
    assert report["depth"] == [2, 1, 0, 0]
    assert len(report["first_color"]) == 80
    assert sum(report["first_color"]) == 3


def test_empty_collection_report():
    collection = CompositeCollection(preset_config("mini4"))
    report = rarity_report.histograms(collection)
    assert sum(report["band"]) == 0
    assert "0 live unit(s)" in rarity_report.format_report(collection, report)


def test_main_prints_json(tmp_path, capsys):
    path = _collection().save_state(tmp_path / "state.msgpack")
    assert rarity_report.main(["--state", str(path), "--json"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["depth"] == [2, 1, 0, 0]


def test_main_prints_table(tmp_path, capsys):
    path = _collection().save_state(tmp_path / "state.json")
    assert rarity_report.main(["--state", str(path)]) == 0
    out = capsys.readouterr().out
    assert out.startswith("mini4: 3 live unit(s)")
    assert "distinct first colours:" in out


def test_main_reports_unreadable_snapshots(tmp_path, capsys):
    assert rarity_report.main(["--state", str(tmp_path / "missing.json")]) == 1
    bad = tmp_path / "state.yaml"
    bad.write_text("{}")
    assert rarity_report.main(["--state", str(bad)]) == 1
    assert "rarity_report:" in capsys.readouterr().err


def test_main_rejects_malformed_snapshots(tmp_path, capsys):
    newer = tmp_path / "newer.json"
    save_snapshot({"version": 99}, newer)
    assert rarity_report.main(["--state", str(newer)]) == 2
    assert "unsupported snapshot version 99" in capsys.readouterr().err

    truncated = _collection().snapshot()
    del truncated["pool"]
    path = tmp_path / "truncated.msgpack"
    save_snapshot(truncated, path)
    assert rarity_report.main(["--state", str(path)]) == 2
    assert "rarity_report: invalid snapshot:" in capsys.readouterr().err
