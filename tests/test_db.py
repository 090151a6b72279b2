import json
from pathlib import Path

import pytest

from falba.db import DB, DBError, load_parsers, read_db, read_result
from falba.model import (
    Artifact,
    FloatValue,
    IntValue,
    Metric,
    StringValue,
    ValueType,
)

RESULT_NAME = "my_test:1514e610de1e"

PARSERS = {
    "parsers": {
        "raw_fact": {
            "type": "single_metric",
            "artifact_regexp": "my_raw_fact",
            "fact": {"name": "my_raw_fact", "type": "string"},
        },
        "raw_int": {
            "type": "single_metric",
            "artifact_regexp": "my_raw_int",
            "metric": {"name": "my_raw_int", "type": "int"},
        },
        "json_int": {
            "type": "jsonpath",
            "artifact_regexp": "my_artifact\\.json",
            "jsonpath": "$.int",
            "metric": {"name": "my_json_int", "type": "int"},
        },
        "json_string": {
            "type": "jsonpath",
            "artifact_regexp": "my_artifact\\.json",
            "jsonpath": "$.string",
            "metric": {"name": "my_json_string", "type": "string"},
        },
        "json_float": {
            "type": "jsonpath",
            "artifact_regexp": "my_artifact\\.json",
            "jsonpath": "$.float",
            "metric": {"name": "my_json_float", "type": "float"},
        },
        "json_fact": {
            "type": "jsonpath",
            "artifact_regexp": "my_artifact\\.json",
            "jsonpath": "$.fact",
            "fact": {"name": "my_json_fact", "type": "string"},
        },
    }
}


def _write_db(root: Path, parsers=PARSERS) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "parsers.json").write_text(json.dumps(parsers))
    artifacts = root / RESULT_NAME / "artifacts"
    artifacts.mkdir(parents=True)
    (artifacts / "my_raw_fact").write_text("GDAY MATE")
    (artifacts / "my_raw_int").write_text("1")
    (artifacts / "my_artifact.json").write_text(
        json.dumps({"int": 1, "string": "foo", "float": 2.0, "fact": "foo"})
    )
    return root


@pytest.fixture
def db_root(tmp_path):
    return _write_db(tmp_path / "results")


def test_read_db(db_root):
    db = read_db(db_root)
    assert len(db.results) == 1
    result = db.results[0]
    assert result.test_name == "my_test"
    assert result.result_id == "1514e610de1e"

    artifacts_dir = db_root / RESULT_NAME / "artifacts"
    assert sorted(result.artifacts, key=lambda a: a.name) == [
        Artifact("my_artifact.json", artifacts_dir / "my_artifact.json"),
        Artifact("my_raw_fact", artifacts_dir / "my_raw_fact"),
        Artifact("my_raw_int", artifacts_dir / "my_raw_int"),
    ]
    assert sorted(result.metrics, key=lambda m: m.name) == [
        Metric("my_json_float", FloatValue(2.0)),
        Metric("my_json_int", IntValue(1)),
        Metric("my_json_string", StringValue("foo")),
        Metric("my_raw_int", IntValue(1)),
    ]
    assert result.facts == {
        "my_json_fact": StringValue("foo"),
        "my_raw_fact": StringValue("GDAY MATE"),
    }


def test_read_db_fact_types(db_root):
    db = read_db(db_root)
    assert db.fact_types == {
        "my_raw_fact": ValueType.STRING,
        "my_json_fact": ValueType.STRING,
    }
    assert db.root_dir == db_root


def test_artifacts_in_subdirectories(db_root):
    nested = db_root / RESULT_NAME / "artifacts" / "sub"
    nested.mkdir()
    (nested / "extra").write_text("x")
    db = read_db(db_root)
    names = {a.name for a in db.results[0].artifacts}
    assert str(Path("sub") / "extra") in names


def test_invalid_result_name(db_root):
    (db_root / "no_id_here" / "artifacts").mkdir(parents=True)
    with pytest.raises(DBError, match="invalid result name"):
        read_db(db_root)


@pytest.mark.parametrize("name", [":abc", "abc:"])
def test_read_result_rejects_empty_parts(tmp_path, name):
    (tmp_path / name / "artifacts").mkdir(parents=True)
    with pytest.raises(DBError, match="invalid result name"):
        read_result(tmp_path / name, [])


def test_missing_artifacts_dir(tmp_path):
    (tmp_path / "t:1").mkdir()
    with pytest.raises(DBError, match="walking artifacts/ dir"):
        read_result(tmp_path / "t:1", [])


def test_parse_failure_is_not_fatal(tmp_path):
    parsers = {
        "parsers": {
            "bad_int": {
                "type": "single_metric",
                "artifact_regexp": "my_raw_fact",
                "metric": {"name": "not_an_int", "type": "int"},
            }
        }
    }
    root = _write_db(tmp_path / "results", parsers)
    db = read_db(root)
    assert db.results[0].metrics == []
    assert db.results[0].facts == {}


def test_duplicate_fact(tmp_path):
    parsers = {
        "parsers": {
            "first": {
                "type": "single_metric",
                "artifact_regexp": "my_raw",
                "fact": {"name": "dup", "type": "string"},
            }
        }
    }
    root = _write_db(tmp_path / "results", parsers)
    with pytest.raises(DBError, match="'dup'"):
        read_db(root)


def test_missing_config(tmp_path):
    with pytest.raises(DBError, match="reading DB config"):
        read_db(tmp_path)


def test_no_parsers(tmp_path):
    config = tmp_path / "parsers.json"
    config.write_text(json.dumps({"parsers": {}}))
    with pytest.raises(DBError, match="no 'parsers' defined"):
        load_parsers(config)


def test_unknown_config_field(tmp_path):
    config = tmp_path / "parsers.json"
    config.write_text(json.dumps({"parsers": PARSERS["parsers"], "extra": 1}))
    with pytest.raises(DBError, match="unknown field 'extra'"):
        load_parsers(config)


def test_invalid_parser_config(tmp_path):
    config = tmp_path / "parsers.json"
    config.write_text(json.dumps({"parsers": {"p": {"type": "nope"}}}))
    with pytest.raises(DBError, match="configuring parser 'p'"):
        load_parsers(config)


def test_load_parsers_names(tmp_path):
    config = tmp_path / "parsers.json"
    config.write_text(json.dumps(PARSERS))
    parsers = load_parsers(config)
    assert sorted(p.name for p in parsers) == sorted(PARSERS["parsers"])


def test_db_defaults():
    db = DB(root_dir=Path("x"))
    assert db.results == []
    assert db.fact_types == {}