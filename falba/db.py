"""Reading a results directory into a database of results, facts and metrics."""

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Union

from falba.model import Artifact, Metric, Result, Value, ValueType
from falba.parser import (
    ParseFailure,
    Parser,
    ParserConfigError,
    TargetType,
    parser_from_config,
)

logger = logging.getLogger(__name__)

PARSERS_FILE = "parsers.json"

PathLike = Union[str, "os.PathLike[str]"]


class DBError(Exception):
    """A results database could not be read."""


@dataclass
class DB:
    """The results read from a directory, with the types of their facts.

    Each entry of the directory is named ``<test_name>:<result_id>`` and holds
    an ``artifacts/`` directory whose leaf files are the result's artifacts.
    """

    root_dir: Path
    results: List[Result] = field(default_factory=list)
    fact_types: Dict[str, ValueType] = field(default_factory=dict)


def _is_dir(path: Path) -> bool:
    try:
        return stat.S_ISDIR(os.stat(path).st_mode)
    except OSError as exc:
        raise DBError(f"check if {path} is dir: {exc}") from exc


def _leaf_files(directory: Path) -> Iterator[Path]:
    with os.scandir(directory) as scan:
        entries = sorted(scan, key=lambda entry: entry.name)
    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            yield from _leaf_files(path)
        elif not _is_dir(path):
            yield path


def _collect_artifacts(artifacts_dir: Path) -> List[Artifact]:
    try:
        if not _is_dir(artifacts_dir):
            return [Artifact(".", artifacts_dir)]
        return [
            Artifact(os.path.relpath(path, artifacts_dir), path)
            for path in _leaf_files(artifacts_dir)
        ]
    except (OSError, DBError) as exc:
        raise DBError(f"walking artifacts/ dir: {exc}") from exc


def read_result(result_dir: PathLike, parsers: Sequence[Parser]) -> Result:
    """Read one result directory, running every parser over every artifact.

    Parse failures are logged and skipped; a fact produced twice is an error.
    """
    result_dir = Path(result_dir)
    test_name, sep, result_id = result_dir.name.partition(":")
    if not sep or not test_name or not result_id:
        raise DBError(
            f"invalid result name (should be $result_name:$result_id) at {result_dir}"
        )

    artifacts = _collect_artifacts(Path(os.path.abspath(result_dir / "artifacts")))

    facts: Dict[str, Value] = {}
    metrics: List[Metric] = []
    producers: Dict[str, str] = {}
    for artifact in artifacts:
        for parser in parsers:
            try:
                parsed = parser.parse(artifact)
            except ParseFailure as exc:
                logger.info(
                    "Parser %s failed to parse artifact %s: %s", parser, artifact, exc
                )
                continue
            except OSError as exc:
                raise DBError(f"parsing {artifact} with {parser}: {exc}") from exc

            for name, value in parsed.facts.items():
                if name in facts:
                    raise DBError(
                        f"parser {parser} produced fact {name!r}, but that was "
                        f"already produced by parser {producers[name]}"
                    )
                producers[name] = str(parser)
                facts[name] = value
            metrics.extend(parsed.metrics)

    return Result(
        test_name=test_name,
        result_id=result_id,
        artifacts=artifacts,
        metrics=metrics,
        facts=facts,
    )


def load_parsers(config_path: PathLike) -> List[Parser]:
    """Build the parsers described by a ``parsers.json`` configuration file."""
    try:
        text = Path(config_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise DBError(f"reading DB config from {config_path}: {exc}") from exc

    try:
        config = json.loads(text)
    except ValueError as exc:
        raise DBError(f"decoding DB config: {exc}") from exc
    if not isinstance(config, dict):
        raise DBError("decoding DB config: config must be a JSON object")
    unknown = sorted(set(config) - {"parsers"})
    if unknown:
        raise DBError(f"decoding DB config: unknown field {unknown[0]!r}")
    entries = config.get("parsers") or {}
    if not isinstance(entries, dict):
        raise DBError("decoding DB config: 'parsers' must be a JSON object")

    parsers = []
    for name, entry in entries.items():
        try:
            parsers.append(parser_from_config(entry, name))
        except ParserConfigError as exc:
            raise DBError(f"configuring parser {name!r}: {exc}") from exc
    if not parsers:
        raise DBError("no 'parsers' defined")
    return parsers


def read_db(root_dir: PathLike) -> DB:
    """Read every result under ``root_dir`` and parse its facts and metrics."""
    root = Path(root_dir)
    parsers = load_parsers(root / PARSERS_FILE)

    fact_types = {
        p.target.name: p.target.value_type
        for p in parsers
        if p.target.target_type is TargetType.FACT
    }

    try:
        names = sorted(os.listdir(root))
    except OSError as exc:
        raise DBError(f"opening DB root: {exc}") from exc

    results = []
    for name in names:
        if name == PARSERS_FILE:
            continue
        result_dir = root / name
        try:
            results.append(read_result(result_dir, parsers))
        except DBError as exc:
            raise DBError(f"reading result from {result_dir}: {exc}") from exc
    return DB(root_dir=root, results=results, fact_types=fact_types)