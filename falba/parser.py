"""Parsers that extract facts and metrics from result artifacts."""

from __future__ import annotations

import json
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from itertools import islice
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple, Union

from falba.jsonpath import JSONPath, JSONPathError
from falba.model import (
    Artifact,
    FloatValue,
    IntValue,
    Metric,
    StringValue,
    Value,
    ValueType,
    parse_value,
    parse_value_type,
)


class ParseFailure(Exception):
    """An artifact's contents were not what a parser expected; not fatal."""


class ParserConfigError(ValueError):
    """A parser was configured incorrectly."""


@dataclass
class ParseResult:
    """The facts and metrics produced by parsing one artifact."""

    facts: Dict[str, Value] = field(default_factory=dict)
    metrics: List[Metric] = field(default_factory=list)


class TargetType(Enum):
    """Whether a parser produces a fact or a metric."""

    FACT = "fact"
    METRIC = "metric"


@dataclass(frozen=True)
class ParserTarget:
    """Describes the fact or metric a parser produces."""

    name: str
    target_type: TargetType
    value_type: ValueType

    def result(self, value: Value) -> ParseResult:
        """Wrap ``value`` as this target's output."""
        if self.target_type is TargetType.METRIC:
            return ParseResult(metrics=[Metric(self.name, value)])
        return ParseResult(facts={self.name: value})


def _compile(pattern: str, what: str) -> Pattern[str]:
    try:
        return re.compile(pattern, re.ASCII)
    except re.error as exc:
        raise ParserConfigError(f"compiling {what} {pattern!r}: {exc}") from exc


class Extractor(ABC):
    """Reads a single value out of an artifact."""

    @abstractmethod
    def extract(self, artifact: Artifact) -> Value:
        """Return the value found in ``artifact``; raise ParseFailure if absent."""


class RegexpExtractor(Extractor):
    """Extracts a value with a regular expression holding at most one group.

    With a group the value is the group's match, otherwise the whole match.
    The expression must match exactly once in the artifact.
    """

    def __init__(self, pattern: str, result_type: ValueType) -> None:
        regex = _compile(pattern, "regexp pattern")
        if regex.groups > 1:
            raise ParserConfigError(
                f"regexp {pattern!r} contained {regex.groups} sub-expressions, "
                "up to 1 is allowed"
            )
        self.pattern = pattern
        self.result_type = result_type
        self._regex = regex

    def extract(self, artifact: Artifact) -> Value:
        text = artifact.content().decode("utf-8", errors="surrogateescape")
        matches = list(islice(self._regex.finditer(text), 2))
        if not matches:
            raise ParseFailure(f"no matches for {self.pattern} in {artifact}")
        if len(matches) > 1:
            raise ParseFailure(
                f"multiple matches for {self.pattern} in {artifact}, only one is allowed"
            )
        matched = matches[0].group(self._regex.groups) or ""
        try:
            return parse_value(matched, self.result_type)
        except ValueError as exc:
            raise ParseFailure(str(exc)) from exc

    def __str__(self) -> str:
        return f"RegexpExtractor{{{self.pattern} -> {self.result_type}}}"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON value {name}")


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number == 0:
        return "-0" if math.copysign(1.0, number) < 0 else "0"
    sign = "-" if number < 0 else ""
    decimal = Decimal(repr(abs(number)))
    _, digits, exponent = decimal.as_tuple()
    text = "".join(map(str, digits)).rstrip("0")
    exp10 = len(digits) + exponent - 1
    if exp10 < -4 or exp10 >= 6:
        mantissa = text[0] + (f".{text[1:]}" if len(text) > 1 else "")
        exp_sign = "-" if exp10 < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(exp10):02d}"
    return sign + format(decimal.normalize(), "f")


def _format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return _format_float(float(value))
    if isinstance(value, list):
        return "[" + " ".join(_format(item) for item in value) + "]"
    if isinstance(value, dict):
        items = (f"{key}:{_format(value[key])}" for key in sorted(value))
        return "map[" + " ".join(items) + "]"
    return str(value)


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return parse_value(value, ValueType.FLOAT).value
        except ValueError:
            pass
    raise ParseFailure(f"expected number but got {_format(value)}")


class JSONPathExtractor(Extractor):
    """Extracts a value from a JSON artifact with a JSONPath expression."""

    def __init__(self, expression: str, result_type: ValueType) -> None:
        try:
            self._selector = JSONPath(expression)
        except JSONPathError as exc:
            raise ParserConfigError(f"parsing JSONPath expression: {exc}") from exc
        self.expression = expression
        self.result_type = result_type

    def extract(self, artifact: Artifact) -> Value:
        content = artifact.content()
        try:
            document = json.loads(
                content, parse_int=float, parse_constant=_reject_constant
            )
        except ValueError as exc:
            raise ParseFailure(f"unmarshalling from JSON: {exc}") from exc
        try:
            selected = self._selector.evaluate(document)
        except JSONPathError as exc:
            raise ParseFailure(
                f"evaluating JSONPath as {self.result_type}: {exc}"
            ) from exc
        if self.result_type is ValueType.STRING:
            return StringValue(_format(selected))
        number = _to_float(selected)
        if self.result_type is ValueType.FLOAT:
            return FloatValue(number)
        if not math.isfinite(number):
            raise ParseFailure(f"cannot represent {_format(number)} as int")
        return IntValue(int(number))

    def __str__(self) -> str:
        return f"JSONPathParser{{{self.expression} -> {self.result_type}}}"


@dataclass
class Parser:
    """Extracts one fact or metric from the artifacts whose names match a regexp."""

    name: str
    artifact_re: Pattern[str]
    target: ParserTarget
    extractor: Extractor

    def parse(self, artifact: Artifact) -> ParseResult:
        """Parse ``artifact``, producing nothing if its name doesn't match."""
        if not self.artifact_re.search(artifact.name):
            return ParseResult()
        return self.target.result(self.extractor.extract(artifact))

    def __str__(self) -> str:
        return str(self.extractor)


def new_parser(
    name: str, artifact_pattern: str, target: ParserTarget, extractor: Extractor
) -> Parser:
    """Build a parser applying ``extractor`` to artifacts matching the pattern."""
    artifact_re = _compile(artifact_pattern, "artifact regexp pattern")
    return Parser(name, artifact_re, target, extractor)


_BASE_FIELDS = ("type", "artifact_regexp", "metric", "fact")
_FIELDS_BY_TYPE = {
    "single_metric": _BASE_FIELDS,
    "jsonpath": _BASE_FIELDS + ("jsonpath",),
}
_TARGET_FIELDS = ("name", "type")


def _string_field(config: Mapping[str, Any], key: str, where: str) -> str:
    value = config.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ParserConfigError(f"{where}: field {key!r} must be a string")
    return value


def _target_field(
    config: Mapping[str, Any], key: str, where: str, strict: bool
) -> Optional[Tuple[str, str]]:
    value = config.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ParserConfigError(f"{where}: field {key!r} must be an object")
    if strict:
        unknown = sorted(set(value) - set(_TARGET_FIELDS))
        if unknown:
            raise ParserConfigError(f"{where}: unknown field {unknown[0]!r} in {key!r}")
    return _string_field(value, "name", where), _string_field(value, "type", where)


def _decode_config(raw_config: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    where = "decoding 'type' for parser"
    config: Any = raw_config
    if isinstance(raw_config, (str, bytes, bytearray)):
        try:
            config = json.loads(raw_config)
        except ValueError as exc:
            raise ParserConfigError(f"{where}: {exc}") from exc
    if not isinstance(config, Mapping):
        raise ParserConfigError(f"{where}: parser config must be a JSON object")
    return config


def _check_fields(
    kind: str,
    artifact_regexp: str,
    metric: Optional[Tuple[str, str]],
    fact: Optional[Tuple[str, str]],
    jsonpath: Optional[str],
) -> None:
    def problem() -> Optional[str]:
        if not kind:
            return "missing/empty 'type' field"
        if not artifact_regexp:
            return "missing/empty 'artifact_regexp' field"
        if (metric is None) == (fact is None):
            return "specify exactly one of 'metric' and 'fact'"
        label, (target_name, target_type) = (
            ("metric", metric) if metric is not None else ("fact", fact)
        )
        if not target_name:
            return f"missing/empty '{label}.name' field"
        if not target_type:
            return f"missing/empty '{label}.type' field"
        if jsonpath is not None and not jsonpath:
            return "missing/empty 'jsonpath' field"
        return None

    message = problem()
    if message:
        raise ParserConfigError(f"invalid {kind!r} parser config: {message}")


def parser_from_config(
    raw_config: Union[str, bytes, Mapping[str, Any]], name: str
) -> Parser:
    """Build a parser from one entry of a parsers configuration.

    ``raw_config`` is the decoded JSON object or its JSON text.
    """
    config = _decode_config(raw_config)
    where = "decoding 'type' for parser"
    kind = _string_field(config, "type", where)
    artifact_regexp = _string_field(config, "artifact_regexp", where)
    metric = _target_field(config, "metric", where, strict=False)
    fact = _target_field(config, "fact", where, strict=False)

    if metric is not None:
        target_kind, spec = TargetType.METRIC, metric
    elif fact is not None:
        target_kind, spec = TargetType.FACT, fact
    else:
        raise ParserConfigError("must specify 'fact.type' or 'metric.type'")
    try:
        value_type = parse_value_type(spec[1])
    except ValueError as exc:
        raise ParserConfigError(f"parsing {target_kind.value} type: {exc}") from exc
    target = ParserTarget(spec[0], target_kind, value_type)

    allowed = _FIELDS_BY_TYPE.get(kind)
    if allowed is None:
        raise ParserConfigError(f"unknown parser type {kind!r}")
    where = f"decoding {kind} parser config"
    unknown = sorted(set(config) - set(allowed))
    if unknown:
        raise ParserConfigError(f"{where}: unknown field {unknown[0]!r}")
    _target_field(config, "metric", where, strict=True)
    _target_field(config, "fact", where, strict=True)

    extractor: Extractor
    if kind == "jsonpath":
        expression = _string_field(config, "jsonpath", where)
        _check_fields(kind, artifact_regexp, metric, fact, expression)
        extractor = JSONPathExtractor(expression, value_type)
    else:
        _check_fields(kind, artifact_regexp, metric, fact, None)
        extractor = RegexpExtractor(".+", value_type)

    return new_parser(name, artifact_regexp, target, extractor)