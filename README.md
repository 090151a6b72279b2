# falba

falba gathers the results of test or benchmark runs from a directory of
artifacts. It pulls *facts* (the inputs of an experiment) and *metrics*
(what it measured) out of those artifacts and can print the facts of every
result as a table.

It has no dependencies beyond the Python standard library (Python 3.10 or
later).

## Installing

```
pip install .
```

## The results directory

A results database is a directory holding a `parsers.json` file and one
subdirectory per result. Each result directory is named
`<test_name>:<result_id>` and has an `artifacts/` directory inside it.
Every file under `artifacts/`, at any depth, is an artifact; its name is
its path relative to `artifacts/`. Result directories and files are read
in name order.

```
results/
├── parsers.json
└── my_test:1514e610de1e/
    └── artifacts/
        ├── my_raw_int
        └── my_artifact.json
```

## Configuring parsers

`parsers.json` is a JSON object with a single `parsers` field mapping
parser names to parser configurations. Every parser has a `type` and an
`artifact_regexp`, and produces exactly one `metric` or one `fact`, each
given a `name` and a `type` of `int`, `float` or `string`. Unknown fields
are rejected, and at least one parser must be defined.

```json
{
  "parsers": {
    "raw_int": {
      "type": "single_metric",
      "artifact_regexp": "my_raw_int",
      "metric": {"name": "my_raw_int", "type": "int"}
    },
    "json_fact": {
      "type": "jsonpath",
      "artifact_regexp": "my_artifact\\.json",
      "jsonpath": "$.fact",
      "fact": {"name": "my_json_fact", "type": "string"}
    }
  }
}
```

Parser types:

- `single_metric` takes the content of the artifact (matched by `.+`,
  which must match exactly once) as the value.
- `jsonpath` decodes the artifact as JSON and selects the value with the
  expression in the `jsonpath` field. For `int` the selected number is
  truncated; for `string` non-string values are rendered as text.

A parser only looks at artifacts whose name matches `artifact_regexp`
(searched anywhere in the name). Integers are accepted in decimal, `0x`
hex, `0b` binary and `0o` or leading-zero octal, and must fit in 64 bits.
Content a parser cannot make sense of, such as text that is not a number
where an `int` is expected, raises `falba.parser.ParseFailure`; when
reading a database such failures are logged and skipped. A fact may only
be produced once per result; producing it twice is an error.

Errors while reading a database are raised as `falba.db.DBError`; a bad
parser configuration is `falba.parser.ParserConfigError`.

## Command line

```
falba --result-db ./results
```

This reads the database (by default `./results`), loads every result into
an in-memory SQLite table called `results` and prints it. The printed
columns are `test_name`, `id` and `facts`; the `facts` cell lists every
known fact as `name:value`, in sorted order, with `NULL` for a fact the
result does not have. Each fact name must match the pattern
`[A-Za-z]+[A-Za-z0-9_]*` somewhere in it, or the command fails. On any
error the command logs the message and exits with status 1.

The same steps are available from Python: `falba.cli.load_results(db,
connection)` fills a `results` table in an `sqlite3` connection (the
`facts` column holds a JSON object) and returns the sorted fact names, and
`falba.cli.format_rows(columns, rows)` renders rows as fixed-width text.

## Using it from Python

```python
from falba.db import read_db

db = read_db("results")
for result in db.results:
    print(result.test_name, result.result_id)
    for name, value in result.facts.items():
        print("  fact", name, value.value)
    for metric in result.metrics:
        print("  metric", metric.name, metric.value.value)
print(db.fact_types)
```

`falba.db.load_parsers(path)` builds the parsers from a `parsers.json`
file, and `falba.db.read_result(result_dir, parsers)` reads a single result
directory.

Single parsers can be built and used on their own:

```python
from falba.model import Artifact, ValueType
from falba.parser import (
    ParserTarget, RegexpExtractor, TargetType, new_parser,
)

target = ParserTarget("latency", TargetType.METRIC, ValueType.INT)
parser = new_parser("latency", r".*\.log", target,
                    RegexpExtractor(r"latency: (\d+)", ValueType.INT))
result = parser.parse(Artifact(name="run.log", path="/tmp/run.log"))
print(result.metrics)
```

A `RegexpExtractor` pattern may hold at most one group; with a group the
value is the group's match, otherwise the whole match. `JSONPathExtractor`
and `parser_from_config` are also in `falba.parser`.

`falba.jsonpath.JSONPath` is the JSONPath engine used by the `jsonpath`
parser. It supports child names, indices, unions, slices, wildcards,
recursive descent (`..`) and filters such as
`$.items[?(@.price < 10 && @.tag == 'x')]`. A path of single names and
indices returns one value and raises `JSONPathError` if it is absent; any
other path returns a list of matches.

## What it does not do

The SQL table built by the `falba` command lives in memory only and is
thrown away once printed: there is no way to run your own queries against
it from the command line, and metrics are not written to it. Results are
not stored anywhere beyond the directory they are read from.

## Running the tests

```
pip install ".[test]"
pytest
```