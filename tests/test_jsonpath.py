import pytest

from falba.jsonpath import JSONPath, JSONPathError

DOC = {
    "store": {
        "book": [
            {"title": "A", "price": 8, "tag": "x"},
            {"title": "B", "price": 12, "tag": "y"},
            {"title": "C", "price": 5},
        ],
        "name": "shop",
    },
    "count": 3,
}


def select(expression, document=DOC):
    return JSONPath(expression).evaluate(document)


def test_root_is_whole_document():
    assert select("$") is DOC


@pytest.mark.parametrize(
    "expression",
    ["$.nope", "$.store.book[7]", "$.store.book[-4]", "$.count.x", "$.store.name[0]"],
)
def test_definite_path_missing_raises(expression):
    with pytest.raises(JSONPathError):
        select(expression)


def test_missing_raises_value_error():
    with pytest.raises(ValueError):
        select("$.nope")


def test_quoted_keys_with_escapes():
    document = {"a b": 1, 'q"uote': 2, "é": 3}
    assert select("$['a b']", document) == 1
    assert select('$["q\\"uote"]', document) == 2
    assert select("$['\\u00e9']", document) == 3


def test_wildcard_over_list():
    assert select("$.store.book[*].title") == ["A", "B", "C"]
    assert select("$.store.book.*.price") == [8, 12, 5]


def test_wildcard_over_object_is_sorted_by_key():
    assert select("$.*", {"b": 2, "a": 1, "c": 3}) == [1, 2, 3]


def test_union():
    assert select("$.store.book[0,2].title") == ["A", "C"]
    assert select("$.store.book[0,9].title") == ["A"]
    assert select("$['count','missing']") == [3]


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("$.store.book[0:2].title", ["A", "B"]),
        ("$.store.book[::-1].title", ["C", "B", "A"]),
        ("$.store.book[-2:].title", ["B", "C"]),
        ("$.store.book[::2].title", ["A", "C"]),
    ],
)
def test_slices(expression, expected):
    assert select(expression) == expected


def test_recursive_descent():
    assert select("$..price") == [8, 12, 5]
    assert select("$..book[1].title") == ["B"]
    assert select("$..missing") == []


def test_recursive_wildcard_excludes_root():
    document = {"a": [1]}
    assert select("$..*", document) == [[1], 1]


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("$.store.book[?(@.price < 10)].title", ["A", "C"]),
        ("$.store.book[?(@.price >= 12)].title", ["B"]),
        ("$.store.book[?(@.tag == 'y')].title", ["B"]),
        ("$.store.book[?(@.tag != 'y')].title", ["A"]),
        ("$.store.book[?(@.tag)].title", ["A", "B"]),
        ("$.store.book[?(!@.tag)].title", ["C"]),
        ("$.store.book[?(@.price < 10 && @.tag)].title", ["A"]),
        ("$.store.book[?(@.title == 'C' || @.price == 12.0)].title", ["B", "C"]),
        ("$.store.book[?(@.price > $.store.book[0].price)].title", ["B"]),
        ("$.store.book[?((@.price > 6) && !(@.price > 10))].title", ["A"]),
    ],
)
def test_filters(expression, expected):
    assert select(expression) == expected


def test_filter_over_object_members():
    assert select("$.store[?(@ == 'shop')]") == ["shop"]


def test_filter_keeps_booleans_apart_from_numbers():
    document = {"items": [{"ok": True}, {"ok": 1}, {"ok": None}]}
    assert select("$.items[?(@.ok == true)]", document) == [{"ok": True}]
    assert select("$.items[?(@.ok == null)]", document) == [{"ok": None}]


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "store",
        "$.",
        "$[",
        "$[]",
        "$[1:2:0]",
        "$['a'",
        "$['a",
        "$[?(@.a ==)]",
        "$[?(@.a]",
        "$.a b",
        "$[0,1:2]",
        "$['\\q']",
    ],
)
def test_malformed_expressions(expression):
    with pytest.raises(JSONPathError):
        JSONPath(expression)


def test_str_is_expression():
    assert str(JSONPath("$.store.book[0]")) == "$.store.book[0]"


def test_expression_is_reusable():
    path = JSONPath("$.value")
    assert path.evaluate({"value": 1}) == 1
    assert path.evaluate({"value": "foo"}) == "foo"