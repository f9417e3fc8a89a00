import pytest

import webthing_fastapi as wt


@pytest.fixture
def things():
    return [
        wt.Thing("urn:dev:test:a", "A"),
        wt.Thing("urn:dev:test:b", "B"),
    ]


def test_single_thing(things):
    """A single thing is returned whatever the index."""
    single = wt.SingleThing(things[0])
    assert single.get_thing() is things[0]
    assert single.get_thing("7") is things[0]
    assert single.get_things() == [things[0]]
    assert single.get_name() == "A"


@pytest.mark.parametrize(
    ("idx", "expected"),
    [
        ("0", 0),
        ("1", 1),
        (1, 1),
        ("2", None),
        ("-1", None),
        ("abc", None),
        (None, None),
    ],
)
def test_multiple_things(things, idx, expected):
    """Things are found by index, and bad indices return None."""
    multiple = wt.MultipleThings(things, "Group")
    thing = multiple.get_thing(idx)
    if expected is None:
        assert thing is None
    else:
        assert thing is things[expected]


def test_multiple_things_name(things):
    multiple = wt.MultipleThings(things, "Group")
    assert multiple.get_name() == "Group"
    assert multiple.get_things() == things
