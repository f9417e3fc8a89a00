r"""Test code for `.server.config_model`\ ."""

from pydantic import ValidationError
import pytest

import webthing_fastapi as wt
from webthing_fastapi.example_things import ExampleDimmableLight, make_lamp
from webthing_fastapi.server.config_model import ThingConfig, ThingServerConfig

LIGHT = "webthing_fastapi.example_things:ExampleDimmableLight"


def test_ThingConfig():
    """Test the ThingConfig model loads classes as expected."""
    direct = ThingConfig(cls=ExampleDimmableLight)
    fromstr = ThingConfig(cls=LIGHT)
    alias = ThingConfig.model_validate({"class": LIGHT})
    assert direct.cls is ExampleDimmableLight
    assert fromstr.cls is ExampleDimmableLight
    assert alias.cls is ExampleDimmableLight
    # In the absence of supplied arguments, default factories should be used
    assert len(direct.args) == 0
    assert direct.kwargs == {}

    with pytest.raises(ValidationError, match="No module named"):
        ThingConfig(cls="missing.module")


def test_functions_are_allowed():
    """Things may be created by a function as well as a class."""
    config = ThingConfig(cls="webthing_fastapi.example_things:make_lamp")
    assert config.cls is make_lamp


VALID_THING_CONFIGS = [
    ExampleDimmableLight,
    LIGHT,
    ThingConfig(cls=ExampleDimmableLight),
    {"cls": ExampleDimmableLight},
    {"class": LIGHT},
]


@pytest.mark.parametrize(
    "entry",
    [{}, {"foo": "bar"}, {"class": ExampleDimmableLight, "kwargs": 1}, 4, None],
)
def test_invalid_thing_configs(entry):
    with pytest.raises(ValidationError):
        ThingServerConfig(things=[entry])


def test_ThingServerConfig():
    """Check validation of the whole server config."""
    config = ThingServerConfig(things=VALID_THING_CONFIGS)
    assert len(config.thing_configs) == 5
    for c in config.thing_configs:
        assert isinstance(c, ThingConfig)
        assert c.cls is ExampleDimmableLight

    config = ThingServerConfig.model_validate({"things": VALID_THING_CONFIGS})
    assert len(config.thing_configs) == 5

    # Defaults
    assert config.name == "WebThings"
    assert config.port is None
    assert config.base_path == "/"
    assert not config.disable_host_validation


def test_no_things():
    with pytest.raises(ValidationError):
        ThingServerConfig(things=[])


def test_from_json():
    config = ThingServerConfig.model_validate_json(
        '{"things": [{"class": "%s", "kwargs": {}}], "port": 8888}' % LIGHT
    )
    assert config.port == 8888
    assert config.thing_configs[0].cls is ExampleDimmableLight


def test_server_from_config_single():
    """One Thing is served on its own."""
    server = wt.server_from_config(
        {"things": [LIGHT], "port": 8888, "disable_host_validation": True}
    )
    assert isinstance(server, wt.WebThingServer)
    assert isinstance(server.things, wt.SingleThing)
    assert isinstance(server.things.get_thing(), ExampleDimmableLight)
    assert server.port == 8888
    assert server.disable_host_validation


def test_server_from_config_multiple():
    """Several Things are served by index, with arguments passed through."""
    config = ThingServerConfig(
        things=[
            "webthing_fastapi.example_things:make_lamp",
            {
                "class": "webthing_fastapi.example_things:FakeHumiditySensor",
                "kwargs": {"poll_interval": 10},
            },
        ],
        name="Group",
        base_path="/things",
    )
    server = wt.server_from_config(config)
    assert isinstance(server.things, wt.MultipleThings)
    assert server.name == "Group"
    lamp, sensor = server.things.get_things()
    assert lamp.href == "/things/0"
    assert sensor.poll_interval == 10
    assert sensor.href == "/things/1"


def test_server_from_config_not_a_thing():
    with pytest.raises(TypeError):
        wt.server_from_config({"things": ["builtins:dict"]})
