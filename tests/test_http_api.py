"""Test the HTTP API served by `WebThingServer`.

These tests use FastAPI's `TestClient`, which runs the server's lifespan
when it is used as a context manager. Host validation is disabled unless
a test is specifically about it, because the test client sends
``Host: testserver``.
"""

from fastapi import APIRouter
from fastapi.testclient import TestClient
import pytest

import webthing_fastapi as wt
from webthing_fastapi.example_things import (
    ExampleDimmableLight,
    FakeHumiditySensor,
    make_lamp,
)
from webthing_fastapi.exceptions import ServerNotRunningError


@pytest.fixture
def lamp():
    return make_lamp()


@pytest.fixture
def server(lamp):
    return wt.WebThingServer(wt.SingleThing(lamp), disable_host_validation=True)


@pytest.fixture
def client(server):
    """Yield a TestClient connected to the server."""
    with TestClient(server.app) as client:
        yield client


def action_id(description):
    """Extract the action's ID from its description."""
    (details,) = description.values()
    return details["href"].split("/")[-1]


def run_fade(client, lamp, brightness=10):
    """Request a fade, and wait for it to complete."""
    r = client.post(
        "/actions",
        json={"fade": {"input": {"brightness": brightness, "duration": 1}}},
    )
    assert r.status_code == 201
    action = lamp.get_action("fade", action_id(r.json()))
    assert action.wait(5)
    return action


def test_thing_description(client):
    """The served description includes the request-dependent fields."""
    r = client.get("/")
    assert r.status_code == 200
    td = r.json()
    assert td["id"] == "urn:dev:ops:my-lamp-1234"
    assert td["href"] == "/"
    assert td["base"] == "http://testserver/"
    assert td["securityDefinitions"] == {"nosec_sc": {"scheme": "nosec"}}
    assert td["security"] == "nosec_sc"
    assert {"rel": "alternate", "href": "ws://testserver/"} in td["links"]
    assert td["properties"]["on"]["links"] == [
        {"rel": "property", "href": "/properties/on"}
    ]


def test_get_properties(client):
    r = client.get("/properties")
    assert r.status_code == 200
    assert r.json() == {"on": True, "brightness": 50}


def test_get_property(client):
    assert client.get("/properties/brightness").json() == {"brightness": 50}
    assert client.get("/properties/missing").status_code == 404


def test_put_property(client, lamp):
    r = client.put("/properties/brightness", json={"brightness": 20})
    assert r.status_code == 200
    assert r.json() == {"brightness": 20}
    assert lamp.get_property("brightness") == 20


@pytest.mark.parametrize(
    "body",
    [
        {"brightness": 1000},
        {"brightness": "bright"},
        {"on": True},
        [20],
        None,
    ],
)
def test_put_bad_property(client, lamp, body):
    """Bad values, or bodies without the property name, are rejected."""
    r = client.put("/properties/brightness", json=body)
    assert r.status_code == 400
    assert lamp.get_property("brightness") == 50


def test_put_unparsable_body(client):
    r = client.put(
        "/properties/brightness",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400


def test_put_missing_property(client):
    r = client.put("/properties/missing", json={"missing": 1})
    assert r.status_code == 404


def test_put_property_device_error(client):
    """If the device refuses a value, the request fails with 400."""
    thing = wt.Thing("urn:dev:test:refuse", "Refuse")

    def refuse(value):
        raise IOError("Device is unplugged")

    thing.add_property(wt.Property(thing, "level", wt.Value(0, refuse)))
    server = wt.WebThingServer(thing, disable_host_validation=True)
    with TestClient(server.app) as client:
        r = client.put("/properties/level", json={"level": 1})
    assert r.status_code == 400
    assert thing.get_property("level") == 0


def test_request_action(client, lamp):
    """Requesting an action returns its description, then runs it."""
    r = client.post(
        "/actions",
        json={"fade": {"input": {"brightness": 10, "duration": 1}}},
    )
    assert r.status_code == 201
    description = r.json()["fade"]
    assert description["status"] == "created"
    assert description["input"] == {"brightness": 10, "duration": 1}
    assert description["href"].startswith("/actions/fade/")

    action = lamp.get_action("fade", action_id(r.json()))
    assert action.wait(5)
    r = client.get(description["href"])
    assert r.status_code == 200
    assert r.json()["fade"]["status"] == "completed"
    assert client.get("/properties/brightness").json() == {"brightness": 10}


def test_request_named_action(client, lamp):
    r = client.post(
        "/actions/fade",
        json={"fade": {"input": {"brightness": 30, "duration": 1}}},
    )
    assert r.status_code == 201
    assert lamp.get_action("fade", action_id(r.json())).wait(5)
    assert lamp.get_property("brightness") == 30


@pytest.mark.parametrize(
    "body",
    [
        {"fade": {"input": {"brightness": 10}}},
        {"fade": {"input": {"brightness": 10, "duration": 1}}, "other": {}},
        {"explode": {}},
        {},
        {"fade": "now"},
        ["fade"],
    ],
)
def test_bad_action_request(client, lamp, body):
    r = client.post("/actions", json=body)
    assert r.status_code == 400
    assert lamp.get_action_descriptions() == []


def test_named_action_mismatch(client):
    """The action in the body must match the URL."""
    r = client.post(
        "/actions/other",
        json={"fade": {"input": {"brightness": 10, "duration": 1}}},
    )
    assert r.status_code == 400


def test_list_actions(client, lamp):
    action = run_fade(client, lamp)
    r = client.get("/actions")
    assert r.status_code == 200
    assert r.json() == [action.as_action_description()]
    assert client.get("/actions/fade").json() == [action.as_action_description()]
    assert client.get("/actions/other").json() == []


def test_action_id_routes(client, lamp):
    """Get, update and delete individual actions."""
    action = run_fade(client, lamp)
    href = action.href
    assert client.get(href).status_code == 200
    assert client.put(href).status_code == 200
    assert client.delete(href).status_code == 204
    assert client.get(href).status_code == 404
    assert client.delete(href).status_code == 404
    assert client.get("/actions/fade/missing").status_code == 404


def test_events(client, lamp):
    """The fade action causes an ``overheated`` event."""
    run_fade(client, lamp)
    events = client.get("/events").json()
    assert len(events) == 1
    assert events[0]["overheated"]["data"] == 102
    assert client.get("/events/overheated").json() == events
    assert client.get("/events/other").json() == []


@pytest.fixture
def multiple_server():
    things = wt.MultipleThings(
        [ExampleDimmableLight(), FakeHumiditySensor(poll_interval=60)],
        "LightAndTempDevice",
    )
    return wt.WebThingServer(things, disable_host_validation=True)


def test_multiple_things(multiple_server):
    """Each Thing is served under its index."""
    with TestClient(multiple_server.app) as client:
        r = client.get("/")
        assert r.status_code == 200
        tds = r.json()
        assert [td["href"] for td in tds] == ["/0", "/1"]
        assert tds[1]["base"] == "http://testserver/1"

        td = client.get("/0").json()
        assert td["title"] == "My Lamp"
        assert td["properties"]["level"]["links"][0]["href"] == "/0/properties/level"

        assert client.get("/1/properties/level").status_code == 200
        r = client.put("/1/properties/level", json={"level": 50})
        assert r.status_code == 400  # read-only

        assert client.get("/2").status_code == 404
        assert client.get("/abc/properties").status_code == 404
        assert client.get("/2/actions").status_code == 404


def test_base_path(lamp):
    server = wt.WebThingServer(lamp, base_path="/lamp/", disable_host_validation=True)
    with TestClient(server.app) as client:
        td = client.get("/lamp").json()
        assert td["href"] == "/lamp"
        assert td["properties"]["on"]["links"][0]["href"] == "/lamp/properties/on"
        assert client.get("/lamp/properties/on").json() == {"on": True}
        assert client.get("/properties/on").status_code == 404


def test_additional_routes(lamp):
    router = APIRouter()

    @router.get("/ui")
    def ui():
        return {"page": "hello"}

    server = wt.WebThingServer(
        lamp, additional_routes=[router], disable_host_validation=True
    )
    with TestClient(server.app) as client:
        assert client.get("/ui").json() == {"page": "hello"}


def test_host_validation(lamp):
    """Requests must use a known host name."""
    server = wt.WebThingServer(lamp, port=8888)
    with TestClient(server.app) as client:
        assert client.get("/properties").status_code == 400
        r = client.get("/properties", headers={"Host": "localhost:8888"})
        assert r.status_code == 200
        r = client.get("/properties", headers={"Host": "evil.example.com"})
        assert r.status_code == 400


def test_host_validation_with_hostname(lamp):
    server = wt.WebThingServer(lamp, hostname="TestServer")
    assert "testserver" in server.hosts
    with TestClient(server.app) as client:
        assert client.get("/properties").status_code == 200


def test_cors(client):
    r = client.get("/properties", headers={"Origin": "http://example.com"})
    assert r.headers["access-control-allow-origin"] in ("*", "http://example.com")


def test_default_ports(lamp):
    assert wt.WebThingServer(lamp).port == 80
    assert wt.WebThingServer(lamp, port=8888).port == 8888
    ssl = {"keyfile": "key.pem", "certfile": "cert.pem"}
    assert wt.WebThingServer(lamp, ssl_options=ssl).port == 443


def test_start_and_stop(lamp, mocker):
    """`start` runs uvicorn with our settings, and `stop` asks it to exit."""
    server = wt.WebThingServer(
        lamp, port=8888, ssl_options={"keyfile": "key.pem", "certfile": "cert.pem"}
    )
    with pytest.raises(ServerNotRunningError):
        server.stop()

    config = mocker.patch("webthing_fastapi.server.uvicorn.Config")
    uvicorn_server = mocker.patch("webthing_fastapi.server.uvicorn.Server")
    server.start(host="127.0.0.1")

    config.assert_called_once_with(
        server.app,
        host="127.0.0.1",
        port=8888,
        ssl_keyfile="key.pem",
        ssl_certfile="cert.pem",
        ssl_keyfile_password=None,
    )
    uvicorn_server.return_value.run.assert_called_once()
    server.stop()
    assert uvicorn_server.return_value.should_exit is True


def test_lifespan_enters_things():
    """Things are started and stopped with the server."""
    sensor = FakeHumiditySensor(poll_interval=60)
    server = wt.WebThingServer(sensor, disable_host_validation=True)
    assert server.blocking_portal is None
    with TestClient(server.app):
        assert server.blocking_portal is not None
        assert sensor._poll_thread is not None
        assert sensor._poll_thread.is_alive()
    assert sensor._poll_thread is None
    assert server.blocking_portal is None
