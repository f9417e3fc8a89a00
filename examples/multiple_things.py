"""Serve a dimmable light and a humidity sensor together on port 8888.

The light is at http://localhost:8888/0 and the sensor at
http://localhost:8888/1. The same server can be started from the command
line with::

    webthing-server --port 8888 -j '{"name": "LightAndTempDevice", "things": [
        "webthing_fastapi.example_things:ExampleDimmableLight",
        "webthing_fastapi.example_things:FakeHumiditySensor"]}'
"""

import logging

import webthing_fastapi as wt
from webthing_fastapi.example_things import ExampleDimmableLight, FakeHumiditySensor


def run_server():
    light = ExampleDimmableLight()
    sensor = FakeHumiditySensor()

    server = wt.WebThingServer(
        wt.MultipleThings([light, sensor], "LightAndTempDevice"), port=8888
    )
    logging.info("starting the server")
    server.start()


if __name__ == "__main__":
    logging.basicConfig(
        level=10,
        format="%(asctime)s %(filename)s:%(lineno)s %(levelname)s %(message)s",
    )
    run_server()
