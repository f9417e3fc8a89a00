"""Serve a single lamp on port 8888.

Run with ``python single_thing.py``, then browse to http://localhost:8888/
to see its Thing Description.
"""

import logging

import webthing_fastapi as wt
from webthing_fastapi.example_things import make_lamp


def run_server():
    thing = make_lamp()

    # If adding more than one thing, use MultipleThings() with a name.
    # In the single thing case, the thing's name will be broadcast.
    server = wt.WebThingServer(wt.SingleThing(thing), port=8888)
    logging.info("starting the server")
    server.start()


if __name__ == "__main__":
    logging.basicConfig(
        level=10,
        format="%(asctime)s %(filename)s:%(lineno)s %(levelname)s %(message)s",
    )
    run_server()
