"""Code supporting the Web Thing server.

`.WebThingServer` wraps a `fastapi.FastAPI` application that exposes one or
more `.Thing` instances over HTTP and websockets, following the
`Web Thing REST API <https://webthings.io/api/#web-thing-rest-api>`_.

A server either serves a `.SingleThing` at its root, or `.MultipleThings`
each under its index, e.g. ``/0/properties/on``. The routes are the same in
both cases, apart from that prefix.
"""

from __future__ import annotations
from contextlib import AsyncExitStack, asynccontextmanager
from collections.abc import Mapping, Sequence
import logging
import socket
from typing import Any, AsyncGenerator, Callable, Optional, Union

from anyio.from_thread import BlockingPortal
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from fastapi import Response, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware
import uvicorn

from ..exceptions import PropertyValidationError, ServerNotRunningError
from ..logs import configure_thing_logger
from ..registry import MultipleThings, SingleThing, ThingContainer
from ..thing import Thing
from ..thing_description import NoSecurityScheme
from ..utilities import get_addresses
from ..websockets import websocket_endpoint
from .config_model import ThingServerConfig

_LOGGER = logging.getLogger(__name__)


class WebThingServer:
    """Use FastAPI to serve `.Thing` instances.

    There are several functions of a `.WebThingServer`:

    * Set the href prefix of each `.Thing`, so the links in its Thing
      Description point to the right place.
    * Serve the Web Thing REST API and the websocket API for each Thing.
    * Check the ``Host`` header of each request, to guard against DNS
      rebinding attacks, and allow cross-origin requests.
    * Allow threaded code to call functions in the event loop, by providing
      an `anyio.from_thread.BlockingPortal`. This is how notifications reach
      websocket clients.
    * Start and stop the Things, by entering them as context managers while
      the server runs.
    """

    def __init__(
        self,
        things: Union[ThingContainer, Thing],
        port: Optional[int] = None,
        hostname: Optional[str] = None,
        ssl_options: Optional[Mapping[str, Any]] = None,
        additional_routes: Optional[Sequence[APIRouter]] = None,
        base_path: str = "/",
        disable_host_validation: bool = False,
    ) -> None:
        """Initialise a Web Thing server.

        :param things: the things to serve, as a `.SingleThing` or
            `.MultipleThings`. A bare `.Thing` is wrapped in a `.SingleThing`.
        :param port: the port to listen on. Defaults to 443 if
            ``ssl_options`` is given, otherwise 80.
        :param hostname: an optional host name, e.g. ``mything.com``, to
            accept in the ``Host`` header as well as the local names.
        :param ssl_options: TLS settings, with ``keyfile`` and ``certfile``
            (and optionally ``password``) paths. If this is omitted, the
            server uses plain HTTP.
        :param additional_routes: extra routers to serve, e.g. a custom UI.
            They are mounted under ``base_path``, ahead of the Thing routes.
        :param base_path: the path under which everything is served.
        :param disable_host_validation: accept requests with any ``Host``.
        """
        if isinstance(things, Thing):
            things = SingleThing(things)
        self.things = things
        self.name = things.get_name()
        self.ssl_options = dict(ssl_options) if ssl_options else None
        self.port = int(port) if port else (443 if self.ssl_options else 80)
        self.hostname = hostname
        self.base_path = base_path.rstrip("/")
        self.disable_host_validation = disable_host_validation

        system_hostname = socket.gethostname().lower()
        self.hosts = ["localhost", f"{system_hostname}.local"]
        self.hosts.extend(get_addresses())
        if hostname:
            self.hosts.append(hostname.lower())

        if isinstance(things, MultipleThings):
            for i, thing in enumerate(things.get_things()):
                thing.set_href_prefix(f"{self.base_path}/{i}")
        else:
            things.get_thing().set_href_prefix(self.base_path)

        self.blocking_portal: Optional[BlockingPortal] = None
        self._uvicorn_server: Optional[uvicorn.Server] = None

        self.app = FastAPI(lifespan=self.lifespan)
        self.set_cors_middleware()
        if not disable_host_validation:
            self.app.add_middleware(TrustedHostMiddleware, allowed_hosts=self.hosts)
        self.app.add_exception_handler(RequestValidationError, _bad_request_handler)
        for router in additional_routes or []:
            self.app.include_router(router, prefix=self.base_path)
        self.add_things_to_app()
        configure_thing_logger()  # Note: this is safe to call multiple times.

    app: FastAPI

    def set_cors_middleware(self) -> None:
        """Configure the server to allow requests from other origins.

        This is required to allow web applications access to the HTTP API,
        if they are not served from the same origin.
        """
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @property
    def multiple(self) -> bool:
        """Whether each Thing is served under its own index."""
        return isinstance(self.things, MultipleThings)

    @property
    def thing_path(self) -> str:
        """The path template that each Thing's routes start with."""
        if self.multiple:
            return f"{self.base_path}/{{thing_id}}"
        return self.base_path

    def thing_description(self, thing: Thing, request: Request) -> dict[str, Any]:
        """Describe a Thing, with the URLs that depend on the request.

        :param thing: the Thing to describe.
        :param request: the request being served, which determines the
            scheme and host used in absolute URLs.

        :return: the Thing Description, with ``href``, ``base``, a websocket
            link and the security fields added.
        """
        host = request.headers.get("host", request.url.netloc)
        secure = request.url.scheme in ("https", "wss")
        ws_href = f"{'wss' if secure else 'ws'}://{host}"
        http_href = f"{'https' if secure else 'http'}://{host}"

        description = thing.as_thing_description()
        description["href"] = thing.href
        description["links"].append(
            {"rel": "alternate", "href": f"{ws_href}{thing.href}"}
        )
        description["base"] = f"{http_href}{thing.href}"
        description["securityDefinitions"] = {
            "nosec_sc": NoSecurityScheme().model_dump()
        }
        description["security"] = "nosec_sc"
        return description

    def thing_dependency(self) -> Callable[..., Thing]:
        """Make a FastAPI dependency that finds the requested Thing.

        :return: a dependency function. In multiple-thing mode it takes the
            ``thing_id`` path parameter.
        """
        things = self.things

        if isinstance(things, MultipleThings):

            def get_thing(thing_id: str) -> Thing:
                thing = things.get_thing(thing_id)
                if thing is None:
                    raise HTTPException(404, f"No Thing with ID {thing_id}")
                return thing

        else:

            def get_thing() -> Thing:
                return things.get_thing()

        return get_thing

    def add_things_to_app(self) -> None:
        """Add the Web Thing API endpoints to the FastAPI app."""
        server = self
        ThingDep = Depends(self.thing_dependency())
        path = self.thing_path

        if self.multiple:

            @self.app.get(self.base_path or "/")
            def thing_descriptions(request: Request) -> list[dict[str, Any]]:
                """Describe all the Things available from this server."""
                return [
                    server.thing_description(t, request)
                    for t in server.things.get_things()
                ]

            @self.app.websocket(path)
            async def websocket(websocket: WebSocket, thing_id: str) -> None:
                await websocket_endpoint(
                    server.things.get_thing(thing_id), websocket, server.portal
                )

        else:

            @self.app.websocket(path or "/")
            async def websocket(websocket: WebSocket) -> None:
                await websocket_endpoint(
                    server.things.get_thing(), websocket, server.portal
                )

        @self.app.get(path or "/")
        def thing_description(
            request: Request, thing: Thing = ThingDep
        ) -> dict[str, Any]:
            """Describe one Thing."""
            return server.thing_description(thing, request)

        @self.app.get(f"{path}/properties")
        def get_properties(thing: Thing = ThingDep) -> dict[str, Any]:
            """Get the values of all the Thing's properties."""
            return thing.get_properties()

        @self.app.get(f"{path}/properties/{{property_name}}")
        def get_property(property_name: str, thing: Thing = ThingDep) -> dict[str, Any]:
            """Get the value of one property."""
            if not thing.has_property(property_name):
                raise HTTPException(404, f"No property named {property_name}")
            return {property_name: thing.get_property(property_name)}

        @self.app.put(f"{path}/properties/{{property_name}}")
        def put_property(
            property_name: str, body: Any = Body(None), thing: Thing = ThingDep
        ) -> dict[str, Any]:
            """Set the value of one property.

            The body must be a JSON object with the property name as its key.
            """
            if not isinstance(body, dict) or property_name not in body:
                raise HTTPException(400, f"Expected a value for {property_name}")
            if not thing.has_property(property_name):
                raise HTTPException(404, f"No property named {property_name}")
            try:
                thing.set_property(property_name, body[property_name])
            except PropertyValidationError as e:
                raise HTTPException(400, str(e)) from e
            except Exception as e:
                # The device refused the value.
                _LOGGER.debug("Setting %s failed: %r", property_name, e)
                raise HTTPException(400, str(e)) from e
            return {property_name: thing.get_property(property_name)}

        @self.app.get(f"{path}/actions")
        def get_actions(thing: Thing = ThingDep) -> list[dict[str, Any]]:
            """Describe all the Thing's actions."""
            return thing.get_action_descriptions()

        @self.app.post(f"{path}/actions", status_code=201)
        def post_actions(
            body: Any = Body(None), thing: Thing = ThingDep
        ) -> dict[str, Any]:
            """Request an action.

            The body is ``{name: {"input": ...}}`` with exactly one name.
            """
            if not isinstance(body, dict) or len(body) != 1:
                raise HTTPException(400, "Expected exactly one action")
            (action_name,) = body.keys()
            return _request_action(thing, action_name, body[action_name])

        @self.app.get(f"{path}/actions/{{action_name}}")
        def get_named_actions(
            action_name: str, thing: Thing = ThingDep
        ) -> list[dict[str, Any]]:
            """Describe the Thing's actions with a given name."""
            return thing.get_action_descriptions(action_name)

        @self.app.post(f"{path}/actions/{{action_name}}", status_code=201)
        def post_named_action(
            action_name: str, body: Any = Body(None), thing: Thing = ThingDep
        ) -> dict[str, Any]:
            """Request an action with a given name.

            The body is ``{name: {"input": ...}}``, where the name must match
            the URL.
            """
            if not isinstance(body, dict) or list(body.keys()) != [action_name]:
                raise HTTPException(400, f"Expected a request for {action_name}")
            return _request_action(thing, action_name, body[action_name])

        @self.app.get(f"{path}/actions/{{action_name}}/{{action_id}}")
        def get_action(
            action_name: str, action_id: str, thing: Thing = ThingDep
        ) -> dict[str, Any]:
            """Describe one action."""
            action = thing.get_action(action_name, action_id)
            if action is None:
                raise HTTPException(404, f"No action {action_name}/{action_id}")
            return action.as_action_description()

        @self.app.put(f"{path}/actions/{{action_name}}/{{action_id}}")
        def put_action(
            action_name: str, action_id: str, thing: Thing = ThingDep
        ) -> Response:
            """Update an action. The Web Thing API doesn't define this yet."""
            return Response(status_code=200)

        @self.app.delete(f"{path}/actions/{{action_name}}/{{action_id}}")
        def delete_action(
            action_name: str, action_id: str, thing: Thing = ThingDep
        ) -> Response:
            """Cancel and remove an action."""
            if not thing.remove_action(action_name, action_id):
                raise HTTPException(404, f"No action {action_name}/{action_id}")
            return Response(status_code=204)

        @self.app.get(f"{path}/events")
        def get_events(thing: Thing = ThingDep) -> list[dict[str, Any]]:
            """Describe all the events that have occurred."""
            return thing.get_event_descriptions()

        @self.app.get(f"{path}/events/{{event_name}}")
        def get_named_events(
            event_name: str, thing: Thing = ThingDep
        ) -> list[dict[str, Any]]:
            """Describe the events with a given name that have occurred."""
            return thing.get_event_descriptions(event_name)

    @property
    def portal(self) -> BlockingPortal:
        """The portal into the event loop, which exists while we are serving.

        :raise ServerNotRunningError: if the server is not running.
        """
        if self.blocking_portal is None:
            raise ServerNotRunningError("Can't serve websockets without an event loop.")
        return self.blocking_portal

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage set up and tear down of the server and Things.

        This method is used as a lifespan function for the FastAPI app. See
        the lifespan_ page in FastAPI's documentation.

        .. _lifespan: https://fastapi.tiangolo.com/advanced/events/#lifespan-function

        It sets up the blocking portal so background threads can notify
        websocket clients, then enters each Thing as an async context
        manager, which calls its ``__enter__`` and ``__exit__`` methods if
        it has them.

        :param app: The FastAPI application wrapped by the server.
        :yield: no value. The FastAPI application will serve requests while this
            function yields.
        """
        async with BlockingPortal() as portal:
            self.blocking_portal = portal
            try:
                # The portal must exist before the Things start, in case
                # they begin notifying subscribers straight away.
                async with AsyncExitStack() as stack:
                    for thing in self.things.get_things():
                        await stack.enter_async_context(thing)
                    yield
            finally:
                self.blocking_portal = None

    def start(self, host: str = "0.0.0.0") -> None:
        """Start listening for requests, and block until the server stops.

        :param host: the address to bind to.
        """
        ssl = self.ssl_options or {}
        config = uvicorn.Config(
            self.app,
            host=host,
            port=self.port,
            ssl_keyfile=ssl.get("keyfile"),
            ssl_certfile=ssl.get("certfile"),
            ssl_keyfile_password=ssl.get("password"),
        )
        self._uvicorn_server = uvicorn.Server(config)
        _LOGGER.info("Serving %s on %s:%s", self.name, host, self.port)
        self._uvicorn_server.run()

    def stop(self) -> None:
        """Ask the server to stop listening.

        This may be called from another thread, or from a signal handler.
        `.WebThingServer.start` returns once the server has shut down.

        :raise ServerNotRunningError: if the server has not been started.
        """
        if self._uvicorn_server is None:
            raise ServerNotRunningError("The server has not been started.")
        self._uvicorn_server.should_exit = True


def _request_action(thing: Thing, action_name: str, params: Any) -> dict[str, Any]:
    """Create and start an action, returning its initial description.

    :param thing: the Thing to perform the action.
    :param action_name: the name of the action.
    :param params: the request for this action, which may hold ``input``.

    :return: the description of the action, as it was before it started.

    :raise HTTPException: with code 400 if the request is rejected.
    """
    if not isinstance(params, dict):
        raise HTTPException(400, f"Invalid request for action {action_name}")
    action = thing.perform_action(action_name, params.get("input"))
    if action is None:
        raise HTTPException(400, f"Invalid request for action {action_name}")
    description = action.as_action_description()
    action.start()
    return description


async def _bad_request_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report unparsable request bodies as ``400 Bad Request``."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def server_from_config(
    config: ThingServerConfig | Mapping[str, Any],
    ssl_options: Optional[Mapping[str, Any]] = None,
) -> WebThingServer:
    r"""Create a `.WebThingServer` from its configuration.

    Each Thing is created by calling its ``cls`` with ``args`` and
    ``kwargs``. A single Thing is served with `.SingleThing`, and several
    with `.MultipleThings`\ .

    :param config: A `.ThingServerConfig`, or a dictionary in the same format.
    :param ssl_options: TLS settings, passed to `.WebThingServer`\ .

    :return: A `.WebThingServer`, which has not been started.

    :raise TypeError: if something other than a `.Thing` is created.
    """
    if not isinstance(config, ThingServerConfig):
        config = ThingServerConfig.model_validate(config)
    things: list[Thing] = []
    for thing_config in config.thing_configs:
        thing = thing_config.cls(*thing_config.args, **thing_config.kwargs)
        if not isinstance(thing, Thing):
            raise TypeError(f"{thing_config.cls} returned {thing!r}, not a Thing.")
        things.append(thing)
    container: ThingContainer
    if len(things) == 1:
        container = SingleThing(things[0])
    else:
        container = MultipleThings(things, config.name)
    return WebThingServer(
        container,
        port=config.port,
        hostname=config.hostname,
        ssl_options=ssl_options,
        base_path=config.base_path,
        disable_host_validation=config.disable_host_validation,
    )
