"""Command-line interface to the `.WebThingServer`.

This module provides the ``webthing-server`` command. It loads a
configuration (see `.config_model`) from a file or a JSON string, creates
the Things it lists, and serves them with `uvicorn`.

For example, to serve the example lamp on port 8888::

    webthing-server --port 8888 \\
        -j '{"things": ["webthing_fastapi.example_things:make_lamp"]}'

Projects with their own command-line interface may reuse
`.get_default_parser` and `.config_from_args`.
"""

from argparse import ArgumentParser, Namespace
import sys
from typing import Optional

from pydantic import ValidationError

from . import WebThingServer, server_from_config
from .config_model import ThingImportFailure, ThingServerConfig


def get_default_parser() -> ArgumentParser:
    """Return the default CLI parser for the Web Thing server.

    This can be used to add more arguments, for custom CLIs.

    :return: an `argparse.ArgumentParser` set up with the options for
        ``webthing-server``.
    """
    parser = ArgumentParser(prog="webthing-server")
    parser.add_argument("-c", "--config", type=str, help="Path to configuration file")
    parser.add_argument("-j", "--json", type=str, help="Configuration as JSON string")
    parser.add_argument(
        "--host", type=str, default="0.0.0.0", help="Bind socket to this host"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind socket to this port, overriding the configuration.",
    )
    parser.add_argument("--ssl-keyfile", type=str, help="TLS private key file")
    parser.add_argument("--ssl-certfile", type=str, help="TLS certificate file")
    return parser


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    r"""Process command line arguments for the server.

    The arguments are defined in `.get_default_parser`\ .

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).

    :return: a namespace with the extracted options.
    """
    parser = get_default_parser()
    return parser.parse_args(argv)


def config_from_args(args: Namespace) -> ThingServerConfig:
    """Load the configuration from a supplied file or JSON string.

    Exactly one of ``--config`` and ``--json`` must be given. ``--port``
    overrides the port in the configuration, if it is given.

    :param args: Parsed arguments from `.parse_args`.

    :return: the server configuration.

    :raise FileNotFoundError: if the configuration file specified is missing.
    :raise RuntimeError: if neither or both of a config file and a string
        are provided.
    """
    if args.config:
        if args.json:
            raise RuntimeError("Can't use both --config and --json simultaneously.")
        try:
            with open(args.config) as f:
                config = ThingServerConfig.model_validate_json(f.read())
        except FileNotFoundError as e:
            raise FileNotFoundError(
                f"Could not find configuration file {args.config}"
            ) from e
    elif args.json:
        config = ThingServerConfig.model_validate_json(args.json)
    else:
        raise RuntimeError("No configuration (or empty configuration) provided")
    if args.port is not None:
        config.port = args.port
    return config


def serve_from_cli(
    argv: Optional[list[str]] = None, dry_run: bool = False
) -> Optional[WebThingServer]:
    r"""Start the server from the command line.

    This function will parse command line arguments, load configuration,
    set up a server, and start it. It calls `.parse_args`,
    `.config_from_args` and `.server_from_config` to get a server, then
    calls `.WebThingServer.start`\ .

    If the configuration is invalid, we print the error and exit with
    status 3.

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).
    :param dry_run: may be set to ``True`` to terminate after the server
        has been created. This checks that all of the Things specified can
        be loaded and instantiated, but does not start `uvicorn`\ .

    :return: the `.WebThingServer` instance created, if ``dry_run`` is ``True``.

    :raise BaseException: if the server cannot start for a reason other
        than invalid configuration.
    """
    args = parse_args(argv)
    try:
        config = config_from_args(args)
        ssl_options = None
        if args.ssl_keyfile or args.ssl_certfile:
            ssl_options = {"keyfile": args.ssl_keyfile, "certfile": args.ssl_certfile}
        server = server_from_config(config, ssl_options=ssl_options)
    except (ValidationError, ThingImportFailure) as e:
        print(f"Error reading Web Thing server configuration:\n{e}")
        sys.exit(3)
    if dry_run:
        return server
    server.start(host=args.host)
    return None
