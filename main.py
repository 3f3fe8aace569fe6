#!/usr/bin/env python3
# Copyright (c) 2025 [Harivatsa G A]. All rights reserved.
# This work is licensed under CC BY-NC-ND 4.0.
# https://creativecommons.org/licenses/by-nc-nd/4.0/
# Attribution required. Commercial use and modifications prohibited.

"""
Movie API - Main Entry Point

Starts the HTTP service with uvicorn. Settings are read from config.yaml
(or --config), the config.{env}.yaml overlay and the process environment,
including values from a local .env file.
"""

import argparse
import os
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from movie_api.core.constants import APP_NAME, APP_VERSION

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="movie-api",
        description=f"{APP_NAME} v{APP_VERSION}: cached movie catalog service",
    )
    parser.add_argument('--host', help='Bind address (default: server.host)')
    parser.add_argument('--port', type=int, help='Bind port (default: server.port)')
    parser.add_argument(
        '--config',
        help='Base YAML file (default: $MOVIE_API_CONFIG or ./config.yaml)'
    )
    parser.add_argument(
        '--env',
        help='Overlay to apply, e.g. production for config.production.yaml (default: $ENV)'
    )
    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        help='Override logging.level'
    )
    return parser.parse_args(argv)


def _export_settings(args) -> None:
    # Must run before movie_api.core.config is imported; it builds the
    # global Config at import time.
    load_dotenv()
    if args.config:
        os.environ['MOVIE_API_CONFIG'] = args.config
    if args.env:
        os.environ['ENV'] = args.env
    if args.log_level:
        os.environ['LOG_LEVEL'] = args.log_level


def main(argv=None):
    args = parse_args(argv)
    _export_settings(args)

    from movie_api.core.config import config
    from movie_api.core.logging_config import configure_logging_from_config
    from movie_api.api.app import create_app

    configure_logging_from_config(config)

    host = args.host or config.get('server.host', default='0.0.0.0')
    port = args.port or config.get('server.port', default=3000, expected_type=int)
    log_level = config.get('logging.level', default='INFO', expected_type=str)

    logger.info(
        f"{APP_NAME} v{APP_VERSION} | env={config.env} | config={config.path} | "
        f"listening on {host}:{port}"
    )

    try:
        uvicorn.run(create_app(config_obj=config), host=host, port=port, log_level=log_level.lower())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    except Exception as e:
        logger.exception(f"Server terminated: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
