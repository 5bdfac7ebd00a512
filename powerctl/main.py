# -*- coding: utf-8 -*-
"""powerctld - daemon entry point.

Reads the configuration, sets up logging, constructs the sources and sinks
and runs the supervisor until SIGINT or SIGTERM is received.
Exits with 0 after a clean shutdown, 1 if the configuration is wrong.
"""
import asyncio
import logging
import signal
import sys

from .config import read_config, general_settings, webapi_settings
from .exceptions import ConfigurationError
from .sinks import create_sinks
from .sources import create_sources
from .supervisor import Supervisor
from .webapi import WebApiServer

LOG = logging.getLogger('powerctl')
LOG_FORMAT = '[%(levelname)s] %(message)s'


def journald_setup(debug_mode=False, journald=False):
    """Set up logging to journald, or to stderr if journald is not used"""
    if journald:
        try:
            from systemd.journal import JournalHandler
        except ImportError as exc:
            raise ConfigurationError('journald logging needs the '
                                     'systemd-python package.') from exc
        handler = JournalHandler(SYSLOG_IDENTIFIER='powerctld')
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    LOG.handlers[:] = [handler]
    LOG.setLevel(logging.DEBUG if debug_mode else logging.INFO)


def build_supervisor(config):
    """Construct the adapters and the supervisor from the configuration"""
    settings = general_settings(config)
    sinks = create_sinks(config)
    sources = create_sources(config)
    return Supervisor.from_settings(sources, sinks, settings)


async def serve(supervisor, server=None):
    """Run the supervisor (and the web API) until a signal arrives"""
    loop = asyncio.get_running_loop()
    # exit gracefully if SIGINT or SIGTERM received
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, supervisor.stop)

    if server is not None:
        server.start(supervisor)
    try:
        await supervisor.run()
    finally:
        if server is not None:
            await asyncio.to_thread(server.stop)
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)


def main(argv=None):
    """Main function"""
    argv = sys.argv[1:] if argv is None else argv
    path = argv[0] if argv else None
    try:
        config = read_config(path)
        settings = general_settings(config)
        journald_setup(settings.debug_mode, settings.journald)
    except ConfigurationError as exc:
        journald_setup()
        LOG.error('Failed reading config: %s', exc)
        return 1

    LOG.info('Started.')
    try:
        webapi = webapi_settings(config)
        supervisor = build_supervisor(config)
    except ConfigurationError as exc:
        LOG.error('Failed starting: %s', exc)
        return 1

    server = None
    if webapi.enable:
        try:
            server = WebApiServer(webapi.address, webapi.port)
        except OSError as exc:
            LOG.error('Failed starting the web API on %s:%s: %s',
                      webapi.address, webapi.port, exc)
            return 1

    asyncio.run(serve(supervisor, server))
    LOG.info('Quitting.')
    return 0


if __name__ == '__main__':
    sys.exit(main())
