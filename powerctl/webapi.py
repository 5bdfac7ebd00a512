# -*- coding: utf-8 -*-
"""JSON web API for checking the daemon status and re-dispatching
the current power decision.

The Flask app runs in a werkzeug server thread; everything it needs
from the supervisor is done on the supervisor's event loop.
"""
import asyncio
import logging
import socket
import threading

from flask import Flask, request
from werkzeug.serving import make_server, select_address_family

LOG = logging.getLogger(__name__)

# seconds to wait for the event loop to answer
LOOP_TIMEOUT = 5


def call_in_loop(loop, function, *args):
    """Run a function on the event loop thread, wait for the result"""
    async def wrapper():
        return function(*args)
    return asyncio.run_coroutine_threadsafe(wrapper(), loop).result(
        LOOP_TIMEOUT)


def create_app(supervisor):
    """Build the Flask app for a supervisor"""
    def status_json():
        """Get the state of the sources, the decision and the sinks."""
        return call_in_loop(supervisor.loop, supervisor.snapshot)

    def power():
        """Get the last power decision."""
        status = call_in_loop(supervisor.loop, supervisor.snapshot)
        decision = status['decision'] or dict(state='unknown')
        return dict(power_state=decision['state'], rail=status['rail'])

    def redispatch():
        """Dispatch the current decision again,
        with ?force=1 even if the rail is already in this state."""
        force = request.args.get('force', '').lower() in ('1', 'yes', 'true')
        decision = call_in_loop(supervisor.loop, supervisor.redispatch,
                                force)
        if decision is None:
            return dict(error='No decision to dispatch.'), 409
        return dict(power_state='on' if decision.state else 'off',
                    reason=decision.reason, force=force), 202

    app = Flask('powerctld')
    app.route('/json')(status_json)
    app.route('/power')(power)
    app.route('/power/redispatch', methods=['POST'])(redispatch)
    return app


class WebApiServer:
    """Serves the web API in a background thread.

    The socket is bound on construction, so a busy port raises OSError
    before the daemon starts anything else.
    """
    def __init__(self, address, port):
        self.socket = socket.create_server(
            (address, port), family=select_address_family(address, port))
        self.server = None
        self.thread = None

    def start(self, supervisor):
        address, port = self.socket.getsockname()[:2]
        self.server = make_server(address, port, create_app(supervisor),
                                  threaded=True, fd=self.socket.fileno())
        self.thread = threading.Thread(target=self.server.serve_forever,
                                       name='webapi', daemon=True)
        LOG.info('Web API listening on %s:%s.', address, port)
        self.thread.start()

    def stop(self):
        """Stop serving, wait for the thread to finish"""
        if self.server is not None:
            self.server.shutdown()
            self.thread.join()
            self.server.server_close()
        self.socket.close()
