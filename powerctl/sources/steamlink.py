# -*- coding: utf-8 -*-
"""Steam Link source: active while a game is being streamed.

The Steam Link is checked over SSH for a running streaming client.
The SSH session is blocking, so it lives in its own thread which keeps
the connection open (with keepalives) and reconnects when it drops.
Checks are sent to that thread over a queue and answered with futures;
the session itself is never touched from the event loop.
"""
import asyncio
import logging
import queue
import threading
from concurrent.futures import Future

import paramiko

from ..config import require, get_bool, get_float, get_int
from ..exceptions import SourceTransientError
from .base import PollingSource

LOG = logging.getLogger(__name__)

CHECK_COMMAND = "sh -c 'ps | grep streaming_client | grep -v grep'"
# thread wakeup interval for noticing the stop request
STOP_CHECK_INTERVAL = 1


class SteamLinkSource(PollingSource):
    """Looks for the streaming client process on a Steam Link"""
    type_name = 'steamlink'

    def __init__(self, name, host, user, password, port=22,
                 strict_host_key_checking=True, keepalive=30,
                 reconnect_delay=60, **kwargs):
        super().__init__(name, **kwargs)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.strict_host_key_checking = strict_host_key_checking
        self.keepalive = keepalive
        self.reconnect_delay = reconnect_delay
        self._requests = queue.Queue()
        self._stopping = threading.Event()
        self._thread = None

    @classmethod
    def from_config(cls, name, section):
        return cls(name, require(section, 'host'), require(section, 'user'),
                   require(section, 'pass'),
                   port=get_int(section, 'port', fallback=22, minimum=1),
                   strict_host_key_checking=get_bool(
                       section, 'strict_host_key_checking', fallback=True),
                   keepalive=get_int(section, 'keepalive', fallback=30),
                   reconnect_delay=get_float(section, 'reconnect_delay',
                                             fallback=60),
                   **cls.base_options(section))

    async def is_active(self):
        if self._thread is None:
            self._start()
        request = Future()
        self._requests.put(request)
        try:
            return await asyncio.wrap_future(request)
        except (paramiko.SSHException, OSError) as exc:
            raise SourceTransientError(
                f'SSH: {exc.__class__.__name__}: {exc}') from exc

    async def close(self):
        """Stop the SSH thread and wait for it to disconnect"""
        if self._thread is None:
            return
        self._stopping.set()
        self._requests.put(None)
        await asyncio.to_thread(self._thread.join, self.timeout)

    def _start(self):
        self._thread = threading.Thread(target=self._watch, daemon=True,
                                        name=f'steamlink-{self.name}')
        self._thread.start()

    def _watch(self):
        """SSH thread: connect, answer requests, reconnect on failure"""
        while not self._stopping.is_set():
            try:
                client = self._connect()
            except (paramiko.SSHException, OSError) as exc:
                self._reconnect_later(exc)
                continue

            LOG.debug('[source] [%s] Connected to %s.', self.name, self.host)
            try:
                self._serve(client)
            except (paramiko.SSHException, OSError) as exc:
                self._reconnect_later(exc)
            finally:
                client.close()
        LOG.debug('[source] [%s] SSH thread finished.', self.name)

    def _reconnect_later(self, exc):
        LOG.warning('[source] [%s] SSH connection error: %s. Reconnecting '
                    'in %s s.', self.name, exc, self.reconnect_delay,
                    extra=dict(SOURCE_ID=self.name))
        # nobody will answer the pending checks for a while
        self._fail_pending(exc)
        self._stopping.wait(self.reconnect_delay)

    def _fail_pending(self, exc):
        """Fail the checks queued before the error. Checks queued later
        wait for the next connection."""
        for _ in range(self._requests.qsize()):
            try:
                request = self._requests.get_nowait()
            except queue.Empty:
                return
            if request is not None and request.set_running_or_notify_cancel():
                request.set_exception(exc)

    def _connect(self):
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self.strict_host_key_checking:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(self.host, port=self.port, username=self.user,
                           password=self.password, timeout=self.timeout,
                           allow_agent=False, look_for_keys=False)
            client.get_transport().set_keepalive(self.keepalive)
        except BaseException:
            client.close()
            raise
        return client

    def _serve(self, client):
        """Answer the check requests until stopped or disconnected"""
        while not self._stopping.is_set():
            try:
                request = self._requests.get(timeout=STOP_CHECK_INTERVAL)
            except queue.Empty:
                continue
            if request is None:
                return
            if not request.set_running_or_notify_cancel():
                # the caller gave up waiting
                continue
            try:
                request.set_result(self._check_active(client))
            except SourceTransientError as exc:
                request.set_exception(exc)
            except (paramiko.SSHException, OSError) as exc:
                request.set_exception(exc)
                raise

    def _check_active(self, client):
        """Run the process check, exit code 0 means found, 1 not found"""
        _, stdout, _ = client.exec_command(CHECK_COMMAND,
                                           timeout=self.timeout)
        stdout.read()
        exit_status = stdout.channel.recv_exit_status()
        if exit_status == 0:
            return True
        if exit_status == 1:
            return False
        raise SourceTransientError(
            f'Unexpected exit code of the process check: {exit_status}')
