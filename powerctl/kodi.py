# -*- coding: utf-8 -*-
"""Minimal Kodi JSON-RPC client, used by the Kodi source and sink."""
import itertools
import logging

import httpx

LOG = logging.getLogger(__name__)


class KodiError(Exception):
    """Kodi request failed"""


class KodiUnavailable(KodiError):
    """Kodi could not be reached or failed to handle the request.
    It's worth trying again later."""


class KodiRejected(KodiError):
    """Kodi refused the request (bad credentials, unknown method...)"""


class KodiClient:
    """Sends JSON-RPC requests to a Kodi instance over HTTP.

    url - JSON-RPC endpoint, e.g. http://kodi.lan:8080/jsonrpc
    user, password - HTTP basic auth credentials, if Kodi needs them
    timeout - request timeout in seconds
    transport - custom httpx transport
    """
    _ids = itertools.count(1)

    def __init__(self, url, user=None, password=None, timeout=10,
                 transport=None):
        self.url = url
        self.auth = (user, password or '') if user else None
        self.timeout = timeout
        self.transport = transport

    async def call(self, method, params=None):
        """Call a JSON-RPC method, return its result"""
        payload = dict(jsonrpc='2.0', method=method, id=next(self._ids))
        if params is not None:
            payload['params'] = params
        LOG.debug('Kodi request to %s: %s', self.url, method)

        async with httpx.AsyncClient(auth=self.auth, timeout=self.timeout,
                                     follow_redirects=True,
                                     transport=self.transport) as client:
            try:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status >= 500:
                    raise KodiUnavailable(f'HTTP error {status}') from exc
                raise KodiRejected(f'HTTP error {status}') from exc
            except httpx.TransportError as exc:
                raise KodiUnavailable(
                    f'{exc.__class__.__name__}: {exc}') from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise KodiUnavailable('Invalid JSON in the response') from exc
        if 'error' in body:
            error = body['error']
            raise KodiRejected(f'{method}: {error.get("message")} '
                               f'(code {error.get("code")})')
        return body.get('result')
