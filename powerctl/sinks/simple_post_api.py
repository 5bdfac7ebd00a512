# -*- coding: utf-8 -*-
"""Webhook sink: sends an empty POST request to a URL on power on or off."""
import logging

import httpx

from ..config import get_optional
from ..exceptions import ConfigurationError, SinkFatalError, SinkRetryableError
from .base import Sink

LOG = logging.getLogger(__name__)


class SimplePostApiSink(Sink):
    """POSTs to on_url / off_url; a missing URL does nothing"""
    type_name = 'simple_post_api'

    def __init__(self, name, on_url=None, off_url=None, transport=None,
                 **kwargs):
        super().__init__(name, **kwargs)
        if not on_url and not off_url:
            raise ConfigurationError(
                f'[sink] [{name}] on_url or off_url is required.')
        self.on_url = on_url
        self.off_url = off_url
        self.transport = transport

    @classmethod
    def from_config(cls, name, section):
        return cls(name, on_url=get_optional(section, 'on_url'),
                   off_url=get_optional(section, 'off_url'),
                   **cls.base_options(section))

    async def turn_on(self):
        await self.post(self.on_url, 'ON')

    async def turn_off(self):
        await self.post(self.off_url, 'OFF')

    async def post(self, url, label):
        """Send the request, classify the failures"""
        if not url:
            LOG.debug('[sink] [%s] No %s URL, doing nothing.',
                      self.name, label)
            return
        LOG.info('[sink] [%s] Sending %s request via POST to %s.',
                 self.name, label, url)
        async with httpx.AsyncClient(timeout=self.timeout,
                                     follow_redirects=True,
                                     transport=self.transport) as client:
            try:
                response = await client.post(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status >= 500 or status == 429:
                    raise SinkRetryableError(f'HTTP error {status}') from exc
                raise SinkFatalError(f'HTTP error {status}') from exc
            except httpx.TransportError as exc:
                raise SinkRetryableError(
                    f'{exc.__class__.__name__}: {exc}') from exc
