# -*- coding: utf-8 -*-
"""Kodi CEC sink: switches the TV connected to Kodi over HDMI-CEC.
Requires the script.json-cec addon installed in Kodi
(https://github.com/joshjowen/script.json-cec)."""
from ..config import require, get_optional
from ..exceptions import SinkFatalError, SinkRetryableError
from ..kodi import KodiClient, KodiRejected, KodiUnavailable
from .base import Sink

CEC_ADDON = 'script.json-cec'
ACTIVATE, STANDBY = 'activate', 'standby'


class KodiRpcCecSink(Sink):
    """Sends CEC activate / standby through Kodi"""
    type_name = 'kodi_rpc_cec'

    def __init__(self, name, jsonrpc, user=None, password=None,
                 transport=None, **kwargs):
        super().__init__(name, **kwargs)
        self.client = KodiClient(jsonrpc, user, password,
                                 timeout=self.timeout, transport=transport)

    @classmethod
    def from_config(cls, name, section):
        return cls(name, require(section, 'jsonrpc'),
                   user=get_optional(section, 'user'),
                   password=get_optional(section, 'pass'),
                   **cls.base_options(section))

    async def turn_on(self):
        await self.send(ACTIVATE)

    async def turn_off(self):
        await self.send(STANDBY)

    async def send(self, command):
        """Run the CEC addon with the command"""
        params = dict(addonid=CEC_ADDON, params=dict(command=command))
        try:
            await self.client.call('Addons.ExecuteAddon', params)
        except KodiUnavailable as exc:
            raise SinkRetryableError(str(exc)) from exc
        except KodiRejected as exc:
            raise SinkFatalError(str(exc)) from exc
