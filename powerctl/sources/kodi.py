# -*- coding: utf-8 -*-
"""Kodi source: active while anything is playing."""
from ..config import require, get_optional
from ..exceptions import SourceTransientError
from ..kodi import KodiClient, KodiError
from .base import PollingSource


class KodiSource(PollingSource):
    """Polls Kodi for active players"""
    type_name = 'kodi'

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

    async def is_active(self):
        try:
            players = await self.client.call('Player.GetActivePlayers')
        except KodiError as exc:
            raise SourceTransientError(str(exc)) from exc
        return bool(players)
