# -*- coding: utf-8 -*-
"""Activity sources: devices which state decides whether
the power should be on."""
from ..config import create_adapters
from .base import Source, PollingSource
from .kodi import KodiSource
from .steamlink import SteamLinkSource

SOURCE_TYPES = {cls.type_name: cls for cls in (KodiSource, SteamLinkSource)}


def create_sources(config):
    """Construct all enabled sources from the configuration"""
    return create_adapters(config, 'source', SOURCE_TYPES)
