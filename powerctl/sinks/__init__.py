# -*- coding: utf-8 -*-
"""Power sinks: devices switched on and off by the daemon."""
from ..config import create_adapters
from .base import Sink
from .gpio import GpioSink
from .hs100 import Hs100Sink
from .kodi_rpc_cec import KodiRpcCecSink
from .simple_post_api import SimplePostApiSink

SINK_TYPES = {cls.type_name: cls
              for cls in (GpioSink, Hs100Sink, KodiRpcCecSink,
                          SimplePostApiSink)}


def create_sinks(config):
    """Construct all enabled sinks from the configuration"""
    return create_adapters(config, 'sink', SINK_TYPES)
