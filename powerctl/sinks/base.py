# -*- coding: utf-8 -*-
"""Base class for the power sinks."""
from ..config import get_float


class Sink:
    """A device which power state is controlled by the daemon.

    apply() must be safe to repeat with the same state. It raises
    SinkRetryableError on transient failures, SinkFatalError when
    trying again won't help.
    """
    type_name = None

    def __init__(self, name, timeout=10):
        self.name = name
        self.timeout = timeout

    def __repr__(self):
        return f'{self.__class__.__name__}({self.name!r})'

    @classmethod
    def from_config(cls, name, section):
        """Construct the sink from its configuration section"""
        raise NotImplementedError

    @staticmethod
    def base_options(section):
        """Options common for all sinks"""
        return dict(timeout=get_float(section, 'timeout', fallback=10))

    async def apply(self, state):
        """Turn the sink on (True) or off (False)"""
        if state:
            await self.turn_on()
        else:
            await self.turn_off()

    async def turn_on(self):
        """Turn the sink on"""
        raise NotImplementedError

    async def turn_off(self):
        """Turn the sink off"""
        raise NotImplementedError

    async def close(self):
        """Release the resources held by the sink"""
