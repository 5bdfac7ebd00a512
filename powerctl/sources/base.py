# -*- coding: utf-8 -*-
"""Base classes for the activity sources."""
import asyncio
import logging

from ..config import get_float
from ..exceptions import SourceTransientError
from ..models import ACTIVE, observe, activity_str

LOG = logging.getLogger(__name__)


class Source:
    """A device which activity is monitored.

    subscribe() returns an endless async iterator of observations,
    one for each change of the activity state.
    """
    type_name = None

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f'{self.__class__.__name__}({self.name!r})'

    @classmethod
    def from_config(cls, name, section):
        """Construct the source from its configuration section"""
        raise NotImplementedError

    def subscribe(self):
        """Async iterator of ActivityObservation"""
        raise NotImplementedError

    async def close(self):
        """Release the resources held by the source"""


class PollingSource(Source):
    """A source which state is checked periodically.

    poll_interval_on - seconds between checks while the source is active
    poll_interval_off - seconds between checks while it's idle
    timeout - seconds a single check may take

    A check that fails or times out reports the source as active,
    so that a broken connection never powers the equipment off.
    """
    def __init__(self, name, poll_interval_on=60, poll_interval_off=10,
                 timeout=10, sleep=asyncio.sleep):
        super().__init__(name)
        self.poll_interval_on = poll_interval_on
        self.poll_interval_off = poll_interval_off
        self.timeout = timeout
        self.sleep = sleep

    @staticmethod
    def base_options(section):
        """Polling options common for all polling sources"""
        return dict(poll_interval_on=get_float(section, 'poll_interval_on',
                                               fallback=60, minimum=1),
                    poll_interval_off=get_float(section, 'poll_interval_off',
                                                fallback=10, minimum=1),
                    timeout=get_float(section, 'timeout', fallback=10))

    async def is_active(self):
        """Check the state of the source.
        Raises SourceTransientError if it cannot be determined."""
        raise NotImplementedError

    async def check(self):
        """Check the state, assume active on any failure"""
        try:
            return bool(await asyncio.wait_for(self.is_active(),
                                               self.timeout))
        except asyncio.TimeoutError:
            LOG.warning('[source] [%s] Timeout while checking the state.',
                        self.name, extra=dict(SOURCE_ID=self.name))
        except SourceTransientError as exc:
            LOG.warning('[source] [%s] Error while checking the state: %s',
                        self.name, exc, extra=dict(SOURCE_ID=self.name))
        except Exception:
            LOG.exception('[source] [%s] Unexpected error while checking '
                          'the state.', self.name,
                          extra=dict(SOURCE_ID=self.name))
        return ACTIVE

    async def subscribe(self):
        """Poll the source, yield an observation whenever the state changes.
        The first check is done right away."""
        last_state = None
        while True:
            state = await self.check()
            if state != last_state:
                LOG.debug('[source] [%s] Checked: %s.',
                          self.name, activity_str(state))
                last_state = state
                yield observe(self.name, state)
            if state:
                await self.sleep(self.poll_interval_on)
            else:
                await self.sleep(self.poll_interval_off)
