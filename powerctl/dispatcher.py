# -*- coding: utf-8 -*-
"""Actuation dispatcher: applies power decisions to all sinks.

Every sink is driven to the decided state concurrently and independently.
Transient failures are retried with exponential backoff; after the last
attempt (or a fatal failure) the sink is left alone until the next
dispatch cycle. The rail state is only known when all sinks succeeded.
"""
import asyncio
import logging

from .exceptions import ConfigurationError, SinkFatalError, SinkRetryableError
from .models import (SUCCESS, RETRYABLE, FATAL, SinkActuationAttempt,
                     power_str)

LOG = logging.getLogger(__name__)


class Dispatcher:
    """Fans power decisions out to the sinks.

    sinks - sink adapters (see powerctl.sinks.Sink)
    max_attempts - how many times a sink is tried in one cycle
    backoff - delay before the first retry in seconds, doubled
              with every next retry
    sleep - coroutine function used for the backoff delays
    """
    def __init__(self, sinks, max_attempts=3, backoff=1.0,
                 sleep=asyncio.sleep):
        self.sinks = {sink.name: sink for sink in sinks}
        if not self.sinks:
            raise ConfigurationError('At least one sink is required.')
        if max_attempts < 1:
            raise ConfigurationError('max_attempts must be at least 1.')
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.sleep = sleep
        # state applied to all the sinks in the last successful cycle
        self.last_applied = None
        self.sink_states = dict.fromkeys(self.sinks)

    async def dispatch(self, decision, force=False):
        """Apply the decision to all sinks, unless the rail is already
        in this state (force=True skips this check).
        Returns the final actuation attempt of every sink."""
        state = power_str(decision.state)
        if not force and decision.state == self.last_applied:
            LOG.debug('Rail is already %s, nothing to do.', state)
            return []

        LOG.info('Turning %s %d sink(s): %s.', state, len(self.sinks),
                 decision.reason, extra=dict(POWER_STATE=state))
        results = await asyncio.gather(*(self._actuate(sink, decision)
                                         for sink in self.sinks.values()))

        failed = [result.sink_id for result in results
                  if result.outcome != SUCCESS]
        if failed:
            # some sinks may be on and some off: the rail state is unknown,
            # so the next decision is always dispatched in full
            self.last_applied = None
            LOG.error('Failed turning %s: %s.', state, ', '.join(failed),
                      extra=dict(POWER_STATE=state))
        else:
            self.last_applied = decision.state
            LOG.info('Rail is %s.', state, extra=dict(POWER_STATE=state))
        return results

    def snapshot(self):
        """Status information for the web API"""
        return dict(rail=power_str(self.last_applied),
                    sinks={name: power_str(state)
                           for name, state in self.sink_states.items()})

    async def _actuate(self, sink, decision):
        """Try to apply the decision to one sink, retrying transient
        failures. Returns the last attempt."""
        state = power_str(decision.state)
        attempt_number = 0
        while True:
            attempt_number += 1
            outcome = await self._attempt(sink, decision.state)
            attempt = SinkActuationAttempt(sink.name, decision,
                                           attempt_number, outcome)
            extra = dict(SINK_ID=sink.name, POWER_STATE=state,
                         OUTCOME=outcome, ATTEMPT=attempt_number)

            if outcome == SUCCESS:
                self.sink_states[sink.name] = decision.state
                LOG.info('[sink] [%s] Turned %s.', sink.name, state,
                         extra=extra)
                return attempt

            # the sink may be in any state now
            self.sink_states[sink.name] = None
            if outcome == FATAL:
                LOG.error('[sink] [%s] Cannot turn %s, giving up '
                          'until the next decision.', sink.name, state,
                          extra=extra)
                return attempt
            if attempt_number >= self.max_attempts:
                LOG.error('[sink] [%s] Failed turning %s %d times, giving up '
                          'until the next decision.', sink.name, state,
                          attempt_number, extra=extra)
                return attempt

            delay = self.backoff * 2 ** (attempt_number - 1)
            LOG.warning('[sink] [%s] Attempt %d to turn %s failed, '
                        'retrying in %s s.', sink.name, attempt_number,
                        state, delay, extra=extra)
            await self.sleep(delay)

    async def _attempt(self, sink, state):
        """Call the sink once, classify the result"""
        try:
            await asyncio.wait_for(sink.apply(state), sink.timeout)
        except SinkFatalError as exc:
            LOG.error('[sink] [%s] %s', sink.name, exc)
            return FATAL
        except SinkRetryableError as exc:
            LOG.warning('[sink] [%s] %s', sink.name, exc)
            return RETRYABLE
        except asyncio.TimeoutError:
            LOG.warning('[sink] [%s] Timed out after %s s.',
                        sink.name, sink.timeout)
            return RETRYABLE
        except Exception:
            # not classified by the sink, so assume it's worth another try
            LOG.exception('[sink] [%s] Unexpected error.', sink.name)
            return RETRYABLE
        return SUCCESS
