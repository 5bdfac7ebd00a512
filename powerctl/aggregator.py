# -*- coding: utf-8 -*-
"""State aggregator: merges the observations from all sources
into one desired power state for the rail.

Any active source turns the rail on immediately. The rail is turned off
only when every source has been idle, without interruption, for at least
the quiet period. The quiet period runs as a single timer task: started
when the last active source goes idle, cancelled by any activity.

All methods must be called from the event loop thread; ingest() is never
called concurrently, so the records need no locking.
"""
import asyncio
import logging

from .exceptions import ConfigurationError
from .models import ON, OFF, SourceRecord, decide, power_str, activity_str

LOG = logging.getLogger(__name__)


class Aggregator:
    """Reconciles source observations into power decisions.

    source_ids - the configured sources; observations from any other
                 source are rejected
    quiet_period - seconds all sources must stay idle before powering off
    emit - callable receiving the power-off decision made by the timer
           (decisions made by ingest() are returned instead)
    """
    def __init__(self, source_ids, quiet_period, emit=None):
        self.records = {source_id: SourceRecord(source_id)
                        for source_id in source_ids}
        if not self.records:
            raise ConfigurationError('At least one source is required.')
        if quiet_period < 0:
            raise ConfigurationError('Quiet period cannot be negative.')
        self.quiet_period = quiet_period
        self.emit = emit
        self.last_decision = None
        self._timer = None

    @property
    def aggregated_state(self):
        """ON if any source is (or is assumed to be) active,
        OFF if all sources are idle."""
        if any(record.last_state for record in self.records.values()):
            return ON
        return OFF

    @property
    def last_state(self):
        """State of the last emitted decision, None if nothing was decided"""
        if self.last_decision is None:
            return None
        return self.last_decision.state

    @property
    def timer_pending(self):
        """Whether the quiet period is being counted down"""
        return self._timer is not None

    def ingest(self, observation):
        """Take an observation into account.
        Returns a new power decision if the rail should be turned on,
        None otherwise. Power-off decisions are emitted by the timer."""
        record = self.records.get(observation.source_id)
        if record is None:
            LOG.warning('Rejected an observation from unknown source %r.',
                        observation.source_id,
                        extra=dict(SOURCE_ID=observation.source_id))
            return None

        if record.update(observation):
            LOG.info('[source] [%s] Now %s.', record.source_id,
                     activity_str(record.last_state),
                     extra=dict(SOURCE_ID=record.source_id,
                                ACTIVITY=activity_str(record.last_state)))

        if self.aggregated_state == ON:
            self._cancel_timer()
            return self._power_on()

        # all sources idle: start counting the quiet period unless we're
        # already doing it, or the rail is already off
        if self._timer is None and self.last_state is not OFF:
            self._start_timer()
        return None

    def close(self):
        """Stop the quiet period timer, if any"""
        self._cancel_timer()

    def snapshot(self):
        """Status information for the web API"""
        decision = self.last_decision
        if decision is not None:
            decision = dict(state=power_str(decision.state),
                            reason=decision.reason,
                            decided_at=decision.decided_at)
        return dict(sources={source_id: record.as_dict()
                             for source_id, record in self.records.items()},
                    decision=decision,
                    quiet_period_pending=self.timer_pending)

    def _power_on(self):
        """Decide to power on if it's not decided yet.
        Sources that never reported don't turn the rail on by themselves:
        they only keep it from being turned off."""
        if self.last_state is ON:
            return None
        active = [source_id for source_id, record in self.records.items()
                  if record.reported and record.last_state]
        if not active:
            return None
        return self._decide(ON, 'active: {}'.format(', '.join(active)))

    def _decide(self, state, reason):
        """Store and log a new decision"""
        self.last_decision = decide(state, reason)
        LOG.info('Power decision: %s (%s).', power_str(state), reason,
                 extra=dict(POWER_STATE=power_str(state)))
        return self.last_decision

    def _start_timer(self):
        """Schedule the power-off check after the quiet period"""
        LOG.debug('All sources idle, powering off in %s s unless '
                  'anything becomes active.', self.quiet_period)
        self._timer = asyncio.get_running_loop().create_task(
            self._quiet_period_timer())

    def _cancel_timer(self):
        """Cancel the pending power-off check"""
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            LOG.debug('Quiet period interrupted.')
            timer.cancel()

    async def _quiet_period_timer(self):
        """Wait for the quiet period, then decide to power off"""
        await asyncio.sleep(self.quiet_period)
        self._timer = None
        if self.aggregated_state == ON or self.last_state is OFF:
            return
        decision = self._decide(
            OFF, f'all sources idle for {self.quiet_period} s')
        if self.emit is not None:
            self.emit(decision)
