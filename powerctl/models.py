# -*- coding: utf-8 -*-
"""Data passed between the sources, the aggregator, the dispatcher
and the sinks."""
import time
from collections import namedtuple

ON, OFF = True, False
ACTIVE, IDLE = True, False

# actuation attempt outcomes
SUCCESS, RETRYABLE, FATAL = 'success', 'retryable', 'fatal'

ActivityObservation = namedtuple('ActivityObservation',
                                 'source_id state observed_at')

PowerDecision = namedtuple('PowerDecision', 'state reason decided_at')

SinkActuationAttempt = namedtuple('SinkActuationAttempt',
                                  'sink_id decision attempt_number outcome')


def power_str(state):
    """Human-readable power state: on, off or unknown (None)"""
    if state is None:
        return 'unknown'
    return 'on' if state else 'off'


def activity_str(state):
    """Human-readable activity state"""
    return 'active' if state else 'idle'


def observe(source_id, state, observed_at=None):
    """Make a new observation, timestamped now unless stated otherwise"""
    if observed_at is None:
        observed_at = time.time()
    return ActivityObservation(source_id, bool(state), observed_at)


def decide(state, reason, decided_at=None):
    """Make a new power decision, timestamped now unless stated otherwise"""
    if decided_at is None:
        decided_at = time.time()
    return PowerDecision(bool(state), reason, decided_at)


class SourceRecord:
    """Last known state of a single source, kept by the aggregator.
    A source that has never reported is assumed to be active,
    so that nothing gets powered off before we know better.
    """
    __slots__ = ('source_id', 'last_state', 'last_changed_at', 'reported')

    def __init__(self, source_id, last_state=ACTIVE, last_changed_at=None):
        self.source_id = source_id
        self.last_state = last_state
        self.last_changed_at = last_changed_at
        self.reported = False

    def __repr__(self):
        return (f'SourceRecord({self.source_id!r}, '
                f'{activity_str(self.last_state)}, '
                f'changed_at={self.last_changed_at})')

    def update(self, observation):
        """Store the observed state. Returns True if it changed."""
        changed = observation.state != self.last_state or not self.reported
        if changed:
            self.last_changed_at = observation.observed_at
        self.last_state = observation.state
        self.reported = True
        return changed

    def as_dict(self):
        """Status information for the web API"""
        return dict(state=activity_str(self.last_state),
                    last_changed_at=self.last_changed_at,
                    reported=self.reported)
