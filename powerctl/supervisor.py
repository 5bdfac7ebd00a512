# -*- coding: utf-8 -*-
"""Orchestration supervisor: runs the sources, the aggregator
and the dispatcher as a pipeline, and shuts them down cleanly.

    source tasks --observations--> aggregator --decisions--> dispatcher

Each source runs in its own task. The aggregator and the dispatcher each
consume their queue in a single task, so observations are aggregated
in arrival order and one decision is fully dispatched before the next.

Lifecycle: starting -> running -> draining -> stopped. Stopping cancels
the sources and the quiet period timer right away; the dispatch in
progress gets drain_timeout seconds to finish its retries.
"""
import asyncio
import logging

from .aggregator import Aggregator
from .dispatcher import Dispatcher

LOG = logging.getLogger(__name__)

STARTING, RUNNING, DRAINING, STOPPED = (
    'starting', 'running', 'draining', 'stopped')


class Supervisor:
    """Owns the pipeline tasks and the queues between them"""
    def __init__(self, sources, sinks, quiet_period=300, max_attempts=3,
                 backoff=1, drain_timeout=10, sleep=asyncio.sleep):
        self.state = STARTING
        self.sources = list(sources)
        self.sinks = list(sinks)
        self.drain_timeout = drain_timeout
        self.aggregator = Aggregator([source.name for source in self.sources],
                                     quiet_period, emit=self._queue_decision)
        self.dispatcher = Dispatcher(self.sinks, max_attempts, backoff,
                                     sleep=sleep)
        self.loop = None
        self._observations = asyncio.Queue()
        self._decisions = asyncio.Queue()
        self._stop = asyncio.Event()
        self._source_tasks = []
        self._aggregate_task = None
        self._dispatch_task = None

    @classmethod
    def from_settings(cls, sources, sinks, settings):
        """Build the supervisor with the [general] settings"""
        return cls(sources, sinks, quiet_period=settings.quiet_period,
                   max_attempts=settings.max_attempts,
                   backoff=settings.backoff,
                   drain_timeout=settings.drain_timeout)

    def _set_state(self, state):
        self.state = state
        LOG.info('Supervisor %s.', state, extra=dict(SUPERVISOR_STATE=state))

    async def run(self):
        """Run until stop() is called, then drain"""
        if self.state != STARTING:
            raise RuntimeError(f'Cannot run a supervisor in the '
                               f'{self.state} state.')
        self.loop = asyncio.get_running_loop()
        self._source_tasks = [
            self.loop.create_task(self._watch(source),
                                  name=f'source-{source.name}')
            for source in self.sources]
        self._aggregate_task = self.loop.create_task(self._aggregate(),
                                                     name='aggregator')
        self._dispatch_task = self.loop.create_task(self._dispatch(),
                                                    name='dispatcher')
        self._set_state(RUNNING)
        try:
            await self._stop.wait()
        finally:
            await self._drain()

    def stop(self):
        """Request a graceful shutdown. Call from the event loop thread."""
        if not self._stop.is_set():
            LOG.info('Stop requested.')
            self._stop.set()

    def redispatch(self, force=False):
        """Dispatch the current decision again. Without force, this only
        does anything if the last dispatch cycle failed for some sink.
        Returns the decision, None if there is nothing to dispatch."""
        decision = self.aggregator.last_decision
        if decision is None or self.state != RUNNING:
            return None
        LOG.info('Re-dispatch of the current decision requested.')
        self._queue_decision(decision, force)
        return decision

    def snapshot(self):
        """Status of the whole pipeline, for the web API"""
        status = dict(state=self.state)
        status.update(self.aggregator.snapshot())
        status.update(self.dispatcher.snapshot())
        return status

    def _queue_decision(self, decision, force=False):
        self._decisions.put_nowait((decision, force))

    async def _watch(self, source):
        """Source task: forward the observations to the aggregator"""
        try:
            async for observation in source.subscribe():
                self._observations.put_nowait(observation)
        except Exception:
            LOG.exception('[source] [%s] Crashed, its last state is kept.',
                          source.name, extra=dict(SOURCE_ID=source.name))
        else:
            LOG.error('[source] [%s] Stopped reporting, its last state '
                      'is kept.', source.name,
                      extra=dict(SOURCE_ID=source.name))

    async def _aggregate(self):
        """Aggregator task: ingest the observations in arrival order"""
        while True:
            observation = await self._observations.get()
            decision = self.aggregator.ingest(observation)
            if decision is not None:
                self._queue_decision(decision)

    async def _dispatch(self):
        """Dispatcher task: apply the decisions one after another"""
        while True:
            item = await self._decisions.get()
            if item is None:
                return
            decision, force = item
            await self.dispatcher.dispatch(decision, force)

    async def _drain(self):
        """Stop everything, give the dispatch in progress some time"""
        self._set_state(DRAINING)
        upstream = self._source_tasks + [self._aggregate_task]
        for task in upstream:
            task.cancel()
        self.aggregator.close()
        await asyncio.gather(*upstream, return_exceptions=True)

        # decisions waiting in the queue are not started any more
        while not self._decisions.empty():
            decision, _ = self._decisions.get_nowait()
            LOG.warning('Shutting down, discarded the decision to turn %s.',
                        'on' if decision.state else 'off')
        self._decisions.put_nowait(None)
        try:
            await asyncio.wait_for(self._dispatch_task, self.drain_timeout)
        except asyncio.TimeoutError:
            LOG.warning('Dispatch did not finish in %s s, cancelled.',
                        self.drain_timeout)

        for adapter in self.sources + self.sinks:
            try:
                await adapter.close()
            except Exception:
                LOG.exception('Failed closing %r.', adapter)
        self._set_state(STOPPED)
