"""Tests for the power sinks."""
import asyncio
import json
import struct
import sys
import types

import httpx
import pytest

from powerctl.exceptions import (ConfigurationError, SinkFatalError,
                                 SinkRetryableError)
from powerctl.models import ON, OFF
from powerctl.sinks import gpio
from powerctl.sinks.hs100 import Hs100Sink, encrypt, decrypt
from powerctl.sinks.kodi_rpc_cec import KodiRpcCecSink
from powerctl.sinks.simple_post_api import SimplePostApiSink


def test_hs100_cipher():
    assert encrypt(b'{}') == b'\x00\x00\x00\x02\xd0\xad'
    assert decrypt(b'\xd0\xad') == b'{}'


async def fake_plug(err_code=0, received=None):
    """Start a fake smart plug on a free local port"""
    async def handle(reader, writer):
        (length,) = struct.unpack('>I', await reader.readexactly(4))
        command = json.loads(decrypt(await reader.readexactly(length)))
        if received is not None:
            received.append(command)
        response = dict(system=dict(set_relay_state=dict(err_code=err_code)))
        writer.write(encrypt(json.dumps(response).encode()))
        await writer.drain()
        writer.close()
    return await asyncio.start_server(handle, '127.0.0.1', 0)


def test_hs100_switches_relay():
    async def run_test():
        received = []
        server = await fake_plug(received=received)
        port = server.sockets[0].getsockname()[1]
        async with server:
            sink = Hs100Sink('plug', '127.0.0.1', port=port)
            await sink.apply(ON)
            await sink.apply(OFF)
        assert received == [
            dict(system=dict(set_relay_state=dict(state=1))),
            dict(system=dict(set_relay_state=dict(state=0)))]

    asyncio.run(run_test())


def test_hs100_refused_command_is_fatal():
    async def run_test():
        server = await fake_plug(err_code=-1)
        port = server.sockets[0].getsockname()[1]
        async with server:
            sink = Hs100Sink('plug', '127.0.0.1', port=port)
            with pytest.raises(SinkFatalError):
                await sink.apply(ON)

    asyncio.run(run_test())


def test_hs100_unreachable_is_retryable():
    async def run_test():
        server = await fake_plug()
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        sink = Hs100Sink('plug', '127.0.0.1', port=port)
        with pytest.raises(SinkRetryableError):
            await sink.apply(ON)

    asyncio.run(run_test())


class FakeWriter:
    """Records what happens to the plug connection"""
    def __init__(self):
        self.calls = []

    def write(self, data):
        self.calls.append('write')

    async def drain(self):
        self.calls.append('drain')

    def close(self):
        self.calls.append('close')

    async def wait_closed(self):
        self.calls.append('wait_closed')


@pytest.mark.parametrize('response, error', [
    (encrypt(b'{"system": {"set_relay_state": {"err_code": 0}}}'), None),
    # truncated
    (b'\x00\x00', SinkRetryableError)])
def test_hs100_waits_for_closed_connection(monkeypatch, response,
                                           error):
    writer = FakeWriter()

    async def open_connection(host, port):
        reader = asyncio.StreamReader()
        reader.feed_data(response)
        reader.feed_eof()
        return reader, writer

    async def run_test():
        sink = Hs100Sink('plug', 'plug.lan')
        if error is None:
            await sink.apply(ON)
        else:
            with pytest.raises(error):
                await sink.apply(ON)

    monkeypatch.setattr(asyncio, 'open_connection', open_connection)
    asyncio.run(run_test())
    assert writer.calls == ['write', 'drain', 'close', 'wait_closed']


def recording_transport(requests, status=200):
    def handler(request):
        requests.append(request)
        return httpx.Response(status, json=dict(jsonrpc='2.0', id=1,
                                                result='OK'))
    return httpx.MockTransport(handler)


def test_post_api_sends_requests():
    async def run_test():
        requests = []
        sink = SimplePostApiSink('hook', on_url='http://hub.lan/on',
                                 transport=recording_transport(requests))
        await sink.apply(ON)
        # no off URL: nothing to do
        await sink.apply(OFF)
        assert [(request.method, str(request.url))
                for request in requests] == [('POST', 'http://hub.lan/on')]

    asyncio.run(run_test())


@pytest.mark.parametrize('status, error', [(503, SinkRetryableError),
                                           (429, SinkRetryableError),
                                           (404, SinkFatalError),
                                           (401, SinkFatalError)])
def test_post_api_http_errors(status, error):
    async def run_test():
        sink = SimplePostApiSink('hook', off_url='http://hub.lan/off',
                                 transport=recording_transport([], status))
        with pytest.raises(error):
            await sink.apply(OFF)

    asyncio.run(run_test())


def test_post_api_connection_error_is_retryable():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    async def run_test():
        sink = SimplePostApiSink('hook', on_url='http://hub.lan/on',
                                 transport=httpx.MockTransport(handler))
        with pytest.raises(SinkRetryableError):
            await sink.apply(ON)

    asyncio.run(run_test())


def test_post_api_follows_redirect():
    requests = []

    def handler(request):
        requests.append((request.method, str(request.url)))
        if request.url.path == '/on':
            return httpx.Response(
                303, headers=dict(location='http://hub.lan/scenes'))
        return httpx.Response(200)

    async def run_test():
        sink = SimplePostApiSink('hook', on_url='http://hub.lan/on',
                                 transport=httpx.MockTransport(handler))
        await sink.apply(ON)

    asyncio.run(run_test())
    assert requests == [('POST', 'http://hub.lan/on'),
                        ('GET', 'http://hub.lan/scenes')]


def test_post_api_needs_url():
    with pytest.raises(ConfigurationError):
        SimplePostApiSink('hook')


def test_kodi_cec_commands():
    async def run_test():
        requests = []
        sink = KodiRpcCecSink('tv', 'http://kodi.lan:8080/jsonrpc',
                              transport=recording_transport(requests))
        await sink.apply(ON)
        await sink.apply(OFF)
        payloads = [json.loads(request.content) for request in requests]
        assert [payload['method'] for payload in payloads] == [
            'Addons.ExecuteAddon'] * 2
        assert [payload['params'] for payload in payloads] == [
            dict(addonid='script.json-cec', params=dict(command='activate')),
            dict(addonid='script.json-cec', params=dict(command='standby'))]

    asyncio.run(run_test())


def test_kodi_cec_errors():
    def rpc_error(request):
        return httpx.Response(200, json=dict(
            jsonrpc='2.0', id=1,
            error=dict(code=-32602, message='Invalid params.')))

    async def run_test():
        sink = KodiRpcCecSink('tv', 'http://kodi.lan:8080/jsonrpc',
                              transport=httpx.MockTransport(rpc_error))
        with pytest.raises(SinkFatalError):
            await sink.apply(OFF)
        sink = KodiRpcCecSink('tv', 'http://kodi.lan:8080/jsonrpc',
                              transport=recording_transport([], 502))
        with pytest.raises(SinkRetryableError):
            await sink.apply(OFF)

    asyncio.run(run_test())


class FakeGPIO:
    """Stands in for OPi.GPIO"""
    SUNXI, BCM = 'sunxi', 'bcm'
    IN, OUT = 'in', 'out'
    HIGH, LOW = 1, 0

    def __init__(self):
        self.mode = None
        self.channels = {}
        self.outputs = []
        self.inputs = {}

    def setmode(self, mode):
        self.mode = mode

    def setup(self, channel, direction):
        self.channels[channel] = direction

    def output(self, channel, value):
        self.outputs.append((channel, value))

    def input(self, channel):
        return self.inputs.get(channel, self.HIGH)


@pytest.fixture
def fake_gpio(monkeypatch):
    fake = FakeGPIO()
    package = types.ModuleType('OPi')
    package.GPIO = fake
    monkeypatch.setitem(sys.modules, 'OPi', package)
    monkeypatch.setitem(sys.modules, 'OPi.GPIO', fake)
    monkeypatch.setattr(gpio, 'GPIO', None)
    return fake


def test_gpio_switches_relay(fake_gpio):
    async def run_test():
        sink = gpio.GpioSink('relay', 'PA9', auto_mode_in='PA8')
        await sink.apply(ON)
        await sink.apply(OFF)

    asyncio.run(run_test())
    assert fake_gpio.mode == FakeGPIO.SUNXI
    assert fake_gpio.channels == dict(PA9='out', PA8='in')
    assert fake_gpio.outputs == [('PA9', 1), ('PA9', 0)]


def test_gpio_manual_mode_is_fatal(fake_gpio):
    fake_gpio.inputs[8] = FakeGPIO.LOW

    async def run_test():
        sink = gpio.GpioSink('relay', '9', auto_mode_in='8')
        with pytest.raises(SinkFatalError):
            await sink.apply(ON)

    asyncio.run(run_test())
    assert fake_gpio.outputs == []
