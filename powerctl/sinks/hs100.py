# -*- coding: utf-8 -*-
"""TP-Link HS100/HS110 smart plug sink.

The plug listens on TCP port 9999 for JSON commands, "encrypted" with
an autokey XOR cipher (initial key 171) and prefixed with their length
as a 32-bit big-endian integer. Responses use the same framing.
"""
import asyncio
import contextlib
import json
import logging
import struct

from ..config import require, get_int
from ..exceptions import SinkFatalError, SinkRetryableError
from .base import Sink

LOG = logging.getLogger(__name__)

DEFAULT_PORT = 9999
INITIAL_KEY = 171


def encrypt(plaintext):
    """Encrypt the command, prepend its length"""
    key = INITIAL_KEY
    result = bytearray(struct.pack('>I', len(plaintext)))
    for byte in plaintext:
        key ^= byte
        result.append(key)
    return bytes(result)


def decrypt(ciphertext):
    """Decrypt the response body (without the length prefix)"""
    key = INITIAL_KEY
    result = bytearray()
    for byte in ciphertext:
        result.append(key ^ byte)
        key = byte
    return bytes(result)


class Hs100Sink(Sink):
    """Switches the relay of a TP-Link smart plug"""
    type_name = 'hs100'

    def __init__(self, name, host, port=DEFAULT_PORT, **kwargs):
        super().__init__(name, **kwargs)
        self.host = host
        self.port = port

    @classmethod
    def from_config(cls, name, section):
        return cls(name, require(section, 'host'),
                   port=get_int(section, 'port', fallback=DEFAULT_PORT,
                                minimum=1),
                   **cls.base_options(section))

    async def turn_on(self):
        await self.set_relay_state(1)

    async def turn_off(self):
        await self.set_relay_state(0)

    async def set_relay_state(self, value):
        """Send the set_relay_state command, check the error code"""
        command = dict(system=dict(set_relay_state=dict(state=value)))
        response = await self.send(command)
        try:
            err_code = response['system']['set_relay_state']['err_code']
        except (KeyError, TypeError) as exc:
            raise SinkRetryableError(
                f'Unexpected response from the plug: {response!r}') from exc
        if err_code != 0:
            raise SinkFatalError(f'The plug refused the command, '
                                 f'error code {err_code}.')

    async def send(self, command):
        """Send a command to the plug, return the decoded response"""
        LOG.debug('[sink] [%s] Sending %s to %s:%s.',
                  self.name, command, self.host, self.port)
        try:
            reader, writer = await asyncio.open_connection(self.host,
                                                           self.port)
        except OSError as exc:
            raise SinkRetryableError(
                f'Cannot connect to {self.host}:{self.port}: {exc}') from exc
        try:
            writer.write(encrypt(json.dumps(command).encode()))
            await writer.drain()
            header = await reader.readexactly(4)
            (length,) = struct.unpack('>I', header)
            body = await reader.readexactly(length)
        except (OSError, asyncio.IncompleteReadError) as exc:
            raise SinkRetryableError(
                f'Communication with {self.host} failed: {exc}') from exc
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

        try:
            return json.loads(decrypt(body))
        except ValueError as exc:
            raise SinkRetryableError('Garbled response from the plug') from exc
