"""Tests for reading the configuration and constructing the adapters."""
import pytest

from powerctl.config import (parse_config, read_config, general_settings,
                             webapi_settings)
from powerctl.exceptions import ConfigurationError
from powerctl.sinks import create_sinks
from powerctl.sinks.hs100 import Hs100Sink
from powerctl.sinks.simple_post_api import SimplePostApiSink
from powerctl.sources import create_sources
from powerctl.sources.kodi import KodiSource
from powerctl.sources.steamlink import SteamLinkSource

CONFIG = """
[general]
quiet_period = 120
max_attempts = 5
backoff = 0.5
debug_mode = yes

[webapi]
enable = yes
port = 9090

[source:living-room]
type = kodi
jsonrpc = http://kodi.lan:8080/jsonrpc
user = kodi
pass = secret
poll_interval_on = 30
timeout = 3

[source:steamlink]
type = steamlink
host = steamlink.lan
user = root
pass = steamlink
strict_host_key_checking = no

[source:bedroom]
type = kodi
enable = no

[sink:plug]
type = hs100
host = 192.168.1.20

[sink:amp]
type = simple_post_api
on_url = http://hub.lan/amp/on
off_url = http://hub.lan/amp/off
timeout = 2
"""


def test_general_settings():
    settings = general_settings(parse_config(CONFIG))
    assert settings.quiet_period == 120
    assert settings.max_attempts == 5
    assert settings.backoff == 0.5
    assert settings.drain_timeout == 10
    assert settings.debug_mode is True
    assert settings.journald is False


def test_defaults():
    settings = general_settings(parse_config(''))
    assert settings.quiet_period == 300
    assert settings.max_attempts == 3
    assert settings.backoff == 1
    webapi = webapi_settings(parse_config(''))
    assert webapi.enable is False
    assert webapi.address == '127.0.0.1'


def test_webapi_settings():
    webapi = webapi_settings(parse_config(CONFIG))
    assert webapi.enable is True
    assert webapi.port == 9090


def test_create_sources():
    sources = create_sources(parse_config(CONFIG))
    assert [source.name for source in sources] == ['living-room',
                                                   'steamlink']
    kodi, steamlink = sources
    assert isinstance(kodi, KodiSource)
    assert kodi.poll_interval_on == 30
    assert kodi.poll_interval_off == 10
    assert kodi.timeout == 3
    assert kodi.client.auth == ('kodi', 'secret')
    assert isinstance(steamlink, SteamLinkSource)
    assert steamlink.port == 22
    assert steamlink.strict_host_key_checking is False


def test_create_sinks():
    plug, amp = create_sinks(parse_config(CONFIG))
    assert isinstance(plug, Hs100Sink)
    assert plug.host == '192.168.1.20'
    assert plug.port == 9999
    assert plug.timeout == 10
    assert isinstance(amp, SimplePostApiSink)
    assert amp.off_url == 'http://hub.lan/amp/off'
    assert amp.timeout == 2


@pytest.mark.parametrize('text', [
    # unknown type
    '[sink:tv]\ntype = television\n',
    # no type
    '[sink:tv]\nhost = tv.lan\n',
    # missing required option
    '[sink:plug]\ntype = hs100\n',
    # not a number
    '[sink:plug]\ntype = hs100\nhost = plug.lan\ntimeout = soon\n',
    # negative number
    '[sink:plug]\ntype = hs100\nhost = plug.lan\ntimeout = -1\n',
    # nothing enabled
    '[sink:plug]\ntype = hs100\nhost = plug.lan\nenable = no\n',
    # no name
    '[sink:]\ntype = hs100\nhost = plug.lan\n',
])
def test_bad_sink_config(text):
    with pytest.raises(ConfigurationError):
        create_sinks(parse_config(text))


@pytest.mark.parametrize('option', ['poll_interval_on', 'poll_interval_off'])
def test_poll_interval_must_be_positive(option):
    config = parse_config('[source:kodi]\ntype = kodi\n'
                          'jsonrpc = http://kodi.lan/jsonrpc\n'
                          f'{option} = 0\n')
    with pytest.raises(ConfigurationError):
        create_sources(config)


def test_bad_general_config():
    with pytest.raises(ConfigurationError):
        general_settings(parse_config('[general]\nmax_attempts = 0\n'))
    with pytest.raises(ConfigurationError):
        general_settings(parse_config('[general]\ndebug_mode = maybe\n'))


def test_duplicate_sections():
    with pytest.raises(ConfigurationError):
        parse_config('[sink:plug]\ntype = hs100\n[sink:plug]\ntype = gpio\n')


def test_read_config(tmp_path, monkeypatch):
    path = tmp_path / 'powerctld.conf'
    path.write_text(CONFIG)
    assert read_config(str(path)).has_section('sink:plug')
    monkeypatch.setenv('POWERCTL_CONFIG', str(path))
    assert read_config().has_section('sink:amp')
    with pytest.raises(ConfigurationError):
        read_config(str(tmp_path / 'missing.conf'))
