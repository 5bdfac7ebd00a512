# -*- coding: utf-8 -*-
"""Configuration file handling.

The configuration is an INI file, /etc/powerctld.conf by default:

    [general]
    quiet_period = 300
    max_attempts = 3
    backoff = 1
    drain_timeout = 10
    debug_mode = no
    journald = yes

    [webapi]
    enable = yes
    address = 127.0.0.1
    port = 8080

    [source:living-room]
    type = kodi
    jsonrpc = http://kodi.lan:8080/jsonrpc

    [sink:tv]
    type = kodi_rpc_cec
    jsonrpc = http://kodi.lan:8080/jsonrpc

Every source and sink has its own section named after its type
and a name unique among the sources (sinks).
"""
import logging
import os
from collections import namedtuple
from configparser import ConfigParser, Error as ConfigParserError

from .exceptions import ConfigurationError

LOG = logging.getLogger(__name__)

DEFAULT_PATH = '/etc/powerctld.conf'
GENERAL_DEFAULTS = dict(quiet_period='300', max_attempts='3', backoff='1',
                        drain_timeout='10', debug_mode='no', journald='no')
WEBAPI_DEFAULTS = dict(enable='no', address='127.0.0.1', port='8080')

GeneralSettings = namedtuple('GeneralSettings',
                             'quiet_period max_attempts backoff drain_timeout '
                             'debug_mode journald')
WebApiSettings = namedtuple('WebApiSettings', 'enable address port')


def read_config(path=None):
    """Read the configuration file. The path defaults to the POWERCTL_CONFIG
    environment variable, or /etc/powerctld.conf if it's not set."""
    path = path or os.environ.get('POWERCTL_CONFIG') or DEFAULT_PATH
    config = ConfigParser(interpolation=None)
    try:
        found = config.read(path, encoding='utf-8')
    except ConfigParserError as exc:
        raise ConfigurationError(f'{path}: {exc}') from exc
    if not found:
        raise ConfigurationError(f'Cannot read the configuration file {path}.')
    LOG.debug('Configuration read from %s.', path)
    return config


def parse_config(text):
    """Read the configuration from a string"""
    config = ConfigParser(interpolation=None)
    try:
        config.read_string(text)
    except ConfigParserError as exc:
        raise ConfigurationError(str(exc)) from exc
    return config


def _section(config, name, defaults):
    """Get a section with defaults for the missing options"""
    values = dict(defaults)
    if config.has_section(name):
        values.update(config.items(name))
    parser = ConfigParser(interpolation=None)
    parser.read_dict({name: values})
    return parser[name]


def general_settings(config):
    """Daemon-wide settings from the [general] section"""
    section = _section(config, 'general', GENERAL_DEFAULTS)
    return GeneralSettings(
        quiet_period=get_float(section, 'quiet_period'),
        max_attempts=get_int(section, 'max_attempts', minimum=1),
        backoff=get_float(section, 'backoff'),
        drain_timeout=get_float(section, 'drain_timeout'),
        debug_mode=get_bool(section, 'debug_mode'),
        journald=get_bool(section, 'journald'))


def webapi_settings(config):
    """Status web API settings from the [webapi] section"""
    section = _section(config, 'webapi', WEBAPI_DEFAULTS)
    return WebApiSettings(enable=get_bool(section, 'enable'),
                          address=section.get('address'),
                          port=get_int(section, 'port', minimum=1))


def require(section, option):
    """Get a string option that must be set"""
    value = section.get(option, '').strip()
    if not value:
        raise ConfigurationError(f'[{section.name}] {option} is required.')
    return value


def get_optional(section, option):
    """Get a string option, None if it's missing or empty"""
    value = section.get(option, '').strip()
    return value or None


def get_float(section, option, fallback=None, minimum=0):
    """Get a number not smaller than minimum"""
    try:
        value = section.getfloat(option, fallback=fallback)
    except ValueError as exc:
        raise ConfigurationError(
            f'[{section.name}] {option} must be a number.') from exc
    return _check_minimum(section, option, value, minimum)


def get_int(section, option, fallback=None, minimum=0):
    """Get an integer not smaller than minimum"""
    try:
        value = section.getint(option, fallback=fallback)
    except ValueError as exc:
        raise ConfigurationError(
            f'[{section.name}] {option} must be an integer.') from exc
    return _check_minimum(section, option, value, minimum)


def get_bool(section, option, fallback=None):
    """Get a yes/no, on/off, true/false or 1/0 option"""
    try:
        value = section.getboolean(option, fallback=fallback)
    except ValueError as exc:
        raise ConfigurationError(
            f'[{section.name}] {option} must be yes or no.') from exc
    if value is None:
        raise ConfigurationError(f'[{section.name}] {option} is required.')
    return value


def _check_minimum(section, option, value, minimum):
    if value is None:
        raise ConfigurationError(f'[{section.name}] {option} is required.')
    if value < minimum:
        raise ConfigurationError(
            f'[{section.name}] {option} must be at least {minimum}.')
    return value


def enabled_sections(config, kind):
    """Iterate over (name, section) for enabled sections named kind:name"""
    prefix = f'{kind}:'
    for section_name in config.sections():
        if not section_name.startswith(prefix):
            continue
        name = section_name[len(prefix):].strip()
        if not name:
            raise ConfigurationError(f'[{section_name}] has no name.')
        section = config[section_name]
        if not get_bool(section, 'enable', fallback=True):
            LOG.info('[%s] [%s] Disabled.', kind, name)
            continue
        yield name, section


def create_adapters(config, kind, registry):
    """Construct all enabled sources or sinks (kind) of the types
    found in the registry (type name: adapter class)."""
    adapters = []
    for name, section in enabled_sections(config, kind):
        type_name = require(section, 'type')
        try:
            adapter_class = registry[type_name]
        except KeyError:
            raise ConfigurationError(
                f'[{kind}] [{name}] Unknown type {type_name!r}, '
                f'available: {", ".join(sorted(registry))}.') from None
        LOG.info('[%s] [%s] Initializing...', kind, name)
        try:
            adapters.append(adapter_class.from_config(name, section))
        except ConfigurationError as exc:
            LOG.error('[%s] [%s] Failed creating %s: %s',
                      kind, name, kind, exc)
            raise
        LOG.info('[%s] [%s] Loaded.', kind, name)
    if not adapters:
        raise ConfigurationError(f'No {kind} is configured and enabled.')
    return adapters
