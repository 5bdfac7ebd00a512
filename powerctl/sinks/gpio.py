# -*- coding: utf-8 -*-
"""GPIO sink: a power relay driven by a GPIO output.
Can be used with an Orange Pi (OPi.GPIO, SUNXI numbering e.g. PA9)
or a regular Raspberry Pi (RPi.GPIO, BCM numbering e.g. 17).

If an auto_mode_in line is configured, the relay is driven only
while that input is high, i.e. the equipment is in automatic control mode;
in manual mode sending the commands to it won't do anything.
"""
import logging

from ..config import require, get_optional
from ..exceptions import ConfigurationError, SinkFatalError
from .base import Sink

LOG = logging.getLogger(__name__)

# GPIO library, imported on first use
GPIO = None


class AutoControlDisabled(SinkFatalError):
    """Exception raised when trying to turn the device on or off
    if the equipment is switched OFF or ON manually.
    """


def gpio_library():
    """Import and set up the GPIO library for this platform"""
    global GPIO
    if GPIO is not None:
        return GPIO
    try:
        # use SUNXI as it gives the most predictable results
        from OPi import GPIO as gpio
        gpio.setmode(gpio.SUNXI)
        LOG.info('Using OPi.GPIO on an Orange Pi with the SUNXI numbering.')
    except ImportError:
        try:
            # use BCM as it is the most conventional scheme on a RPi
            from RPi import GPIO as gpio
        except (ImportError, RuntimeError) as exc:
            raise ConfigurationError(
                'The gpio sink needs OPi.GPIO or RPi.GPIO.') from exc
        gpio.setmode(gpio.BCM)
        LOG.info('Using RPi.GPIO on a Raspberry Pi with the BCM numbering.')
    GPIO = gpio
    return GPIO


def channel_id(value):
    """BCM channels are numbers, SUNXI channels are names like PA9"""
    if value is None:
        return None
    return int(value) if value.isdigit() else value


class GpioSink(Sink):
    """Switches a relay on a GPIO output"""
    type_name = 'gpio'

    def __init__(self, name, control_out, auto_mode_in=None, **kwargs):
        super().__init__(name, **kwargs)
        self.gpio = gpio_library()
        self.control_out = channel_id(control_out)
        self.auto_mode_in = channel_id(auto_mode_in)
        # the output is left as it is: the rail state is not known yet
        self.gpio.setup(self.control_out, self.gpio.OUT)
        if self.auto_mode_in is not None:
            self.gpio.setup(self.auto_mode_in, self.gpio.IN)

    @classmethod
    def from_config(cls, name, section):
        return cls(name, require(section, 'control_out'),
                   auto_mode_in=get_optional(section, 'auto_mode_in'),
                   **cls.base_options(section))

    def automatic_mode(self):
        """Checks if the device is in automatic control mode"""
        if self.auto_mode_in is None:
            return True
        return bool(self.gpio.input(self.auto_mode_in))

    def output_control(self, state):
        """Controls the state of the output"""
        if not self.automatic_mode():
            raise AutoControlDisabled('Automatic control is disabled, '
                                      'the equipment is in manual mode.')
        self.gpio.output(self.control_out,
                         self.gpio.HIGH if state else self.gpio.LOW)

    async def turn_on(self):
        self.output_control(True)

    async def turn_off(self):
        self.output_control(False)
