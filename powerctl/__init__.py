# -*- coding: utf-8 -*-
"""powerctl - a daemon deciding whether a power rail should be on or off.

The daemon watches one or more activity sources (e.g. a Kodi media center
playing something, a Steam Link streaming a game) and drives one or more
power sinks (a smart plug, a TV over HDMI-CEC, a relay on a GPIO line,
a webhook) to the same state.

Any active source turns the rail on right away. The rail is turned off
only after all sources were continuously idle for a quiet period,
so that short pauses in playback don't cycle the equipment power.
"""

__version__ = '0.2.0'
