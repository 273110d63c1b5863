"""Time-dependent waveforms for independent sources

A waveform gives the source value at a time and the next time at which it
has a corner. The transient analysis never steps across such a corner.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from circuitsim.errors import ConfigurationError


class Waveform:
    """Base class of source waveforms"""

    def value(self, time: float) -> float:
        raise NotImplementedError

    def next_breakpoint(self, time: float) -> Optional[float]:
        """First corner strictly after ``time`` (None if there is none)."""
        return None


class Pulse(Waveform):
    """Trapezoidal pulse train

    Args:
        initial_value: Value before the delay and between pulses
        pulsed_value: Value during the pulse
        delay: Time of the first rising edge
        rise_time: Duration of the rising edge
        fall_time: Duration of the falling edge
        pulse_width: Time spent at the pulsed value
        period: Repetition period (infinite for a single pulse)
    """

    def __init__(self, initial_value: float, pulsed_value: float, delay: float = 0.0,
                 rise_time: float = 1e-9, fall_time: float = 1e-9,
                 pulse_width: float = math.inf, period: float = math.inf):
        if rise_time <= 0 or fall_time <= 0:
            raise ConfigurationError("Pulse rise and fall times must be positive")
        if pulse_width < 0 or delay < 0:
            raise ConfigurationError("Pulse width and delay cannot be negative")
        if period < rise_time + pulse_width + fall_time:
            raise ConfigurationError("Pulse period is shorter than one pulse")
        self.initial_value = initial_value
        self.pulsed_value = pulsed_value
        self.delay = delay
        self.rise_time = rise_time
        self.fall_time = fall_time
        self.pulse_width = pulse_width
        self.period = period

    def _corners(self) -> Tuple[float, ...]:
        r, w, f = self.rise_time, self.pulse_width, self.fall_time
        return (0.0, r, r + w, r + w + f)

    def value(self, time: float) -> float:
        v1, v2 = self.initial_value, self.pulsed_value
        t = time - self.delay
        if t <= 0:
            return v1
        if math.isfinite(self.period):
            t = math.fmod(t, self.period)
        _, rise_end, high_end, fall_end = self._corners()
        if t < rise_end:
            return v1 + (v2 - v1) * t / self.rise_time
        if t < high_end:
            return v2
        if t < fall_end:
            return v2 + (v1 - v2) * (t - high_end) / self.fall_time
        return v1

    def next_breakpoint(self, time: float) -> Optional[float]:
        t = time - self.delay
        if t < 0:
            return self.delay
        start = 0.0
        if math.isfinite(self.period):
            start = math.floor(t / self.period) * self.period
        for offset in (0.0, self.period):
            for corner in self._corners():
                candidate = self.delay + start + offset + corner
                if math.isfinite(candidate) and candidate > time:
                    return candidate
            if not math.isfinite(self.period):
                break
        return None


class Sine(Waveform):
    """Damped sine: offset + amplitude * exp(-damping*t') * sin(2*pi*f*t' + phase)"""

    def __init__(self, offset: float, amplitude: float, frequency: float,
                 delay: float = 0.0, damping: float = 0.0, phase: float = 0.0):
        if frequency < 0:
            raise ConfigurationError(f"Invalid sine frequency {frequency}")
        self.offset = offset
        self.amplitude = amplitude
        self.frequency = frequency
        self.delay = delay
        self.damping = damping
        self.phase = phase

    def value(self, time: float) -> float:
        phase = math.radians(self.phase)
        t = time - self.delay
        if t <= 0:
            return self.offset + self.amplitude * math.sin(phase)
        return self.offset + self.amplitude * math.exp(-self.damping * t) * math.sin(
            2.0 * math.pi * self.frequency * t + phase
        )

    def next_breakpoint(self, time: float) -> Optional[float]:
        return self.delay if time < self.delay else None


class Pwl(Waveform):
    """Piecewise linear waveform through (time, value) points

    The value is held constant before the first and after the last point.
    """

    def __init__(self, points: Sequence[Tuple[float, float]]):
        if len(points) == 0:
            raise ConfigurationError("Piecewise linear waveform needs at least one point")
        times = np.array([p[0] for p in points], dtype=float)
        if np.any(np.diff(times) <= 0):
            raise ConfigurationError("Piecewise linear times must be strictly increasing")
        self.times = times
        self.values = np.array([p[1] for p in points], dtype=float)

    def value(self, time: float) -> float:
        return float(np.interp(time, self.times, self.values))

    def next_breakpoint(self, time: float) -> Optional[float]:
        index = int(np.searchsorted(self.times, time, side='right'))
        if index < len(self.times):
            return float(self.times[index])
        return None
