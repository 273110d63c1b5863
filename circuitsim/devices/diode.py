"""Junction diode (SPICE level 1)

Ideal exponential junction with series resistance, reverse breakdown,
depletion and diffusion capacitance. The junction temperature helpers in
this module are shared with the bipolar transistor.

Reference: SPICE3 source code, src/lib/devices/dio/
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from circuitsim.analysis.behaviors import (
    BiasingBehavior,
    FrequencyBehavior,
    TemperatureBehavior,
    TimeBehavior,
)
from circuitsim.analysis.limiting import limit_junction
from circuitsim.analysis.state import InitializationMode
from circuitsim.analysis.variables import VariableSet
from circuitsim.circuit import Component, Model
from circuitsim.config import BOLTZMANN, CHARGE, KOVERQ, REFERENCE_TEMPERATURE, ROOT2
from circuitsim.devices.base import ConductanceSlots, CurrentSlots, TwoTerminalBehavior
from circuitsim.errors import ConfigurationError
from circuitsim.logging import get_logger

logger = get_logger("devices")


# =============================================================================
# Junction physics shared with the bipolar transistor
# =============================================================================


def energy_gap(temperature: float) -> float:
    """Silicon band gap (eV) at ``temperature`` Kelvin."""
    return 1.16 - (7.02e-4 * temperature * temperature) / (temperature + 1108.0)


def potential_factor(temperature: float) -> float:
    """Temperature correction of built-in junction potentials."""
    vt = KOVERQ * temperature
    ratio = temperature / REFERENCE_TEMPERATURE
    arg = (-energy_gap(temperature) / (2.0 * BOLTZMANN * temperature)
           + 1.1150877 / (BOLTZMANN * (REFERENCE_TEMPERATURE + REFERENCE_TEMPERATURE)))
    return -2.0 * vt * (1.5 * math.log(ratio) + CHARGE * arg)


def junction_temperature(potential: float, capacitance: float, grading: float,
                         temperature: float, nominal: float) -> Tuple[float, float]:
    """Scale a junction's potential and zero-bias capacitance to ``temperature``.

    Args:
        potential: Built-in potential at the nominal temperature (V)
        capacitance: Zero-bias junction capacitance at the nominal temperature (F)
        grading: Junction grading coefficient
        temperature: Device temperature (K)
        nominal: Temperature at which the parameters were measured (K)

    Returns:
        Tuple of (potential, capacitance) at ``temperature``
    """
    pbo = (potential - potential_factor(nominal)) / (nominal / REFERENCE_TEMPERATURE)
    gmaold = (potential - pbo) / pbo
    capacitance = capacitance / (1.0 + grading * (4e-4 * (nominal - REFERENCE_TEMPERATURE) - gmaold))
    potential = potential_factor(temperature) + (temperature / REFERENCE_TEMPERATURE) * pbo
    gmanew = (potential - pbo) / pbo
    capacitance *= 1.0 + grading * (4e-4 * (temperature - REFERENCE_TEMPERATURE) - gmanew)
    return potential, capacitance


def depletion_charge(voltage: float, czero: float, potential: float, grading: float,
                     fc: float) -> Tuple[float, float]:
    """Depletion charge and capacitance of a junction.

    Below fc * potential the usual (1 - V/Vj)^-m law applies; above it the
    capacitance is continued linearly to avoid the singularity at V = Vj.
    """
    if czero == 0:
        return 0.0, 0.0
    depletion_voltage = fc * potential
    if voltage < depletion_voltage:
        arg = 1.0 - voltage / potential
        sarg = math.exp(-grading * math.log(arg))
        return potential * czero * (1.0 - arg * sarg) / (1.0 - grading), czero * sarg

    xfc = math.log(1.0 - fc)
    f1 = potential * (1.0 - math.exp((1.0 - grading) * xfc)) / (1.0 - grading)
    f2 = math.exp((1.0 + grading) * xfc)
    f3 = 1.0 - fc * (1.0 + grading)
    czof2 = czero / f2
    charge = czero * f1 + czof2 * (
        f3 * (voltage - depletion_voltage)
        + (grading / (potential + potential)) * (voltage * voltage - depletion_voltage * depletion_voltage)
    )
    return charge, czof2 * (f3 + grading * voltage / potential)


# =============================================================================
# Entities
# =============================================================================


@dataclass
class DiodeModelParameters:
    is_: float = 1e-14  # saturation current (A)
    rs: float = 0.0  # series resistance (ohm)
    n: float = 1.0  # emission coefficient
    tt: float = 0.0  # transit time (s)
    cjo: float = 0.0  # zero-bias junction capacitance (F)
    vj: float = 1.0  # junction potential (V)
    m: float = 0.5  # grading coefficient
    eg: float = 1.11  # activation energy (eV)
    xti: float = 3.0  # saturation current temperature exponent
    fc: float = 0.5  # forward-bias depletion capacitance coefficient
    bv: Optional[float] = None  # reverse breakdown voltage (V)
    ibv: float = 1e-3  # current at breakdown voltage (A)
    tnom: Optional[float] = None  # parameter measurement temperature (K)


@dataclass
class DiodeParameters:
    area: float = 1.0
    off: bool = False
    initial_condition: Optional[float] = None
    temperature: Optional[float] = None


class DiodeModel(Model):
    parameters_class = DiodeModelParameters
    aliases = {'is': 'is_', 'cj0': 'cjo', 'cj': 'cjo', 'mj': 'm'}


class Diode(Component):
    """Junction diode from ``pos`` (anode) to ``neg`` (cathode)"""

    parameters_class = DiodeParameters
    aliases = {'ic': 'initial_condition', 'temp': 'temperature'}

    def __init__(self, name: str, pos: str, neg: str, model: str):
        super().__init__(name, pos, neg)
        self.model = model


# =============================================================================
# Behaviors
# =============================================================================


class DiodeModelBehavior(TemperatureBehavior):
    """Validated model parameters shared by all diodes of a model"""

    def setup(self, simulation, provider):
        p = provider.parameters
        self.parameters = p
        self.grading = p.m
        self.activation_energy = p.eg
        self.fc = p.fc
        if self.grading > 0.9:
            logger.warning(f"{self.name}: grading coefficient too large, limited to 0.9")
            self.grading = 0.9
        if self.activation_energy < 0.1:
            logger.warning(f"{self.name}: activation energy too small, limited to 0.1")
            self.activation_energy = 0.1
        if self.fc > 0.95:
            logger.warning(f"{self.name}: coefficient Fc too large, limited to 0.95")
            self.fc = 0.95
        if p.is_ <= 0 or p.n <= 0:
            raise ConfigurationError(f"{self.name}: saturation current and emission coefficient must be positive")
        self.conductance = 1.0 / p.rs if p.rs > 0 else 0.0

    def temperature(self, simulation):
        p = self.parameters
        self.nominal_temperature = p.tnom if p.tnom is not None else simulation.state.nominal_temperature


class DiodeBiasingBehavior(TwoTerminalBehavior, TemperatureBehavior, BiasingBehavior):
    """DC behavior of a diode

    Attributes:
        voltage: Junction voltage used in the last load (after limiting)
        current: Junction current at ``voltage``
        conductance: Small-signal junction conductance at ``voltage``
    """

    uses_junction_init = True

    def setup(self, simulation, provider):
        self.parameters = provider.parameters
        self.model = provider.get_model_behavior(DiodeModelBehavior)
        if self.parameters.area <= 0:
            raise ConfigurationError(f"{self.name}: invalid area {self.parameters.area}")
        self.voltage = 0.0
        self.current = 0.0
        self.conductance = 0.0

    def temperature(self, simulation):
        model = self.model
        mp = model.parameters
        temperature = self.parameters.temperature
        if temperature is None:
            temperature = simulation.state.temperature
        nominal = model.nominal_temperature

        vt = KOVERQ * temperature
        self.vt = vt
        self.vte = mp.n * vt
        self.junction_potential, self.junction_capacitance = junction_temperature(
            mp.vj, mp.cjo, model.grading, temperature, nominal
        )
        self.saturation_current = mp.is_ * math.exp(
            ((temperature / nominal) - 1.0) * model.activation_energy / (mp.n * vt)
            + mp.xti / mp.n * math.log(temperature / nominal)
        )
        self.vcrit = self.vte * math.log(self.vte / (ROOT2 * self.saturation_current))
        self.breakdown_voltage = None
        if mp.bv is not None:
            self.breakdown_voltage = self._breakdown(simulation, mp.bv, mp.ibv, vt)

    def _breakdown(self, simulation, bv: float, ibv: float, vt: float) -> float:
        isat = self.saturation_current
        cbv = ibv
        if cbv < isat * bv / vt:
            cbv = isat * bv / vt
            logger.warning(f"{self.name}: breakdown current increased to {cbv:g} to resolve incompatibility")
            return bv
        tol = simulation.configuration.reltol * cbv
        xbv = bv - vt * math.log(1.0 + cbv / isat)
        for _ in range(25):
            xbv = bv - vt * math.log(cbv / isat + 1.0 - xbv / vt)
            xcbv = isat * (math.exp((bv - xbv) / vt) - 1.0 + xbv / vt)
            if abs(xcbv - cbv) <= tol:
                break
        else:
            logger.warning(f"{self.name}: unable to match forward and reverse diode regions")
        return xbv

    def allocate(self, variables, store):
        if self.model.conductance > 0:
            self.pos_prime = variables.create(VariableSet.combine(self.name, 'pos')).index
            self._series = ConductanceSlots(store, self.pos, self.pos_prime)
        else:
            self.pos_prime = self.pos
            self._series = None
        self._junction = ConductanceSlots(store, self.pos_prime, self.neg)
        self._rhs = CurrentSlots(store, self.pos_prime, self.neg)

    def _limit(self, simulation, vd: float) -> float:
        vte = self.vte
        bv = self.breakdown_voltage
        if bv is not None and vd < min(0.0, -bv + 10.0 * vte):
            vdtemp, limited = limit_junction(-(vd + bv), -(self.voltage + bv), vte, self.vcrit)
            vd = -(vdtemp + bv)
        else:
            vd, limited = limit_junction(vd, self.voltage, vte, self.vcrit)
        if limited:
            simulation.state.is_convergent = False
        return vd

    def evaluate(self, vd: float, gmin: float) -> Tuple[float, float]:
        """Junction current and conductance at ``vd``."""
        csat = self.saturation_current * self.parameters.area
        vte = self.vte
        bv = self.breakdown_voltage
        if vd >= -3.0 * vte:
            evd = math.exp(vd / vte)
            return csat * (evd - 1.0) + gmin * vd, csat * evd / vte + gmin
        if bv is None or vd >= -bv:
            arg = 3.0 * vte / (vd * math.e)
            arg = arg * arg * arg
            return -csat * (1.0 + arg) + gmin * vd, csat * 3.0 * arg / vd + gmin
        evrev = math.exp(-(bv + vd) / vte)
        return -csat * evrev + gmin * vd, csat * evrev / vte + gmin

    def load(self, simulation):
        state = simulation.state
        init = state.init
        if init is InitializationMode.JUNCTION:
            vd = 0.0 if self.parameters.off else self.vcrit
        elif init is InitializationMode.FIX and self.parameters.off:
            vd = 0.0
        else:
            vd = state.solution[self.pos_prime] - state.solution[self.neg]
            vd = self._limit(simulation, vd)

        cd, gd = self.evaluate(vd, state.gmin)
        self.voltage = vd
        self.current = cd
        self.conductance = gd

        if self._series is not None:
            self._series.add(self.model.conductance * self.parameters.area)
        self._junction.add(gd)
        # Norton equivalent: cd = gd * vd + (cd - gd * vd)
        self._rhs.add(gd * vd - cd)

    def is_convergent(self, simulation):
        state = simulation.state
        vd = state.solution[self.pos_prime] - state.solution[self.neg]
        delvd = vd - self.voltage
        cdhat = self.current + self.conductance * delvd
        cd = self.current
        tol = (simulation.configuration.reltol * max(abs(cdhat), abs(cd))
               + simulation.configuration.abstol)
        if abs(cdhat - cd) > tol:
            state.is_convergent = False
            return False
        return True

    def charge(self, vd: float) -> Tuple[float, float]:
        """Stored charge and capacitance at ``vd`` (depletion plus diffusion)."""
        mp = self.model.parameters
        czero = self.junction_capacitance * self.parameters.area
        q, c = depletion_charge(vd, czero, self.junction_potential, self.model.grading, self.model.fc)
        return mp.tt * self.current + q, mp.tt * self.conductance + c


class DiodeTimeBehavior(TimeBehavior):
    """Junction charge storage of a diode"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(DiodeBiasingBehavior)
        self.capacitance = 0.0

    def allocate_transient(self, variables, store):
        bias = self._bias
        self._junction = ConductanceSlots(store, bias.pos_prime, bias.neg)
        self._rhs = CurrentSlots(store, bias.pos_prime, bias.neg)

    def create_states(self, method):
        self.charge = method.create_derivative()

    def initialize_states(self, simulation):
        bias = self._bias
        state = simulation.state
        if state.use_ic and bias.parameters.initial_condition is not None:
            vd = bias.parameters.initial_condition
        else:
            vd = bias.voltage
        self.charge.current, self.capacitance = bias.charge(vd)

    def load_transient(self, simulation):
        bias = self._bias
        vd = bias.voltage
        self.charge.current, self.capacitance = bias.charge(vd)
        self.charge.integrate()
        geq = self.charge.jacobian(self.capacitance)
        self._junction.add(geq)
        self._rhs.add(self.charge.rhs_current(geq, vd))


class DiodeFrequencyBehavior(TwoTerminalBehavior, FrequencyBehavior):
    """Small-signal diode: series resistance, conductance and capacitance"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(DiodeBiasingBehavior)

    def allocate_frequency(self, variables, store):
        bias = self._bias
        self._series = ConductanceSlots(store, self.pos, bias.pos_prime) if bias._series else None
        self._junction = ConductanceSlots(store, bias.pos_prime, bias.neg)

    def initialize_parameters(self, simulation):
        _, self.capacitance = self._bias.charge(self._bias.voltage)

    def load_frequency(self, simulation):
        bias = self._bias
        if self._series is not None:
            self._series.add(bias.model.conductance * bias.parameters.area)
        self._junction.add(bias.conductance + simulation.complex_state.laplace * self.capacitance)
