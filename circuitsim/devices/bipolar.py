"""Bipolar junction transistor (Gummel-Poon)

DC Gummel-Poon model with Early effect, high-injection roll-off, base
leakage currents, bias-dependent base resistance and parasitic terminal
resistances. Transient analysis adds the base-emitter and base-collector
charges (depletion plus diffusion, without base-charge modulation).
Excess phase is not modeled.

Reference: SPICE3 source code, src/lib/devices/bjt/
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from circuitsim.analysis.behaviors import (
    BiasingBehavior,
    ConnectedBehavior,
    FrequencyBehavior,
    TemperatureBehavior,
    TimeBehavior,
)
from circuitsim.analysis.limiting import limit_junction
from circuitsim.analysis.state import InitializationMode
from circuitsim.analysis.variables import VariableSet
from circuitsim.circuit import Component, Model
from circuitsim.config import KOVERQ, ROOT2
from circuitsim.devices.base import ConductanceSlots, CurrentSlots
from circuitsim.devices.diode import depletion_charge, junction_temperature
from circuitsim.errors import ConfigurationError
from circuitsim.logging import get_logger

logger = get_logger("devices")


@dataclass
class BipolarModelParameters:
    polarity: int = 1  # +1 for NPN, -1 for PNP
    is_: float = 1e-16
    bf: float = 100.0
    nf: float = 1.0
    vaf: Optional[float] = None
    ikf: Optional[float] = None
    ise: float = 0.0
    ne: float = 1.5
    br: float = 1.0
    nr: float = 1.0
    var: Optional[float] = None
    ikr: Optional[float] = None
    isc: float = 0.0
    nc: float = 2.0
    rb: float = 0.0
    irb: Optional[float] = None
    rbm: Optional[float] = None
    re: float = 0.0
    rc: float = 0.0
    cje: float = 0.0
    vje: float = 0.75
    mje: float = 0.33
    tf: float = 0.0
    cjc: float = 0.0
    vjc: float = 0.75
    mjc: float = 0.33
    tr: float = 0.0
    xtb: float = 0.0
    eg: float = 1.11
    xti: float = 3.0
    fc: float = 0.5
    tnom: Optional[float] = None


@dataclass
class BipolarParameters:
    area: float = 1.0
    off: bool = False
    temperature: Optional[float] = None


class BipolarModel(Model):
    parameters_class = BipolarModelParameters
    aliases = {'is': 'is_', 'va': 'vaf', 'ik': 'ikf', 'vb': 'var', 'pe': 'vje', 'pc': 'vjc'}

    def __init__(self, name: str, polarity: str = 'npn'):
        super().__init__(name)
        if polarity.lower() not in ('npn', 'pnp'):
            raise ConfigurationError(f"{name}: unknown polarity '{polarity}'")
        self.parameters.polarity = 1 if polarity.lower() == 'npn' else -1


class BipolarTransistor(Component):
    """BJT with collector, base, emitter and substrate (default ground)"""

    parameters_class = BipolarParameters
    aliases = {'temp': 'temperature'}

    def __init__(self, name: str, collector: str, base: str, emitter: str, model: str,
                 substrate: str = '0'):
        super().__init__(name, collector, base, emitter, substrate)
        self.model = model


class BipolarModelBehavior(TemperatureBehavior):
    """Derived model quantities shared by all transistors of a model"""

    def setup(self, simulation, provider):
        p = provider.parameters
        self.parameters = p
        if p.is_ <= 0 or p.bf <= 0 or p.br <= 0:
            raise ConfigurationError(f"{self.name}: IS, BF and BR must be positive")
        self.inv_early_f = 1.0 / p.vaf if p.vaf else 0.0
        self.inv_early_r = 1.0 / p.var if p.var else 0.0
        self.inv_rolloff_f = 1.0 / p.ikf if p.ikf else 0.0
        self.inv_rolloff_r = 1.0 / p.ikr if p.ikr else 0.0
        self.collector_conductance = 1.0 / p.rc if p.rc > 0 else 0.0
        self.emitter_conductance = 1.0 / p.re if p.re > 0 else 0.0
        self.min_base_resistance = p.rbm if p.rbm is not None else p.rb
        if self.min_base_resistance > p.rb:
            logger.warning(f"{self.name}: minimum base resistance larger than RB, using RB")
            self.min_base_resistance = p.rb
        self.inv_base_current_half = 1.0 / p.irb if p.irb else 0.0
        self.fc = p.fc
        if self.fc > 0.9999:
            logger.warning(f"{self.name}: coefficient Fc too large, limited to 0.9999")
            self.fc = 0.9999

    def temperature(self, simulation):
        p = self.parameters
        self.nominal_temperature = p.tnom if p.tnom is not None else simulation.state.nominal_temperature


class BipolarBiasingBehavior(ConnectedBehavior, TemperatureBehavior, BiasingBehavior):
    """DC Gummel-Poon behavior

    Attributes:
        vbe, vbc: Junction voltages of the last load (after limiting)
        cc, cb: Collector and base terminal currents
        gpi, gmu, gm, go, gx: Small-signal parameters
    """

    pin_count = 4
    uses_junction_init = True

    def connect(self, *pins):
        super().connect(*pins)
        self.collector, self.base, self.emitter, self.substrate = pins

    def setup(self, simulation, provider):
        self.parameters = provider.parameters
        self.model = provider.get_model_behavior(BipolarModelBehavior)
        if self.parameters.area <= 0:
            raise ConfigurationError(f"{self.name}: invalid area {self.parameters.area}")
        self.vbe = self.vbc = 0.0
        self.cc = self.cb = 0.0
        self.cbe = self.gbe = self.cbc = self.gbc = 0.0
        self.gpi = self.gmu = self.gm = self.go = self.gx = 0.0

    def temperature(self, simulation):
        mp = self.model.parameters
        temperature = self.parameters.temperature
        if temperature is None:
            temperature = simulation.state.temperature
        nominal = self.model.nominal_temperature

        vt = KOVERQ * temperature
        self.vt = vt
        ratlog = math.log(temperature / nominal)
        ratio1 = temperature / nominal - 1.0
        factlog = ratio1 * mp.eg / vt + mp.xti * ratlog
        factor = math.exp(factlog)
        bfactor = math.exp(ratlog * mp.xtb)

        self.saturation_current = mp.is_ * factor
        self.beta_f = mp.bf * bfactor
        self.beta_r = mp.br * bfactor
        self.be_leakage = mp.ise * math.exp(factlog / mp.ne) / bfactor
        self.bc_leakage = mp.isc * math.exp(factlog / mp.nc) / bfactor
        self.be_potential, self.be_capacitance = junction_temperature(
            mp.vje, mp.cje, mp.mje, temperature, nominal)
        self.bc_potential, self.bc_capacitance = junction_temperature(
            mp.vjc, mp.cjc, mp.mjc, temperature, nominal)
        self.vcrit = vt * math.log(vt / (ROOT2 * self.saturation_current * self.parameters.area))

    def allocate(self, variables, store):
        model = self.model

        def internal(node, conductance, suffix):
            if conductance > 0:
                return variables.create(VariableSet.combine(self.name, suffix)).index
            return node

        self.collector_prime = internal(self.collector, model.collector_conductance, 'col')
        self.base_prime = internal(self.base, model.parameters.rb, 'base')
        self.emitter_prime = internal(self.emitter, model.emitter_conductance, 'emit')

        c, b, e = self.collector, self.base, self.emitter
        cp, bp, ep = self.collector_prime, self.base_prime, self.emitter_prime
        slot = store.matrix_slot
        self._cc_p = ConductanceSlots(store, c, cp)
        self._bb_p = ConductanceSlots(store, b, bp)
        self._ee_p = ConductanceSlots(store, e, ep)
        self._cp_cp = slot(cp, cp)
        self._bp_bp = slot(bp, bp)
        self._ep_ep = slot(ep, ep)
        self._cp_bp = slot(cp, bp)
        self._cp_ep = slot(cp, ep)
        self._bp_cp = slot(bp, cp)
        self._bp_ep = slot(bp, ep)
        self._ep_cp = slot(ep, cp)
        self._ep_bp = slot(ep, bp)
        self._rhs_cp = store.rhs_slot(cp)
        self._rhs_bp = store.rhs_slot(bp)
        self._rhs_ep = store.rhs_slot(ep)

    def _junction_voltages(self, solution) -> Tuple[float, float]:
        polarity = self.model.parameters.polarity
        vbe = polarity * (solution[self.base_prime] - solution[self.emitter_prime])
        vbc = polarity * (solution[self.base_prime] - solution[self.collector_prime])
        return vbe, vbc

    def load(self, simulation):
        state = simulation.state
        mp = self.model.parameters
        model = self.model
        area = self.parameters.area
        gmin = state.gmin
        vt = self.vt

        if state.init is InitializationMode.JUNCTION:
            vbe = 0.0 if self.parameters.off else self.vcrit
            vbc = 0.0
        elif state.init is InitializationMode.FIX and self.parameters.off:
            vbe = vbc = 0.0
        else:
            vbe, vbc = self._junction_voltages(state.solution)
            vbe, limited_be = limit_junction(vbe, self.vbe, vt, self.vcrit)
            vbc, limited_bc = limit_junction(vbc, self.vbc, vt, self.vcrit)
            if limited_be or limited_bc:
                state.is_convergent = False

        csat = self.saturation_current * area
        rbpr = model.min_base_resistance / area
        rbpi = mp.rb / area - rbpr
        oik = model.inv_rolloff_f / area
        oikr = model.inv_rolloff_r / area
        c2 = self.be_leakage * area
        c4 = self.bc_leakage * area
        vte = mp.ne * vt
        vtc = mp.nc * vt

        vtn = vt * mp.nf
        if vbe > -5.0 * vtn:
            evbe = math.exp(vbe / vtn)
            cbe = csat * (evbe - 1.0) + gmin * vbe
            gbe = csat * evbe / vtn + gmin
            if c2 == 0:
                cben = gben = 0.0
            else:
                evben = math.exp(vbe / vte)
                cben = c2 * (evben - 1.0)
                gben = c2 * evben / vte
        else:
            gbe = -csat / vbe + gmin
            cbe = gbe * vbe
            gben = -c2 / vbe
            cben = gben * vbe

        vtn = vt * mp.nr
        if vbc > -5.0 * vtn:
            evbc = math.exp(vbc / vtn)
            cbc = csat * (evbc - 1.0) + gmin * vbc
            gbc = csat * evbc / vtn + gmin
            if c4 == 0:
                cbcn = gbcn = 0.0
            else:
                evbcn = math.exp(vbc / vtc)
                cbcn = c4 * (evbcn - 1.0)
                gbcn = c4 * evbcn / vtc
        else:
            gbc = -csat / vbc + gmin
            cbc = gbc * vbc
            gbcn = -c4 / vbc
            cbcn = gbcn * vbc

        # Base charge
        q1 = 1.0 / (1.0 - model.inv_early_f * vbc - model.inv_early_r * vbe)
        if oik == 0 and oikr == 0:
            qb = q1
            dqbdve = q1 * qb * model.inv_early_r
            dqbdvc = q1 * qb * model.inv_early_f
        else:
            q2 = oik * cbe + oikr * cbc
            arg = max(0.0, 1.0 + 4.0 * q2)
            sqarg = math.sqrt(arg) if arg != 0 else 1.0
            qb = q1 * (1.0 + sqarg) / 2.0
            dqbdve = q1 * (qb * model.inv_early_r + oik * gbe / sqarg)
            dqbdvc = q1 * (qb * model.inv_early_f + oikr * gbc / sqarg)

        cc = (cbe - cbc) / qb - cbc / self.beta_r - cbcn
        cb = cbe / self.beta_f + cben + cbc / self.beta_r + cbcn

        # Bias-dependent base resistance
        gx = rbpr + rbpi / qb
        xjrb = model.inv_base_current_half * area
        if xjrb != 0:
            arg1 = max(cb / xjrb, 1e-9)
            arg2 = (-1.0 + math.sqrt(1.0 + 14.59025 * arg1)) / 2.4317 / math.sqrt(arg1)
            arg1 = math.tan(arg2)
            gx = rbpr + 3.0 * rbpi * (arg1 - arg2) / arg2 / arg1 / arg1
        if gx != 0:
            gx = 1.0 / gx

        gpi = gbe / self.beta_f + gben
        gmu = gbc / self.beta_r + gbcn
        go = (gbc + (cbe - cbc) * dqbdvc / qb) / qb
        gm = (gbe - (cbe - cbc) * dqbdve / qb) / qb - go

        self.vbe, self.vbc = vbe, vbc
        self.cc, self.cb = cc, cb
        self.cbe, self.gbe, self.cbc, self.gbc = cbe, gbe, cbc, gbc
        self.gpi, self.gmu, self.gm, self.go, self.gx = gpi, gmu, gm, go, gx

        polarity = mp.polarity
        ceqbe = polarity * (cc + cb - vbe * (gm + go + gpi) + vbc * go)
        ceqbc = polarity * (-cc + vbe * (gm + go) - vbc * (gmu + go))

        store = state.solver
        store.add_rhs(self._rhs_cp, ceqbc)
        store.add_rhs(self._rhs_bp, -ceqbe - ceqbc)
        store.add_rhs(self._rhs_ep, ceqbe)

        self._cc_p.add(model.collector_conductance * area)
        self._bb_p.add(gx)
        self._ee_p.add(model.emitter_conductance * area)
        store.add_matrix(self._cp_cp, gmu + go)
        store.add_matrix(self._bp_bp, gpi + gmu)
        store.add_matrix(self._ep_ep, gpi + gm + go)
        store.add_matrix(self._cp_bp, -gmu + gm)
        store.add_matrix(self._cp_ep, -gm - go)
        store.add_matrix(self._bp_cp, -gmu)
        store.add_matrix(self._bp_ep, -gpi)
        store.add_matrix(self._ep_cp, -go)
        store.add_matrix(self._ep_bp, -gpi - gm)

    def predicted_currents(self, vbe: float, vbc: float) -> Tuple[float, float]:
        """Collector and base currents linearized from the last load.

        Each junction's change is measured against its own previous voltage.
        """
        delvbe = vbe - self.vbe
        delvbc = vbc - self.vbc
        cchat = self.cc + (self.gm + self.go) * delvbe - (self.go + self.gmu) * delvbc
        cbhat = self.cb + self.gpi * delvbe + self.gmu * delvbc
        return cchat, cbhat

    def is_convergent(self, simulation):
        state = simulation.state
        cfg = simulation.configuration
        vbe, vbc = self._junction_voltages(state.solution)
        cchat, cbhat = self.predicted_currents(vbe, vbc)

        tol = cfg.reltol * max(abs(cchat), abs(self.cc)) + cfg.abstol
        if abs(cchat - self.cc) > tol:
            state.is_convergent = False
            return False
        tol = cfg.reltol * max(abs(cbhat), abs(self.cb)) + cfg.abstol
        if abs(cbhat - self.cb) > tol:
            state.is_convergent = False
            return False
        return True

    def charges(self) -> Tuple[float, float, float, float]:
        """Base-emitter and base-collector charges and capacitances."""
        mp = self.model.parameters
        area = self.parameters.area
        qbe, capbe = depletion_charge(self.vbe, self.be_capacitance * area, self.be_potential,
                                      mp.mje, self.model.fc)
        qbc, capbc = depletion_charge(self.vbc, self.bc_capacitance * area, self.bc_potential,
                                      mp.mjc, self.model.fc)
        return (qbe + mp.tf * self.cbe, capbe + mp.tf * self.gbe,
                qbc + mp.tr * self.cbc, capbc + mp.tr * self.gbc)


class BipolarTimeBehavior(TimeBehavior):
    """Junction charge storage of a BJT"""

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(BipolarBiasingBehavior)
        self.capbe = self.capbc = 0.0

    def allocate_transient(self, variables, store):
        bias = self._bias
        self._be = ConductanceSlots(store, bias.base_prime, bias.emitter_prime)
        self._bc = ConductanceSlots(store, bias.base_prime, bias.collector_prime)
        self._be_rhs = CurrentSlots(store, bias.base_prime, bias.emitter_prime)
        self._bc_rhs = CurrentSlots(store, bias.base_prime, bias.collector_prime)

    def create_states(self, method):
        self.qbe = method.create_derivative()
        self.qbc = method.create_derivative()

    def initialize_states(self, simulation):
        self.qbe.current, self.capbe, self.qbc.current, self.capbc = self._bias.charges()

    def load_transient(self, simulation):
        bias = self._bias
        polarity = bias.model.parameters.polarity
        self.qbe.current, self.capbe, self.qbc.current, self.capbc = bias.charges()

        self.qbe.integrate()
        geq = self.qbe.jacobian(self.capbe)
        self._be.add(geq)
        self._be_rhs.add(polarity * self.qbe.rhs_current(geq, bias.vbe))

        self.qbc.integrate()
        geq = self.qbc.jacobian(self.capbc)
        self._bc.add(geq)
        self._bc_rhs.add(polarity * self.qbc.rhs_current(geq, bias.vbc))


class BipolarFrequencyBehavior(ConnectedBehavior, FrequencyBehavior):
    """Hybrid-pi small-signal model around the operating point"""

    pin_count = 4

    def setup(self, simulation, provider):
        self._bias = provider.get_behavior(BipolarBiasingBehavior)

    def allocate_frequency(self, variables, store):
        bias = self._bias
        c, b, e = bias.collector, bias.base, bias.emitter
        cp, bp, ep = bias.collector_prime, bias.base_prime, bias.emitter_prime
        self._store = store
        self._cc_p = ConductanceSlots(store, c, cp)
        self._bb_p = ConductanceSlots(store, b, bp)
        self._ee_p = ConductanceSlots(store, e, ep)
        self._pi = ConductanceSlots(store, bp, ep)
        self._mu = ConductanceSlots(store, bp, cp)
        self._cp_cp = store.matrix_slot(cp, cp)
        self._cp_bp = store.matrix_slot(cp, bp)
        self._cp_ep = store.matrix_slot(cp, ep)
        self._ep_cp = store.matrix_slot(ep, cp)
        self._ep_bp = store.matrix_slot(ep, bp)
        self._ep_ep = store.matrix_slot(ep, ep)

    def initialize_parameters(self, simulation):
        _, self.capbe, _, self.capbc = self._bias.charges()

    def load_frequency(self, simulation):
        bias = self._bias
        model = bias.model
        area = bias.parameters.area
        s = simulation.complex_state.laplace
        store = self._store

        self._cc_p.add(model.collector_conductance * area)
        self._bb_p.add(bias.gx)
        self._ee_p.add(model.emitter_conductance * area)
        self._pi.add(bias.gpi + s * self.capbe)
        self._mu.add(bias.gmu + s * self.capbc)
        # Transconductance gm * v(bp, ep) from cp to ep, output conductance go
        gm, go = bias.gm, bias.go
        store.add_matrix(self._cp_cp, go)
        store.add_matrix(self._cp_bp, gm)
        store.add_matrix(self._cp_ep, -gm - go)
        store.add_matrix(self._ep_cp, -go)
        store.add_matrix(self._ep_bp, -gm)
        store.add_matrix(self._ep_ep, gm + go)
