"""
Standard channel and membrane parameter values used across NeuroCable.

This module defines biophysical constants for the channel library and the
passive membrane, eliminating magic numbers scattered through the kinetics.

Biological Basis:
=================

Reversal Potentials (mV):
-------------------------
Based on typical mammalian ion concentrations and the Nernst equation:
- E_NA (+50): Sodium influx depolarizes
- E_K (-90): Potassium efflux hyperpolarizes
- E_CA (+120): Calcium influx, strongly depolarizing driving force
- E_NMDA (0): Mixed cation receptor
- E_HCN (-30): Mixed Na⁺/K⁺ h-current
- E_LEAK (-70): Passive leak, sets the resting potential

Temperature Correction:
-----------------------
Channel rates measured at a reference temperature are scaled by
Q10^((T - T_ref) / 10). Squid-axon style kinds (HH_NA, HH_K, CA_L, KA, NMDA)
use Q10 = 1, so their kinetics are temperature independent.

Passive Cable Properties:
-------------------------
- Specific membrane capacitance 1 µF/cm²
- Axial resistivity 100 MΩ·µm (= 100 Ω·m)
- Leak conductance density 0.005 nS/µm² (= 0.5 mS/cm²)

References:
-----------
- Hodgkin & Huxley (1952): J Physiol 117:500-544
- Hille (2001): Ion Channels of Excitable Membranes, 3rd ed.
- Jahr & Stevens (1990): Voltage dependence of NMDA receptor Mg block
- Koch (1999): Biophysics of Computation, Chapter 6
"""

# =============================================================================
# REVERSAL POTENTIALS (mV)
# =============================================================================

E_NA = 50.0
"""Sodium reversal potential (mV)."""

E_K = -90.0
"""Potassium reversal potential (mV)."""

E_CA = 120.0
"""Calcium reversal potential (mV)."""

E_NMDA = 0.0
"""NMDA receptor reversal potential (mV). Non-selective cation channel."""

E_HCN = -30.0
"""HCN (h-current) reversal potential (mV). Mixed Na⁺/K⁺ permeability."""

E_LEAK = -70.0
"""Leak reversal potential (mV)."""

# =============================================================================
# TEMPERATURE (°C)
# =============================================================================

T_REFERENCE = 22.0
"""Reference temperature at which channel kinetics were fitted (°C)."""

Q10_UNITY = 1.0
"""Temperature-independent kinetics (classic squid axon fits)."""

Q10_NAV = 2.3
"""Q10 for voltage-gated sodium channel subtypes (Nav1.1, Nav1.6)."""

Q10_KV = 3.0
"""Q10 for voltage-gated potassium subtypes and BK."""

Q10_CAV = 3.0
"""Q10 for voltage-gated calcium channel subtypes."""

Q10_SLOW = 2.5
"""Q10 for slow modulatory currents (M-current, HCN)."""

# =============================================================================
# NMDA AND LIGAND-GATED PARAMETERS
# =============================================================================

MG_CONCENTRATION_MM = 1.0
"""Extracellular magnesium concentration (mM)."""

MG_BLOCK_HALF_MM = 3.57
"""Mg²⁺ concentration scale of the Jahr-Stevens block (mM)."""

MG_BLOCK_SLOPE = 0.062
"""Voltage sensitivity of the Mg²⁺ block (1/mV)."""

NMDA_KD_MM = 0.01
"""Glutamate dissociation constant for NMDA receptor binding (mM)."""

NMDA_TAU_MS = 50.0
"""Binding relaxation time constant of NMDA receptors (ms)."""

# =============================================================================
# CALCIUM DYNAMICS
# =============================================================================

CA_REST_UM = 0.05
"""Resting intracellular calcium concentration (µM)."""

CA_DECAY_TAU_MS = 500.0
"""Removal time constant of intracellular calcium (ms)."""

CA_INFLUX_RATE = 0.01
"""Calcium influx while depolarized above CA_INFLUX_THRESHOLD_MV (µM/ms)."""

CA_INFLUX_THRESHOLD_MV = -20.0
"""Voltage above which calcium enters through co-localized Ca channels (mV)."""

SK_KD_UM = 0.3
"""Half-activation calcium concentration of SK channels (µM)."""

SK_HILL = 4.0
"""Hill coefficient of SK calcium binding."""

SK_TAU_MS = 5.0
"""Activation time constant of SK channels (ms)."""

BK_CA_HALF_UM = 1.0
"""Calcium concentration at which the BK activation curve is half shifted (µM)."""

# =============================================================================
# PASSIVE MEMBRANE
# =============================================================================

SPECIFIC_CAPACITANCE = 1.0
"""Specific membrane capacitance (µF/cm²)."""

AXIAL_RESISTIVITY = 100.0
"""Intracellular resistivity (MΩ·µm, numerically equal to Ω·m)."""

LEAK_DENSITY = 0.005
"""Leak conductance density (nS/µm²), i.e. 0.5 mS/cm²."""

# =============================================================================
# DEFAULT CHANNEL DENSITIES (nS/µm²)
# =============================================================================

HH_NA_DENSITY = 1.2
"""Classic HH sodium density (120 mS/cm²)."""

HH_K_DENSITY = 0.36
"""Classic HH delayed-rectifier density (36 mS/cm²)."""

DENDRITIC_NA_DENSITY = 0.1
"""Reduced dendritic sodium density for active dendrites."""

DENDRITIC_K_DENSITY = 0.05
"""Reduced dendritic potassium density for active dendrites."""

AIS_NAV16_DENSITY = 3.0
"""Axon initial segment Nav1.6 density (high, spike initiation zone)."""

AIS_KV11_DENSITY = 0.5
"""Axon initial segment Kv1.1 density."""

HCN_DENSITY = 0.002
"""Dendritic HCN density (increases distally in pyramidal cells)."""

INTERNEURON_KV31_DENSITY = 0.5
"""Kv3.1 density supporting fast spiking in interneurons."""

INTERNEURON_NAV11_DENSITY = 1.0
"""Nav1.1 density of fast-spiking interneurons."""
