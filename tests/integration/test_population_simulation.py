"""
Integration tests: morphology import, cable integration and the population
back-ends working together.
"""

import numpy as np
import pytest

from neurocable import (
    CableIntegrator,
    CompartmentParams,
    CpuExecutionBackend,
    GpuExecutionBackend,
    IntegratorConfig,
)
from neurocable.morphology import builders
from neurocable.morphology.swc import SWCMorphology

SWC_TEXT = """\
# soma with a forked apical dendrite and an axon
1 1 0 0 0 8 -1
2 4 0 0 20 1.5 1
3 4 0 0 40 1.2 2
4 4 10 0 55 0.8 3
5 4 -10 0 55 0.8 3
6 2 0 0 -15 0.5 1
"""


@pytest.mark.integration
class TestMorphologyToPopulation:
    """SWC file → topology → parallel stepping."""

    def test_swc_population_on_cpu_backend(self, tmp_path):
        path = tmp_path / "cell.swc"
        path.write_text(SWC_TEXT)
        morphology = SWCMorphology.from_file(path)
        population = [morphology.to_topology() for _ in range(4)]
        assert all(len(topology) == 6 for topology in population)

        integrator = CableIntegrator(IntegratorConfig(validate_state=True))
        with CpuExecutionBackend.create(population, integrator=integrator, max_workers=2) as backend:
            backend.set_external_currents([40.0, 0.0, 40.0, 0.0])
            for _ in range(300):
                backend.step()
            voltages = backend.read_voltages()

        assert voltages[0] == pytest.approx(voltages[2])
        assert voltages[1] == pytest.approx(voltages[3])
        assert voltages[0] > voltages[1]

    def test_somatic_input_attenuates_along_apical_tree(self):
        integrator = CableIntegrator()
        stimulated = builders.pyramidal()
        control = builders.pyramidal()
        currents = np.zeros(len(stimulated))
        currents[0] = 20.0
        stimulated.set_external_current(currents)

        integrator.run(stimulated, 200)
        integrator.run(control, 200)

        delta = stimulated.voltages() - control.voltages()
        assert delta[0] > delta[1] > 0.0
        assert delta[1] > abs(delta[100])


@pytest.mark.integration
@pytest.mark.gpu
class TestBackendsAgree:
    """Both back-ends satisfy the same stepping contract."""

    def test_first_spike_time_matches_for_point_neurons(self, device):
        side = float(np.sqrt(100.0 / np.pi))
        cpu_population = [
            builders.single_compartment(
                length=side,
                diameter=side,
                channel_densities={"hh_na": 1.2, "hh_k": 0.36, "ca_l": 0.05},
                params=CompartmentParams(leak_density=0.003),
            )
            for _ in range(2)
        ]
        currents = [15.0, 0.0]
        cpu_first = [None, None]
        gpu_first = [None, None]

        with CpuExecutionBackend.create(cpu_population) as cpu, \
                GpuExecutionBackend.create(2, device=device) as gpu:
            cpu.set_external_currents(currents)
            gpu.set_external_currents(currents)
            for step in range(1500):
                cpu_flags = cpu.step()
                gpu.step()
                gpu_flags = gpu.read_spikes()
                for i in range(2):
                    if cpu_flags[i] and cpu_first[i] is None:
                        cpu_first[i] = step
                    if gpu_flags[i] and gpu_first[i] is None:
                        gpu_first[i] = step

        assert cpu_first[1] is None and gpu_first[1] is None
        assert cpu_first[0] is not None and gpu_first[0] is not None
        assert abs(cpu_first[0] - gpu_first[0]) <= 1
