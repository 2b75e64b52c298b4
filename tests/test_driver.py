"""
Tests for the core.driver module.

This module tests the proxel expansion rules, the drain loop with its
truncation policy and complete sweeps of the reliability models.
"""

import math
import os
import sys
import unittest

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proxsim.core import hazards
from proxsim.core.config import SolverConfig
from proxsim.core.driver import ProxelSimulator, simulate
from proxsim.core.hazards import weibull_hrf
from proxsim.core.model import Model, Transition
from proxsim.domains.reliability import RepairParameters, build_machine_model, build_repair_model
from proxsim.domains.reliability.machine import HPM, LPM
from proxsim.domains.reliability.repair import DOWN, MAINT, UP


def two_state_model(hazard, reset_age2=False, age_counters=1):
    """A -> B with the given hazard; B is absorbing."""
    return Model(
        states=("A", "B"),
        transitions={0: [Transition(1, hazard, reset_age2=reset_age2)]},
        age_counters=age_counters,
    )


class TestExpansion(unittest.TestCase):
    """Tests for the successor rules of a single step."""

    def setUp(self):
        """Set up test fixtures."""
        self.cfg = SolverConfig(total_time=5.0, step_size=1.0)

    def first_generation(self, model):
        sim = ProxelSimulator(model, self.cfg)
        sim.reset()
        processed = sim.step(1)
        return sim, processed, {(p.state, p.age1, p.age2): p.mass for p in sim.building.iter_proxels()}

    def test_stay_and_move(self):
        """Test z < 1 splits mass between target and an older copy."""
        sim, processed, gen = self.first_generation(two_state_model(hazards.exponential(0.25)))
        self.assertEqual(processed, 1)
        self.assertEqual(set(gen), {(1, 0, 0), (0, 1, 0)})
        self.assertAlmostEqual(gen[(1, 0, 0)], 0.25)
        self.assertAlmostEqual(gen[(0, 1, 0)], 0.75)

    def test_saturation(self):
        """Test z >= 1 yields exactly one successor carrying full mass."""
        sim, processed, gen = self.first_generation(two_state_model(hazards.exponential(10.0)))
        self.assertEqual(gen, {(1, 0, 0): 1.0})
        self.assertEqual(sim.building.size(), 1)

    def test_saturation_boundary(self):
        """Test z exactly one counts as saturated."""
        sim, processed, gen = self.first_generation(two_state_model(hazards.exponential(1.0)))
        self.assertEqual(gen, {(1, 0, 0): 1.0})

    def test_zero_rate_keeps_mass(self):
        """Test a zero hazard creates no empty successor."""
        sim, processed, gen = self.first_generation(two_state_model(hazards.weibull(55.0, 4.0)))
        self.assertEqual(gen, {(0, 1, 0): 1.0})

    def test_competing_transitions(self):
        """Test competing transitions each take their share."""
        model = Model(
            states=("A", "B", "C"),
            transitions={0: [Transition(1, hazards.exponential(0.1)), Transition(2, hazards.exponential(0.2))]},
        )
        sim, processed, gen = self.first_generation(model)
        self.assertAlmostEqual(gen[(1, 0, 0)], 0.1)
        self.assertAlmostEqual(gen[(2, 0, 0)], 0.2)
        self.assertAlmostEqual(gen[(0, 1, 0)], 0.7)

    def test_competing_transitions_saturated(self):
        """Test saturated competing transitions share the mass by rate."""
        model = Model(
            states=("A", "B", "C"),
            transitions={0: [Transition(1, hazards.exponential(1.0)), Transition(2, hazards.exponential(3.0))]},
        )
        sim, processed, gen = self.first_generation(model)
        self.assertEqual(set(gen), {(1, 0, 0), (2, 0, 0)})
        self.assertAlmostEqual(gen[(1, 0, 0)], 0.25)
        self.assertAlmostEqual(gen[(2, 0, 0)], 0.75)

    def test_infinite_rate_wins(self):
        """Test an infinite hazard takes the full mass."""
        model = Model(
            states=("A", "B", "C"),
            transitions={0: [Transition(1, lambda x: math.inf), Transition(2, hazards.exponential(0.5))]},
        )
        sim, processed, gen = self.first_generation(model)
        self.assertEqual(gen, {(1, 0, 0): 1.0})

    def test_second_age_counter_runs_across_transitions(self):
        """Test age2 keeps counting after a transition."""
        model = two_state_model(hazards.exponential(10.0), age_counters=2)
        sim = ProxelSimulator(model, self.cfg)
        sim.reset()
        sim.step(1)
        sim.step(2)
        (proxel,) = sim.building.proxels()
        self.assertEqual((proxel.state, proxel.age1, proxel.age2), (1, 1, 2))

    def test_second_age_counter_reset(self):
        """Test transitions flagged reset_age2 restart the second clock."""
        model = two_state_model(hazards.exponential(10.0), reset_age2=True, age_counters=2)
        sim = ProxelSimulator(model, self.cfg)
        sim.reset()
        sim.step(1)
        sim.step(2)
        (proxel,) = sim.building.proxels()
        self.assertEqual((proxel.state, proxel.age1, proxel.age2), (1, 1, 1))

    def test_absorbing_state_ages_until_horizon(self):
        """Test a state without transitions ages and is clamped at the horizon."""
        model = Model(states=("A",))
        cfg = SolverConfig(total_time=3.0, step_size=1.0)
        result = ProxelSimulator(model, cfg).run()
        (proxel,) = result.final_generation
        self.assertEqual(proxel.age1, cfg.resolved_horizon - 1)
        self.assertEqual(proxel.mass, 1.0)


class TestDrain(unittest.TestCase):
    """Tests for the generation drain loop."""

    def test_empty_generation(self):
        """Test draining an empty generation does nothing."""
        sim = ProxelSimulator(two_state_model(hazards.exponential(0.5)), SolverConfig())
        sim.reset(seed_initial=False)
        self.assertEqual(sim.step(1), 0)
        self.assertEqual(sim.ledger.error, 0.0)
        self.assertEqual(sim.ledger.discarded, 0)
        self.assertTrue(sim.building.is_empty())
        self.assertEqual(sim.total_processed, 0)

    def test_truncation_and_last_proxel(self):
        """Test light proxels are discarded except the last of a generation."""
        cfg = SolverConfig(total_time=5.0, step_size=1.0, min_prob=0.6)
        sim = ProxelSimulator(two_state_model(hazards.exponential(0.5)), cfg)
        sim.reset(seed_initial=False)
        sim.building.insert(0, 0, 0, 0.5)
        sim.building.insert(0, 1, 0, 0.5)
        processed = sim.step(1)
        self.assertEqual(processed, 1)
        self.assertEqual(sim.ledger.error, 0.5)
        self.assertEqual(sim.ledger.error_by_step[0], 0.5)
        self.assertAlmostEqual(sim.ledger.step_total(0), 0.5)
        self.assertAlmostEqual(sim.building.total_mass(), 0.5)

    def test_generations_alternate(self):
        """Test the two trees swap roles every step."""
        sim = ProxelSimulator(two_state_model(hazards.exponential(0.5)), SolverConfig())
        sim.reset()
        first = sim.building
        sim.step(1)
        self.assertIs(sim.current, first)
        self.assertTrue(first.is_empty())
        self.assertIsNot(sim.building, first)


class TestMachineSweep(unittest.TestCase):
    """Tests for the reference overheating machine run."""

    @classmethod
    def setUpClass(cls):
        cls.cfg = SolverConfig()
        cls.sim = ProxelSimulator(build_machine_model(), cls.cfg)
        cls.result = cls.sim.run()

    def test_shape(self):
        """Test the occupancy table covers steps 0 .. k_max."""
        self.assertEqual(self.result.occupancy.shape, (2, 26))
        self.assertEqual(len(self.result.times), 26)
        self.assertEqual(self.result.times[-1], 100.0)

    def test_probability_conserved(self):
        """Test each step sums to one minus the error discarded so far."""
        cumulative = np.cumsum(self.result.error_by_step)
        totals = self.result.occupancy.sum(axis=0)
        for k in range(len(totals)):
            self.assertAlmostEqual(totals[k], 1.0 - cumulative[k], places=10)

    def test_error_small(self):
        """Test the truncation error stays negligible."""
        self.assertLess(self.result.error, 1e-6)
        self.assertGreaterEqual(self.result.error, 0.0)

    def test_initial_steps(self):
        """Test the first steps follow the Weibull rate exactly."""
        hpm = self.result.probability("HPM")
        lpm = self.result.probability("LPM")
        self.assertEqual(hpm[0], 1.0)
        self.assertEqual(hpm[1], 1.0)
        self.assertEqual(lpm[1], 0.0)
        self.assertAlmostEqual(lpm[2], 4.0 * weibull_hrf(4.0, 55.0, 4.0), places=15)

    def test_cooldown_never_fires_on_coarse_grid(self):
        """Test the uniform window [9, 11) is missed with step 4, so LPM only grows."""
        lpm = self.result.occupancy[LPM]
        self.assertTrue(np.all(np.diff(lpm) >= -1e-15))
        self.assertGreater(lpm[-1], 0.99)

    def test_ages_within_horizon(self):
        """Test no stored age exceeds horizon - 1."""
        for proxel in self.result.final_generation:
            self.assertLessEqual(proxel.age1, self.sim.horizon - 1)
            self.assertEqual(proxel.age2, 0)

    def test_counters(self):
        """Test resource counters are reported."""
        self.assertGreaterEqual(self.result.total_processed, 26)
        self.assertGreaterEqual(self.result.peak_live, 2)

    def test_extraction_order_irrelevant(self):
        """Test different coin flip seeds give the same distribution."""
        other = simulate(build_machine_model(), SolverConfig(seed=7))
        np.testing.assert_allclose(other.occupancy, self.result.occupancy, atol=1e-12)

    def test_report(self):
        """Test the text table has one line per step."""
        table = self.result.format_table()
        lines = table.splitlines()
        self.assertEqual(len(lines), 26)
        self.assertTrue(lines[0].startswith("Time:    0 - HPM-Prob.: 1.00000e+00"))
        data = self.result.to_dict()
        self.assertEqual(set(data["occupancy"]), {"HPM", "LPM"})


class TestFineGridSweeps(unittest.TestCase):
    """Tests for runs with per-step conservation audits."""

    def test_machine_fine_grid(self):
        """Test the machine cools down and returns with step size 1."""
        cfg = SolverConfig(total_time=60.0, step_size=1.0, check_conservation=True)
        result = simulate(build_machine_model(), cfg)
        # without returns only about a quarter would still be in HPM
        self.assertGreater(result.occupancy[HPM, -1], 0.5)
        lpm_ages = [p.age1 for p in result.final_generation if p.state == LPM]
        self.assertTrue(lpm_ages)
        self.assertLessEqual(max(lpm_ages), 10)
        totals = result.occupancy.sum(axis=0)
        cumulative = np.cumsum(result.error_by_step)
        np.testing.assert_allclose(totals, 1.0 - cumulative, atol=1e-10)

    def test_repair_model(self):
        """Test the three-state model with two age counters."""
        cfg = SolverConfig(total_time=20.0, step_size=1.0, check_conservation=True)
        model = build_repair_model(cfg, RepairParameters(maint_interval=8.0))
        result = simulate(model, cfg)
        self.assertEqual(result.occupancy.shape, (3, 21))
        self.assertGreater(result.occupancy[MAINT].max(), 0.0)
        self.assertGreater(result.occupancy[DOWN].max(), 0.0)
        self.assertEqual(result.occupancy[UP, 0], 1.0)
        totals = result.occupancy.sum(axis=0)
        cumulative = np.cumsum(result.error_by_step)
        np.testing.assert_allclose(totals, 1.0 - cumulative, atol=1e-10)
        self.assertLess(result.error, 1e-6)


if __name__ == "__main__":
    unittest.main()
