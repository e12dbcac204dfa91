import math
import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from vent_core import (
    BoxDesign,
    DriverParameters,
    EmpiricalLoading,
    InvalidParameterError,
    PortedExcursionModel,
    PowerLimitSolver,
    ResonatorLoading,
    SealedExcursionModel,
    SolverSettings,
    VentedBoxDesign,
    excursion_model_for,
)
from vent_core.excursion import EXCURSION, THERMAL
from vent_core.reference import UM18_22

REFERENCE_BOX = VentedBoxDesign(volume_l=200.0, fb_hz=22.0)


class SealedExcursionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.model = SealedExcursionModel(UM18_22, BoxDesign(volume_l=50.0))

    def test_doubling_power_scales_displacement_by_root_two(self) -> None:
        for freq in (20.0, 40.0, 80.0):
            with self.subTest(freq=freq):
                single = self.model.displacement(freq, 10.0)
                double = self.model.displacement(freq, 20.0)
                self.assertAlmostEqual(double / single, math.sqrt(2.0), delta=0.05 * math.sqrt(2.0))

    def test_closed_form_inverse(self) -> None:
        target = self.model.displacement(35.0, 37.0)
        inversion = self.model.power_for_displacement(35.0, target)
        self.assertTrue(inversion.converged)
        self.assertEqual(inversion.iterations, 0)
        self.assertAlmostEqual(inversion.power_w, 37.0, places=6)

    def test_zero_power_gives_zero_displacement(self) -> None:
        self.assertEqual(self.model.displacement(40.0, 0.0), 0.0)
        self.assertEqual(self.model.power_for_displacement(40.0, 0.0).power_w, 0.0)

    def test_rejects_invalid_inputs(self) -> None:
        with self.assertRaises(InvalidParameterError):
            self.model.displacement(0.0, 10.0)
        with self.assertRaises(InvalidParameterError):
            self.model.displacement(math.nan, 10.0)
        with self.assertRaises(InvalidParameterError):
            self.model.displacement(40.0, -1.0)
        with self.assertRaises(InvalidParameterError):
            self.model.power_for_displacement(40.0, -0.001)

    def test_low_frequency_request_is_logged(self) -> None:
        with self.assertLogs("vent_core.excursion", level="WARNING") as captured:
            self.model.displacement(3.0, 10.0)
        self.assertIn("inaccurate", captured.output[0])

    def test_requires_mechanical_parameters(self) -> None:
        sparse = DriverParameters(fs_hz=30.0, qts=0.4, vas_l=50.0, re_ohm=6.0)
        with self.assertRaisesRegex(InvalidParameterError, "bl_t_m"):
            SealedExcursionModel(sparse, BoxDesign(volume_l=40.0))


class PortedExcursionTest(unittest.TestCase):
    def test_displacement_null_at_tuning(self) -> None:
        for enclosure_q in (math.inf, 15.0):
            box = VentedBoxDesign(volume_l=200.0, fb_hz=22.0, leakage_q=enclosure_q)
            model = PortedExcursionModel(UM18_22, box)
            at_tuning = model.displacement(22.0, 100.0)
            below = model.displacement(11.0, 100.0)
            above = model.displacement(33.0, 100.0)
            with self.subTest(enclosure_q=enclosure_q):
                self.assertLessEqual(at_tuning, 0.6 * below)
                self.assertLessEqual(at_tuning, 0.6 * above)

    def test_lossless_null_is_exact(self) -> None:
        model = PortedExcursionModel(UM18_22, REFERENCE_BOX)
        self.assertEqual(model.loading_factor(22.0), 0.0)

    def test_resonator_loading_tends_to_sealed_stiffness(self) -> None:
        model = PortedExcursionModel(UM18_22, REFERENCE_BOX)
        alpha = REFERENCE_BOX.compliance_ratio(UM18_22)
        self.assertAlmostEqual(model.loading_factor(6.0) / (1.0 + alpha), 1.0, delta=0.05)

    def test_empirical_loading_is_labelled_approximate(self) -> None:
        self.assertTrue(ResonatorLoading.exact)
        self.assertFalse(EmpiricalLoading.exact)
        model = PortedExcursionModel(UM18_22, REFERENCE_BOX, loading=EmpiricalLoading())
        for freq in (10.0, 22.0, 40.0, 80.0):
            factor = model.loading_factor(freq)
            self.assertTrue(math.isfinite(factor))
            self.assertGreater(factor, 0.0)

    def test_bisection_cap_returns_unconverged_midpoint(self) -> None:
        settings = SolverSettings(bisection_max_iterations=3)
        model = PortedExcursionModel(UM18_22, REFERENCE_BOX, settings=settings)
        with self.assertLogs("vent_core.excursion", level="WARNING"):
            inversion = model.power_for_displacement(11.0, 0.018)
        self.assertFalse(inversion.converged)
        self.assertEqual(inversion.iterations, 3)
        self.assertGreater(inversion.power_w, 0.0)
        self.assertLess(inversion.power_w, UM18_22.pe_w)

    def test_model_selection_follows_enclosure(self) -> None:
        self.assertIsInstance(excursion_model_for(UM18_22, REFERENCE_BOX), PortedExcursionModel)
        self.assertIsInstance(excursion_model_for(UM18_22, BoxDesign(volume_l=80.0)), SealedExcursionModel)
        with self.assertRaises(InvalidParameterError):
            excursion_model_for(UM18_22, BoxDesign(volume_l=80.0), loading=EmpiricalLoading())


class PowerLimitTest(unittest.TestCase):
    def setUp(self) -> None:
        self.solver = PowerLimitSolver(UM18_22, excursion_model_for(UM18_22, REFERENCE_BOX))

    def test_thermal_limit_in_the_passband(self) -> None:
        limit = self.solver.max_safe_power(80.0)
        self.assertEqual(limit.limiting_reason, THERMAL)
        self.assertEqual(limit.power_w, 1200.0)
        self.assertLessEqual(limit.displacement_m, 0.018)

    def test_excursion_limit_below_tuning(self) -> None:
        limit = self.solver.max_safe_power(11.0)
        self.assertEqual(limit.limiting_reason, EXCURSION)
        self.assertTrue(limit.converged)
        self.assertLess(limit.power_w, 1200.0)
        self.assertAlmostEqual(limit.displacement_m, 0.018, delta=1e-5)
        self.assertAlmostEqual(limit.to_dict()["displacement_mm"], 18.0, delta=0.011)

    def test_power_limit_curve_covers_each_frequency(self) -> None:
        limits = self.solver.power_limit_curve([11.0, 22.0, 80.0])
        self.assertEqual([limit.frequency_hz for limit in limits], [11.0, 22.0, 80.0])

    def test_power_warnings(self) -> None:
        warnings = self.solver.power_warnings(1200.0)
        self.assertTrue(warnings)
        for warning in warnings:
            self.assertEqual(warning.limiting_reason, EXCURSION)
            self.assertIn(warning.severity, {"warning", "critical"})
            self.assertIn("W", warning.message)
        self.assertIn(10.0, [warning.frequency_hz for warning in warnings])
        self.assertEqual(self.solver.power_warnings(1.0), [])
        with self.assertRaises(InvalidParameterError):
            self.solver.power_warnings(100.0, margin=0.5)

    def test_requires_power_rating(self) -> None:
        unrated = DriverParameters(
            fs_hz=22.0,
            qts=0.53,
            vas_l=248.2,
            re_ohm=6.4,
            bl_t_m=18.5,
            mms_kg=0.24,
            cms_m_per_n=0.000476,
            rms_kg_s=3.48,
            xmax_mm=18.0,
        )
        with self.assertRaisesRegex(InvalidParameterError, "pe_w"):
            PowerLimitSolver(unrated, excursion_model_for(unrated, REFERENCE_BOX))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
