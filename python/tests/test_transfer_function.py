import math
import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from vent_core import (
    BESSEL_BE4,
    BUTTERWORTH_B4,
    LOSSLESS,
    InvalidParameterError,
    SolverSettings,
    VentedBoxDesign,
    VentedBoxSystem,
    chebyshev_target,
    evaluate,
    filter_coefficients,
    find_f3,
    group_delay,
    magnitude_db,
    response_curve,
    solve_f3,
    synthesize_alignment,
)
from vent_core.reference import UM18_22

UM18_ALPHA = 248.2 / 200.0


class TransferFunctionTest(unittest.TestCase):
    def test_zero_frequency_is_exactly_zero(self) -> None:
        result = evaluate(0.0, 22.0, 22.0, UM18_ALPHA, 0.53)
        self.assertEqual(result.magnitude, 0.0)
        self.assertEqual(result.real, 0.0)
        self.assertEqual(result.imag, 0.0)
        self.assertEqual(magnitude_db(0.0, 22.0, 22.0, UM18_ALPHA, 0.53), -math.inf)

    def test_high_frequency_approaches_unity(self) -> None:
        for fs, fb, alpha, qt, ql in (
            (22.0, 22.0, UM18_ALPHA, 0.53, LOSSLESS),
            (30.0, 25.0, 2.0, 0.35, 7.0),
            (40.0, 45.0, 0.8, 0.4, 15.0),
        ):
            with self.subTest(fs=fs, fb=fb, alpha=alpha):
                magnitude = evaluate(100.0 * max(fs, fb), fs, fb, alpha, qt, ql).magnitude
                self.assertAlmostEqual(magnitude, 1.0, delta=0.01)

    def test_magnitude_stays_bounded_for_standard_alignments(self) -> None:
        frequencies = [1.0 + 0.5 * index for index in range(400)]
        for target in (BUTTERWORTH_B4, BESSEL_BE4, chebyshev_target(0.5), chebyshev_target(1.0)):
            solution = synthesize_alignment(0.2, target)
            fb = 30.0 * solution.tuning_ratio
            for freq in frequencies:
                magnitude = evaluate(freq, 30.0, fb, solution.compliance_ratio, solution.qt).magnitude
                self.assertGreaterEqual(magnitude, 0.0)
                self.assertLessEqual(magnitude, 1.2, msg=f"{target.name} at {freq} Hz")

    def test_um18_reference_design_has_bass_hump(self) -> None:
        frequencies = [0.1 * index for index in range(1, 5001)]
        peak_freq, peak = max(
            ((freq, evaluate(freq, 22.0, 22.0, UM18_ALPHA, 0.53).magnitude) for freq in frequencies),
            key=lambda item: item[1],
        )
        self.assertAlmostEqual(peak, 1.378, delta=0.01)
        self.assertAlmostEqual(20.0 * math.log10(peak), 2.8, delta=0.1)
        self.assertAlmostEqual(peak_freq, 36.7, delta=1.0)

    def test_butterworth_is_three_db_down_at_tuning(self) -> None:
        alpha = math.sqrt(2.0)
        qt = 1.0 / BUTTERWORTH_B4.a3
        at_tuning = magnitude_db(30.0, 30.0, 30.0, alpha, qt)
        passband = magnitude_db(3000.0, 30.0, 30.0, alpha, qt)
        self.assertAlmostEqual(at_tuning - passband, -3.0, delta=0.5)

    def test_lossless_matches_closed_form(self) -> None:
        fs, fb, alpha, qt = 22.0, 25.0, 1.5, 0.4
        h = fb / fs
        a1 = 1.0 / (math.sqrt(h) * qt)
        a2 = (alpha + 1.0 + h * h) / h
        a3 = math.sqrt(h) / qt
        self.assertEqual(filter_coefficients(h, alpha, qt, LOSSLESS), (a1, a2, a3))

        for freq in (5.0, 18.0, 23.5, 40.0, 120.0):
            x = freq / math.sqrt(fs * fb)
            expected = x**4 / abs(complex(x**4 - a2 * x**2 + 1.0, a3 * x - a1 * x**3))
            self.assertAlmostEqual(evaluate(freq, fs, fb, alpha, qt).magnitude, expected, places=12)
            nearly_lossless = evaluate(freq, fs, fb, alpha, qt, 1e12).magnitude
            self.assertAlmostEqual(nearly_lossless, expected, places=9)

    def test_losses_lower_the_response_near_tuning(self) -> None:
        lossless = evaluate(22.0, 22.0, 22.0, UM18_ALPHA, 0.53).magnitude
        lossy = evaluate(22.0, 22.0, 22.0, UM18_ALPHA, 0.53, 7.0).magnitude
        self.assertLess(lossy, lossless)

    def test_rejects_invalid_inputs(self) -> None:
        with self.assertRaises(InvalidParameterError):
            evaluate(-1.0, 22.0, 22.0, UM18_ALPHA, 0.53)
        with self.assertRaises(InvalidParameterError):
            evaluate(math.nan, 22.0, 22.0, UM18_ALPHA, 0.53)
        with self.assertRaises(InvalidParameterError):
            evaluate(20.0, 22.0, 22.0, 0.0, 0.53)
        with self.assertRaises(InvalidParameterError):
            evaluate(20.0, 22.0, 22.0, UM18_ALPHA, 0.53, 0.0)

    def test_response_curve_returns_complex_samples(self) -> None:
        samples = response_curve([10.0, 22.0, 80.0], 22.0, 22.0, UM18_ALPHA, 0.53)
        self.assertEqual([sample.frequency_hz for sample in samples], [10.0, 22.0, 80.0])
        direct = evaluate(22.0, 22.0, 22.0, UM18_ALPHA, 0.53)
        self.assertAlmostEqual(samples[1].magnitude, direct.magnitude, places=12)
        self.assertAlmostEqual(samples[1].phase_rad, direct.phase, places=12)
        self.assertIn("magnitude_db", samples[1].to_dict())


class F3SearchTest(unittest.TestCase):
    def test_um18_reference_design(self) -> None:
        f3 = find_f3(22.0, 22.0, UM18_ALPHA, 0.53)
        self.assertGreater(f3, 10.0)
        self.assertLess(f3, 22.0)
        self.assertAlmostEqual(f3, 21.2, delta=1.0)

    def test_butterworth_f3_sits_at_tuning(self) -> None:
        f3 = find_f3(30.0, 30.0, math.sqrt(2.0), 1.0 / BUTTERWORTH_B4.a3)
        self.assertAlmostEqual(f3, 30.0, delta=0.5)

    def test_search_reports_iterations_and_reference(self) -> None:
        search = solve_f3(22.0, 22.0, UM18_ALPHA, 0.53)
        self.assertTrue(search.converged)
        self.assertGreater(search.iterations, 0)
        self.assertAlmostEqual(search.reference_magnitude, 1.059, delta=0.01)

    def test_iteration_cap_marks_search_unconverged(self) -> None:
        settings = SolverSettings(f3_max_iterations=2)
        search = solve_f3(22.0, 22.0, UM18_ALPHA, 0.53, settings=settings)
        self.assertFalse(search.converged)
        self.assertEqual(search.iterations, 2)

    def test_recomputes_after_volume_change(self) -> None:
        box = VentedBoxDesign(volume_l=200.0, fb_hz=22.0)
        small = VentedBoxSystem(UM18_22, box).f3()
        large = VentedBoxSystem(UM18_22, box.with_volume(400.0)).f3()
        self.assertNotAlmostEqual(small, large, places=2)
        self.assertLess(large, small)


class GroupDelayTest(unittest.TestCase):
    def test_group_delay_is_positive(self) -> None:
        for freq in (0.005, 5.0, 15.0, 22.0, 40.0, 100.0):
            with self.subTest(freq=freq):
                self.assertGreater(group_delay(freq, 22.0, 22.0, UM18_ALPHA, 0.53), 0.0)

    def test_butterworth_delay_peaks_near_tuning(self) -> None:
        alpha = math.sqrt(2.0)
        qt = 1.0 / BUTTERWORTH_B4.a3
        at_tuning = group_delay(30.0, 30.0, 30.0, alpha, qt)
        self.assertGreater(at_tuning, group_delay(15.0, 30.0, 30.0, alpha, qt))
        self.assertGreater(at_tuning, group_delay(60.0, 30.0, 30.0, alpha, qt))

    def test_zero_frequency_is_rejected(self) -> None:
        with self.assertRaises(InvalidParameterError):
            group_delay(0.0, 22.0, 22.0, UM18_ALPHA, 0.53)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
