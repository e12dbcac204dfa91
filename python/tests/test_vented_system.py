import math
import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from vent_core import (
    InvalidParameterError,
    PortGeometry,
    SensitivityAnalyzer,
    VentedBoxDesign,
    VentedBoxSystem,
)
from vent_core.reference import LOW_QTS_DRIVER, UM18_22


class VentedBoxSystemTest(unittest.TestCase):
    def setUp(self) -> None:
        self.box = VentedBoxDesign(volume_l=200.0, fb_hz=22.0)
        self.system = VentedBoxSystem(UM18_22, self.box, port=PortGeometry(diameter_m=0.1, count=2))

    def test_summary_reports_box_and_port(self) -> None:
        summary = self.system.summary()
        self.assertAlmostEqual(summary.compliance_ratio, 1.241, places=9)
        self.assertAlmostEqual(summary.tuning_ratio, 1.0, places=12)
        self.assertAlmostEqual(summary.f3_hz, 21.2, delta=1.0)
        self.assertTrue(summary.f3_converged)
        self.assertGreater(summary.group_delay_at_fb_ms, 0.0)
        assert summary.port_length_m is not None
        self.assertGreater(summary.port_length_m, 0.0)
        self.assertIn(summary.port_velocity_status, {"good", "moderate", "high", "critical"})

        payload = summary.to_dict()
        self.assertIsNone(payload["enclosure_q"])
        self.assertEqual(payload["tuning"], "fb≈fs")
        self.assertNotIn("alignment", payload)

    def test_summary_without_port(self) -> None:
        summary = VentedBoxSystem(UM18_22, self.box.with_enclosure_q(7.0)).summary()
        self.assertIsNone(summary.port_length_m)
        self.assertAlmostEqual(summary.to_dict()["enclosure_q"], 7.0, places=9)

    def test_classifies_tuning(self) -> None:
        cases = {
            1.0: "fb≈fs",
            1.05: "fb≈fs",
            0.7: "low tuning",
            1.3: "high tuning",
        }
        for ratio, label in cases.items():
            with self.subTest(ratio=ratio):
                system = VentedBoxSystem(UM18_22, self.box.with_tuning(ratio * UM18_22.fs_hz))
                self.assertEqual(system.classify_tuning(), label)

    def test_sweep_is_logarithmic(self) -> None:
        samples = self.system.sweep(10.0, 160.0, points=5)
        frequencies = [sample.frequency_hz for sample in samples]
        self.assertAlmostEqual(frequencies[0], 10.0)
        self.assertAlmostEqual(frequencies[-1], 160.0)
        self.assertAlmostEqual(frequencies[2], 40.0)
        self.assertEqual(len(self.system.sweep()), 96)

    def test_spl_tracks_sensitivity_in_the_passband(self) -> None:
        sensitivity = UM18_22.sensitivity_db
        assert sensitivity is not None
        self.assertAlmostEqual(self.system.spl_db(200.0), sensitivity, delta=0.5)
        self.assertAlmostEqual(self.system.spl_db(200.0, 10.0) - self.system.spl_db(200.0), 10.0, places=9)
        self.assertLess(self.system.spl_db(10.0), sensitivity - 10.0)
        with self.assertRaises(InvalidParameterError):
            self.system.spl_db(200.0, 0.0)

    def test_spl_requires_electrical_q(self) -> None:
        system = VentedBoxSystem(LOW_QTS_DRIVER, VentedBoxDesign(volume_l=127.0, fb_hz=32.0))
        with self.assertRaisesRegex(InvalidParameterError, "qes"):
            system.spl_db(100.0)


class SensitivityAnalyzerTest(unittest.TestCase):
    def test_lossless_sensitivities(self) -> None:
        result = SensitivityAnalyzer(UM18_22, VentedBoxDesign(volume_l=200.0, fb_hz=22.0)).all()
        self.assertLess(result.volume_hz_per_l, 0.0)
        self.assertEqual(result.loss_hz_per_q, 0.0)
        for value in result.to_dict().values():
            self.assertTrue(math.isfinite(value))

    def test_loss_sensitivity_for_lossy_box(self) -> None:
        box = VentedBoxDesign(volume_l=200.0, fb_hz=22.0, leakage_q=7.0)
        analyzer = SensitivityAnalyzer(UM18_22, box)
        self.assertNotEqual(analyzer.df3_dloss(), 0.0)
        self.assertTrue(math.isfinite(analyzer.df3_dtuning()))

    def test_nearly_lossless_box_is_insensitive_to_loss(self) -> None:
        box = VentedBoxDesign(volume_l=200.0, fb_hz=22.0, leakage_q=1e6)
        self.assertAlmostEqual(SensitivityAnalyzer(UM18_22, box).df3_dloss(), 0.0, places=6)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
