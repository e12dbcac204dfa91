import itertools
import math
import pathlib
import sys
import unittest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from vent_core import LOSSLESS, InvalidParameterError, VentedBoxDesign, combine_losses


class CombineLossesTest(unittest.TestCase):
    def test_single_finite_loss_passes_through(self) -> None:
        self.assertAlmostEqual(combine_losses(10.0, math.inf, math.inf), 10.0)

    def test_equal_losses_divide(self) -> None:
        self.assertAlmostEqual(combine_losses(10.0, 10.0, 10.0), 10.0 / 3.0, places=9)

    def test_all_lossless_stays_lossless(self) -> None:
        self.assertTrue(math.isinf(combine_losses(LOSSLESS, LOSSLESS, LOSSLESS)))
        self.assertTrue(math.isinf(combine_losses()))

    def test_result_never_exceeds_smallest_input(self) -> None:
        values = [0.5, 2.0, 7.0, 15.0, 100.0, math.inf]
        for combo in itertools.combinations_with_replacement(values, 3):
            with self.subTest(combo=combo):
                self.assertLessEqual(combine_losses(*combo), min(combo) + 1e-12)

    def test_rejects_non_positive_and_nan(self) -> None:
        for bad in (0.0, -3.0, math.nan):
            with self.subTest(bad=bad):
                with self.assertRaises(InvalidParameterError):
                    combine_losses(10.0, bad)

    def test_box_enclosure_q_combines_its_mechanisms(self) -> None:
        box = VentedBoxDesign(volume_l=100.0, fb_hz=30.0, leakage_q=10.0, absorption_q=10.0, port_q=10.0)
        self.assertAlmostEqual(box.enclosure_q(), 10.0 / 3.0, places=9)
        self.assertTrue(math.isinf(VentedBoxDesign(volume_l=100.0, fb_hz=30.0).enclosure_q()))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
