import math
import unittest
from unittest.mock import patch
import numpy as np
from rawview.domain.models import AdjustmentParams, RawPixelBuffer, ToneCurve, TransformParams
from rawview.services.session import ViewerSession, clamp_progress


def dark_image():
    data = np.full((16, 16, 3), 26, dtype=np.uint8)
    return RawPixelBuffer(width=16, height=16, channels=3, bits_per_sample=8, data=data)


class TestViewerSession(unittest.TestCase):
    def setUp(self):
        self.session = ViewerSession()

    def test_load_replaces_snapshot_and_bumps_generation(self):
        self.session.set_adjustments(AdjustmentParams(exposure=2))
        gen = self.session.load_image(dark_image(), "dark.dng")
        self.assertEqual(gen, 1)
        self.assertEqual(self.session.snapshot.filename, "dark.dng")
        self.assertEqual(self.session.snapshot.adjustments, AdjustmentParams())

    def test_setters_replace_snapshot(self):
        before = self.session.snapshot
        self.session.set_transform(TransformParams(rotation_deg=15))
        self.assertIsNot(self.session.snapshot, before)
        self.assertEqual(before.transform.rotation_deg, 0.0)
        self.assertEqual(self.session.snapshot.transform.rotation_deg, 15)

        self.session.set_tone_curve(ToneCurve(rgb=[(0, 0.1), (1, 1)]))
        self.assertEqual(self.session.snapshot.tone_curve.rgb[0].y, 0.1)

    def test_apply_auto_adjust(self):
        self.session.load_image(dark_image())
        self.assertTrue(self.session.apply_auto_adjust())
        self.assertGreater(self.session.snapshot.adjustments.exposure, 0.6)

    def test_apply_auto_adjust_without_image(self):
        self.assertFalse(self.session.apply_auto_adjust())

    def test_stale_auto_adjust_is_discarded(self):
        gen = self.session.load_image(dark_image(), "a")
        self.session.load_image(dark_image(), "b")
        accepted = self.session.commit_auto_adjust(AdjustmentParams(exposure=3), gen)
        self.assertFalse(accepted)
        self.assertEqual(self.session.snapshot.adjustments.exposure, 0.0)

    def test_image_swapped_during_auto_adjust(self):
        session = self.session
        session.load_image(dark_image(), "a")

        def swap_then_compute(image, current, transform):
            session.load_image(dark_image(), "b")
            return AdjustmentParams(exposure=1.0)

        with patch(
            "rawview.services.session.compute_auto_adjustments",
            side_effect=swap_then_compute,
        ):
            self.assertFalse(session.apply_auto_adjust())
        self.assertEqual(session.snapshot.filename, "b")
        self.assertEqual(session.snapshot.adjustments.exposure, 0.0)

    def test_task_progress(self):
        self.session.begin_task("open", "Decoding")
        self.assertTrue(self.session.task.loading)
        self.session.update_task(1.7)
        self.assertEqual(self.session.task.progress, 1.0)
        self.assertEqual(self.session.task.message, "Decoding")
        self.session.update_task(0.4, "Almost")
        self.assertEqual(self.session.task.progress, 0.4)
        self.session.finish_task()
        self.assertFalse(self.session.task.loading)

    def test_reset(self):
        self.session.load_image(dark_image())
        self.session.reset()
        self.assertIsNone(self.session.snapshot.image)
        self.assertEqual(self.session.generation, 2)


def test_clamp_progress():
    assert clamp_progress(-0.5) == 0.0
    assert clamp_progress(0.3) == 0.3
    assert clamp_progress(4) == 1.0
    assert clamp_progress(math.nan) == 0.0
    assert clamp_progress(math.inf) == 0.0
