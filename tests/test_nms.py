import unittest

from yolo_search.geometry import iou, standard_iou
from yolo_search.nms import NMSConfig, nms, suppress
from yolo_search.types import Detection, Rect


def det(score: float, rect, class_index: int = 0) -> Detection:
    return Detection(class_index=class_index, score=score, rect=Rect(*rect))


class TestOverlap(unittest.TestCase):
    def test_self_overlap_is_one(self) -> None:
        r = Rect(3, 4, 17, 29)
        self.assertEqual(iou(r, r), 1.0)
        self.assertEqual(standard_iou(r, r), 1.0)

    def test_degenerate_rect_has_zero_overlap(self) -> None:
        box = Rect(0, 0, 10, 10)
        for flat in (Rect(5, 5, 5, 15), Rect(5, 5, 15, 5)):
            self.assertEqual(iou(box, flat), 0.0)
            self.assertEqual(iou(flat, box), 0.0)
            self.assertEqual(standard_iou(box, flat), 0.0)

    def test_legacy_formula_uses_max_of_all_edges(self) -> None:
        a = Rect(0, 0, 10, 10)
        # "Intersection" becomes (0, 0, 10, 10): 100 / (100 + 25 - 100)
        self.assertEqual(iou(a, Rect(0, 0, 5, 5)), 4.0)
        # Disjoint boxes of equal size still score 1.0 under this formula.
        self.assertEqual(iou(a, Rect(20, 0, 30, 10)), 1.0)

    def test_standard_iou(self) -> None:
        a = Rect(0, 0, 10, 10)
        self.assertAlmostEqual(standard_iou(a, Rect(5, 5, 15, 15)), 25 / 175)
        self.assertEqual(standard_iou(a, Rect(20, 0, 30, 10)), 0.0)

    def test_zero_denominator_returns_zero(self) -> None:
        # "Intersection" (0, 0, 2, 2) has area 4 = 2 + 2, leaving a zero denominator.
        self.assertEqual(iou(Rect(0, 0, 1, 2), Rect(0, 0, 2, 1)), 0.0)

    def test_denominator_adds_integer_areas_before_float_conversion(self) -> None:
        # Areas 2**24 + 1 and 1: summed as floats they would round to 2**24 and cancel out.
        wide = Rect(0, 0, 2**24 + 1, 1)
        self.assertEqual(iou(wide, Rect(0, 0, 1, 1)), 8388608.0)


class TestSuppress(unittest.TestCase):
    def test_keeps_higher_score_of_overlapping_pair(self) -> None:
        low = det(0.5, (0, 0, 10, 10), class_index=1)
        high = det(0.9, (1, 1, 11, 11), class_index=2)
        out = suppress([low, high], limit=15, overlap_threshold=0.3)
        self.assertEqual(out, [high])

    def test_limit_zero_returns_empty(self) -> None:
        boxes = [det(0.9, (0, 0, 10, 10)), det(0.8, (100, 100, 110, 110))]
        self.assertEqual(suppress(boxes, limit=0, overlap_threshold=0.3), [])
        self.assertEqual(suppress(boxes, limit=-1, overlap_threshold=0.3), [])

    def test_empty_input(self) -> None:
        self.assertEqual(suppress([], limit=15, overlap_threshold=0.3), [])

    def test_result_bounded_by_limit_and_input(self) -> None:
        boxes = [det(0.1 * i, (20 * i, 0, 20 * i + 10, 10)) for i in range(1, 8)]
        for limit in range(0, 10):
            out = suppress(boxes, limit=limit, overlap_threshold=0.3, overlap_fn=standard_iou)
            self.assertLessEqual(len(out), limit)
            self.assertLessEqual(len(out), len(boxes))
        self.assertEqual(len(suppress(boxes, 100, 0.3, overlap_fn=standard_iou)), len(boxes))

    def test_sorted_by_descending_score(self) -> None:
        boxes = [det(s, (20 * i, 0, 20 * i + 10, 10)) for i, s in enumerate([0.4, 0.9, 0.6])]
        out = suppress(boxes, limit=15, overlap_threshold=0.3, overlap_fn=standard_iou)
        self.assertEqual([d.score for d in out], [0.9, 0.6, 0.4])

    def test_equal_scores_keep_input_order(self) -> None:
        boxes = [det(0.7, (20 * i, 0, 20 * i + 10, 10), class_index=i) for i in range(4)]
        out = suppress(boxes, limit=15, overlap_threshold=0.3, overlap_fn=standard_iou)
        self.assertEqual([d.class_index for d in out], [0, 1, 2, 3])

    def test_legacy_overlap_suppresses_disjoint_boxes(self) -> None:
        a = det(0.9, (0, 0, 10, 10))
        b = det(0.8, (50, 50, 60, 60))
        self.assertEqual(suppress([a, b], limit=15, overlap_threshold=0.3), [a])
        self.assertEqual(suppress([a, b], limit=15, overlap_threshold=0.3, overlap_fn=standard_iou), [a, b])

    def test_overlap_threshold_is_strict(self) -> None:
        a = det(0.9, (0, 0, 10, 10))
        b = det(0.8, (0, 0, 10, 10))
        self.assertEqual(suppress([a, b], limit=15, overlap_threshold=1.0), [a, b])

    def test_input_not_mutated(self) -> None:
        boxes = [det(0.2, (0, 0, 10, 10)), det(0.9, (0, 0, 10, 10))]
        snapshot = list(boxes)
        suppress(boxes, limit=15, overlap_threshold=0.3)
        self.assertEqual(boxes, snapshot)

    def test_suppressed_box_cannot_suppress_others(self) -> None:
        # a overlaps b, b overlaps c, a and c are disjoint.
        a = det(0.9, (0, 0, 10, 10))
        b = det(0.8, (6, 0, 16, 10))
        c = det(0.7, (12, 0, 22, 10))
        self.assertAlmostEqual(standard_iou(a.rect, b.rect), 0.25)
        self.assertAlmostEqual(standard_iou(b.rect, c.rect), 0.25)
        out = suppress([c, b, a], limit=15, overlap_threshold=0.2, overlap_fn=standard_iou)
        self.assertEqual(out, [a, c])

    def test_stops_once_nothing_is_active(self) -> None:
        calls = []

        def counting_iou(r1, r2):
            calls.append((r1, r2))
            return standard_iou(r1, r2)

        a = det(0.9, (0, 0, 10, 10))
        b = det(0.8, (0, 0, 10, 9))
        c = det(0.7, (1, 0, 10, 10))
        d = det(0.6, (0, 1, 10, 10))
        out = suppress([d, c, b, a], limit=15, overlap_threshold=0.3, overlap_fn=counting_iou)
        self.assertEqual(out, [a])
        self.assertEqual(len(calls), 3)

        calls.clear()
        far = det(0.5, (100, 100, 110, 110))
        out = suppress([a, far], limit=15, overlap_threshold=0.3, overlap_fn=counting_iou)
        self.assertEqual(out, [a, far])
        # far is the last active box once selected; nothing is left to compare.
        self.assertEqual(len(calls), 1)

    def test_nms_config(self) -> None:
        a = det(0.9, (0, 0, 10, 10))
        b = det(0.8, (50, 50, 60, 60))
        self.assertEqual(nms([a, b]), [a])
        self.assertEqual(nms([a, b], NMSConfig(overlap="standard")), [a, b])
        self.assertEqual(nms([a, b], NMSConfig(limit=1, overlap="standard")), [a])
        with self.assertRaises(ValueError):
            NMSConfig(overlap="min")


if __name__ == "__main__":
    unittest.main()
