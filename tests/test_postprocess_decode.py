import unittest

import numpy as np

from yolov4_kit.postprocess import Yolov4PostConfig, Yolov4Postprocessor, decode_outputs


def _row(cx, cy, w, h, *scores):
    return [cx, cy, w, h, 0.0, *scores]


class TestYolov4Decode(unittest.TestCase):
    def test_single_row_two_classes(self) -> None:
        out = np.array([_row(0.5, 0.5, 0.2, 0.2, 0.9, 0.1)], dtype=np.float32)
        candidates = decode_outputs([out], (100, 100), num_classes=2, conf_threshold=0.25)
        self.assertEqual(len(candidates), 2)
        self.assertEqual(len(candidates[0]), 1)
        self.assertEqual(candidates[1], [])
        box = candidates[0][0]
        self.assertTrue(np.allclose(box.rect, (40.0, 40.0, 20.0, 20.0), atol=1e-4))
        self.assertAlmostEqual(box.score, 0.9, places=6)
        self.assertEqual(box.class_index, 0)

    def test_threshold_is_strict(self) -> None:
        # 0.5 and 0.25 are exact in float32, so the comparison is at the boundary.
        out = np.array([_row(0.5, 0.5, 0.2, 0.2, 0.5, 0.25)], dtype=np.float32)
        candidates = decode_outputs([out], (100, 100), num_classes=2, conf_threshold=0.5)
        self.assertEqual(candidates, [[], []])
        candidates = decode_outputs([out], (100, 100), num_classes=2, conf_threshold=0.25)
        self.assertEqual(len(candidates[0]), 1)
        self.assertEqual(candidates[1], [])

    def test_row_feeds_several_classes(self) -> None:
        out = np.array([_row(0.5, 0.5, 0.2, 0.2, 0.8, 0.7, 0.1)], dtype=np.float32)
        candidates = decode_outputs([out], (100, 100), num_classes=3, conf_threshold=0.5)
        self.assertEqual([len(c) for c in candidates], [1, 1, 0])
        self.assertEqual(candidates[0][0].rect, candidates[1][0].rect)
        self.assertEqual(candidates[1][0].class_index, 1)

    def test_non_square_image_scaling(self) -> None:
        out = np.array([_row(0.5, 0.25, 0.5, 0.5, 0.9)], dtype=np.float32)
        candidates = decode_outputs([out], (200, 100), num_classes=1, conf_threshold=0.5)
        self.assertTrue(np.allclose(candidates[0][0].rect, (50.0, 0.0, 100.0, 50.0), atol=1e-4))

    def test_outputs_concatenate_in_order(self) -> None:
        first = np.array([_row(0.1, 0.1, 0.1, 0.1, 0.6)], dtype=np.float32)
        second = np.array(
            [_row(0.5, 0.5, 0.1, 0.1, 0.7), _row(0.9, 0.9, 0.1, 0.1, 0.8)],
            dtype=np.float32,
        )
        candidates = decode_outputs([first, second], (10, 10), num_classes=1, conf_threshold=0.5)
        self.assertEqual([round(c.score, 3) for c in candidates[0]], [0.6, 0.7, 0.8])

    def test_unsorted_rows_are_all_scanned(self) -> None:
        out = np.array(
            [_row(0.5, 0.5, 0.1, 0.1, 0.1), _row(0.5, 0.5, 0.1, 0.1, 0.2), _row(0.5, 0.5, 0.1, 0.1, 0.95)],
            dtype=np.float32,
        )
        candidates = decode_outputs([out], (10, 10), num_classes=1, conf_threshold=0.5)
        self.assertEqual(len(candidates[0]), 1)

    def test_empty_outputs(self) -> None:
        empty = np.zeros((0, 7), dtype=np.float32)
        self.assertEqual(decode_outputs([empty, empty], (100, 100), num_classes=2, conf_threshold=0.25), [[], []])
        self.assertEqual(decode_outputs([], (100, 100), num_classes=2, conf_threshold=0.25), [[], []])
        self.assertEqual(decode_outputs([np.array([])], (100, 100), num_classes=2, conf_threshold=0.25), [[], []])

    def test_batch_axis_is_dropped(self) -> None:
        out = np.array([[_row(0.5, 0.5, 0.2, 0.2, 0.9)]], dtype=np.float32)
        candidates = decode_outputs([out], (100, 100), num_classes=1, conf_threshold=0.5)
        self.assertEqual(len(candidates[0]), 1)

    def test_extra_columns_are_ignored(self) -> None:
        # Labels file lists fewer classes than the network emits.
        out = np.array([_row(0.5, 0.5, 0.2, 0.2, 0.1, 0.9)], dtype=np.float32)
        candidates = decode_outputs([out], (100, 100), num_classes=1, conf_threshold=0.5)
        self.assertEqual(candidates, [[]])

    def test_too_few_columns_raises(self) -> None:
        out = np.zeros((3, 6), dtype=np.float32)
        with self.assertRaises(ValueError):
            decode_outputs([out], (100, 100), num_classes=2, conf_threshold=0.5)

    def test_batch_larger_than_one_raises(self) -> None:
        out = np.zeros((2, 3, 7), dtype=np.float32)
        with self.assertRaises(ValueError):
            decode_outputs([out], (100, 100), num_classes=2, conf_threshold=0.5)


class TestYolov4Postprocessor(unittest.TestCase):
    def setUp(self) -> None:
        self.names = ["person", "car"]
        self.colors = [(255, 0, 0), (0, 255, 0)]

    def test_process_dedupes_per_class(self) -> None:
        out = np.array(
            [
                _row(0.5, 0.5, 0.2, 0.2, 0.9, 0.0),
                _row(0.5, 0.5, 0.2, 0.2, 0.8, 0.0),  # duplicate person
                _row(0.5, 0.5, 0.2, 0.2, 0.0, 0.7),  # same box, other class
                _row(0.1, 0.1, 0.1, 0.1, 0.6, 0.0),  # separate person
            ],
            dtype=np.float32,
        )
        post = Yolov4Postprocessor(Yolov4PostConfig(conf_threshold=0.5, nms_threshold=0.4))
        result = post.process([out], (100, 100), self.names, self.colors)
        self.assertEqual([d.class_name for d in result], ["person", "person", "car"])
        self.assertEqual([d.id for d in result], [0, 1, 2])
        self.assertEqual([round(d.confidence, 3) for d in result], [0.9, 0.6, 0.7])
        self.assertEqual(result[2].color, (0, 255, 0))
        self.assertEqual(result.task_name, "infer_yolo_v4")

    def test_process_empty(self) -> None:
        post = Yolov4Postprocessor(Yolov4PostConfig())
        result = post.process([np.zeros((0, 7), dtype=np.float32)], (100, 100), self.names, self.colors)
        self.assertEqual(len(result), 0)

    def test_ids_are_contiguous(self) -> None:
        rng = np.random.default_rng(3)
        rows = np.zeros((200, 7), dtype=np.float32)
        rows[:, 0:2] = rng.uniform(0.1, 0.9, size=(200, 2))
        rows[:, 2:4] = rng.uniform(0.01, 0.2, size=(200, 2))
        rows[:, 5:7] = rng.uniform(0.0, 1.0, size=(200, 2))
        post = Yolov4Postprocessor(Yolov4PostConfig(conf_threshold=0.3, nms_threshold=0.3))
        result = post.process([rows], (640, 480), self.names, self.colors)
        self.assertGreater(len(result), 0)
        self.assertEqual([d.id for d in result], list(range(len(result))))
        # class-major order
        classes = [self.names.index(d.class_name) for d in result]
        self.assertEqual(classes, sorted(classes))

    def test_missing_colors_raises(self) -> None:
        post = Yolov4Postprocessor(Yolov4PostConfig())
        with self.assertRaises(ValueError):
            post.process([], (10, 10), self.names, self.colors[:1])


if __name__ == "__main__":
    unittest.main()
