# vision/eyes.py
import math
import os
import time
import urllib.request
from collections import namedtuple

import cv2
import mediapipe as mp

# MediaPipe Face Landmarker indices used for the 4-point EAR
# Left eye (top lid, bottom lid, inner corner, outer corner)
LEFT_EYE_TOP = 159
LEFT_EYE_BOTTOM = 145
LEFT_EYE_INNER = 33
LEFT_EYE_OUTER = 133

# Right eye
RIGHT_EYE_TOP = 386
RIGHT_EYE_BOTTOM = 374
RIGHT_EYE_INNER = 362
RIGHT_EYE_OUTER = 263

LEFT_EYE_EAR_INDICES = (LEFT_EYE_TOP, LEFT_EYE_BOTTOM, LEFT_EYE_INNER, LEFT_EYE_OUTER)
RIGHT_EYE_EAR_INDICES = (RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM, RIGHT_EYE_INNER, RIGHT_EYE_OUTER)

# Eye contours for the overlay
LEFT_EYE_INDICES = [33, 7, 163, 144, 145, 153, 154, 155, 133, 173, 157, 158, 159, 160, 161, 246]
RIGHT_EYE_INDICES = [362, 382, 381, 380, 374, 373, 390, 249, 263, 466, 388, 387, 386, 385, 384, 398]

EAR_EPSILON = 1e-4

FACE_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

LandmarkPoint = namedtuple("LandmarkPoint", ["x", "y", "z"], defaults=[0.0])


def _distance(a, b):
    return math.hypot(a.x - b.x, a.y - b.y)


def calculate_ear(landmarks, top_idx, bottom_idx, inner_idx, outer_idx, epsilon=EAR_EPSILON):
    """
    Eye Aspect Ratio for a single eye from four landmarks.

    EAR = |top - bottom| / (|inner - outer| + epsilon)

    The epsilon keeps the ratio finite when both corners collapse onto the
    same point (occluded or degenerate detections).

    Args:
        landmarks: Positional sequence of points exposing .x and .y
        top_idx, bottom_idx: Upper and lower lid indices
        inner_idx, outer_idx: Eye corner indices
        epsilon: Guard added to the horizontal distance

    Returns:
        float: Eye Aspect Ratio
    """
    vertical = _distance(landmarks[top_idx], landmarks[bottom_idx])
    horizontal = _distance(landmarks[inner_idx], landmarks[outer_idx])
    return vertical / (horizontal + epsilon)


def calculate_frame_ear(landmarks, epsilon=EAR_EPSILON):
    """Return (left_ear, right_ear, avg_ear) for one landmark frame."""
    left_ear = calculate_ear(landmarks, *LEFT_EYE_EAR_INDICES, epsilon=epsilon)
    right_ear = calculate_ear(landmarks, *RIGHT_EYE_EAR_INDICES, epsilon=epsilon)
    return left_ear, right_ear, (left_ear + right_ear) / 2.0


class EyeDetector:
    """
    Landmark provider backed by the MediaPipe Face Landmarker (Tasks API)
    - Loads the face landmarker model on initialize()
    - detect() returns the landmarks of the first face, or None
    - Draws the eye contours used for EAR on the preview frame
    """

    def __init__(self, config=None):
        """
        Initialize Eye Detector with configuration

        Args:
            config: Configuration dictionary with detector parameters
        """
        self.config = config or {}

        detector_config = self.config.get('detector', {})

        self.model_path = detector_config.get('model_path', 'models/face_landmarker.task')
        self.model_url = detector_config.get('model_url', FACE_LANDMARKER_MODEL_URL)
        self.min_detection_confidence = detector_config.get('min_detection_confidence', 0.5)
        self.min_tracking_confidence = detector_config.get('min_tracking_confidence', 0.5)

        self.face_landmarker = None
        self.error = None
        self._last_timestamp_ms = -1

    def _ensure_model(self):
        if os.path.exists(self.model_path):
            return
        model_dir = os.path.dirname(self.model_path)
        if model_dir:
            os.makedirs(model_dir, exist_ok=True)
        print(f"Downloading face landmarker model to {self.model_path}...")
        urllib.request.urlretrieve(self.model_url, self.model_path)

    def initialize(self):
        """
        Load the face landmarker model

        Returns:
            bool: True when the detector is ready; failures are reported, not raised
        """
        if self.face_landmarker is not None:
            return True

        try:
            self.error = None
            self._ensure_model()

            base_options = mp.tasks.BaseOptions(model_asset_path=self.model_path)
            options = mp.tasks.vision.FaceLandmarkerOptions(
                base_options=base_options,
                running_mode=mp.tasks.vision.RunningMode.VIDEO,
                num_faces=1,
                min_face_detection_confidence=self.min_detection_confidence,
                min_face_presence_confidence=self.min_tracking_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False
            )
            self.face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
            self._last_timestamp_ms = -1
            print("Face landmarker initialized")
            return True

        except Exception as e:
            print(f"Failed to initialize face detector: {e}")
            self.error = "Failed to initialize face detector. Please try again."
            self.face_landmarker = None
            return False

    def detect(self, frame, timestamp=None):
        """
        Run landmark inference on one BGR frame

        Args:
            frame: Input frame (BGR format)
            timestamp: Monotonic time in seconds (optional)

        Returns:
            list | None: Landmarks of the first detected face, None when no face
        """
        if self.face_landmarker is None:
            return None

        if timestamp is None:
            timestamp = time.monotonic()

        # VIDEO mode rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)
        results = self.face_landmarker.detect_for_video(mp_image, timestamp_ms)

        if not results.face_landmarks:
            return None
        return results.face_landmarks[0]

    def draw_eye_landmarks(self, frame, landmarks):
        """
        Draw eye contours and the EAR points on the frame

        Args:
            frame: Frame to draw on
            landmarks: Face landmarks (normalized coordinates)
        """
        height, width = frame.shape[:2]

        for idx in LEFT_EYE_INDICES + RIGHT_EYE_INDICES:
            point = landmarks[idx]
            cv2.circle(frame, (int(point.x * width), int(point.y * height)), 1, (238, 211, 34), -1)

        for idx in LEFT_EYE_EAR_INDICES + RIGHT_EYE_EAR_INDICES:
            point = landmarks[idx]
            cv2.circle(frame, (int(point.x * width), int(point.y * height)), 3, (0, 0, 255), -1)

    def cleanup(self):
        """Release MediaPipe resources"""
        if self.face_landmarker is not None:
            self.face_landmarker.close()
            self.face_landmarker = None
