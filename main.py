# main.py - Eye Blink Appliance Control System
import copy
import sys
import time

import cv2
import numpy as np
import yaml

from vision.eyes import EyeDetector, calculate_frame_ear, EAR_EPSILON
from metrics.session import DetectionSession
from actions.dispatcher import ActionDispatcher, ActionId
from actions.appliances import ApplianceController
from actions.emergency import EmergencyAlert
from actions.voice import VoiceMessageChannel
from data_logger import DataLogger


def get_default_config():
    """
    Default configuration, used when the config file is missing or incomplete

    Returns:
        dict: Default configuration values
    """
    return {
        'camera': {'index': 0, 'width': 640, 'height': 480, 'fps': 30, 'mirror_effect': True},
        'detector': {
            'model_path': 'models/face_landmarker.task',
            'min_detection_confidence': 0.5,
            'min_tracking_confidence': 0.5
        },
        'eyes': {'ear_thresh': 0.2, 'ear_epsilon': EAR_EPSILON},
        'blinks': {'min_consecutive_closed_frames': 2},
        'gestures': {'settle_window_s': 1.5},
        'actions': {
            'mapping': {2: 'toggle_light', 3: 'toggle_fan', 5: 'emergency_alert', 6: 'voice_message'}
        },
        'emergency': {'contact_email': '', 'siren_path': None, 'open_mail_client': True},
        'voice': {
            'recipient_email': '',
            'sender': 'BlinkControl Voice Message <onboarding@resend.dev>',
            'api_key_env': 'RESEND_API_KEY',
            'language': 'en-US',
            'listen_timeout_s': 5,
            'phrase_time_limit_s': 15
        },
        'logging': {'log_dir': 'logs'},
        'display': {
            'dashboard_width': 360,
            'show_landmarks': True,
            'show_fps': True,
            'colors': {
                'background': [45, 45, 45],
                'text_primary': [255, 255, 255],
                'text_secondary': [200, 200, 200],
                'state_on': [0, 200, 255],
                'state_off': [120, 120, 120],
                'metric_good': [100, 255, 100],
                'metric_warning': [100, 255, 255],
                'metric_critical': [0, 0, 255],
                'separator': [100, 100, 100]
            }
        }
    }


# Tables that a config file replaces whole instead of merging into the defaults
REPLACED_TABLES = {'mapping'}


def merge_config(base, override):
    """Recursively overlay override onto a copy of base"""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if key in REPLACED_TABLES:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path):
    """
    Load configuration from YAML file with fallback defaults

    Args:
        config_path: Path to configuration file

    Returns:
        dict: Configuration dictionary
    """
    try:
        with open(config_path, 'r') as file:
            loaded = yaml.safe_load(file) or {}
        print(f"Configuration loaded from {config_path}")
        return merge_config(get_default_config(), loaded)
    except FileNotFoundError:
        print(f"Config file {config_path} not found. Using defaults.")
        return get_default_config()
    except Exception as e:
        print(f"Error loading config: {e}. Using defaults.")
        return get_default_config()


class BlinkControlSystem:
    """
    Eye blink appliance control system
    Runs the frame loop: landmarks -> EAR -> blink debounce -> gesture -> action
    """

    def __init__(self, config_path="configs/default.yaml", config=None, landmark_provider=None,
                 on_blink=None, on_gesture=None, clock=time.monotonic):
        """
        Initialize the system and wire every component from the configuration

        Args:
            config_path: Path to configuration YAML file
            config: Configuration dictionary, overrides config_path when given
            landmark_provider: Object with detect(frame, timestamp); defaults to EyeDetector
            on_blink: Optional hook called for every detected blink
            on_gesture: Optional hook called with the blink count of every finished gesture;
                        defaults to the action dispatcher
            clock: Monotonic time source
        """
        if config is not None:
            self.config = merge_config(get_default_config(), config)
        else:
            self.config = load_config(config_path)

        self.clock = clock
        self.on_blink = on_blink
        self.on_gesture = on_gesture

        self.logger = DataLogger(self.config['logging']['log_dir'])
        self.eye_detector = landmark_provider or EyeDetector(self.config)

        # Action effects
        self.appliances = ApplianceController(self.logger)
        self.emergency = EmergencyAlert(self.config, self.logger)
        self.voice = VoiceMessageChannel(self.config, self.logger)
        self.dispatcher = ActionDispatcher(self.config, handlers={
            ActionId.TOGGLE_LIGHT: self.appliances.toggle_light,
            ActionId.TOGGLE_FAN: self.appliances.toggle_fan,
            ActionId.EMERGENCY_ALERT: self.emergency.trigger,
            ActionId.VOICE_MESSAGE: self.voice.open,
        })

        # System state
        self.session = self._new_session()
        self.is_initialized = False
        self.is_running = False
        self.error = None
        self.frame_count = 0
        self.last_blink_time = None
        self.last_gesture_count = None

    def _new_session(self):
        return DetectionSession(self.config, on_blink=self._handle_blink,
                                on_gesture=self._handle_gesture)

    def _handle_blink(self):
        self.last_blink_time = self.clock()
        if self.on_blink is not None:
            self.on_blink()

    def _handle_gesture(self, blink_count):
        self.last_gesture_count = blink_count
        if self.on_gesture is not None:
            self.on_gesture(blink_count)
        else:
            self.dispatch_gesture(blink_count)

    def dispatch_gesture(self, blink_count):
        """
        Log a finished gesture and run its mapped action

        Returns:
            ActionId | None: The action that ran
        """
        action_id = self.dispatcher.dispatch(blink_count)
        details = action_id.value if action_id is not None else "no action"
        self.logger.log_event("Gesture Detected", details, blink_count=blink_count)
        return action_id

    def initialize(self):
        """
        Prepare the landmark provider

        Returns:
            bool: True on success; on failure the system stays uninitialized and may be retried
        """
        self.error = None
        initializer = getattr(self.eye_detector, 'initialize', None)

        try:
            ready = initializer() if initializer is not None else True
        except Exception as e:
            print(f"Failed to initialize face detector: {e}")
            ready = False

        if not ready:
            self.error = getattr(self.eye_detector, 'error', None) or \
                "Failed to initialize face detector. Please try again."

        self.is_initialized = bool(ready)
        return self.is_initialized

    def start(self, frame_source, render_target=None):
        """
        Run the per-frame loop until stop() is called or the source runs dry

        Args:
            frame_source: Object with read() -> (ok, frame), e.g. cv2.VideoCapture
            render_target: Optional callable(display_frame, results) called every frame
        """
        if self.is_running:
            return
        if not self.is_initialized:
            print("Face landmarker not initialized")
            return

        self.session = self._new_session()
        self.frame_count = 0
        self.is_running = True

        while self.is_running:
            self.step(frame_source, render_target)

    def step(self, frame_source, render_target=None):
        """
        One loop cycle; errors are reported and the loop carries on

        Returns:
            dict | None: Frame results, None when the frame was not processed
        """
        try:
            ret, frame = frame_source.read()
            if not ret:
                print("Failed to capture frame from camera")
                self.stop()
                return None

            results, display_frame = self.process_frame(frame)

            if render_target is not None:
                render_target(display_frame, results)
            return results

        except Exception as e:
            print(f"Error processing frame: {e}")
            return None

    def stop(self):
        """Halt the loop and drop in-flight blink and gesture state"""
        self.is_running = False
        self.session.reset()

    def process_frame(self, frame, timestamp=None):
        """
        Process a single frame through the pipeline

        Args:
            frame: Input camera frame
            timestamp: Monotonic timestamp (optional)

        Returns:
            tuple: (results_dict, display_frame)
        """
        if timestamp is None:
            timestamp = self.clock()
        self.frame_count += 1

        if self.config['camera']['mirror_effect']:
            display_frame = cv2.flip(frame, 1)
        else:
            display_frame = frame.copy()

        landmarks = self.eye_detector.detect(display_frame, timestamp)

        eye_data = {'left_ear': 0.0, 'right_ear': 0.0, 'avg_ear': 0.0, 'eyes_detected': False}
        avg_ear = None
        if landmarks:
            left_ear, right_ear, avg_ear = calculate_frame_ear(
                landmarks, self.config['eyes'].get('ear_epsilon', EAR_EPSILON))
            eye_data.update({
                'left_ear': left_ear,
                'right_ear': right_ear,
                'avg_ear': avg_ear,
                'eyes_detected': True
            })

            if self.config['display']['show_landmarks'] and hasattr(self.eye_detector, 'draw_eye_landmarks'):
                self.eye_detector.draw_eye_landmarks(display_frame, landmarks)

        session_result = self.session.process(avg_ear, timestamp)

        results = {
            'eyes': eye_data,
            'blinks': session_result['blinks'],
            'gestures': session_result['gestures'],
            'appliances': self.appliances.status(),
            'emergency_active': self.emergency.is_active,
            'voice_listening': self.voice.is_listening,
            'last_action': self.dispatcher.last_action,
            'last_gesture_count': self.last_gesture_count,
            'blink_flash': self.last_blink_time is not None and timestamp - self.last_blink_time < 0.3,
            'timestamp': timestamp,
            'frame_count': self.frame_count
        }

        return results, display_frame

    def draw_dashboard(self, frame, results):
        """
        Draw the status panel shown next to the camera preview

        Args:
            frame: Frame to use for dimensions
            results: Processing results from the system

        Returns:
            numpy.ndarray: Dashboard image
        """
        height = frame.shape[0]
        dashboard_width = self.config['display']['dashboard_width']
        colors = self.config['display']['colors']

        dashboard = np.zeros((height, dashboard_width, 3), dtype=np.uint8)
        dashboard[:] = colors['background']

        y_position = 40
        cv2.putText(dashboard, "BLINK CONTROL", (20, y_position),
                    cv2.FONT_HERSHEY_DUPLEX, 0.8, colors['text_primary'], 2)
        y_position += 40

        # Detection
        eyes = results['eyes']
        if eyes['eyes_detected']:
            face_color = colors['metric_good']
            cv2.putText(dashboard, f"FACE: DETECTED  EAR: {eyes['avg_ear']:.3f}", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, face_color, 1)
        else:
            cv2.putText(dashboard, "FACE: NOT DETECTED", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['metric_critical'], 1)
        y_position += 25

        gestures = results['gestures']
        count = gestures['current_blink_count']
        count_color = colors['metric_warning'] if gestures['gesture_open'] else colors['text_secondary']
        cv2.putText(dashboard, f"BLINKS: {count}", (20, y_position),
                    cv2.FONT_HERSHEY_DUPLEX, 0.7, count_color, 2)
        if gestures['gesture_open']:
            cv2.putText(dashboard, f"settles in {gestures['time_until_settle']:.1f}s",
                        (160, y_position), cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['text_secondary'], 1)
        if results['blink_flash']:
            cv2.circle(dashboard, (dashboard_width - 30, y_position - 35), 10, colors['metric_good'], -1)
        y_position += 30

        cv2.line(dashboard, (10, y_position), (dashboard_width - 10, y_position), colors['separator'], 2)
        y_position += 30

        # Appliances
        cv2.putText(dashboard, "APPLIANCES:", (20, y_position),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, colors['text_primary'], 1)
        y_position += 25
        for name, state in (("Light", results['appliances']['light']), ("Fan", results['appliances']['fan'])):
            color = colors['state_on'] if state else colors['state_off']
            cv2.putText(dashboard, f"{name}: {'ON' if state else 'OFF'}", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)
            y_position += 20
        y_position += 15

        # Gesture legend
        cv2.putText(dashboard, "GESTURES:", (20, y_position),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, colors['text_primary'], 1)
        y_position += 25
        for line in self.dispatcher.describe():
            cv2.putText(dashboard, line, (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['text_secondary'], 1)
            y_position += 20
        y_position += 15

        if results['last_gesture_count'] is not None:
            cv2.putText(dashboard, f"LAST GESTURE: {results['last_gesture_count']} blinks", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['text_secondary'], 1)
            y_position += 20

        if results['last_action'] is not None:
            cv2.putText(dashboard, f"LAST ACTION: {results['last_action'].value}", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['text_secondary'], 1)
            y_position += 30

        if results['voice_listening']:
            cv2.putText(dashboard, "LISTENING FOR VOICE MESSAGE...", (20, y_position),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, colors['metric_warning'], 1)
            y_position += 30

        if results['emergency_active']:
            alert_height = 50
            cv2.rectangle(dashboard, (10, y_position), (dashboard_width - 10, y_position + alert_height),
                          colors['metric_critical'], -1)
            cv2.putText(dashboard, "EMERGENCY ALERT!", (dashboard_width // 2 - 100, y_position + 32),
                        cv2.FONT_HERSHEY_DUPLEX, 0.7, colors['text_primary'], 2)

        return dashboard

    def cleanup(self):
        cleanup = getattr(self.eye_detector, 'cleanup', None)
        if cleanup is not None:
            cleanup()


def main(argv=None):
    """
    Run the blink control system on the default camera
    """
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else "configs/default.yaml"

    system = BlinkControlSystem(config_path)
    if not system.initialize():
        print(system.error)
        return 1

    camera_config = system.config['camera']
    cap = cv2.VideoCapture(camera_config['index'])
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, camera_config['width'])
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, camera_config['height'])
    cap.set(cv2.CAP_PROP_FPS, camera_config['fps'])

    actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    actual_fps = cap.get(cv2.CAP_PROP_FPS)

    print("Starting Eye Blink Appliance Control")
    print(f"Camera: {actual_width}x{actual_height} @ {actual_fps:.1f} FPS")
    print("\nGestures:")
    for line in system.dispatcher.describe():
        print(f"  {line}")
    print("\nControls:")
    print("  'q' - Quit application")
    print("  'r' - Reset blink count")
    print("  'd' - Dismiss emergency alert")
    print("  's' - Show configuration values")

    start_time = time.time()

    def render(display_frame, results):
        dashboard = system.draw_dashboard(display_frame, results)
        combined = np.hstack([display_frame, dashboard])

        if system.config['display']['show_fps']:
            elapsed_time = time.time() - start_time
            fps = system.frame_count / elapsed_time if elapsed_time > 0 else 0
            cv2.putText(combined, f"Frame: {results['frame_count']} | FPS: {fps:.1f}",
                        (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1)

        cv2.imshow('Blink Control', combined)

        key = cv2.waitKey(1) & 0xFF
        if key == ord('q'):
            system.stop()
        elif key == ord('r'):
            system.session.reset()
            print("Blink count reset!")
        elif key == ord('d'):
            system.emergency.dismiss()
        elif key == ord('s'):
            print("\nCurrent Configuration:")
            print(f"  EAR threshold: {system.config['eyes']['ear_thresh']}")
            print(f"  Min closed frames: {system.config['blinks']['min_consecutive_closed_frames']}")
            print(f"  Settle window: {system.config['gestures']['settle_window_s']}s")

    try:
        system.start(cap, render)
    except KeyboardInterrupt:
        print("System interrupted by user")
        system.stop()
    finally:
        cap.release()
        cv2.destroyAllWindows()
        system.cleanup()

        total_time = time.time() - start_time
        print("\nSystem Statistics:")
        print(f"  Total runtime: {total_time:.1f} seconds")
        print(f"  Frames processed: {system.frame_count}")
        if total_time > 0:
            print(f"  Average FPS: {system.frame_count / total_time:.1f}")
        print("System shutdown complete")

    return 0


if __name__ == "__main__":
    sys.exit(main())
