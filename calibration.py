# calibration.py
import time
from datetime import datetime

import cv2
import numpy as np
import yaml

from main import load_config
from vision.eyes import EyeDetector, calculate_frame_ear


def closed_runs(samples, ear_threshold):
    """
    Split a (timestamp, ear) series into runs of sub-threshold frames

    Returns:
        list: (frames_closed, reopen_timestamp) for every closure that reopened
    """
    runs = []
    length = 0
    for timestamp, ear in samples:
        if ear < ear_threshold:
            length += 1
        elif length > 0:
            runs.append((length, timestamp))
            length = 0
    return runs


def recommend_parameters(phase_data):
    """
    Derive blink parameters from collected calibration phases

    Args:
        phase_data: dict with 'eyes_open', 'eyes_closed' (lists of EAR) and
                    'blink_bursts' (list of (timestamp, ear))

    Returns:
        dict: Recommended configuration sections
    """
    params = {}

    open_ears = np.array(phase_data.get('eyes_open', []))
    closed_ears = np.array(phase_data.get('eyes_closed', []))
    if len(open_ears) == 0 or len(closed_ears) == 0:
        return params

    # Statistical separation with 1.5 sigma margin
    open_mean, open_std = np.mean(open_ears), np.std(open_ears)
    closed_mean, closed_std = np.mean(closed_ears), np.std(closed_ears)
    ear_threshold = closed_mean + 1.5 * closed_std
    ear_threshold = max(ear_threshold, open_mean - 1.5 * open_std)
    ear_threshold = float(np.clip(ear_threshold, 0.1, 0.35))
    params['eyes'] = {'ear_thresh': round(ear_threshold, 3)}

    runs = closed_runs(phase_data.get('blink_bursts', []), ear_threshold)
    if runs:
        lengths = np.array([length for length, _ in runs])
        # Keep most deliberate blinks while still rejecting one-frame jitter
        min_frames = int(max(1, np.percentile(lengths, 25)))
        params['blinks'] = {'min_consecutive_closed_frames': min_frames}

        reopen_times = [ts for length, ts in runs if length >= min_frames]
        gaps = np.diff(reopen_times)
        # Gaps between blinks inside one burst are the short ones
        burst_gaps = gaps[gaps < 2.5]
        if len(burst_gaps) > 0:
            settle_window = float(np.clip(np.max(burst_gaps) * 1.5, 0.8, 3.0))
            params['gestures'] = {'settle_window_s': round(settle_window, 2)}

    return params


class BlinkCalibrator:
    """
    Interactive calibration for blink detection parameters
    Measures open and closed EAR for the current user and camera, then
    records deliberate blink bursts to size the debounce and settle window.
    """

    def __init__(self, config_path="configs/default.yaml"):
        self.config_path = config_path
        self.config = load_config(config_path)
        self.phase_data = {}

    def run_interactive_calibration(self):
        """
        Run every calibration phase

        Returns:
            dict | None: Recommended parameters, None if the camera or detector failed
        """
        print("\n" + "=" * 60)
        print("           BLINK CONTROL CALIBRATION")
        print("=" * 60)
        print("Please ensure good lighting and keep your face centered.")
        print("Press 'q' at any time to exit calibration")
        print("=" * 60)

        input("\nPress ENTER to begin calibration...")

        eye_detector = EyeDetector(self.config)
        if not eye_detector.initialize():
            print(eye_detector.error)
            return None

        cap = cv2.VideoCapture(self.config['camera']['index'])
        if not cap.isOpened():
            print("Error: Could not open webcam")
            eye_detector.cleanup()
            return None

        try:
            print("\nPHASE 1: Keep your eyes OPEN and look at the screen")
            self.phase_data['eyes_open'] = [ear for _, ear in self.run_calibration_phase(
                cap, eye_detector, "EYES OPEN\nLook at the screen", 6)]

            print("\nPHASE 2: Keep your eyes gently CLOSED")
            self.phase_data['eyes_closed'] = [ear for _, ear in self.run_calibration_phase(
                cap, eye_detector, "EYES CLOSED\nKeep eyes gently closed", 6)]

            print("\nPHASE 3: Blink deliberately in bursts of three, pausing between bursts")
            self.phase_data['blink_bursts'] = self.run_calibration_phase(
                cap, eye_detector, "BLINK 3 TIMES, PAUSE\nRepeat until done", 15)

        except KeyboardInterrupt:
            print("\nCalibration interrupted by user")
        finally:
            cap.release()
            cv2.destroyAllWindows()
            eye_detector.cleanup()

        params = recommend_parameters(self.phase_data)
        self.display_calibration_summary(params)
        return params

    def run_calibration_phase(self, cap, detector, instruction_text, duration):
        """
        Collect (timestamp, avg_ear) samples for one phase

        Returns:
            list: Samples from frames with a detected face
        """
        start_time = time.monotonic()
        samples = []

        while time.monotonic() - start_time < duration:
            ret, frame = cap.read()
            if not ret:
                continue

            display_frame = cv2.flip(frame, 1)
            timestamp = time.monotonic()
            landmarks = detector.detect(display_frame, timestamp)
            if landmarks:
                samples.append((timestamp, calculate_frame_ear(landmarks)[2]))

            elapsed = timestamp - start_time
            self.display_calibration_frame(display_frame, instruction_text, min(elapsed / duration, 1.0), elapsed)

            if cv2.waitKey(1) & 0xFF == ord('q'):
                raise KeyboardInterrupt("User interrupted")

        print(f"Collected {len(samples)} data points")
        return samples

    def display_calibration_frame(self, frame, instruction_text, progress, elapsed):
        """Show centered instructions and a progress bar"""
        height, width = frame.shape[:2]
        lines = instruction_text.split('\n')
        text_y_start = height // 2 - (len(lines) * 40) // 2

        overlay = frame.copy()
        cv2.rectangle(overlay, (0, text_y_start - 50), (width, text_y_start + len(lines) * 50 + 20), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

        for i, line in enumerate(lines):
            text_size = cv2.getTextSize(line, cv2.FONT_HERSHEY_DUPLEX, 1.0, 2)[0]
            cv2.putText(frame, line, ((width - text_size[0]) // 2, text_y_start + i * 40),
                        cv2.FONT_HERSHEY_DUPLEX, 1.0, (255, 255, 255), 2)

        bar_width = width - 100
        bar_x, bar_y = 50, height - 80
        cv2.rectangle(frame, (bar_x, bar_y), (bar_x + bar_width, bar_y + 20), (50, 50, 50), -1)
        cv2.rectangle(frame, (bar_x, bar_y), (bar_x + int(bar_width * progress), bar_y + 20), (0, 200, 0), -1)
        cv2.putText(frame, f"Progress: {progress * 100:.0f}% ({elapsed:.1f}s)", (bar_x, bar_y - 10),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)

        cv2.imshow('Calibration', frame)

    def display_calibration_summary(self, params):
        print("\n" + "=" * 60)
        print("            CALIBRATION RESULTS SUMMARY")
        print("=" * 60)

        if not params:
            print("No calibration data collected")
            return

        if 'eyes' in params:
            print(f"EAR Threshold: {params['eyes']['ear_thresh']:.3f} "
                  f"(current: {self.config['eyes']['ear_thresh']})")
        if 'blinks' in params:
            print(f"Min closed frames: {params['blinks']['min_consecutive_closed_frames']} "
                  f"(current: {self.config['blinks']['min_consecutive_closed_frames']})")
        if 'gestures' in params:
            print(f"Settle window: {params['gestures']['settle_window_s']:.2f}s "
                  f"(current: {self.config['gestures']['settle_window_s']}s)")

    def generate_yaml_output(self, params):
        """YAML snippet to paste into configs/default.yaml"""
        if not params:
            return "# No calibration data available"

        header = "# Optimized Parameters from Calibration\n"
        header += f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        return header + yaml.safe_dump(params, default_flow_style=False, sort_keys=True)


def main():
    """Main calibration function"""
    calibrator = BlinkCalibrator("configs/default.yaml")

    response = input("Start calibration? (y/n): ").lower().strip()
    if response != 'y':
        print("Calibration cancelled.")
        return

    params = calibrator.run_interactive_calibration()

    if params:
        yaml_output = calibrator.generate_yaml_output(params)
        print("\nCopy the following YAML to update your configuration:\n")
        print(yaml_output)

        save_yaml = input("\nSave YAML to file? (y/n): ").lower().strip()
        if save_yaml == 'y':
            with open("calibrated_parameters.yaml", "w") as f:
                f.write(yaml_output)
            print("YAML saved to 'calibrated_parameters.yaml'")

    print("\nCalibration process completed!")


if __name__ == "__main__":
    main()
