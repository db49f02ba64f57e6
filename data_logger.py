# data_logger.py
import csv
import os
import threading
from datetime import datetime

LOG_HEADER = ["Timestamp", "Event Type", "Blink Count", "Details"]


class DataLogger:
    """
    Appends blink-control events (gestures, actions, alerts, voice messages)
    to a daily CSV file under the log directory.
    """

    def __init__(self, log_dir="logs", echo=True):
        self.log_dir = log_dir
        self.echo = echo
        os.makedirs(self.log_dir, exist_ok=True)
        self.current_date = None
        self.file_path = None
        self._lock = threading.Lock()  # the voice capture thread logs too
        self._update_log_file()

    def _update_log_file(self):
        """Switch to a new file when the date changes."""
        today = datetime.now().strftime("%Y-%m-%d")
        if today != self.current_date:
            self.current_date = today
            self.file_path = os.path.join(self.log_dir, f"{today}_events.csv")

            if not os.path.exists(self.file_path):
                with open(self.file_path, mode="w", newline="") as file:
                    csv.writer(file).writerow(LOG_HEADER)

    def log_event(self, event_type, details="", blink_count=None):
        """
        Log an event with the current timestamp.

        Args:
            event_type: Short event name, e.g. "Gesture Detected"
            details: Free-form detail text
            blink_count: Blink count that triggered the event (optional)
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        count = "" if blink_count is None else blink_count
        with self._lock:
            self._update_log_file()
            with open(self.file_path, mode="a", newline="") as file:
                csv.writer(file).writerow([timestamp, event_type, count, details])

        if self.echo:
            print(f"[LOG] {timestamp} - {event_type}: {details}")

    def read_events(self):
        """Return today's events as a list of dicts keyed by the CSV header."""
        with self._lock:
            self._update_log_file()
            with open(self.file_path, mode="r", newline="") as file:
                return list(csv.DictReader(file))
