# actions/emergency.py
import os
import threading
import urllib.parse
import webbrowser
from datetime import datetime

import pygame

EMERGENCY_SUBJECT = "EMERGENCY ALERT - Eye Blink Control System"


def play_alert_sound(file_path):
    """Play the siren on a daemon thread so the frame loop keeps running."""

    def _play():
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init()
            pygame.mixer.music.load(file_path)
            pygame.mixer.music.play()
        except Exception as e:
            print(f"Error playing alert sound: {e}")

    thread = threading.Thread(target=_play, daemon=True)
    thread.start()
    return thread


def build_mailto(email, when=None):
    """
    Compose the mailto: link for the emergency contact

    Args:
        email: Emergency contact address
        when: datetime of the alert (defaults to now)

    Returns:
        str: mailto URL with subject and body

    Raises:
        ValueError: invalid email address
    """
    if not email or "@" not in email:
        raise ValueError("Please enter a valid email address")

    when = when or datetime.now()
    body = (
        "EMERGENCY ALERT!\n\n"
        "An emergency alert has been triggered from the Eye Blink-Based Appliance Control System.\n\n"
        f"Time: {when.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        "Please respond immediately."
    )
    return (
        f"mailto:{email}"
        f"?subject={urllib.parse.quote(EMERGENCY_SUBJECT)}"
        f"&body={urllib.parse.quote(body)}"
    )


class EmergencyAlert:
    """
    Emergency alert raised by the emergency blink gesture
    - Plays the configured siren
    - Opens an email draft to the emergency contact in the default mail client
    - Stays active until dismissed
    """

    def __init__(self, config=None, logger=None):
        """
        Args:
            config: Configuration dictionary with an emergency section
            logger: DataLogger for alert events (optional)
        """
        self.config = config or {}
        self.logger = logger

        emergency_config = self.config.get('emergency', {})
        self.siren_path = emergency_config.get('siren_path')
        self.contact_email = emergency_config.get('contact_email', '')
        self.open_mail_client = emergency_config.get('open_mail_client', True)

        self.is_active = False
        self.triggered_at = None

    def trigger(self):
        """Raise the alert"""
        self.is_active = True
        self.triggered_at = datetime.now()
        print("EMERGENCY ALERT raised")

        if self.logger is not None:
            self.logger.log_event("Emergency Alert", f"Contact={self.contact_email or 'not configured'}")

        if self.siren_path and os.path.exists(self.siren_path):
            play_alert_sound(self.siren_path)

        if self.contact_email and self.open_mail_client:
            self.send_email(self.contact_email)

    def send_email(self, email):
        """
        Open the emergency email draft

        Returns:
            bool: True if the mail client was opened
        """
        try:
            url = build_mailto(email, self.triggered_at)
        except ValueError as e:
            print(f"Invalid emergency contact: {e}")
            return False

        try:
            opened = webbrowser.open(url)
        except Exception as e:
            print(f"Error opening mail client: {e}")
            return False

        if opened and self.logger is not None:
            self.logger.log_event("Emergency Email Drafted", f"To={email}")
        return opened

    def dismiss(self):
        self.is_active = False
