# actions/voice.py
import html
import os
import threading
from datetime import datetime

import requests
import speech_recognition as sr

RESEND_API_URL = "https://api.resend.com/emails"
VOICE_SUBJECT = "Voice Message from BlinkControl"


def build_voice_message_html(message, time):
    """HTML body for the transcribed voice message email."""
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h1 style="color: #6d28d9;">Voice Message</h1>'
        '<p style="color: #6b7280;">BlinkControl Speech-to-Text</p>'
        '<div style="padding: 25px; border-left: 4px solid #8b5cf6;">'
        f'<p style="font-size: 18px; font-style: italic;">"{html.escape(message)}"</p>'
        '</div>'
        '<table style="width: 100%;">'
        f'<tr><td><b>Recorded At:</b></td><td>{html.escape(time)}</td></tr>'
        '<tr><td><b>Triggered By:</b></td><td>Voice message blink gesture</td></tr>'
        '</table>'
        '</div>'
    )


def send_voice_message(to_email, message, time, api_key, sender, timeout=10, session=None):
    """
    Email a transcribed voice message through the Resend API

    Args:
        to_email: Recipient address
        message: Transcribed text
        time: Human readable recording time
        api_key: Resend API key
        sender: From header
        timeout: HTTP timeout in seconds
        session: requests.Session to use (optional)

    Returns:
        dict: Parsed API response

    Raises:
        ValueError: invalid address or empty message
        requests.RequestException: transport or HTTP error
    """
    if not to_email or "@" not in to_email:
        raise ValueError("Invalid email address")
    if not message or not message.strip():
        raise ValueError("No message provided")

    http = session or requests
    response = http.post(
        RESEND_API_URL,
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        json={
            "from": sender,
            "to": [to_email],
            "subject": VOICE_SUBJECT,
            "html": build_voice_message_html(message, time),
        },
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


class VoiceMessageChannel:
    """
    Voice dictation opened by the voice-message blink gesture
    - Captures one phrase from the microphone on a background thread
    - Transcribes it with the Google recognizer
    - Emails the transcript to the configured recipient
    """

    def __init__(self, config=None, logger=None):
        """
        Initialize Voice Message Channel with configuration

        Args:
            config: Configuration dictionary with a voice section
            logger: DataLogger for voice events (optional)
        """
        self.config = config or {}
        self.logger = logger

        voice_config = self.config.get('voice', {})
        self.recipient_email = voice_config.get('recipient_email', '')
        self.sender = voice_config.get('sender', 'BlinkControl Voice Message <onboarding@resend.dev>')
        self.api_key_env = voice_config.get('api_key_env', 'RESEND_API_KEY')
        self.language = voice_config.get('language', 'en-US')
        self.listen_timeout = voice_config.get('listen_timeout_s', 5)
        self.phrase_time_limit = voice_config.get('phrase_time_limit_s', 15)
        self.request_timeout = voice_config.get('request_timeout_s', 10)

        self.is_listening = False
        self.last_transcript = ""
        self.error = None
        self._thread = None

    def open(self):
        """
        Start listening in the background

        Returns:
            bool: False if a capture is already running
        """
        if self.is_listening:
            return False

        self.is_listening = True
        self.error = None
        if self.logger is not None:
            self.logger.log_event("Voice Channel Opened")

        self._thread = threading.Thread(target=self._capture, daemon=True)
        self._thread.start()
        return True

    def _capture(self):
        transcript = ""
        try:
            transcript = self.listen()
        except sr.WaitTimeoutError:
            self._report_error("No speech detected. Please try again.")
        except sr.UnknownValueError:
            self._report_error("Speech was not understood. Please try again.")
        except sr.RequestError as e:
            self._report_error(f"Speech recognition service error: {e}")
        except (OSError, AttributeError) as e:
            self._report_error(f"Microphone unavailable: {e}")
        finally:
            self.is_listening = False

        if transcript:
            self.deliver(transcript)

    def listen(self):
        """Record one phrase and return its transcript"""
        recognizer = sr.Recognizer()
        with sr.Microphone() as source:
            recognizer.adjust_for_ambient_noise(source, duration=0.5)
            print("Listening for voice message...")
            audio = recognizer.listen(source, timeout=self.listen_timeout,
                                      phrase_time_limit=self.phrase_time_limit)
        return recognizer.recognize_google(audio, language=self.language)

    def deliver(self, transcript, recorded_at=None):
        """
        Email a transcript to the configured recipient

        Returns:
            bool: True when the message was accepted by the email API
        """
        self.last_transcript = transcript
        recorded_at = recorded_at or datetime.now()

        try:
            send_voice_message(
                self.recipient_email,
                transcript,
                recorded_at.strftime("%Y-%m-%d %H:%M:%S"),
                api_key=os.environ.get(self.api_key_env, ""),
                sender=self.sender,
                timeout=self.request_timeout,
            )
        except ValueError as e:
            self._report_error(f"Voice message not sent: {e}")
            return False
        except requests.RequestException as e:
            self._report_error(f"Error sending voice message email: {e}")
            return False

        print(f"Voice message sent to {self.recipient_email}")
        if self.logger is not None:
            self.logger.log_event("Voice Message Sent", f"To={self.recipient_email}")
        return True

    def _report_error(self, message):
        self.error = message
        print(message)
        if self.logger is not None:
            self.logger.log_event("Voice Message Error", message)
