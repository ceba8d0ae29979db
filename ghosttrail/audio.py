"""Spoken announcements for Ghost Trail."""

import subprocess
from typing import Optional, Callable

from .config import CONFIG


class Audio:
    """Speaks arrivals and directions.

    Tries espeak (available in Termux) first and falls back to pyttsx3, then
    to printing. Whichever backend works first is kept for the rest of the
    game. Every announcement also goes to the callback (the debug GUI), even
    when muted.
    """

    def __init__(self, muted: bool = False, rate: Optional[int] = None,
                 callback: Optional[Callable[[str], None]] = None):
        self.muted = muted
        self.rate = rate or CONFIG["speech_rate"]
        self.callback = callback
        self.backend: Optional[str] = None
        self._engine = None

    def speak(self, text: str):
        if self.callback:
            self.callback(text)
        if self.muted:
            return

        if self.backend in (None, "espeak") and self._speak_espeak(text):
            self.backend = "espeak"
        elif self.backend in (None, "pyttsx3") and self._speak_pyttsx3(text):
            self.backend = "pyttsx3"
        else:
            self.backend = "print"
            print(f"[AUDIO] {text}")

    def _speak_espeak(self, text: str) -> bool:
        try:
            subprocess.run(
                ["espeak", "-s", str(self.rate), text],
                capture_output=True,
                timeout=10
            )
        except FileNotFoundError:
            return False
        except subprocess.TimeoutExpired:
            print("Audio error: espeak timed out")
        return True

    def _speak_pyttsx3(self, text: str) -> bool:
        try:
            if self._engine is None:
                import pyttsx3
                self._engine = pyttsx3.init()
                self._engine.setProperty("rate", self.rate)
            self._engine.say(text)
            self._engine.runAndWait()
        except Exception as e:
            print(f"Audio error: {e}")
            self._engine = None
            return False
        return True
