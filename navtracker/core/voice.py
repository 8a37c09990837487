"""Spoken guidance.

The tracker only depends on the VoiceAnnouncer protocol. Pyttsx3Announcer
speaks each utterance in a child interpreter so that an in-flight
announcement can be cut off by terminating the process.
"""

import logging
import queue
import subprocess
import sys
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class VoiceAnnouncer(Protocol):
    def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


_SPEAK_SCRIPT = (
    "import sys\n"
    "import pyttsx3\n"
    "engine = pyttsx3.init()\n"
    "engine.setProperty('rate', int(sys.argv[1]))\n"
    "engine.say(sys.argv[2])\n"
    "engine.runAndWait()\n"
)


class Pyttsx3Announcer:
    """Queue-backed text-to-speech worker (requires the 'voice' extra).

    Every cancel() starts a new generation; utterances queued under an older
    generation are never spoken, even if the worker already picked them up.
    """

    def __init__(self, rate: int = 150) -> None:
        self.rate = rate
        self._queue: queue.Queue[tuple[int, str] | None] = queue.Queue()
        self._lock = threading.Lock()
        self._generation = 0
        self._current: subprocess.Popen | None = None
        self._thread = threading.Thread(target=self._worker, name="tts-worker", daemon=True)
        self._thread.start()

    def speak(self, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        with self._lock:
            generation = self._generation
        self._queue.put((generation, text))

    def cancel(self) -> None:
        """Drop queued utterances and stop the one being spoken."""
        with self._lock:
            self._generation += 1
            proc = self._current
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
        if proc and proc.poll() is None:
            proc.terminate()

    def close(self, timeout: float = 5.0) -> None:
        self.cancel()
        self._queue.put(None)
        self._thread.join(timeout=timeout)

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                self._say(*item)
            finally:
                self._queue.task_done()

    def _say(self, generation: int, text: str) -> None:
        with self._lock:
            if generation != self._generation:
                return
        try:
            proc = subprocess.Popen([sys.executable, "-c", _SPEAK_SCRIPT, str(self.rate), text])
        except OSError:
            logger.exception("Failed to launch speech process")
            return
        with self._lock:
            stale = generation != self._generation
            if not stale:
                self._current = proc
        if stale:
            # cancel() ran while the process was starting
            logger.debug("Stopping cancelled utterance %r", text)
            proc.terminate()
        try:
            code = proc.wait()
            if code > 0:
                logger.warning("Speech process exited with %d for %r", code, text)
        finally:
            with self._lock:
                if self._current is proc:
                    self._current = None
