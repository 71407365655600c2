import threading
import logging

logger = logging.getLogger(__name__)

PHASES = ('searching', 'crawling', 'analyzing', 'generating')


class GenerationStatus:
    """Process-wide record of the one generation pipeline allowed to run.

    Writers go through the lock so that checking for an idle status and
    claiming it happen as a single step. Readers get a copy.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = {'active': False}

    def try_acquire(self, keyword, phase):
        self._check_phase(phase)
        with self._lock:
            if self._state['active']:
                return False
            self._state = {'active': True, 'keyword': keyword, 'phase': phase}
        logger.info(f"Generation started for '{keyword}' ({phase})")
        return True

    def set_status(self, keyword, phase):
        self._check_phase(phase)
        with self._lock:
            self._state = {'active': True, 'keyword': keyword, 'phase': phase}
        logger.info(f"Generation for '{keyword}' is now {phase}")

    def clear_status(self):
        with self._lock:
            self._state = {'active': False}

    def get_status(self):
        with self._lock:
            return dict(self._state)

    @staticmethod
    def _check_phase(phase):
        if phase not in PHASES:
            raise ValueError(f"Unknown generation phase: {phase}")
