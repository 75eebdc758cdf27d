"""
Camera authorization.

The controller asks for the current status before binding a device and, when
the user has not decided yet, requests access and waits for the answer without
blocking the caller.
"""
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

AccessCallback = Callable[[bool], None]


class AuthorizationStatus(Enum):
    AUTHORIZED = auto()
    NOT_DETERMINED = auto()
    DENIED = auto()
    RESTRICTED = auto()


class CameraAuthorization(ABC):
    @abstractmethod
    def status(self) -> AuthorizationStatus:
        pass

    @abstractmethod
    def request_access(self, on_result: AccessCallback) -> None:
        """
        Ask the user for camera access.

        `on_result(granted)` is called exactly once, possibly from another thread.
        """
        pass


class GrantedAuthorization(CameraAuthorization):
    """Desktop default: no consent step, access is always granted."""

    def status(self) -> AuthorizationStatus:
        return AuthorizationStatus.AUTHORIZED

    def request_access(self, on_result: AccessCallback) -> None:
        on_result(True)


class PromptAuthorization(CameraAuthorization):
    """
    Consent collected from the UI.

    `request_access` records the waiting callback and fires `on_prompt` so the UI
    can show its dialog; the UI later reports the decision through `answer()`.
    """

    def __init__(
            self,
            initial: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
            on_prompt: Optional[Callable[[], None]] = None,
    ):
        self._lock = threading.Lock()
        self._status = initial
        self._waiting: List[AccessCallback] = []
        self._on_prompt = on_prompt

    def status(self) -> AuthorizationStatus:
        with self._lock:
            return self._status

    @property
    def prompt_pending(self) -> bool:
        with self._lock:
            return bool(self._waiting)

    def request_access(self, on_result: AccessCallback) -> None:
        with self._lock:
            decided = self._status
            if decided == AuthorizationStatus.NOT_DETERMINED:
                self._waiting.append(on_result)

        if decided == AuthorizationStatus.NOT_DETERMINED:
            if self._on_prompt is not None:
                self._on_prompt()
            return

        on_result(decided == AuthorizationStatus.AUTHORIZED)

    def answer(self, granted: bool) -> None:
        with self._lock:
            if self._status != AuthorizationStatus.NOT_DETERMINED:
                # The user only gets asked once; later changes go through settings.
                logger.info("Ignoring repeated camera access answer")
                return
            self._status = AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
            waiting, self._waiting = self._waiting, []

        logger.info("Camera access %s", "granted" if granted else "denied")
        for callback in waiting:
            callback(granted)

    def reset(self, status: AuthorizationStatus) -> None:
        """Change the stored decision, as the system settings screen would."""
        with self._lock:
            self._status = status
