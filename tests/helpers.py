import time
from typing import Callable


def wait_for(
        condition: Callable[[], bool],
        timeout: float = 5.0,
        interval: float = 0.01,
        message: str = "Condition not met before timeout",
):
    """
    Poll condition() until it returns True.

    The session worker and preview worker run on their own threads, so most
    controller assertions have to wait. Raises AssertionError on timeout.
    """
    deadline = time.monotonic() + timeout

    while time.monotonic() < deadline:
        if condition():
            return
        time.sleep(interval)

    if condition():
        return
    raise AssertionError(message)
