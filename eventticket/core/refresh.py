from loguru import logger


class RefreshController:
    """
    Process-wide refresh token. Every read query is keyed by it, so bumping
    the token makes the next read of every query go to the registry again.
    Only successful writes and manual refreshes bump it.
    """

    def __init__(self) -> None:
        self._token = 0

    @property
    def token(self) -> int:
        return self._token

    def bump(self) -> int:
        self._token += 1
        logger.debug(f"refresh token bumped to {self._token}")
        return self._token

    def reset(self) -> None:
        # tests only
        self._token = 0


refresh_controller = RefreshController()
