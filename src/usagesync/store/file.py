from pathlib import Path

import structlog

logger = structlog.get_logger()


class FileSecretStore:
    """
    FileSecretStore serves the plain credentials file Claude Code
    writes on platforms without a keychain. The file holds a single
    entry, so the service name is not used to pick a path.
    """

    def __init__(self, path: "Path") -> "None":
        self._path = path

    @property
    def path(self) -> "Path":
        return self._path

    def lookup(self, service_name: "str") -> "bytes | None":
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return None

        logger.debug("credentials_file_read", path=str(self._path), service=service_name)
        return data or None
