import subprocess

import structlog

logger = structlog.get_logger()

SECURITY_BINARY = "security"


class KeychainSecretStore:
    """
    KeychainSecretStore reads generic passwords from the macOS
    login keychain through the `security` command line tool.
    """

    def __init__(self, binary: "str" = SECURITY_BINARY, timeout: "float" = 5.0) -> "None":
        self._binary = binary
        self._timeout = timeout

    def lookup(self, service_name: "str") -> "bytes | None":
        try:
            result = subprocess.run(
                [self._binary, "find-generic-password", "-s", service_name, "-w"],
                capture_output=True,
                check=True,
                timeout=self._timeout,
            )
        except FileNotFoundError:
            logger.debug("keychain_binary_missing", binary=self._binary)
            return None
        except subprocess.CalledProcessError as e:
            # exit code 44 is "item not found"
            logger.debug(
                "keychain_entry_missing",
                service=service_name,
                returncode=e.returncode,
            )
            return None
        except subprocess.TimeoutExpired:
            logger.warning("keychain_lookup_timeout", service=service_name)
            return None

        return result.stdout.strip() or None
