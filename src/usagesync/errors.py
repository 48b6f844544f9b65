class UsageSyncError(Exception):
    """
    base class for every failure the engine captures into
    SyncState.error_message.
    """


class AuthExpiredError(UsageSyncError):
    """
    the usage endpoint rejected the bearer token (HTTP 401).
    """

    def __init__(self) -> "None":
        super().__init__("Token expired. Run 'claude login'")


class HttpFailureError(UsageSyncError):
    """
    the usage endpoint answered with a status other than 200 or 401.
    """

    def __init__(self, status_code: "int") -> "None":
        self.status_code = status_code
        super().__init__(f"HTTP error {status_code}")


class TransportFailureError(UsageSyncError):
    """
    no usable response: connection failure, timeout or an
    undecodable body.
    """


class StatsDecodeError(UsageSyncError):
    """
    the local stats cache exists but could not be read or decoded.
    """
