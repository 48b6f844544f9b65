from typing import Protocol


class SecretStore(Protocol):
    """
    SecretStore is the capability every credential backend must
    satisfy: a keyed lookup returning the raw stored bytes, or
    None when no entry exists for the service name.
    """

    def lookup(self, service_name: "str") -> "bytes | None": ...
