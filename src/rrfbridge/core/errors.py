from __future__ import annotations


class DeviceError(Exception):
    """A request to a printer failed; the poller retries on the next tick."""

    def __init__(self, host: str, step: str, reason: str) -> None:
        super().__init__(f"{step} failed for host {host}: {reason}")
        self.host = host
        self.step = step
        self.reason = reason


class AuthenticationError(DeviceError):
    def __init__(self, host: str, error_code: int) -> None:
        super().__init__(
            host, "authenticate", f"authentication failed with error code={error_code}"
        )
        self.error_code = error_code


class TransportError(DeviceError):
    def __init__(
        self, host: str, step: str, reason: str, status: int | None = None
    ) -> None:
        super().__init__(host, step, reason)
        self.status = status


class DecodeError(DeviceError):
    pass


class BrokerAddressError(ValueError):
    pass
