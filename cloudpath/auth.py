"""Authorization context supplied by the caller.

Credential acquisition and device enrollment happen elsewhere; this module
only describes their results. Everything here is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from cloudpath.errors import ConfigurationError


@runtime_checkable
class Credential(Protocol):
    async def headers(self) -> dict[str, str]: ...


class BearerCredential:
    def __init__(self, token: str) -> None:
        self._token = token

    async def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }


@dataclass(frozen=True, slots=True)
class ClientCertificate:
    """PEM-encoded device certificate and private key.

    Args:
        cert_file: Certificate chain, optionally including the key.
        key_file: Private key, if not bundled with the certificate.
        password: Passphrase of an encrypted private key.
    """

    cert_file: Path
    key_file: Path | None = None
    password: str | None = None

    def __repr__(self) -> str:
        return f"ClientCertificate(cert_file={str(self.cert_file)!r})"


@dataclass(frozen=True, slots=True)
class NotEnrolled:
    """The device is not enrolled; no client certificate is available."""


@dataclass(frozen=True, slots=True)
class Enrolled:
    """The device is enrolled and holds a client certificate."""

    certificate: ClientCertificate

    def __post_init__(self) -> None:
        if self.certificate is None:
            raise ConfigurationError("Device is enrolled but has no client certificate")


type DeviceEnrollment = NotEnrolled | Enrolled

NOT_ENROLLED = NotEnrolled()


@dataclass(frozen=True, slots=True)
class Authorization:
    email: str
    credential: Credential
    enrollment: DeviceEnrollment = NOT_ENROLLED
