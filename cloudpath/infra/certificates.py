"""Platform certificate store used to present client certificates."""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import Protocol, runtime_checkable

from cloudpath.auth import ClientCertificate
from cloudpath.errors import ConfigurationError


@runtime_checkable
class CertificateStore(Protocol):
    @property
    def supports_client_certificates(self) -> bool: ...

    def create_ssl_context(self, certificate: ClientCertificate) -> ssl.SSLContext: ...


class SystemCertificateStore:
    """Loads PEM certificates with the interpreter's ``ssl`` module.

    Args:
        cafile: Optional CA bundle; the system defaults are used otherwise.
    """

    def __init__(self, cafile: Path | None = None) -> None:
        self._cafile = cafile

    @property
    def supports_client_certificates(self) -> bool:
        return hasattr(ssl.SSLContext, "load_cert_chain")

    def create_ssl_context(self, certificate: ClientCertificate) -> ssl.SSLContext:
        context = ssl.create_default_context(
            cafile=str(self._cafile) if self._cafile else None,
        )
        try:
            context.load_cert_chain(
                certfile=certificate.cert_file,
                keyfile=certificate.key_file,
                password=certificate.password,
            )
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(
                f"Cannot load client certificate {certificate.cert_file}: {e}",
                cause=e,
            ) from e
        return context
