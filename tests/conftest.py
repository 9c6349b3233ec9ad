from __future__ import annotations

import ssl

import pytest

from cloudpath.auth import ClientCertificate


class RecordingSleep:
    """Stand-in for the backoff wait that records delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeCertificateStore:
    def __init__(self, *, supported: bool = True) -> None:
        self._supported = supported
        self.loaded: list[ClientCertificate] = []

    @property
    def supports_client_certificates(self) -> bool:
        return self._supported

    def create_ssl_context(self, certificate: ClientCertificate) -> ssl.SSLContext:
        self.loaded.append(certificate)
        return ssl.create_default_context()


class RecordingLog:
    """Minimal logger double capturing formatted messages."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def bind(self, **_: object) -> RecordingLog:
        return self

    def _record(self, level: str, message: str, /, **kwargs: object) -> None:
        self.messages.append((level, message.format(**kwargs)))

    def debug(self, message: str, /, **kwargs: object) -> None:
        self._record("DEBUG", message, **kwargs)

    def info(self, message: str, /, **kwargs: object) -> None:
        self._record("INFO", message, **kwargs)

    def warning(self, message: str, /, **kwargs: object) -> None:
        self._record("WARNING", message, **kwargs)

    def error(self, message: str, /, **kwargs: object) -> None:
        self._record("ERROR", message, **kwargs)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def certificate_store() -> FakeCertificateStore:
    return FakeCertificateStore()


@pytest.fixture
def recording_log() -> RecordingLog:
    return RecordingLog()


@pytest.fixture
def certificate(tmp_path) -> ClientCertificate:
    return ClientCertificate(cert_file=tmp_path / "device.pem")

