"""Tests for the TLS material presence check."""

import errno
from unittest.mock import patch

import pytest

from sonare.tls import (
    TLSMaterialError, MissingTLSFileError, TLSFileStatError, verify_tls_files
)


@pytest.fixture
def tls_files(tmp_path):
    cert = tmp_path / "server.crt"
    key = tmp_path / "server.key"
    cert.write_text("cert")
    key.write_text("key")
    return str(cert), str(key)


class TestVerifyTLSFiles:
    """Tests for verify_tls_files()."""

    def test_both_present(self, tls_files):
        cert, key = tls_files
        assert verify_tls_files(cert, key) is None

    def test_missing_cert(self, tmp_path, tls_files):
        _, key = tls_files
        missing = str(tmp_path / "nope.crt")
        with pytest.raises(MissingTLSFileError) as exc_info:
            verify_tls_files(missing, key)
        assert exc_info.value.kind == "cert"
        assert exc_info.value.path == missing
        assert "missing cert file" in str(exc_info.value)

    def test_missing_key(self, tmp_path, tls_files):
        cert, _ = tls_files
        with pytest.raises(MissingTLSFileError) as exc_info:
            verify_tls_files(cert, str(tmp_path / "nope.key"))
        assert exc_info.value.kind == "key"

    def test_cert_checked_before_key(self, tmp_path):
        with pytest.raises(MissingTLSFileError) as exc_info:
            verify_tls_files(str(tmp_path / "a.crt"), str(tmp_path / "b.key"))
        assert exc_info.value.kind == "cert"

    def test_stat_failure_is_distinguished(self, tls_files):
        cert, key = tls_files
        denied = PermissionError(errno.EACCES, "Permission denied")
        with patch("sonare.tls.os.stat", side_effect=denied):
            with pytest.raises(TLSFileStatError) as exc_info:
                verify_tls_files(cert, key)
        assert exc_info.value.cause is denied
        assert exc_info.value.__cause__ is denied
        assert not isinstance(exc_info.value, MissingTLSFileError)
        assert isinstance(exc_info.value, TLSMaterialError)
