"""Presence checks for TLS certificate material."""

import os


class TLSMaterialError(Exception):
    """Base class for TLS material problems found at startup."""


class MissingTLSFileError(TLSMaterialError):
    """A certificate or key file does not exist."""

    def __init__(self, kind: str, path: str):
        self.kind = kind
        self.path = path
        super().__init__(f"missing {kind} file {path!r}")


class TLSFileStatError(TLSMaterialError):
    """A certificate or key file exists but could not be stat'ed."""

    def __init__(self, kind: str, path: str, cause: OSError):
        self.kind = kind
        self.path = path
        self.cause = cause
        super().__init__(f"failed to stat {kind} file {path!r}: {cause}")


def _check(kind: str, path: str) -> None:
    try:
        os.stat(path)
    except FileNotFoundError:
        raise MissingTLSFileError(kind, path) from None
    except OSError as e:
        raise TLSFileStatError(kind, path, e) from e


def verify_tls_files(cert_path: str, key_path: str) -> None:
    """Ensure both TLS files exist before any TLS listener binds.

    Only presence is checked; the content is validated by the TLS stack when
    the listener starts.

    Raises:
        MissingTLSFileError: a file is absent
        TLSFileStatError: stat failed for another reason (e.g. permissions)
    """
    _check("cert", cert_path)
    _check("key", key_path)
