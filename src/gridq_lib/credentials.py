# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Credentials used to authenticate against schedulers and file systems.

gridq never stores secrets itself; OpenSSH based adaptors pass a certificate
(private key) file to the ssh client and rely on the user's agent otherwise.
"""

import getpass
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Credential:
    """Base class of all credentials."""

    # Name of the user to authenticate as.
    username: str = field(default_factory=getpass.getuser)


@dataclass(frozen=True)
class DefaultCredential(Credential):
    """Credential of the current user, relying on the default authentication of the backend."""

    pass


@dataclass(frozen=True)
class PasswordCredential(Credential):
    """Credential consisting of a username and a password."""

    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class CertificateCredential(Credential):
    """Credential consisting of a username and a private key file."""

    certificate_file: Path | None = None
    passphrase: str | None = field(default=None, repr=False)
