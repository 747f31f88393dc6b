# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/credentials/models.py

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

import paramiko


@dataclass(frozen=True)
class PasswordCredential:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class PrivateKeyCredential:
    username: str
    private_key: str = field(repr=False)          # key text (OpenSSH or PEM)
    passphrase: Optional[str] = field(default=None, repr=False)

    def load_pkey(self) -> paramiko.PKey:
        """
        Parse the key text. Tries ED25519 first, then RSA, then ECDSA.
        """
        last_exc: Optional[Exception] = None
        for key_cls in (
            paramiko.Ed25519Key,
            paramiko.RSAKey,
            paramiko.ECDSAKey,
        ):
            try:
                return key_cls.from_private_key(io.StringIO(self.private_key), password=self.passphrase)
            except paramiko.SSHException as e:
                last_exc = e
                continue
        raise ValueError(f"Unsupported private key format for user {self.username}: {last_exc}")


Credential = Union[PasswordCredential, PrivateKeyCredential]


class CredentialResolver(Protocol):
    def resolve(self, credentials_id: str) -> Optional[Credential]:
        ...
