#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Authentication Middleware

Per-domain credential registry consulted by the fetch client:
- HTTP basic credentials
- X509 client certificate credentials

The registry stores credentials as given; it does not validate them.
"""

import logging
from typing import Dict, Optional, Union

logger = logging.getLogger('authentication')


class Authentication:
    """
    Credentials registered for a single domain.
    """
    BASIC = 'basic'
    X509 = 'x509'

    def __init__(self, auth_type: str, domain_name: str):
        self._type = auth_type
        self._domain_name = domain_name

    @property
    def type(self) -> str:
        return self._type

    @property
    def domain_name(self) -> str:
        """Which domain name the authentication data belongs to."""
        return self._domain_name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(domain_name={self._domain_name!r})"


class BasicAuthentication(Authentication):

    def __init__(self, domain_name: str, username: str, password: str):
        super().__init__(Authentication.BASIC, domain_name)
        self.username = username
        self.password = password

    def credentials(self) -> Dict[str, str]:
        return {'username': self.username, 'password': self.password}


class X509Authentication(Authentication):

    def __init__(self, domain_name: str, certificate_path: str, certificate_passphrase: Optional[str]):
        super().__init__(Authentication.X509, domain_name)
        self.certificate_path = certificate_path
        self.certificate_passphrase = certificate_passphrase


AuthenticationEntry = Union[BasicAuthentication, X509Authentication]


class AuthenticationManager:
    """
    Registry mapping domain names, compared case-insensitively, to their
    credentials.

    At most one entry is kept per domain; registering a domain again
    replaces its previous entry.
    """

    def __init__(self):
        self._authentications: Dict[str, AuthenticationEntry] = {}

    def __len__(self) -> int:
        return len(self._authentications)

    def __contains__(self, domain_name: str) -> bool:
        return self.has_auth_for(domain_name)

    def has_auth_for(self, domain_name: str) -> bool:
        return domain_name.lower() in self._authentications

    def get_auth_for(self, domain_name: str) -> Optional[AuthenticationEntry]:
        return self._authentications.get(domain_name.lower())

    def set_basic_auth(self, domain_name: str, username: str, password: str) -> None:
        """
        Set basic auth configuration for the specified domain name.
        
        Args:
            domain_name: Host the credentials apply to
            username: Basic auth user name
            password: Basic auth password
        """
        self._set(BasicAuthentication(domain_name, username, password))

    def set_x509_auth(self, domain_name: str, certificate_path: str,
                      certificate_passphrase: Optional[str] = None) -> None:
        """
        Set client certificate configuration for the specified domain name.
        
        Args:
            domain_name: Host the certificate applies to
            certificate_path: Path to the certificate file
            certificate_passphrase: Passphrase protecting the certificate
        """
        self._set(X509Authentication(domain_name, certificate_path, certificate_passphrase))

    def remove_auth_for(self, domain_name: str) -> bool:
        if self._authentications.pop(domain_name.lower(), None) is None:
            return False
        logger.debug(f"Removed authentication for {domain_name}")
        return True

    def _set(self, entry: AuthenticationEntry) -> None:
        key = entry.domain_name.lower()
        if key in self._authentications:
            logger.debug(f"Replacing {self._authentications[key].type} "
                         f"authentication for {entry.domain_name}")
        self._authentications[key] = entry
        logger.debug(f"Registered {entry.type} authentication for {entry.domain_name}")
