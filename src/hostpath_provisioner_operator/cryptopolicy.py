"""TLS cipher and protocol selection from an OpenShift APIServer TLS profile."""

from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

PROFILE_OLD = "Old"
PROFILE_INTERMEDIATE = "Intermediate"
PROFILE_MODERN = "Modern"
PROFILE_CUSTOM = "Custom"

ENV_TLS_CIPHERS = "TLS_CIPHERS"
ENV_TLS_MIN_VERSION = "TLS_MIN_VERSION"

_TLS13_CIPHERS = [
    "TLS_AES_128_GCM_SHA256",
    "TLS_AES_256_GCM_SHA384",
    "TLS_CHACHA20_POLY1305_SHA256",
]

_INTERMEDIATE_CIPHERS = _TLS13_CIPHERS + [
    "ECDHE-ECDSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES128-GCM-SHA256",
    "ECDHE-ECDSA-AES256-GCM-SHA384",
    "ECDHE-RSA-AES256-GCM-SHA384",
    "ECDHE-ECDSA-CHACHA20-POLY1305",
    "ECDHE-RSA-CHACHA20-POLY1305",
    "DHE-RSA-AES128-GCM-SHA256",
    "DHE-RSA-AES256-GCM-SHA384",
]

_OLD_CIPHERS = _INTERMEDIATE_CIPHERS + [
    "DHE-RSA-CHACHA20-POLY1305",
    "ECDHE-ECDSA-AES128-SHA256",
    "ECDHE-RSA-AES128-SHA256",
    "ECDHE-ECDSA-AES128-SHA",
    "ECDHE-RSA-AES128-SHA",
    "ECDHE-ECDSA-AES256-SHA384",
    "ECDHE-RSA-AES256-SHA384",
    "ECDHE-ECDSA-AES256-SHA",
    "ECDHE-RSA-AES256-SHA",
    "DHE-RSA-AES128-SHA256",
    "DHE-RSA-AES256-SHA256",
    "AES128-GCM-SHA256",
    "AES256-GCM-SHA384",
    "AES128-SHA256",
    "AES256-SHA256",
    "AES128-SHA",
    "AES256-SHA",
    "DES-CBC3-SHA",
]

TLS_PROFILES: dict[str, tuple[list[str], str]] = {
    PROFILE_OLD: (_OLD_CIPHERS, "VersionTLS10"),
    PROFILE_INTERMEDIATE: (_INTERMEDIATE_CIPHERS, "VersionTLS12"),
    PROFILE_MODERN: (_TLS13_CIPHERS, "VersionTLS13"),
}

# OpenSSL names of the suites the provisioner's TLS stack can be configured with.
# TLS 1.3 suites and DHE suites are not configurable there and are dropped.
OPENSSL_TO_IANA = {
    "ECDHE-ECDSA-AES128-GCM-SHA256": "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256",
    "ECDHE-RSA-AES128-GCM-SHA256": "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256",
    "ECDHE-ECDSA-AES256-GCM-SHA384": "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384",
    "ECDHE-RSA-AES256-GCM-SHA384": "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384",
    "ECDHE-ECDSA-CHACHA20-POLY1305": "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256",
    "ECDHE-RSA-CHACHA20-POLY1305": "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256",
    "ECDHE-ECDSA-AES128-SHA256": "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256",
    "ECDHE-RSA-AES128-SHA256": "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA256",
    "ECDHE-ECDSA-AES128-SHA": "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA",
    "ECDHE-RSA-AES128-SHA": "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA",
    "ECDHE-ECDSA-AES256-SHA": "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA",
    "ECDHE-RSA-AES256-SHA": "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA",
    "AES128-GCM-SHA256": "TLS_RSA_WITH_AES_128_GCM_SHA256",
    "AES256-GCM-SHA384": "TLS_RSA_WITH_AES_256_GCM_SHA384",
    "AES128-SHA256": "TLS_RSA_WITH_AES_128_CBC_SHA256",
    "AES128-SHA": "TLS_RSA_WITH_AES_128_CBC_SHA",
    "AES256-SHA": "TLS_RSA_WITH_AES_256_CBC_SHA",
    "DES-CBC3-SHA": "TLS_RSA_WITH_3DES_EDE_CBC_SHA",
}


def openssl_to_iana(ciphers: list[str]) -> list[str]:
    return [OPENSSL_TO_IANA[c] for c in ciphers if c in OPENSSL_TO_IANA]


def select_cipher_suites_and_min_tls_version(profile: dict[str, Any] | None) -> tuple[list[str], str]:
    """Resolve a tlsSecurityProfile to IANA cipher names and a minimum TLS version.

    A missing or unknown profile type resolves to Intermediate. A Custom profile
    without a custom section also falls back to Intermediate.
    """
    profile = profile or {}
    profile_type = profile.get("type") or PROFILE_INTERMEDIATE
    if profile_type == PROFILE_CUSTOM and profile.get("custom"):
        custom = profile["custom"]
        ciphers = list(custom.get("ciphers") or [])
        min_version = custom.get("minTLSVersion") or TLS_PROFILES[PROFILE_INTERMEDIATE][1]
    else:
        ciphers, min_version = TLS_PROFILES.get(profile_type, TLS_PROFILES[PROFILE_INTERMEDIATE])
    return openssl_to_iana(ciphers), min_version


def apply_api_server_tls_profile(api_server: dict[str, Any]) -> tuple[list[str], str]:
    """Mirror the APIServer TLS profile into TLS_CIPHERS and TLS_MIN_VERSION."""
    profile = (api_server.get("spec") or {}).get("tlsSecurityProfile")
    ciphers, min_version = select_cipher_suites_and_min_tls_version(profile)
    os.environ[ENV_TLS_CIPHERS] = ",".join(ciphers)
    os.environ[ENV_TLS_MIN_VERSION] = min_version
    logger.info(f"Applied TLS profile {(profile or {}).get('type') or PROFILE_INTERMEDIATE}, min version {min_version}")
    return ciphers, min_version
