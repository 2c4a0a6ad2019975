"""
Authentication utilities for the aws-sigv4 plugin.

This module provides credential resolution and SigV4 signature attachment.
"""

from .credentials import (
    AWSCredentials,
    BotoCredentialResolver,
    CredentialResolutionError,
    CredentialResolver,
    ResolvedCredentials,
    assume_role_credentials,
    get_aws_credentials,
)
from .sigv4 import (
    BotocoreSigner,
    SignatureAttacher,
    Signer,
    SigningPreconditionError,
    check_signing_preconditions,
    merge_headers,
)

__all__ = [
    "AWSCredentials",
    "BotoCredentialResolver",
    "CredentialResolutionError",
    "CredentialResolver",
    "ResolvedCredentials",
    "assume_role_credentials",
    "get_aws_credentials",
    "BotocoreSigner",
    "SignatureAttacher",
    "Signer",
    "SigningPreconditionError",
    "check_signing_preconditions",
    "merge_headers",
]
