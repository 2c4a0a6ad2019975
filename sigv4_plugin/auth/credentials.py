"""
AWS credential and region resolution.

Credentials are looked up once per process through the boto3 credential
chain (environment, shared credentials file, profile, container/instance
role). The lookup is blocking, so :class:`BotoCredentialResolver` runs it in a
worker thread and exposes it as a coroutine.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3

from ..tracing import RESOLVE_SPAN, traced

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AWSCredentials:
    """AWS credentials for SigV4 signing."""
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    session_token: Optional[str] = None
    role_arn: Optional[str] = None

    @property
    def is_well_formed(self) -> bool:
        """True when both keys are present or a role reference is."""
        return bool((self.access_key and self.secret_key) or self.role_arn)


@dataclass(frozen=True)
class ResolvedCredentials:
    """Outcome of a successful credential resolution."""
    credentials: Optional[AWSCredentials]
    region: Optional[str]


class CredentialResolutionError(RuntimeError):
    """Raised when the credential chain fails to produce credentials."""


class CredentialResolver(Protocol):
    """Resolves credentials and signing region once, asynchronously."""

    async def resolve(self) -> ResolvedCredentials:
        ...


def get_aws_credentials(profile_name: Optional[str] = None) -> AWSCredentials:
    """
    Get AWS credentials from the environment or profile.

    Args:
        profile_name: Optional AWS profile name to use

    Returns:
        AWSCredentials object with access key, secret key, and optional session token

    Raises:
        CredentialResolutionError: If credentials cannot be obtained
    """
    try:
        session = boto3.Session(profile_name=profile_name) if profile_name else boto3.Session()
        credentials = session.get_credentials()
    except Exception as e:
        raise CredentialResolutionError(f"Failed to get AWS credentials: {e}") from e

    if credentials is None:
        raise CredentialResolutionError("No AWS credentials found")

    frozen_credentials = credentials.get_frozen_credentials()
    return AWSCredentials(
        access_key=frozen_credentials.access_key,
        secret_key=frozen_credentials.secret_key,
        session_token=frozen_credentials.token,
    )


def get_aws_region(profile_name: Optional[str] = None) -> Optional[str]:
    """Get the default region configured for the session, if any."""
    session = boto3.Session(profile_name=profile_name) if profile_name else boto3.Session()
    return session.region_name


def assume_role_credentials(
    role_arn: str,
    session_name: str = "aws-sigv4-plugin",
    profile_name: Optional[str] = None,
) -> AWSCredentials:
    """
    Exchange a role ARN for temporary signing keys through STS.

    Raises:
        CredentialResolutionError: If the role cannot be assumed
    """
    try:
        session = boto3.Session(profile_name=profile_name) if profile_name else boto3.Session()
        response = session.client("sts").assume_role(
            RoleArn=role_arn,
            RoleSessionName=session_name,
        )
    except Exception as e:
        raise CredentialResolutionError(f"Failed to assume role {role_arn}: {e}") from e

    creds = response["Credentials"]
    return AWSCredentials(
        access_key=creds["AccessKeyId"],
        secret_key=creds["SecretAccessKey"],
        session_token=creds.get("SessionToken"),
        role_arn=role_arn,
    )


class BotoCredentialResolver:
    """
    Credential resolver backed by the boto3 credential chain.

    Attributes:
        profile_name: Optional AWS profile name
        region: Explicit signing region; falls back to the session's region
        role_arn: Optional role to assume with the chain's credentials
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region: Optional[str] = None,
        role_arn: Optional[str] = None,
    ):
        self.profile_name = profile_name
        self.region = region
        self.role_arn = role_arn

    def _resolve_blocking(self) -> ResolvedCredentials:
        if self.role_arn:
            credentials = assume_role_credentials(self.role_arn, profile_name=self.profile_name)
        else:
            credentials = get_aws_credentials(self.profile_name)
        region = self.region or get_aws_region(self.profile_name)
        logger.debug(
            "Resolved AWS credentials (profile=%s, region=%s)",
            self.profile_name or "default",
            region,
        )
        return ResolvedCredentials(credentials=credentials, region=region)

    @traced(RESOLVE_SPAN)
    async def resolve(self) -> ResolvedCredentials:
        return await asyncio.to_thread(self._resolve_blocking)
