"""
AWS SigV4 signature attachment.

This module checks that signing can proceed, calls a :class:`Signer` on the
canonical request, and merges the resulting headers back into the outgoing
request description.

Usage:
    from sigv4_plugin.auth import BotocoreSigner, SignatureAttacher

    attacher = SignatureAttacher(signer=BotocoreSigner())
    attacher.attach(
        request_params,
        canonical_request,
        credentials=credentials,
        region="us-west-2",
        service_name="execute-api",
    )
"""

import datetime
import logging
from typing import Any, Callable, Mapping, MutableMapping, Optional, Protocol

from botocore.auth import SIGV4_TIMESTAMP
from botocore.auth import SigV4Auth as BotoSigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import NoCredentialsError

from ..canonical import CanonicalRequest
from ..metrics import SigningMetricName, get_metrics_emitter
from ..tracing import signing_span
from .credentials import AWSCredentials

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]

SIGNATURE_NOT_ADDED = "artillery-plugin-aws-sigv4 ERROR (signature will not be added): "


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SigningPreconditionError(ValueError):
    """Raised when credentials or region do not allow signing."""

    NO_CREDENTIALS = "no_credentials"
    MALFORMED_CREDENTIALS = "malformed_credentials"
    NO_REGION = "no_region"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


def check_signing_preconditions(
    credentials: Optional[AWSCredentials],
    region: Optional[str],
) -> None:
    """
    Check that signing can proceed.

    Raises:
        SigningPreconditionError: With the first failing reason, checked in
            the order credentials, credential shape, region
    """
    if not credentials:
        raise SigningPreconditionError(
            SigningPreconditionError.NO_CREDENTIALS,
            "credentials not obtained.  "
            "Ensure the AWS SDK can obtain valid credentials.",
        )
    if not credentials.is_well_formed:
        raise SigningPreconditionError(
            SigningPreconditionError.MALFORMED_CREDENTIALS,
            "valid credentials not loaded.  "
            "Ensure the AWS SDK can obtain credentials with either both access key and "
            "secret key attributes (optionally session token) or a role ARN attribute.",
        )
    if not region:
        raise SigningPreconditionError(
            SigningPreconditionError.NO_REGION,
            "valid region not configured.  "
            "Ensure the AWS SDK can obtain a valid region for use in signing your requests.  "
            "Consider exporting or setting AWS_REGION.  Alternatively specify a default "
            "region in your ~/.aws/config file.",
        )


class Signer(Protocol):
    """Computes signature headers for a canonical request."""

    def sign(
        self,
        request: CanonicalRequest,
        credentials: AWSCredentials,
        region: str,
        service_name: str,
        timestamp: datetime.datetime,
    ) -> Mapping[str, str]:
        ...


class _TimestampedSigV4Auth(BotoSigV4Auth):
    """botocore SigV4Auth signing at a caller supplied instant."""

    def __init__(self, credentials, service_name, region_name, timestamp: datetime.datetime):
        super().__init__(credentials, service_name, region_name)
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(datetime.timezone.utc)
        self._timestamp = timestamp

    def add_auth(self, request):
        if self.credentials is None:
            raise NoCredentialsError()
        request.context["timestamp"] = self._timestamp.strftime(SIGV4_TIMESTAMP)
        self._modify_request_before_signing(request)
        canonical_request = self.canonical_request(request)
        logger.debug("CanonicalRequest:\n%s", canonical_request)
        string_to_sign = self.string_to_sign(request, canonical_request)
        signature = self.signature(string_to_sign, request)
        self._inject_signature_to_request(request, signature)


class BotocoreSigner:
    """SigV4 signer backed by botocore."""

    def sign(
        self,
        request: CanonicalRequest,
        credentials: AWSCredentials,
        region: str,
        service_name: str,
        timestamp: datetime.datetime,
    ) -> dict[str, str]:
        if not (credentials.access_key and credentials.secret_key):
            raise ValueError(
                f"Role {credentials.role_arn} has not been exchanged for signing keys"
            )

        aws_request = AWSRequest(
            method=request.method.upper(),
            url=request.url,
            headers=dict(request.headers),
            data=request.body,
        )
        boto_credentials = Credentials(
            access_key=credentials.access_key,
            secret_key=credentials.secret_key,
            token=credentials.session_token,
        )
        _TimestampedSigV4Auth(boto_credentials, service_name, region, timestamp).add_auth(aws_request)
        return dict(aws_request.headers.items())


def merge_headers(target: MutableMapping[str, Any], signed: Mapping[str, str]) -> None:
    """Copy headers into ``target``, replacing any same-named header regardless of case."""
    for name, value in signed.items():
        for existing in [key for key in target if key.lower() == name.lower()]:
            del target[existing]
        target[name] = value


class SignatureAttacher:
    """
    Signs canonical requests and writes the signature into the outgoing request.

    Attributes:
        signer: Signature primitive
        clock: Source of the signing timestamp
    """

    def __init__(self, signer: Optional[Signer] = None, clock: Optional[Clock] = None):
        self.signer = signer or BotocoreSigner()
        self.clock = clock or utc_now

    def attach(
        self,
        request_params: MutableMapping[str, Any],
        canonical: CanonicalRequest,
        credentials: Optional[AWSCredentials],
        region: Optional[str],
        service_name: str,
    ) -> Optional[dict[str, str]]:
        """
        Sign ``canonical`` and merge the signature headers into ``request_params``.

        Only ``request_params["headers"]`` is mutated. Nothing is mutated when a
        signing precondition fails or the signer raises.

        Returns:
            The signature headers that were merged, or None when signing was skipped
        """
        metrics = get_metrics_emitter()
        try:
            check_signing_preconditions(credentials, region)
        except SigningPreconditionError as e:
            logger.warning("%s%s", SIGNATURE_NOT_ADDED, e)
            metrics.emit_unsigned(e.reason)
            return None

        with signing_span(service_name, canonical.host) as span:
            try:
                signed = dict(
                    self.signer.sign(canonical, credentials, region, service_name, self.clock())
                )
            except Exception as e:
                span.record_exception(e)
                logger.warning("%ssigning failed: %s", SIGNATURE_NOT_ADDED, e)
                metrics.emit_unsigned("signer_error")
                return None

        headers = request_params.get("headers")
        if headers is None:
            headers = request_params["headers"] = {}
        merge_headers(headers, signed)
        metrics.emit(SigningMetricName.REQUEST_SIGNED, 1)
        logger.debug("Signed %s %s for service %s", canonical.method, canonical.url, service_name)
        return signed
