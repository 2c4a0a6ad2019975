"""
Test doubles for the aws-sigv4 plugin test suite.

Available Mocks:
- ControlledResolver: credential resolver whose outcome the test decides
- RecordingSigner: deterministic signer that records its calls
- StaticResolver: fixed-outcome resolver usable without a running event loop

Usage:
    from tests.mocks import ControlledResolver, RecordingSigner

    resolver = ControlledResolver()   # inside a running event loop
    resolver.succeed(ResolvedCredentials(credentials, "us-west-2"))
"""

from .doubles import FIXED_TIME, ControlledResolver, RecordingSigner, StaticResolver

__all__ = ["FIXED_TIME", "ControlledResolver", "RecordingSigner", "StaticResolver"]
