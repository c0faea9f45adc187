from callgate.auth.call_credentials import CallCredentials, service_uri
from callgate.auth.protocol import CallInfo, CredentialSource, Executor, MetadataApplier
from callgate.auth.sources import EnvTokenSource, StaticTokenSource

__all__ = [
    "CallCredentials",
    "CallInfo",
    "CredentialSource",
    "EnvTokenSource",
    "Executor",
    "MetadataApplier",
    "StaticTokenSource",
    "service_uri",
]
