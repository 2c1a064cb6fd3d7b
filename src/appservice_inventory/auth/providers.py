from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..util.errors import map_azure_error

try:
    import azure.identity as azure_identity  # type: ignore
except Exception:  # pragma: no cover - import error surfaced at runtime/CI
    azure_identity = None  # type: ignore

MANAGEMENT_SCOPE = "https://management.azure.com/.default"
AUTH_METHODS = {"auto", "cli", "interactive", "device_code"}


@dataclass(frozen=True)
class AuthContext:
    """
    Holds the resolved azure-identity credential used to construct SDK clients.
    account_id is only a login hint for interactive flows.
    """

    method: str  # auto|cli|interactive|device_code (resolved final)
    credential: Any
    tenant_id: Optional[str]
    account_id: Optional[str] = None


class AuthError(RuntimeError):
    pass


def _require_identity() -> None:
    if azure_identity is None:
        raise AuthError(
            "azure-identity is not installed. Install dependencies and try again: pip install ."
        )


def resolve_auth(method: str, tenant_id: Optional[str], account_id: Optional[str] = None) -> AuthContext:
    """
    Resolve a credential for the requested method.
    - auto: DefaultAzureCredential (environment, managed identity, Azure CLI, ...)
    - cli: the account logged in with `az login`
    - interactive: browser sign-in, optionally hinted with account_id
    - device_code: device code flow for headless shells
    """
    _require_identity()
    method = (method or "auto").lower()
    if method not in AUTH_METHODS:
        raise AuthError(f"Unsupported auth method: {method}")

    kwargs: Dict[str, Any] = {}
    try:
        if method == "auto":
            if tenant_id:
                kwargs["additionally_allowed_tenants"] = [tenant_id]
            credential = azure_identity.DefaultAzureCredential(**kwargs)
        elif method == "cli":
            if tenant_id:
                kwargs["tenant_id"] = tenant_id
            credential = azure_identity.AzureCliCredential(**kwargs)
        elif method == "interactive":
            if tenant_id:
                kwargs["tenant_id"] = tenant_id
            if account_id:
                kwargs["login_hint"] = account_id
            credential = azure_identity.InteractiveBrowserCredential(**kwargs)
        else:
            if tenant_id:
                kwargs["tenant_id"] = tenant_id
            credential = azure_identity.DeviceCodeCredential(**kwargs)
    except Exception as e:
        mapped = map_azure_error(e, f"Azure SDK error while creating {method} credential")
        if mapped:
            raise mapped from e
        raise AuthError(f"Failed to create {method} credential: {e}") from e
    return AuthContext(method=method, credential=credential, tenant_id=tenant_id, account_id=account_id)


def ensure_token(ctx: AuthContext, scope: str = MANAGEMENT_SCOPE) -> None:
    """
    Acquire one token so an unusable session fails the run before any query is sent.
    Credentials are lazy, so this is the first point where sign-in actually happens.
    """
    try:
        ctx.credential.get_token(scope)
    except Exception as e:
        raise AuthError(f"Failed to acquire a token with {ctx.method} credential: {e}") from e
