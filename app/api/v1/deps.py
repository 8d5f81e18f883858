from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request

from app.app.services.bundle import ServiceBundle, get_service_bundle
from app.common.auth import AuthenticationError, Authenticator, Principal
from app.common.config import get_settings
from app.infra.storage.client import StorageClient
from app.infra.storage.s3_client import S3StorageClient


@dataclass(frozen=True)
class RequestContext:
    principal: Principal
    request_id: str | None

    @property
    def user_id(self) -> str | None:
        """Storage namespace of the caller, None when the request is anonymous."""
        return self.principal.user_id if self.principal.is_identified else None


@lru_cache(maxsize=1)
def get_storage_client() -> StorageClient:
    # one boto3 client per process; boto3 clients are thread-safe
    return S3StorageClient(settings=get_settings())


def get_services(
    storage: StorageClient = Depends(get_storage_client),
) -> ServiceBundle:
    return get_service_bundle(storage, get_settings())


def get_current_principal(
    request: Request,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> Principal:
    try:
        principal = Authenticator(get_settings()).authenticate(
            authorization_header=authorization,
            fallback_user_id=x_user_id,
        )
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=401,
            detail={"message": str(exc), "error_code": "unauthenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    # read back by the access log
    request.state.user_id = principal.user_id if principal.is_identified else None
    return principal


def get_request_context(
    principal: Principal = Depends(get_current_principal),
    x_request_id: str | None = Header(default=None),
) -> RequestContext:
    return RequestContext(principal=principal, request_id=x_request_id)
