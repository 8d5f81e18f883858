from __future__ import annotations

from dataclasses import dataclass, field

from app.common.config import Settings
from app.infra.storage.client import StorageClient

from .listing_service import ListingService
from .upload_service import UploadService


@dataclass
class ServiceBundle:
    """Lazily constructs application services sharing one storage client."""

    storage: StorageClient
    settings: Settings
    _upload: UploadService | None = field(default=None, init=False, repr=False)
    _listing: ListingService | None = field(default=None, init=False, repr=False)

    def upload(self) -> UploadService:
        if self._upload is None:
            self._upload = UploadService(self.storage, settings=self.settings)
        return self._upload

    def listing(self) -> ListingService:
        if self._listing is None:
            self._listing = ListingService(self.storage, settings=self.settings)
        return self._listing


def get_service_bundle(storage: StorageClient, settings: Settings) -> ServiceBundle:
    return ServiceBundle(storage=storage, settings=settings)
