from .base import BaseService, MissingUserError, MultipartProtocolError, ServiceError
from .bundle import ServiceBundle, get_service_bundle
from .chunker import Part, iter_parts, iter_upload_file
from .listing_service import ListingService, namespace_for
from .upload_service import UploadService, UploadSession

__all__ = [
    "BaseService",
    "ServiceError",
    "MissingUserError",
    "MultipartProtocolError",
    "ServiceBundle",
    "get_service_bundle",
    "Part",
    "iter_parts",
    "iter_upload_file",
    "ListingService",
    "namespace_for",
    "UploadService",
    "UploadSession",
]
