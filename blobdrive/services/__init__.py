"""Services for blobdrive."""
from .api_client import HTTPAPIClient
from .blob_client import BlobStoreClient, NativeBlobWriter, is_synthetic
from .metadata_store import MetadataStore
from .pricing import PricingEstimator
from .rate_cache import ExchangeRateCache, get_exchange_rate_cache
from .upload_chain import UploadFallbackChain, UploadOptions

__all__ = [
    "HTTPAPIClient",
    "BlobStoreClient",
    "NativeBlobWriter",
    "is_synthetic",
    "MetadataStore",
    "PricingEstimator",
    "ExchangeRateCache",
    "get_exchange_rate_cache",
    "UploadFallbackChain",
    "UploadOptions",
]
