"""Blob storage adapters."""

from .base import BlobLocation, BlobNotFoundError, BlobStore, BlobStoreError, ObjectFacts
from .memory import InMemoryBlobStore
from .s3 import S3BlobStore

__all__ = [
    "BlobLocation",
    "BlobNotFoundError",
    "BlobStore",
    "BlobStoreError",
    "InMemoryBlobStore",
    "ObjectFacts",
    "S3BlobStore",
]
