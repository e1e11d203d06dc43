"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from fastapi import Depends

from core.config import get_settings
from core.metadata_store import MetadataStore
from core.object_store import ObjectStore


def get_s3_client() -> Generator:
  from core.aws import get_s3_client as _get_client
  yield _get_client()

def get_dynamodb_client() -> Generator:
  from core.aws import get_dynamodb_client as _get_client
  yield _get_client()

def get_object_store(s3_client=Depends(get_s3_client)) -> ObjectStore:
  return ObjectStore(s3_client, get_settings().S3_BUCKET_NAME)

def get_metadata_store(dynamodb_client=Depends(get_dynamodb_client)) -> MetadataStore:
  settings = get_settings()
  return MetadataStore(
    dynamodb_client, settings.DYNAMODB_TABLE_NAME, settings.DYNAMODB_HASH_INDEX
  )

ObjectStoreDep: TypeAlias = Annotated[ObjectStore, Depends(get_object_store)]
MetadataStoreDep: TypeAlias = Annotated[MetadataStore, Depends(get_metadata_store)]
