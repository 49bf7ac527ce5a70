"""Component repositories and artifact sinks.

A repository lists the candidate components of one ``(species, category)``
folder; a sink stores a finished artifact under a destination key and
returns where it can be retrieved. Uploading the same key twice replaces
the content.
"""

import logging
import pathlib
import shutil
from typing import List, Protocol

import boto3
import requests

import config
from layers import ComponentDescriptor, kind_for

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class ComponentRepository(Protocol):
    def list(self, species: str, category: str) -> List[ComponentDescriptor]:
        ...


class ArtifactSink(Protocol):
    def upload(self, local_path: pathlib.Path, destination_key: str) -> str:
        ...


CONTENT_TYPES = {
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def describe(name: str, locator: str) -> ComponentDescriptor:
    return ComponentDescriptor(locator=locator, name=name, kind=kind_for(name))


def content_type(path) -> str:
    """Content type of a component file; non-image files are rejected."""
    suffix = pathlib.PurePath(path).suffix.lower()
    if suffix not in CONTENT_TYPES:
        raise ValueError(f"Not a component image: {path}")
    return CONTENT_TYPES[suffix]


def component_key(path, species: str, category: str) -> str:
    return f"{species}/{category}/{pathlib.PurePath(path).name}"


class LocalRepository:
    """Components stored as ``<root>/<species>/<category>/<file>``."""

    def __init__(self, root: pathlib.Path = config.ASSETS_PATH):
        self.root = pathlib.Path(root)

    def list(self, species: str, category: str) -> List[ComponentDescriptor]:
        folder = self.root / species / category
        if not folder.is_dir():
            return []
        return [
            describe(path.name, str(path))
            for path in sorted(folder.iterdir())
            if path.is_file()
        ]


class LocalSink:
    """Copies artifacts into a local folder tree."""

    def __init__(self, root: pathlib.Path):
        self.root = pathlib.Path(root)

    def upload(self, local_path: pathlib.Path, destination_key: str) -> str:
        destination = self.root / destination_key
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, destination)
        return str(destination)

    def upload_component(self, local_path: pathlib.Path, species: str, category: str) -> str:
        content_type(local_path)  # rejects non-image files
        return self.upload(local_path, component_key(local_path, species, category))


class S3Storage:
    """AWS S3 component repository and artifact sink."""

    def __init__(
        self,
        client=None,
        components_bucket: str = config.COMPONENTS_BUCKET,
        storage_bucket: str = config.STORAGE_BUCKET,
        region: str = config.AWS_REGION,
    ):
        if client is None:
            if not config.AWS_ACCESS_KEY_ID or not config.AWS_SECRET_ACCESS_KEY:
                raise ValueError("AWS credentials are required")
            client = boto3.client(
                "s3",
                aws_access_key_id=config.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
                region_name=region,
            )
        self.s3 = client
        self.components_bucket = components_bucket
        self.storage_bucket = storage_bucket
        self.region = region

    def _url(self, bucket: str, key: str) -> str:
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"

    def list(self, species: str, category: str) -> List[ComponentDescriptor]:
        prefix = f"{species}/{category}/"
        paginator = self.s3.get_paginator("list_objects_v2")
        components = []
        for page in paginator.paginate(Bucket=self.components_bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                key = item["Key"]
                name = key.rsplit("/", 1)[-1]
                if not name:
                    continue
                components.append(describe(name, self._url(self.components_bucket, key)))
        return components

    def _put(self, bucket: str, key: str, local_path: pathlib.Path, content_type: str) -> str:
        self.s3.put_object(
            Bucket=bucket,
            Key=key,
            Body=pathlib.Path(local_path).read_bytes(),
            ContentType=content_type,
        )
        return self._url(bucket, key)

    def upload(self, local_path: pathlib.Path, destination_key: str) -> str:
        return self._put(self.storage_bucket, destination_key, local_path, "image/png")

    def upload_component(self, local_path: pathlib.Path, species: str, category: str) -> str:
        key = component_key(local_path, species, category)
        return self._put(self.components_bucket, key, local_path, content_type(local_path))


class SupabaseStorage:
    """Supabase storage over its REST API."""

    def __init__(
        self,
        url: str = config.SUPABASE_URL,
        key: str = config.SUPABASE_SERVICE_KEY,
        components_bucket: str = config.COMPONENTS_BUCKET,
        storage_bucket: str = config.STORAGE_BUCKET,
        session: requests.Session = None,
    ):
        if not url or not key:
            raise ValueError(
                "Supabase URL and key are required. Set SUPABASE_URL and SUPABASE_SERVICE_KEY."
            )
        self.url = url.rstrip("/")
        self.components_bucket = components_bucket
        self.storage_bucket = storage_bucket
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {key}", "apikey": key})

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"

    def list(self, species: str, category: str) -> List[ComponentDescriptor]:
        folder = f"{species}/{category}"
        response = self.session.post(
            f"{self.url}/storage/v1/object/list/{self.components_bucket}",
            json={
                "prefix": folder,
                "limit": 1000,
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        components = []
        for item in response.json() or []:
            # Folders come back with a null id
            if item.get("id") is None:
                continue
            name = item["name"]
            components.append(
                describe(name, self.public_url(self.components_bucket, f"{folder}/{name}"))
            )
        return components

    def _put(self, bucket: str, path: str, local_path: pathlib.Path, content_type: str) -> str:
        response = self.session.post(
            f"{self.url}/storage/v1/object/{bucket}/{path}",
            data=pathlib.Path(local_path).read_bytes(),
            headers={"Content-Type": content_type, "x-upsert": "true"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return self.public_url(bucket, path)

    def upload(self, local_path: pathlib.Path, destination_key: str) -> str:
        return self._put(self.storage_bucket, destination_key, local_path, "image/png")

    def upload_component(self, local_path: pathlib.Path, species: str, category: str) -> str:
        path = component_key(local_path, species, category)
        return self._put(self.components_bucket, path, local_path, content_type(local_path))


def create_storage(name: str = config.STORAGE):
    """Return ``(repository, sink)`` for a storage backend name."""
    if name == "s3":
        storage = S3Storage()
        return storage, storage
    if name == "supabase":
        storage = SupabaseStorage()
        return storage, storage
    if name == "local":
        return LocalRepository(config.ASSETS_PATH), None
    raise ValueError(f"Unknown storage backend: {name}")


def create_component_uploader(name: str = config.STORAGE):
    """Return the adapter that writes into the component store of a backend."""
    if name == "local":
        return LocalSink(config.ASSETS_PATH)
    repository, _ = create_storage(name)
    return repository


def main() -> None:
    """Upload one component image into a species/category folder."""
    file_path = pathlib.Path(input("Component file: ").strip())
    species = input(f"Species ({', '.join(config.AVAILABLE_SPECIES)}): ").strip().lower()
    category = input(f"Category ({', '.join(layer[0] for layer in config.LAYERS)}): ").strip()

    if not file_path.is_file():
        print(f"File not found: {file_path}")
        return

    uploader = create_component_uploader(config.STORAGE)
    print(f"Uploading {file_path.name} to {species}/{category}...")
    url = uploader.upload_component(file_path, species, category)
    print("✅ Upload successful!")
    print(f"URL: {url}")


if __name__ == "__main__":
    main()
