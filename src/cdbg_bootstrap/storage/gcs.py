"""Google Cloud Storage backend over the JSON API."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

import httpx
import structlog

from cdbg_bootstrap.core.exceptions import (
    ObjectNotFoundError,
    PreconditionFailedError,
    StorageError,
)
from cdbg_bootstrap.core.models import BucketInfo, Credential


logger = structlog.get_logger()


def _write_stream_to_file(stream_iter: Iterator[bytes], dest_path: Path) -> int:
    """Write streaming bytes next to dest_path, then move into place.

    Returns number of bytes written.
    """
    tmp_file = dest_path.with_name(dest_path.name + ".downloading")
    bytes_written = 0
    try:
        with open(tmp_file, "wb") as f:
            for chunk in stream_iter:
                if not chunk:
                    continue
                bytes_written += len(chunk)
                f.write(chunk)
    except BaseException:
        tmp_file.unlink(missing_ok=True)
        raise
    os.replace(tmp_file, dest_path)
    return bytes_written


class GcsObjectStore:
    """ObjectStore backed by Google Cloud Storage.

    All requests carry the bearer credential. Create-if-absent copies use the
    ``ifGenerationMatch=0`` precondition, which GCS evaluates atomically.
    """

    def __init__(
        self,
        client: httpx.Client,
        credential: Credential,
        api_base: str = "https://www.googleapis.com",
        download_base: str = "https://storage.googleapis.com",
    ):
        self.client = client
        self.credential = credential
        self.api_base = api_base.rstrip("/")
        self.download_base = download_base.rstrip("/")

    @property
    def _headers(self) -> dict:
        return {"Authorization": self.credential.authorization}

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response, what: str) -> None:
        if resp.status_code == 404:
            raise ObjectNotFoundError(f"{what} not found", status_code=404)
        if resp.status_code == 412:
            raise PreconditionFailedError(f"{what} precondition failed", status_code=412)
        if resp.is_error:
            raise StorageError(
                f"{what} failed with HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

    def create_bucket(self, name: str, project_id: str) -> bool:
        resp = self._request(
            "POST",
            f"{self.api_base}/storage/v1/b",
            params={"project": project_id, "predefinedAcl": "projectPrivate", "projection": "noAcl"},
            json={"name": name},
        )
        if resp.status_code == 409:
            logger.debug("Bucket already exists", bucket=name)
            return False
        self._raise_for_status(resp, f"Create bucket {name}")
        logger.info("Created bucket", bucket=name, project_id=project_id)
        return True

    def get_bucket(self, name: str) -> BucketInfo:
        resp = self._request("GET", f"{self.api_base}/storage/v1/b/{quote(name, safe='')}")
        self._raise_for_status(resp, f"Bucket {name}")
        try:
            data = resp.json()
        except ValueError as e:
            raise StorageError(f"Bucket {name} metadata is not valid JSON") from e
        logger.debug("Bucket info", bucket=name, info=data)
        project_number = data.get("projectNumber")
        return BucketInfo(
            name=data.get("name", name),
            project_number=str(project_number) if project_number is not None else None,
        )

    def copy_if_absent(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> bool:
        url = (
            f"{self.api_base}/storage/v1/b/{quote(src_bucket, safe='')}/o/{quote(src_key, safe='')}"
            f"/copyTo/b/{quote(dst_bucket, safe='')}/o/{quote(dst_key, safe='')}"
        )
        resp = self._request("POST", url, params={"ifGenerationMatch": "0"}, json={})
        if resp.status_code == 412:
            logger.debug("Destination object already exists", bucket=dst_bucket, key=dst_key)
            return False
        self._raise_for_status(resp, f"Copy gs://{src_bucket}/{src_key}")
        return True

    def download(self, bucket: str, key: str, dest: Path) -> Path:
        url = f"{self.download_base}/{quote(bucket, safe='')}/{quote(key, safe='/')}"
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self.client.stream("GET", url, headers=self._headers, follow_redirects=True) as resp:
                if resp.is_error:
                    resp.read()
                self._raise_for_status(resp, f"Object gs://{bucket}/{key}")
                bytes_written = _write_stream_to_file(resp.iter_bytes(), dest)
        except httpx.HTTPError as e:
            raise StorageError(f"Download of gs://{bucket}/{key} failed: {e}") from e
        logger.info("Downloaded object", bucket=bucket, key=key, bytes=bytes_written)
        return dest
