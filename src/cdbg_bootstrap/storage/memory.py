"""In-process ObjectStore with the same semantics as the GCS backend."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from cdbg_bootstrap.core.exceptions import ObjectNotFoundError
from cdbg_bootstrap.core.models import BucketInfo


class InMemoryObjectStore:
    """Thread-safe fake used for local runs and race simulations."""

    def __init__(self, project_numbers: Optional[Dict[str, str]] = None):
        # project id -> project number, used to stamp created buckets
        self.project_numbers = dict(project_numbers or {})
        self._lock = threading.Lock()
        self._buckets: Dict[str, BucketInfo] = {}
        self._objects: Dict[Tuple[str, str], bytes] = {}
        self.copy_count = 0

    def add_bucket(self, name: str, project_number: Optional[str]) -> None:
        with self._lock:
            self._buckets[name] = BucketInfo(name=name, project_number=project_number)

    def seed_object(self, bucket: str, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[(bucket, key)] = data

    @property
    def objects(self) -> Dict[Tuple[str, str], bytes]:
        with self._lock:
            return dict(self._objects)

    def create_bucket(self, name: str, project_id: str) -> bool:
        with self._lock:
            if name in self._buckets:
                return False
            self._buckets[name] = BucketInfo(
                name=name, project_number=self.project_numbers.get(project_id)
            )
            return True

    def get_bucket(self, name: str) -> BucketInfo:
        with self._lock:
            try:
                return self._buckets[name]
            except KeyError:
                raise ObjectNotFoundError(f"Bucket {name} not found", status_code=404) from None

    def copy_if_absent(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> bool:
        with self._lock:
            try:
                data = self._objects[(src_bucket, src_key)]
            except KeyError:
                raise ObjectNotFoundError(
                    f"Object gs://{src_bucket}/{src_key} not found", status_code=404
                ) from None
            if (dst_bucket, dst_key) in self._objects:
                return False
            self._objects[(dst_bucket, dst_key)] = data
            self.copy_count += 1
            return True

    def download(self, bucket: str, key: str, dest: Path) -> Path:
        with self._lock:
            data = self._objects.get((bucket, key))
        if data is None:
            raise ObjectNotFoundError(f"Object gs://{bucket}/{key} not found", status_code=404)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return dest
