from __future__ import annotations

import base64
import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from ..models.segments import SegmentKind, SegmentRecord
from .errors import StoreFailure


logger = logging.getLogger(__name__)

SECRET_FILE = "secret.key"


def load_or_create_key(data_dir: str, secret_key: Optional[str] = None) -> bytes:
    if secret_key:
        key = secret_key.encode()
        try:
            if len(base64.urlsafe_b64decode(key)) == 32:
                return key
        except ValueError:
            pass
        # Derive from provided string
        return base64.urlsafe_b64encode(key.ljust(32, b"0")[:32])
    path = os.path.join(data_dir, SECRET_FILE)
    if os.path.exists(path):
        with open(path, "rb") as f:
            return f.read().strip()
    key = Fernet.generate_key()
    os.makedirs(data_dir, exist_ok=True)
    with open(path, "wb") as f:
        f.write(key)
    os.chmod(path, 0o600)
    return key


class ConfigStore:
    """Desired state, one JSON document per segment.

    Documents live at ``<root>/<kind>/<key>.json`` and are replaced
    atomically, so readers never need a lock. Writers lock per (kind, key).
    """

    def __init__(self, root: str, fernet: Fernet) -> None:
        self._root = root
        self._fernet = fernet
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        for kind in SegmentKind:
            os.makedirs(os.path.join(self._root, kind.value), exist_ok=True)

    def _path(self, kind: SegmentKind, key: str) -> str:
        if not key or "/" in key or key.startswith("."):
            raise StoreFailure(f"Invalid store key: {key!r}", kind=kind.value, key=key)
        return os.path.join(self._root, kind.value, f"{key}.json")

    def _lock(self, kind: SegmentKind, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((kind.value, key), threading.Lock())

    def _seal(self, record: SegmentRecord) -> Dict[str, Any]:
        data = record.model_dump(mode="json", by_alias=True)
        cfg = data["config"]
        if record.kind == SegmentKind.WIRELESS and cfg.get("password"):
            cfg["password_enc"] = self._fernet.encrypt(cfg.pop("password").encode()).decode()
        return data

    def _unseal(self, data: Dict[str, Any]) -> SegmentRecord:
        cfg = data.get("config", {})
        token = cfg.pop("password_enc", None)
        if token:
            cfg["password"] = self._fernet.decrypt(token.encode()).decode()
        return SegmentRecord.model_validate(data)

    def _read(self, path: str) -> SegmentRecord:
        with open(path, "r", encoding="utf-8") as f:
            return self._unseal(json.load(f))

    def get(self, kind: SegmentKind, key: str) -> Optional[SegmentRecord]:
        path = self._path(kind, key)
        if not os.path.exists(path):
            return None
        try:
            return self._read(path)
        except (OSError, ValueError, ValidationError, InvalidToken) as exc:
            raise StoreFailure(f"Unreadable {kind.value} record {key}: {exc}", kind=kind.value, key=key) from exc

    def put(self, kind: SegmentKind, key: str, record: SegmentRecord) -> None:
        if record.kind != kind or record.key != key:
            raise StoreFailure(f"Record {record.kind.value}:{record.key} stored under {kind.value}:{key}", kind=kind.value, key=key)
        path = self._path(kind, key)
        tmp = path + ".tmp"
        with self._lock(kind, key):
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(self._seal(record), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, path)
                os.chmod(path, 0o600)
            except OSError as exc:
                raise StoreFailure(f"Failed to persist {kind.value} {key}: {exc}", kind=kind.value, key=key) from exc
        logger.debug(f"Stored {kind.value}:{key}")

    def delete(self, kind: SegmentKind, key: str) -> bool:
        path = self._path(kind, key)
        with self._lock(kind, key):
            try:
                os.remove(path)
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StoreFailure(f"Failed to delete {kind.value} {key}: {exc}", kind=kind.value, key=key) from exc
        logger.debug(f"Deleted {kind.value}:{key}")
        return True

    def list(self, kind: SegmentKind) -> List[SegmentRecord]:
        directory = os.path.join(self._root, kind.value)
        records: List[SegmentRecord] = []
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            raise StoreFailure(f"Failed to list {kind.value}: {exc}", kind=kind.value) from exc
        for name in names:
            if not name.endswith(".json"):
                continue
            try:
                records.append(self._read(os.path.join(directory, name)))
            except FileNotFoundError:
                continue  # deleted while listing
            except (OSError, ValueError, ValidationError, InvalidToken) as exc:
                logger.error(f"Skipping unreadable {kind.value} record {name}: {exc}")
        return records

    def snapshot(self) -> Dict[SegmentKind, Dict[str, SegmentRecord]]:
        return {kind: {r.key: r for r in self.list(kind)} for kind in SegmentKind}
