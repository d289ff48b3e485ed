from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional

import bcrypt


ADMIN_FILE = "operator.json"
MIN_PASSWORD_LENGTH = 10


@dataclass
class OperatorAccount:
    username: str
    password_hash: str


class CredentialStore:
    """The single console operator account, bcrypt-hashed in the data dir."""

    def __init__(self, data_dir: str, username: Optional[str] = None, password_hash: Optional[str] = None) -> None:
        self._path = os.path.join(data_dir, ADMIN_FILE)
        # Env overrides
        self._env_account = OperatorAccount(username, password_hash) if username and password_hash else None

    def get(self) -> Optional[OperatorAccount]:
        if self._env_account:
            return self._env_account
        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        if not data.get("username") or not data.get("password_hash"):
            return None
        return OperatorAccount(data["username"], data["password_hash"])

    def initialized(self) -> bool:
        return self.get() is not None

    def initialize(self, username: str, password: str) -> None:
        if self.initialized():
            raise ValueError("Operator account already initialized")
        self._write(username, password)

    def authenticate(self, username: str, password: str) -> bool:
        account = self.get()
        if account is None or username != account.username:
            return False
        return self.verify(password, account.password_hash)

    def change_password(self, current: str, new: str) -> None:
        account = self.get()
        if account is None:
            raise ValueError("Operator account not initialized")
        if self._env_account:
            raise ValueError("Operator account is managed through the environment")
        if not self.verify(current, account.password_hash):
            raise PermissionError("Invalid current password")
        self._write(account.username, new)

    @staticmethod
    def verify(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            return False

    def _write(self, username: str, password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError("Password too short")
        hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()
        os.makedirs(os.path.dirname(self._path), exist_ok=True)
        tmp = self._path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"username": username, "password_hash": hashed}, f)
        os.replace(tmp, self._path)
        os.chmod(self._path, 0o600)
