"""Settings and secret storage for HarmonyDesk.

Plain values (SMTP host, demo flag, log level...) live in ``settings.json``.
Secrets such as the SMTP password are kept in ``secrets.enc``, a Fernet token
whose key is derived with PBKDF2 from ``HARMONYDESK_SECRET_KEY`` or, when that
is unset, from a ``master.key`` generated on first run.
"""

from __future__ import annotations

import base64
import json
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

DEFAULT_KDF_ITERATIONS = 390_000


def _default_config_dir() -> Path:
    explicit = os.environ.get("HARMONYDESK_CONFIG_DIR")
    if explicit:
        return Path(explicit)
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "harmonydesk"
    return Path.home() / ".config" / "harmonydesk"


def _write_atomic(path: Path, data: bytes) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)


@dataclass
class SettingsPaths:
    config_dir: Path
    settings_file: Path
    secrets_file: Path
    master_key_file: Path

    @classmethod
    def under(cls, config_dir: Path) -> "SettingsPaths":
        return cls(
            config_dir=config_dir,
            settings_file=config_dir / "settings.json",
            secrets_file=config_dir / "secrets.enc",
            master_key_file=config_dir / "master.key",
        )


class SettingsManager:
    SETTINGS_SCHEMA_VERSION = 1

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.paths = SettingsPaths.under(config_dir or _default_config_dir())
        self.paths.config_dir.mkdir(parents=True, exist_ok=True)
        self._settings: Dict[str, Any] = self._read_settings()
        self._ensure_kdf_params()
        self.default_passphrase: str = (
            os.environ.get("HARMONYDESK_SECRET_KEY") or self._master_key()
        )

    # -- plain settings --------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        self._settings.update(values)
        self._write_settings()

    def delete(self, key: str) -> None:
        if key in self._settings:
            del self._settings[key]
            self._write_settings()

    # -- secrets ---------------------------------------------------------
    def get_secret(self, key: str, default: Any = None, passphrase: Optional[str] = None) -> Any:
        return self._read_secrets(passphrase).get(key, default)

    def set_secret(self, key: str, value: Any, passphrase: Optional[str] = None) -> None:
        payload = self._read_secrets(passphrase)
        payload[key] = value
        self._write_secrets(payload, passphrase)

    def delete_secret(self, key: str, passphrase: Optional[str] = None) -> None:
        payload = self._read_secrets(passphrase)
        if key in payload:
            del payload[key]
            self._write_secrets(payload, passphrase)

    # -- storage ---------------------------------------------------------
    def _read_settings(self) -> Dict[str, Any]:
        try:
            return json.loads(self.paths.settings_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            raise RuntimeError(
                f"{self.paths.settings_file} is corrupted; repair or delete it."
            ) from None

    def _write_settings(self) -> None:
        data = json.dumps(self._settings, indent=2, sort_keys=True).encode("utf-8")
        _write_atomic(self.paths.settings_file, data)

    def _ensure_kdf_params(self) -> None:
        if int(self._settings.get("schema_version", 0)) >= self.SETTINGS_SCHEMA_VERSION:
            return
        self._settings["schema_version"] = self.SETTINGS_SCHEMA_VERSION
        self._settings.setdefault("secret_iterations", DEFAULT_KDF_ITERATIONS)
        self._settings.setdefault(
            "secret_salt", base64.urlsafe_b64encode(os.urandom(16)).decode("ascii")
        )
        self._write_settings()

    def _master_key(self) -> str:
        key_path = self.paths.master_key_file
        if key_path.exists():
            key = key_path.read_text(encoding="utf-8").strip()
            if key:
                return key

        key = secrets.token_urlsafe(32)
        key_path.write_text(key, encoding="utf-8")
        try:
            key_path.chmod(0o600)
        except OSError:
            pass
        return key

    def _fernet(self, passphrase: Optional[str]) -> Fernet:
        salt_b64 = self._settings.get("secret_salt")
        if not salt_b64:
            raise RuntimeError("Settings are missing the secret salt; delete settings.json to reinitialise.")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=base64.urlsafe_b64decode(salt_b64),
            iterations=int(self._settings.get("secret_iterations", DEFAULT_KDF_ITERATIONS)),
        )
        secret = (passphrase or self.default_passphrase).encode("utf-8")
        return Fernet(base64.urlsafe_b64encode(kdf.derive(secret)))

    def _read_secrets(self, passphrase: Optional[str]) -> Dict[str, Any]:
        if not self.paths.secrets_file.exists():
            return {}
        try:
            decrypted = self._fernet(passphrase).decrypt(self.paths.secrets_file.read_bytes())
        except InvalidToken as exc:
            raise RuntimeError("Unable to decrypt secrets store. Invalid passphrase?") from exc
        try:
            return json.loads(decrypted.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError("Secrets store is corrupted.") from exc

    def _write_secrets(self, payload: Dict[str, Any], passphrase: Optional[str]) -> None:
        token = self._fernet(passphrase).encrypt(json.dumps(payload).encode("utf-8"))
        _write_atomic(self.paths.secrets_file, token)


settings_manager = SettingsManager()
