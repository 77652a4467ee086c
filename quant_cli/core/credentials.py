"""Multi-platform credential store.

One JSON document under the config directory holds every authenticated
platform plus a pointer to the active one::

    {
      "activePlatform": "quantcdn",
      "platforms": {
        "quantcdn": {"token": "...", "host": "...", "platformInfo": {...}}
      }
    }

Persistence pattern:
  - Every operation starts from a fresh ``load()``; nothing is cached.
  - Mutations are read-modify-write of the whole file (last writer wins, no
    locking between concurrent CLI processes).
  - Reads never raise: a missing, unreadable or malformed file degrades to an
    empty store. Writes propagate their errors.
  - A single platform entry that fails validation is skipped on read and
    written back unchanged, so it never takes the other platforms down with it.
  - A legacy single-platform file (a bare session with no ``platforms`` key) is
    upgraded in place the first time it is read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from quant_cli.core.errors import NoActivePlatformError
from quant_cli.core.io import read_json, write_json
from quant_cli.core.models import (
    AuthConfig,
    AuthConfigUpdate,
    LoadResult,
    MultiPlatformConfig,
    PlatformEntry,
    PlatformInfo,
    PlatformRecord,
)
from quant_cli.core.platforms import platform_info_for_host
from quant_cli.core.settings import load_settings

logger = logging.getLogger("quant.credentials")


class CredentialStore:
    """Read and mutate the credential file at ``path``."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._path = Path(path) if path else load_settings().credentials_file

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # ── Load / save ──────────────────────────────────────────

    def load_result(self) -> LoadResult:
        """Load the store, reporting whether the file had to be discarded."""
        if not self._path.exists():
            return LoadResult(config=MultiPlatformConfig())

        try:
            raw = read_json(self._path)
        except (OSError, ValueError) as e:
            return self._degraded(f"unreadable credential file: {e}")

        if not isinstance(raw, dict):
            return self._degraded("credential file root is not an object")

        if "platforms" not in raw:
            return self._migrate_legacy(raw)

        entries = raw["platforms"]
        if not isinstance(entries, dict):
            return self._degraded("'platforms' is not an object")
        try:
            config = MultiPlatformConfig.model_validate({**raw, "platforms": {}})
        except ValidationError as e:
            return self._degraded(f"invalid credential file: {e.error_count()} validation error(s)")

        for platform_id, entry in entries.items():
            try:
                config.platforms[platform_id] = PlatformRecord.model_validate(entry)
            except ValidationError as e:
                logger.warning(
                    "Skipping unreadable platform '%s' in %s: %d validation error(s)",
                    platform_id, self._path, e.error_count(),
                )
                config.unreadable[platform_id] = entry
        return LoadResult(config=config, skipped=list(config.unreadable))

    def load(self) -> MultiPlatformConfig:
        return self.load_result().config

    def save(self, config: MultiPlatformConfig) -> None:
        """Overwrite the file with ``config``. Errors propagate."""
        write_json(self._path, config.to_dict())
        logger.debug("Saved credentials for %d platform(s) to %s", len(config.platforms), self._path)

    def clear(self) -> bool:
        """Delete the credential file. Returns False when there was none."""
        if not self._path.exists():
            return False
        self._path.unlink()
        return True

    def _degraded(self, reason: str) -> LoadResult:
        logger.warning("Ignoring credential file %s: %s", self._path, reason)
        return LoadResult(config=MultiPlatformConfig(), degraded=True, reason=reason)

    def _migrate_legacy(self, raw: dict) -> LoadResult:
        host = raw.get("host")
        if not isinstance(host, str) or not host:
            return self._degraded("legacy credential file has no host")
        try:
            legacy = AuthConfig.model_validate(raw)
        except ValidationError as e:
            return self._degraded(f"invalid legacy credential file: {e.error_count()} validation error(s)")

        info = platform_info_for_host(host)
        config = MultiPlatformConfig(
            active_platform=info.id,
            platforms={info.id: PlatformRecord.build(legacy, info)},
        )
        logger.info("Migrating legacy credentials for %s to platform '%s'", host, info.id)
        try:
            self.save(config)
        except OSError as e:
            logger.warning("Could not write migrated credentials to %s: %s", self._path, e)
        return LoadResult(config=config, migrated=True)

    # ── Queries ──────────────────────────────────────────────

    def get_active_platform_config(self) -> Optional[AuthConfig]:
        record = self.load().active_record()
        return record.auth_config() if record else None

    def get_platform_config(self, platform_id: str) -> Optional[AuthConfig]:
        record = self.load().platforms.get(platform_id)
        return record.auth_config() if record else None

    def get_platform_info(self, platform_id: str) -> Optional[PlatformInfo]:
        record = self.load().platforms.get(platform_id)
        return record.platform_info if record else None

    def list_platforms(self) -> List[PlatformEntry]:
        config = self.load()
        return [
            PlatformEntry(id=pid, info=record.platform_info, is_active=pid == config.active_platform)
            for pid, record in config.platforms.items()
        ]

    # ── Mutations ────────────────────────────────────────────

    def save_platform_config(
        self,
        platform_id: str,
        auth_config: AuthConfig,
        platform_info: PlatformInfo,
    ) -> None:
        """Insert or replace one platform entry.

        The entry becomes active when the store had no platforms or no active
        platform; an existing active platform is never displaced.
        """
        config = self.load()
        had_active = bool(config.platforms) and config.active_record() is not None
        config.discard(platform_id)
        config.platforms[platform_id] = PlatformRecord.build(auth_config, platform_info)
        if not had_active:
            config.active_platform = platform_id
            logger.debug("Platform '%s' is now active", platform_id)
        self.save(config)

    def switch_platform(self, platform_id: str) -> bool:
        config = self.load()
        if platform_id not in config.platforms:
            return False
        config.active_platform = platform_id
        self.save(config)
        return True

    def remove_platform(self, platform_id: str) -> bool:
        config = self.load()
        if not config.has_platform(platform_id):
            return False
        config.discard(platform_id)
        if config.active_platform == platform_id:
            config.active_platform = next(iter(config.platforms), None)
            logger.debug("Active platform removed; now %r", config.active_platform)
        self.save(config)
        return True

    def save_active_platform_config(self, update: AuthConfigUpdate) -> AuthConfig:
        """Merge ``update`` onto the active platform's session and persist it."""
        config = self.load()
        record = config.active_record()
        if record is None:
            raise NoActivePlatformError()
        merged = record.model_copy(update=update.changes())
        config.platforms[config.active_platform] = merged
        self.save(config)
        return merged.auth_config()


def get_credential_store() -> CredentialStore:
    """Store at the configured path (re-resolved on every call)."""
    return CredentialStore()
