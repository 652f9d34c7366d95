"""On-disk backup snapshots with hash verification and idempotent restore."""

from __future__ import annotations

import hashlib
import json
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path, PurePosixPath

from code_sweep.errors import BackupFailureError, BackupNotFoundError
from code_sweep.fs import FileSystem, LocalFileSystem
from code_sweep.models import BackupEntry, BackupRecord, RollbackResult

logger = logging.getLogger(__name__)

MANIFEST = "manifest.json"
_ID_RE = re.compile(r"^[\w.-]+$")


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _safe_relative(path: str) -> bool:
    pure = PurePosixPath(path)
    return bool(path) and not pure.is_absolute() and ".." not in pure.parts


class BackupStore:
    """Backups of one project root.

    Layout::

        <location>/<rollback_id>/manifest.json
        <location>/<rollback_id>/files/<project-relative path>
    """

    def __init__(self, root: Path, location: str | Path, fs: FileSystem | None = None):
        self.root = Path(root).resolve()
        location = Path(location)
        self.location = location if location.is_absolute() else self.root / location
        self.fs = fs or LocalFileSystem()

    def backup_dir(self, rollback_id: str) -> Path:
        return self.location / rollback_id

    # ── create ──────────────────────────────────────────────

    def create(self, paths: list[str]) -> BackupRecord:
        """Copy ``paths`` into a new snapshot, verified and fsynced.

        Raises ``BackupFailureError`` after removing the partial snapshot.
        """
        rollback_id = f"{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:8]}"
        target = self.backup_dir(rollback_id)
        record = BackupRecord(
            rollback_id=rollback_id,
            root=str(self.root),
            created=datetime.now().isoformat(timespec="seconds"),
        )
        current = ""
        try:
            for current in sorted(paths):
                if not _safe_relative(current):
                    raise BackupFailureError(current, "path escapes the project root")
                source = self.root / current
                data = self.fs.read_bytes(source)
                st = self.fs.stat(source)
                digest = sha256(data)
                copy = target / "files" / current
                self.fs.write_bytes(copy, data, durable=True)
                if sha256(self.fs.read_bytes(copy)) != digest:
                    raise BackupFailureError(current, "backup copy does not match the original")
                record.entries.append(BackupEntry(
                    path=current, sha256=digest, size=len(data), mode=st.mode, mtime=st.mtime,
                ))
            current = MANIFEST
            self._write_manifest(record)
        except BackupFailureError:
            self.fs.remove_tree(target)
            raise
        except OSError as e:
            self.fs.remove_tree(target)
            raise BackupFailureError(current, str(e)) from e

        logger.info("Backed up %d file(s) as %s", len(record.entries), rollback_id)
        return record

    # ── read ────────────────────────────────────────────────

    def load(self, rollback_id: str) -> BackupRecord:
        if not _ID_RE.match(rollback_id or ""):
            raise BackupNotFoundError(rollback_id)
        manifest = self.backup_dir(rollback_id) / MANIFEST
        if not self.fs.exists(manifest):
            raise BackupNotFoundError(rollback_id)
        try:
            data = json.loads(self.fs.read_text(manifest))
            entries = [BackupEntry(**e) for e in data.get("entries", [])]
        except (OSError, ValueError, TypeError) as e:
            logger.error("Corrupt backup manifest %s: %s", manifest, e)
            raise BackupNotFoundError(rollback_id) from e
        return BackupRecord(
            rollback_id=data.get("rollback_id", rollback_id),
            root=data.get("root", str(self.root)),
            created=data.get("created", ""),
            entries=entries,
            restored=list(data.get("restored", [])),
        )

    def list_backups(self) -> list[BackupRecord]:
        """All readable backups, newest first."""
        records: list[BackupRecord] = []
        for entry in self.fs.list_dir(self.location):
            if not self.fs.exists(entry / MANIFEST):
                continue
            try:
                records.append(self.load(entry.name))
            except BackupNotFoundError:
                continue
        records.sort(key=lambda r: (r.created, r.rollback_id), reverse=True)
        return records

    # ── restore ─────────────────────────────────────────────

    def restore(self, rollback_id: str, paths: list[str] | None = None) -> RollbackResult:
        """Put backed-up files back. Files already identical are counted as restored."""
        record = self.load(rollback_id)
        wanted = set(paths) if paths is not None else None
        result = RollbackResult(rollback_id=rollback_id)

        for entry in record.entries:
            if wanted is not None and entry.path not in wanted:
                continue
            if not _safe_relative(entry.path):
                result.failed[entry.path] = "path escapes the project root"
                continue
            destination = self.root / entry.path
            try:
                data = self.fs.read_bytes(self.backup_dir(rollback_id) / "files" / entry.path)
                if sha256(data) != entry.sha256:
                    result.failed[entry.path] = "backup copy is corrupted (hash mismatch)"
                    continue
                if self.fs.exists(destination):
                    if sha256(self.fs.read_bytes(destination)) == entry.sha256:
                        result.restored.append(entry.path)
                        continue
                    logger.warning(
                        "Rollback %s replaces %s, which was changed after the cleanup",
                        rollback_id, entry.path,
                    )
                    result.overwritten.append(entry.path)
                self.fs.write_bytes(destination, data, durable=True)
                self.fs.set_metadata(destination, entry.mode, entry.mtime)
                result.restored.append(entry.path)
            except OSError as e:
                result.failed[entry.path] = str(e)

        if wanted is None:
            record.restored.append(datetime.now().isoformat(timespec="seconds"))
            try:
                self._write_manifest(record)
            except OSError as e:
                logger.warning("Could not record restore in %s: %s", rollback_id, e)

        if result.failed:
            logger.error("Rollback %s failed for %d file(s)", rollback_id, len(result.failed))
        else:
            logger.info("Rollback %s restored %d file(s)", rollback_id, len(result.restored))
        return result

    def _write_manifest(self, record: BackupRecord) -> None:
        payload = {
            "rollback_id": record.rollback_id,
            "root": record.root,
            "created": record.created,
            "entries": [
                {"path": e.path, "sha256": e.sha256, "size": e.size, "mode": e.mode, "mtime": e.mtime}
                for e in record.entries
            ],
            "restored": record.restored,
        }
        self.fs.write_bytes(
            self.backup_dir(record.rollback_id) / MANIFEST,
            json.dumps(payload, indent=2).encode("utf-8"),
            durable=True,
        )
