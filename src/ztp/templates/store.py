"""Storage backends for template bundles.

A bundle is a named unit holding a fixed set of members (the description
document and the payload template). Writers hand over the complete member set
in one ``put`` call, so a store never exposes a half-written bundle.
"""

from __future__ import annotations

import os
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from ztp.core.exceptions import (
    TemplateConflictError,
    TemplateNotFoundError,
    TemplateStorageError,
)
from ztp.core.logging import get_logger
from ztp.templates.models import validate_template_id

logger = get_logger(__name__)

STAGING_PREFIX = ".staging-"


class TemplateStore(ABC):
    @abstractmethod
    def list_ids(self) -> list[str]:
        """Return the ids of all storage units, sorted."""

    @abstractmethod
    def exists(self, template_id: str) -> bool:
        """Return True when a storage unit named ``template_id`` exists."""

    @abstractmethod
    def members(self, template_id: str) -> list[str]:
        """Return the member names of a storage unit, sorted."""

    @abstractmethod
    def read(self, template_id: str, member: str) -> bytes:
        """Return the content of one member of a storage unit."""

    @abstractmethod
    def put(self, template_id: str, members: Mapping[str, bytes]) -> None:
        """Create a storage unit holding exactly ``members``, all or nothing."""

    @abstractmethod
    def delete(self, template_id: str) -> None:
        """Remove a storage unit and every member in it."""

    def has_member(self, template_id: str, member: str) -> bool:
        try:
            return member in self.members(template_id)
        except TemplateNotFoundError:
            return False


def _check_member_name(template_id: str, member: str) -> None:
    if not member or member in {".", ".."} or "/" in member or "\\" in member:
        raise TemplateStorageError(
            f"Invalid member name {member!r} for template {template_id}",
            template_id=template_id,
        )


class FileSystemTemplateStore(TemplateStore):
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _unit_dir(self, template_id: str) -> Path:
        return self._root / validate_template_id(template_id)

    def list_ids(self) -> list[str]:
        if not self._root.is_dir():
            return []
        try:
            entries = list(self._root.iterdir())
        except OSError as err:
            raise TemplateStorageError(
                f"Failed to read templates directory {self._root}: {err}",
                details={"path": str(self._root)},
                cause=err,
            ) from err
        return sorted(
            entry.name
            for entry in entries
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def exists(self, template_id: str) -> bool:
        return self._unit_dir(template_id).is_dir()

    def members(self, template_id: str) -> list[str]:
        unit = self._unit_dir(template_id)
        if not unit.is_dir():
            raise TemplateNotFoundError(
                f"Template {template_id} does not exist", template_id=template_id
            )
        try:
            return sorted(p.name for p in unit.iterdir() if p.is_file())
        except OSError as err:
            raise TemplateStorageError(
                f"Failed to list template directory {unit}: {err}",
                template_id=template_id,
                details={"path": str(unit)},
                cause=err,
            ) from err

    def read(self, template_id: str, member: str) -> bytes:
        _check_member_name(template_id, member)
        unit = self._unit_dir(template_id)
        path = unit / member
        if not unit.is_dir():
            raise TemplateNotFoundError(
                f"Template {template_id} does not exist", template_id=template_id
            )
        if not path.is_file():
            raise TemplateNotFoundError(
                f"Template {template_id} has no {member}",
                template_id=template_id,
                details={"member": member},
            )
        try:
            return path.read_bytes()
        except OSError as err:
            raise TemplateStorageError(
                f"Failed to read {path}: {err}",
                template_id=template_id,
                details={"path": str(path)},
                cause=err,
            ) from err

    def put(self, template_id: str, members: Mapping[str, bytes]) -> None:
        destination = self._unit_dir(template_id)
        for member in members:
            _check_member_name(template_id, member)
        if destination.exists():
            raise TemplateConflictError(
                f"Template {template_id} already exists", template_id=template_id
            )

        staging = self._root / f"{STAGING_PREFIX}{template_id}-{uuid.uuid4().hex[:8]}"
        try:
            staging.mkdir(parents=True, mode=0o755)
            for member, content in members.items():
                (staging / member).write_bytes(content)
                logger.debug("template_member_staged", template_id=template_id, member=member)
            # rename(2) refuses to replace a non-empty directory
            os.rename(staging, destination)
        except OSError as err:
            self._discard(staging, template_id)
            if destination.exists():
                raise TemplateConflictError(
                    f"Template {template_id} already exists", template_id=template_id
                ) from err
            raise TemplateStorageError(
                f"Failed to write template {template_id}: {err}",
                template_id=template_id,
                details={"path": str(destination)},
                cause=err,
            ) from err
        except BaseException:
            self._discard(staging, template_id)
            raise

        logger.info(
            "template_stored",
            template_id=template_id,
            path=str(destination),
            members=sorted(members),
        )

    def delete(self, template_id: str) -> None:
        unit = self._unit_dir(template_id)
        if not unit.is_dir():
            raise TemplateNotFoundError(
                f"Template {template_id} does not exist", template_id=template_id
            )
        try:
            shutil.rmtree(unit)
        except OSError as err:
            raise TemplateStorageError(
                f"Failed to remove template directory {unit}: {err}",
                template_id=template_id,
                details={"path": str(unit)},
                cause=err,
            ) from err
        logger.info("template_removed", template_id=template_id, path=str(unit))

    def _discard(self, staging: Path, template_id: str) -> None:
        if not staging.exists():
            return
        logger.info("template_staging_discarded", template_id=template_id, path=str(staging))
        shutil.rmtree(staging, ignore_errors=True)


class InMemoryTemplateStore(TemplateStore):
    def __init__(self, units: Mapping[str, Mapping[str, bytes]] | None = None) -> None:
        self._units: dict[str, dict[str, bytes]] = {
            name: dict(members) for name, members in (units or {}).items()
        }
        self._lock = threading.Lock()

    def list_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._units)

    def exists(self, template_id: str) -> bool:
        validate_template_id(template_id)
        with self._lock:
            return template_id in self._units

    def members(self, template_id: str) -> list[str]:
        return sorted(self._unit(template_id))

    def read(self, template_id: str, member: str) -> bytes:
        unit = self._unit(template_id)
        if member not in unit:
            raise TemplateNotFoundError(
                f"Template {template_id} has no {member}",
                template_id=template_id,
                details={"member": member},
            )
        return unit[member]

    def put(self, template_id: str, members: Mapping[str, bytes]) -> None:
        validate_template_id(template_id)
        for member in members:
            _check_member_name(template_id, member)
        with self._lock:
            if template_id in self._units:
                raise TemplateConflictError(
                    f"Template {template_id} already exists", template_id=template_id
                )
            self._units[template_id] = dict(members)

    def delete(self, template_id: str) -> None:
        validate_template_id(template_id)
        with self._lock:
            if self._units.pop(template_id, None) is None:
                raise TemplateNotFoundError(
                    f"Template {template_id} does not exist", template_id=template_id
                )

    def add_unit(self, template_id: str, members: Iterable[tuple[str, bytes]]) -> None:
        """Insert a raw unit, bypassing validation of its contents."""
        with self._lock:
            self._units[template_id] = dict(members)

    def _unit(self, template_id: str) -> dict[str, bytes]:
        validate_template_id(template_id)
        with self._lock:
            unit = self._units.get(template_id)
            if unit is None:
                raise TemplateNotFoundError(
                    f"Template {template_id} does not exist", template_id=template_id
                )
            return dict(unit)
