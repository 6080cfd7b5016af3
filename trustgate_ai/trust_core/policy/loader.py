"""JSON file source for the policy document."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..errors import PolicyConflict, PolicyLoadError
from .defaults import default_policy
from .models import PolicyDocument
from .store import validate_policy

logger = logging.getLogger(__name__)


class PolicyFileSource:
    """Load and save a ``PolicyDocument`` as a camelCase JSON file.

    ``load()`` never fails: a missing, unreadable, malformed or
    self-contradicting file falls back to the built-in default policy with a
    warning. ``load_strict()`` raises ``PolicyLoadError`` instead.

    ``save()`` keeps a timestamped backup of the file it overwrites
    (``<stem>.backup.<timestamp>.json``) and writes the new content through a
    temporary file and ``os.replace`` so readers never see a partial file.
    """

    def __init__(self, path: str | Path, *, backup: bool = True) -> None:
        self.path = Path(path)
        self.backup = backup

    def load_strict(self) -> PolicyDocument:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise PolicyLoadError(str(self.path), f"cannot read file: {e}") from e
        try:
            policy = PolicyDocument.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise PolicyLoadError(str(self.path), f"invalid policy document: {e}") from e
        try:
            validate_policy(policy)
        except PolicyConflict as e:
            raise PolicyLoadError(str(self.path), str(e)) from e
        return policy

    def load(self, fallback: Optional[PolicyDocument] = None) -> PolicyDocument:
        if not self.path.exists():
            logger.info(f"Policy file {self.path} not found, using built-in default policy")
            return fallback if fallback is not None else default_policy()
        try:
            policy = self.load_strict()
        except PolicyLoadError as e:
            logger.warning(f"{e}. Falling back to default policy.")
            return fallback if fallback is not None else default_policy()
        logger.debug(f"Loaded policy version {policy.version} from {self.path}")
        return policy

    def save(self, policy: PolicyDocument) -> Optional[Path]:
        """
        Persist ``policy`` to the file.

        Returns:
            The path of the backup that was written, or ``None`` when there
            was nothing to back up or backups are disabled.

        Raises:
            OSError: If the new policy could not be written. A failed backup
                is logged and does not stop the write.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        backup_path = self._create_backup() if self.backup else None

        content = json.dumps(policy.to_json_dict(), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info(f"Saved policy version {policy.version} to {self.path}")
        return backup_path

    def _create_backup(self) -> Optional[Path]:
        if not self.path.exists():
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        backup_path = self.path.with_name(f"{self.path.stem}.backup.{stamp}.json")
        try:
            backup_path.write_bytes(self.path.read_bytes())
        except OSError as e:
            logger.warning(f"Failed to create policy backup {backup_path}: {e}")
            return None
        logger.info(f"Policy backup created: {backup_path}")
        return backup_path
