"""Object key layout for backup and restore artifacts.

Every key is derived from a root prefix and a backup/restore name:

    <root>backups/<name>/<name>-metadata.json.gz
    <root>backups/<name>/<name>-contents.tar.gz
    <root>backups/<name>/<name>-logs.txt.gz
    <root>backups/<name>/<name>-podvolumebackups.json.gz
    <root>backups/<name>/<name>-volumesnapshots.json.gz
    <root>backups/<name>/<name>-resource-list.json.gz
    <root>restores/<name>/restore-<name>-logs.txt.gz
    <root>restores/<name>/restore-<name>-results.json.gz
    <root>revision

Names are used verbatim as path segments; callers must pass names that are
already safe path components.
"""

from __future__ import annotations

BACKUPS_DIR = "backups"
RESTORES_DIR = "restores"

RESERVED_SUBDIRS = frozenset({BACKUPS_DIR, RESTORES_DIR})

REVISION_KEY = "revision"

METADATA_SUFFIX = "-metadata.json.gz"
CONTENTS_SUFFIX = "-contents.tar.gz"
LOG_SUFFIX = "-logs.txt.gz"
POD_VOLUME_BACKUPS_SUFFIX = "-podvolumebackups.json.gz"
VOLUME_SNAPSHOTS_SUFFIX = "-volumesnapshots.json.gz"
RESOURCE_LIST_SUFFIX = "-resource-list.json.gz"
RESTORE_LOG_SUFFIX = "-logs.txt.gz"
RESTORE_RESULTS_SUFFIX = "-results.json.gz"


class ObjectStoreLayout:
    """Maps (root prefix, name, artifact kind) to object keys.

    Attributes:
        root_prefix: The separator-trimmed prefix, with a trailing "/" when
            non-empty.
        subdirs: Reserved top-level directory name -> full directory prefix.
    """

    def __init__(self, prefix: str) -> None:
        trimmed = prefix.strip("/")
        self.root_prefix = f"{trimmed}/" if trimmed else ""
        self.subdirs: dict[str, str] = {
            name: f"{self.root_prefix}{name}/" for name in sorted(RESERVED_SUBDIRS)
        }

    def is_valid_subdir(self, name: str) -> bool:
        """Return True if name is one of the reserved top-level directories."""
        return name in self.subdirs

    def get_revision_key(self) -> str:
        return f"{self.root_prefix}{REVISION_KEY}"

    def get_backup_dir(self, backup: str) -> str:
        """Return the common prefix of every key belonging to a backup."""
        return f"{self.subdirs[BACKUPS_DIR]}{backup}/"

    def get_restore_dir(self, restore: str) -> str:
        """Return the common prefix of every key belonging to a restore."""
        return f"{self.subdirs[RESTORES_DIR]}{restore}/"

    def get_backup_metadata_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{METADATA_SUFFIX}"

    def get_backup_contents_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{CONTENTS_SUFFIX}"

    def get_backup_log_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{LOG_SUFFIX}"

    def get_pod_volume_backups_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{POD_VOLUME_BACKUPS_SUFFIX}"

    def get_backup_volume_snapshots_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{VOLUME_SNAPSHOTS_SUFFIX}"

    def get_backup_resource_list_key(self, backup: str) -> str:
        return f"{self.get_backup_dir(backup)}{backup}{RESOURCE_LIST_SUFFIX}"

    def get_restore_log_key(self, restore: str) -> str:
        return f"{self.get_restore_dir(restore)}restore-{restore}{RESTORE_LOG_SUFFIX}"

    def get_restore_results_key(self, restore: str) -> str:
        return f"{self.get_restore_dir(restore)}restore-{restore}{RESTORE_RESULTS_SUFFIX}"
