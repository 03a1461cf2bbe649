"""
Rules deciding whether a known file should be (re-)optimized at a level.
"""

from __future__ import annotations

from typing import Callable, Optional

from inventory import STATUS_ALREADY_OPTIMIZED, STATUS_ERROR, STATUS_SUCCESS, FileRecord

BackupCheck = Callable[[str], bool]


def is_eligible(record: FileRecord, level: Optional[int], has_backup: BackupCheck) -> bool:
    """Apply the rules in order; the first one that matches decides."""
    if level is None:
        return True
    if record.status == STATUS_ERROR:
        return True
    if record.optimization_level == level:
        return False
    if record.status == STATUS_ALREADY_OPTIMIZED and (record.optimization_level or 0) >= level:
        return False
    if record.status == STATUS_SUCCESS:
        # A different level has to start again from the original file.
        return has_backup(record.absolute_path)
    return True


def is_deprioritized(record: FileRecord, level: Optional[int]) -> bool:
    """Files that compression could not shrink go to the end of a leveled batch."""
    return level is not None and record.status == STATUS_ALREADY_OPTIMIZED
