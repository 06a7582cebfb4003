"""Pre-flight job validation. Synchronous, no network side effects."""
from typing import Sequence

from ..errors import ValidationError
from ..models import FileDescriptor, UploadConfig
from ..utils.formatting import human_size


def validate_files(files: Sequence[FileDescriptor], config: UploadConfig) -> None:
    """
    Reject a job before any transfer starts.

    Raises:
        ValidationError: naming the first violated constraint
    """
    if not files:
        raise ValidationError("no_files", "No files selected")

    if len(files) > config.max_files:
        raise ValidationError(
            "too_many_files",
            f"Too many files selected. Maximum {config.max_files} files allowed.",
        )

    total_size = sum(f.size for f in files)
    if total_size > config.max_total_size:
        raise ValidationError(
            "total_size",
            f"Total file size exceeds {human_size(config.max_total_size)} limit",
        )

    for descriptor in files:
        if descriptor.size > config.max_file_size:
            raise ValidationError(
                "file_size",
                f'File "{descriptor.name}" exceeds {human_size(config.max_file_size)} limit',
            )

    for descriptor in files:
        if descriptor.size == 0:
            raise ValidationError("empty_file", f'File "{descriptor.name}" is empty')
