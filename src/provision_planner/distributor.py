"""Split a VM count across templates."""

from .errors import InvalidInputError


def distribute_vm_count(total: int, bucket_count: int) -> list[int]:
    """Split ``total`` VMs across ``bucket_count`` templates as evenly as possible.

    Every bucket gets ``total // bucket_count`` and the first
    ``total % bucket_count`` buckets get one extra, so earlier templates win
    the remainder.

    Raises:
        InvalidInputError: If bucket_count is not positive or total is negative
    """
    if bucket_count <= 0:
        raise InvalidInputError(f"Bucket count must be positive, got {bucket_count}")
    if total < 0:
        raise InvalidInputError(f"VM count must not be negative, got {total}")

    base, remainder = divmod(total, bucket_count)
    return [base + 1 if index < remainder else base for index in range(bucket_count)]
