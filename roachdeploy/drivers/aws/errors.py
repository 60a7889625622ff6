from __future__ import annotations

from botocore.exceptions import ClientError


def is_aws_error_code(err: BaseException | None, code: str) -> bool:
    """True if ``err`` is an AWS API error carrying ``code``.

    Example codes: ``InvalidPermission.Duplicate``, ``LoadBalancerNotFound``.
    """
    if not isinstance(err, ClientError):
        return False
    return err.response.get("Error", {}).get("Code") == code
