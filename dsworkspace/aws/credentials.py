"""AWS credential validation."""

from __future__ import annotations

import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from .client import create_boto_client

logger = logging.getLogger(__name__)


class CredentialValidationError(Exception):
    """AWS credentials are missing or rejected."""


def validate_credentials(aws_profile: Optional[str] = None) -> dict:
    """Validate AWS credentials with STS.

    Args:
        aws_profile: AWS profile name (optional)

    Returns:
        Dictionary with account_id, arn and user_id

    Raises:
        CredentialValidationError: If credentials are missing or invalid
    """
    try:
        sts = create_boto_client(service_name="sts", profile_name=aws_profile)
        identity = sts.get_caller_identity()
    except ProfileNotFound as e:
        raise CredentialValidationError(f"AWS profile not found: {e}") from e
    except NoCredentialsError as e:
        raise CredentialValidationError(
            "No AWS credentials found. Configure them with 'aws configure' or set AWS_PROFILE."
        ) from e
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        raise CredentialValidationError(f"AWS rejected the credentials: {error_code}") from e
    except BotoCoreError as e:
        raise CredentialValidationError(f"Could not validate AWS credentials: {e}") from e

    logger.debug(f"Authenticated as {identity['Arn']}")
    return {
        "account_id": identity["Account"],
        "arn": identity["Arn"],
        "user_id": identity["UserId"],
    }
