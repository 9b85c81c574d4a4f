"""boto3 client construction."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_READ_TIMEOUT = 60


def create_boto_session(profile_name: Optional[str] = None, region_name: Optional[str] = None) -> boto3.Session:
    """Create a boto3 session.

    Args:
        profile_name: AWS profile name (optional)
        region_name: Default region for clients (optional)

    Returns:
        Configured boto3 Session
    """
    return boto3.Session(profile_name=profile_name, region_name=region_name)


def create_boto_client(
    service_name: str,
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    read_timeout: int = DEFAULT_READ_TIMEOUT,
) -> Any:
    """Create a boto3 client with bounded timeouts.

    botocore's own retries are limited to one attempt; retrying transient
    failures is left to the provisioners.

    Args:
        service_name: AWS service name (e.g., "ec2", "s3")
        region_name: AWS region (optional)
        profile_name: AWS profile name (optional)
        connect_timeout: Connection timeout in seconds
        read_timeout: Read timeout in seconds

    Returns:
        boto3 client
    """
    session = create_boto_session(profile_name=profile_name, region_name=region_name)
    config = BotoConfig(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    logger.debug(f"Creating {service_name} client in {region_name or session.region_name}")
    return session.client(service_name, region_name=region_name, config=config)
