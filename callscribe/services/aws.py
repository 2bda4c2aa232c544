"""Shared AWS helpers for service clients."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from callscribe.config.settings import settings


def create_boto3_client(
    service_name: str,
    *,
    region_name: str | None = None,
    timeout_seconds: float | None = None,
) -> boto3.client:
    """Instantiate a boto3 client, using the configured key pair when present.

    Without explicit keys boto3 falls back to its default credential chain
    (environment, shared config, instance role).
    """

    client_kwargs: dict[str, Any] = {"region_name": region_name or settings.s3.region}
    if settings.s3.access_key and settings.s3.secret_key:
        client_kwargs["aws_access_key_id"] = settings.s3.access_key
        client_kwargs["aws_secret_access_key"] = settings.s3.secret_key
    if timeout_seconds is not None:
        client_kwargs["config"] = Config(
            connect_timeout=timeout_seconds,
            read_timeout=timeout_seconds,
            retries={"max_attempts": 1},
        )
    return boto3.client(service_name, **client_kwargs)


__all__ = ["create_boto3_client"]
