"""Download call recordings from the telephony provider or object storage."""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from callscribe.config.settings import settings
from callscribe.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class RecordingFetchError(RuntimeError):
    """Raised when recording bytes cannot be obtained."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_remote_reference(ref: str) -> bool:
    return urlsplit(ref).scheme.lower() in {"http", "https", "s3"}


def with_account_sid(url: str, account_sid: str | None) -> str:
    """Append the provider account SID as a query parameter."""

    if not account_sid:
        return url
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    if any(key == "AccountSid" for key, _ in query):
        return url
    query.append(("AccountSid", account_sid))
    return urlunsplit(parts._replace(query=urlencode(query)))


def is_trusted_host(url: str, hosts: Iterable[str]) -> bool:
    """True when the URL host is one of ``hosts`` or a subdomain of one."""

    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return False
    for trusted in hosts:
        trusted = trusted.lower().strip(".")
        if host == trusted or host.endswith(f".{trusted}"):
            return True
    return False


class RecordingFetcher:
    """Fetch remote recordings over HTTP(S) or from S3 into memory.

    The provider account SID and auth token are attached only to URLs on
    ``trusted_hosts``; any other host is fetched anonymously.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        account_sid: str | None = None,
        auth_token: str | None = None,
        trusted_hosts: Iterable[str] = ("api.twilio.com",),
        timeout_seconds: float = 30.0,
    ) -> None:
        self._http_client = http_client
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._trusted_hosts = tuple(trusted_hosts)
        self._timeout_seconds = timeout_seconds
        self._s3_client = None

    async def fetch(self, ref: str) -> bytes:
        scheme = urlsplit(ref).scheme.lower()
        if scheme == "s3":
            return await self._fetch_s3(ref)
        if scheme in {"http", "https"}:
            return await self._fetch_http(ref)
        raise RecordingFetchError(f"Unsupported recording reference: {ref}")

    async def _fetch_http(self, url: str) -> bytes:
        auth_url = url
        auth = None
        if is_trusted_host(url, self._trusted_hosts):
            auth_url = with_account_sid(url, self._account_sid)
            if self._account_sid and self._auth_token:
                auth = httpx.BasicAuth(self._account_sid, self._auth_token)
        else:
            logger.info("Fetching recording from untrusted host without credentials: %s", url)

        try:
            if self._http_client is not None:
                response = await self._http_client.get(auth_url, auth=auth)
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout_seconds,
                    follow_redirects=True,
                ) as client:
                    response = await client.get(auth_url, auth=auth)
        except httpx.RequestError as exc:
            raise RecordingFetchError(f"Failed to download recording: {exc}") from exc

        if not response.is_success:
            raise RecordingFetchError(
                f"Failed to download recording: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        logger.debug("Downloaded %s bytes from %s", len(response.content), url)
        return response.content

    async def _fetch_s3(self, ref: str) -> bytes:
        parts = urlsplit(ref)
        bucket, key = parts.netloc, parts.path.lstrip("/")
        if not bucket or not key:
            raise RecordingFetchError(f"Malformed S3 reference: {ref}")

        if self._s3_client is None:
            self._s3_client = create_boto3_client(
                "s3", timeout_seconds=self._timeout_seconds
            )

        def _download() -> bytes:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()

        try:
            return await run_in_threadpool(_download)
        except ClientError as exc:
            status_code = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise RecordingFetchError(
                f"Failed to download recording from S3: {exc}",
                status_code=status_code,
            ) from exc
        except BotoCoreError as exc:
            raise RecordingFetchError(f"Failed to download recording from S3: {exc}") from exc


def get_recording_fetcher() -> RecordingFetcher:
    auth_token = settings.twilio.auth_token
    return RecordingFetcher(
        account_sid=settings.twilio.account_sid,
        trusted_hosts=settings.twilio.recording_hosts,
        auth_token=auth_token.get_secret_value() if auth_token else None,
        timeout_seconds=settings.pipeline.fetch_timeout_seconds,
    )


__all__ = [
    "RecordingFetchError",
    "RecordingFetcher",
    "get_recording_fetcher",
    "is_remote_reference",
    "is_trusted_host",
    "with_account_sid",
]
