"""Presigned retrieval links for stored archives."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .exceptions import storage_errors
from .models import SignedLink
from .protocols import S3ClientProtocol


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LinkIssuer:
    """Signs GET requests for objects in one bucket."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._s3_client = s3_client
        self._bucket = bucket
        self._clock = clock or utc_now

    async def issue(self, object_key: str, ttl: int) -> SignedLink:
        """
        Return a URL the store honors for ``ttl`` seconds from now.

        Raises:
            StorageError: if the store refuses to sign
        """
        if ttl <= 0:
            raise ValueError(f"Link TTL must be positive, got {ttl}")
        issued_at = self._clock()
        with storage_errors("generate_presigned_url", object_key):
            url = await self._s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": object_key},
                ExpiresIn=ttl,
            )
        return SignedLink(
            url=url,
            expires_at=issued_at + timedelta(seconds=ttl),
            object_key=object_key,
        )
