"""Unit tests for link issuance and archive deletion."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from cropslice.core.exceptions import InputError, StorageError
from cropslice.core.links import LinkIssuer
from cropslice.core.storage import delete_archive, validate_archive_key
from cropslice.testing.fakes import setup_test_s3_environment

BUCKET = "test-archives"
NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestLinkIssuer:
    """Tests for LinkIssuer."""

    def test_issue_signs_get_object(self):
        fake_s3 = setup_test_s3_environment(BUCKET)
        issuer = LinkIssuer(fake_s3, BUCKET, clock=lambda: NOW)

        link = asyncio.run(issuer.issue("cropped_images_20240301120000.zip", ttl=3600))

        assert link.object_key == "cropped_images_20240301120000.zip"
        assert link.expires_at == NOW + timedelta(hours=1)
        assert "X-Amz-Expires=3600" in link.url
        assert BUCKET in link.url

    def test_signing_failure_raises_storage_error(self):
        fake_s3 = setup_test_s3_environment(BUCKET)
        fake_s3.fail_next("generate_presigned_url", message="no credentials")
        issuer = LinkIssuer(fake_s3, BUCKET, clock=lambda: NOW)

        with pytest.raises(StorageError, match="no credentials"):
            asyncio.run(issuer.issue("k.zip", ttl=3600))

    def test_rejects_non_positive_ttl(self):
        issuer = LinkIssuer(setup_test_s3_environment(BUCKET), BUCKET)

        with pytest.raises(ValueError):
            asyncio.run(issuer.issue("k.zip", ttl=0))


class TestDeleteArchive:
    """Tests for delete_archive."""

    KEY = "cropped_images_20240301120000.zip"

    def test_delete_removes_object(self):
        fake_s3 = setup_test_s3_environment(BUCKET)
        asyncio.run(self._store(fake_s3))

        asyncio.run(delete_archive(fake_s3, BUCKET, self.KEY))

        assert fake_s3.list_keys(BUCKET) == []

    def test_delete_missing_object_is_not_an_error(self):
        fake_s3 = setup_test_s3_environment(BUCKET)

        asyncio.run(delete_archive(fake_s3, BUCKET, self.KEY))

        assert fake_s3.count("delete_object") == 1

    def test_delete_failure_raises_storage_error(self):
        fake_s3 = setup_test_s3_environment(BUCKET)
        fake_s3.fail_next("delete_object", message="Access Denied")

        with pytest.raises(StorageError, match="Access Denied"):
            asyncio.run(delete_archive(fake_s3, BUCKET, self.KEY))

    @pytest.mark.parametrize("key", ["", "  ", "../etc/passwd", "photo.jpg", "cropped_images_2024.zip"])
    def test_rejects_foreign_names(self, key):
        with pytest.raises(InputError):
            validate_archive_key(key)

    def test_allow_any_key(self):
        assert validate_archive_key("photo.jpg", allow_any_key=True) == "photo.jpg"

    @staticmethod
    async def _store(fake_s3):
        created = await fake_s3.create_multipart_upload(Bucket=BUCKET, Key=TestDeleteArchive.KEY)
        part = await fake_s3.upload_part(
            Bucket=BUCKET, Key=TestDeleteArchive.KEY, PartNumber=1, UploadId=created["UploadId"], Body=b"zip"
        )
        await fake_s3.complete_multipart_upload(
            Bucket=BUCKET,
            Key=TestDeleteArchive.KEY,
            UploadId=created["UploadId"],
            MultipartUpload={"Parts": [{"ETag": part["ETag"], "PartNumber": 1}]},
        )
