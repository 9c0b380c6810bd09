"""Storage service for handling Supabase storage operations."""

import httpx
from typing import Dict, Any, Optional

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import APIClientError, APITimeoutError
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class StorageService:
    """Service for managing certificate files in Supabase storage."""

    def __init__(self, url: Optional[str] = None, service_role_key: Optional[str] = None):
        self.url = url if url is not None else settings.storage.url
        self.service_role_key = (
            service_role_key if service_role_key is not None else settings.storage.service_role_key
        )
        self.bucket = settings.storage.bucket
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }

    async def upload_file(
        self,
        content: bytes,
        bucket: str,
        path: str,
        content_type: str = "application/pdf"
    ) -> Dict[str, Any]:
        """Upload a file to Supabase storage.

        Args:
            content: File bytes.
            bucket: Target bucket name.
            path: Target path within the bucket.

        Returns:
            Dict containing the upload result.

        Raises:
            APIClientError: If the upload fails.
        """
        upload_url = f"{self.base_api_url}/object/{bucket}/{path}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    upload_url,
                    headers={**self.headers, "Content-Type": content_type},
                    content=content,
                    timeout=settings.http_timeout
                )
        except httpx.TimeoutException as e:
            LOGGER.error("Storage upload timed out", extra={"bucket": bucket, "path": path})
            raise APITimeoutError("Storage upload timed out", original_error=e)
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            raise APIClientError(f"Storage upload error: {str(e)}", original_error=e)

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code}
            )
            raise APIClientError(f"Upload failed: {response.text}")

        return response.json()

    async def download_file(self, bucket: str, path: str) -> bytes:
        """Download a stored file.

        Raises:
            APIClientError: If the file cannot be fetched.
        """
        url = f"{self.base_api_url}/object/{bucket}/{path}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, headers=self.headers, timeout=settings.http_timeout)
        except httpx.TimeoutException as e:
            raise APITimeoutError("Storage download timed out", original_error=e)
        except httpx.HTTPError as e:
            LOGGER.error(f"Error downloading file from Supabase: {str(e)}", exc_info=True)
            raise APIClientError(f"Storage download error: {str(e)}", original_error=e)

        if response.status_code != 200:
            LOGGER.error(
                "Failed to download file from Supabase",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code}
            )
            raise APIClientError(f"Download failed with status {response.status_code}")

        return response.content

    async def get_signed_url(
        self,
        bucket: str,
        path: str,
        expires_in: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a signed URL for a stored document.

        Args:
            bucket: Bucket name.
            path: Object path.
            expires_in: Expiration time in seconds.

        Returns:
            The signed URL and storage path.

        Raises:
            APIClientError: If URL generation fails.
        """
        url = f"{self.base_api_url}/object/sign/{bucket}/{path}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    headers=self.headers,
                    json={"expiresIn": expires_in or settings.storage.signed_url_ttl},
                    timeout=settings.http_timeout
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error generating signed URL: {str(e)}", exc_info=True)
            raise APIClientError(f"Signed URL error: {str(e)}", original_error=e)

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to generate signed URL: {response.text}",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code}
            )
            raise APIClientError(f"Signed URL generation failed: {response.text}")

        signed_path = response.json().get("signedURL")
        if not signed_path:
            raise APIClientError("Supabase response did not contain signedURL")

        # Supabase returns a path relative to the project URL
        signed_url = signed_path
        if signed_path.startswith("/"):
            signed_url = f"{self.url}/storage/v1{signed_path}"

        return {
            "signed_url": signed_url,
            "storage_path": path
        }
