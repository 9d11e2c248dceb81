"""Client for the business-card upload endpoint.

POST multipart ``file`` + ``file_type`` (logo | photo | free). The endpoint
may resize the image and answers with the stored path.
"""

from __future__ import annotations

import logging

import requests
from pydantic import ValidationError

from app.page import DraftFile
from app.schema import UploadResponse

logger = logging.getLogger(__name__)

FILE_TYPES = {
    "company_logo": "logo",
    "profile_photo": "photo",
}


class UploadError(Exception):
    """The upload endpoint could not be reached or refused the file."""


def file_type_for(field_name: str) -> str:
    """Upload tag for a file input: logo, photo, or free."""
    return FILE_TYPES.get(field_name, "free")


class UploadClient:
    def __init__(self, url: str, timeout: float = 10.0, http=None) -> None:
        self.url = url
        self.timeout = timeout
        # Anything with a requests-style ``post``; the module itself by default
        self.http = http or requests

    def upload(self, file: DraftFile, file_type: str) -> UploadResponse:
        """Send one file. Raises UploadError unless the server reports success."""
        try:
            resp = self.http.post(
                self.url,
                files={"file": (file.name, file.data, file.mime_type)},
                data={"file_type": file_type},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"upload request failed: {e}") from e

        try:
            result = UploadResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise UploadError(f"unreadable upload response (HTTP {resp.status_code})") from e

        if not 200 <= resp.status_code < 300 or not result.success or result.data is None:
            raise UploadError(result.message or f"upload rejected (HTTP {resp.status_code})")

        logger.info(
            "Uploaded %s as %s -> %s (resized=%s)",
            file.name, file_type, result.data.file_path, result.data.was_resized,
        )
        return result
