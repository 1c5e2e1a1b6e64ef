"""
Supabase Storage blob store (REST API).

Authenticates with the service-role key. Uploads always upsert;
listing walks folders recursively and pages through results.
"""

import logging
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import BlobStoreError
from .blob_store import BlobStore
from .paths import join_object_path

logger = logging.getLogger(__name__)


def _encode_object_path(object_key: str) -> str:
    return "/".join(quote(segment, safe="") for segment in object_key.split("/") if segment)


class SupabaseBlobStore(BlobStore):
    """
    Blob store backed by a Supabase Storage bucket.

    Features:
    - Upsert uploads (x-upsert: true)
    - Paginated, recursive listing
    - Automatic retry with backoff
    """

    DEFAULT_TIMEOUT = 30
    LIST_PAGE_SIZE = 100

    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str,
        prefix: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize Supabase storage client.

        Args:
            url: Supabase project URL (e.g., "https://xyz.supabase.co")
            service_role_key: Service-role API key
            bucket: Storage bucket name
            prefix: Optional key prefix applied to every object
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = url.rstrip("/")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.timeout = timeout

        # Configure session with retry
        self.session = requests.Session()
        self.session.headers.update(
            {
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
            }
        )

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _object_url(self, object_key: str) -> str:
        return (
            f"{self.base_url}/storage/v1/object/{quote(self.bucket, safe='')}/"
            f"{_encode_object_path(object_key)}"
        )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.reason or str(response.status_code)
        if isinstance(payload, dict):
            return payload.get("message") or payload.get("error") or response.reason or ""
        return response.reason or ""

    def _request(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        """Make a storage request, mapping failures to BlobStoreError."""
        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise BlobStoreError(f"Failed to {action}: {e}") from e

        if not response.ok:
            raise BlobStoreError(f"Failed to {action}: {self._error_message(response)}")
        return response

    def upload(self, key: str, body: bytes | str, content_type: str) -> None:
        object_key = join_object_path(self.prefix, key)
        data = body.encode("utf-8") if isinstance(body, str) else body
        self._request(
            "POST",
            self._object_url(object_key),
            f"upload '{object_key}' to bucket '{self.bucket}'",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        logger.debug("Uploaded %s (%d bytes) to bucket %s", object_key, len(data), self.bucket)

    def download(self, key: str) -> bytes:
        object_key = join_object_path(self.prefix, key)
        response = self._request(
            "GET",
            self._object_url(object_key),
            f"download '{object_key}' from bucket '{self.bucket}'",
        )
        return response.content

    def _list_page(self, prefix: str, offset: int) -> list[dict]:
        response = self._request(
            "POST",
            f"{self.base_url}/storage/v1/object/list/{quote(self.bucket, safe='')}",
            f"list bucket '{self.bucket}'",
            json={
                "prefix": prefix,
                "limit": self.LIST_PAGE_SIZE,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"},
            },
        )
        return response.json()

    def _list_recursive(self, prefix: str) -> list[str]:
        keys: list[str] = []
        offset = 0
        while True:
            page = self._list_page(prefix, offset)
            if not page:
                break
            for item in page:
                object_key = join_object_path(prefix, item["name"])
                # Folders come back without an id
                if item.get("id"):
                    keys.append(object_key)
                else:
                    keys.extend(self._list_recursive(object_key))
            if len(page) < self.LIST_PAGE_SIZE:
                break
            offset += self.LIST_PAGE_SIZE
        return keys

    def list(self, prefix: str = "") -> list[str]:
        full_prefix = join_object_path(self.prefix, prefix)
        keys = self._list_recursive(full_prefix)
        if self.prefix:
            strip = len(self.prefix) + 1
            keys = [key[strip:] for key in keys]
        return sorted(keys)

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
