"""
REST API client for Compute Engine instance inventory (v1 API).
"""

import logging
import time
from typing import Dict, List, Optional

import google.auth
from google.auth.transport.requests import AuthorizedSession

from models import InstanceIdentity

logger = logging.getLogger(__name__)

API_BASE = "https://compute.googleapis.com/compute/v1"

# Metadata item holding the simulation case name; underscores are not
# allowed in instance names, so the case name travels separately.
CASE_NAME_METADATA_KEY = "case-name"


def _short(resource_url: str) -> str:
    """Last path segment of a resource URL (zones/.../machineTypes/x -> x)."""
    return resource_url.rstrip("/").split("/")[-1]


class ComputeRestClient:
    """REST client for Compute Engine instance listing."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        project_id: str,
        timeout_s: int = 60,
        max_retries: int = 5,
        base_delay: float = 5.0,
        use_internal_ip: bool = False,
    ):
        """
        Initialize the Compute REST client.

        Args:
            project_id: GCP project ID
            timeout_s: Request timeout in seconds
            max_retries: Maximum number of retries for transient errors
            base_delay: Base delay for exponential backoff
            use_internal_ip: Address instances by internal IP instead of NAT IP
        """
        self.project_id = project_id
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.use_internal_ip = use_internal_ip

        creds, _ = google.auth.default(
            scopes=["https://www.googleapis.com/auth/compute.readonly"]
        )
        self.session = AuthorizedSession(creds)

    def _url(self, path: str) -> str:
        """Construct full API URL from path."""
        return f"{API_BASE}/{path.lstrip('/')}"

    def _request_with_retry(self, method: str, url: str, **kwargs) -> dict:
        """
        Execute HTTP request with exponential backoff retry for transient errors.

        Args:
            method: HTTP method (only GET is used for inventory)
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            Dictionary with 'response' and 'status_code' keys

        Raises:
            RuntimeError: If max retries exceeded
        """
        if method.upper() != "GET":
            raise ValueError(f"Unsupported method: {method}")

        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                resp = self.session.get(url, timeout=self.timeout_s, **kwargs)
            except Exception as e:
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = str(e)
                time.sleep(delay)
                continue

            if resp.status_code in self.RETRYABLE_STATUS_CODES:
                delay = self._calculate_delay(attempt, resp)
                error_info = ""
                try:
                    error_info = resp.json().get("error", {}).get("message", "")
                except ValueError:
                    pass
                logger.warning(
                    f"Retryable error {resp.status_code} ({error_info}), attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = f"HTTP {resp.status_code}: {error_info or resp.text[:200]}"
                time.sleep(delay)
                continue

            return {"response": resp, "status_code": resp.status_code}

        raise RuntimeError(f"Max retries exceeded. Last error: {last_error}")

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        delay = self.base_delay * (2**attempt)
        jitter = delay * 0.2 * (0.5 - time.time() % 1)
        return min(delay + jitter, 180.0)

    def _to_identity(self, item: Dict, zone: str) -> InstanceIdentity:
        """Map a Compute Engine instance resource to an InstanceIdentity."""
        metadata_items = item.get("metadata", {}).get("items", [])
        case_name = next(
            (
                entry.get("value")
                for entry in metadata_items
                if entry.get("key") == CASE_NAME_METADATA_KEY and entry.get("value")
            ),
            None,
        )

        address: Optional[str] = None
        for nic in item.get("networkInterfaces", []):
            if self.use_internal_ip:
                address = nic.get("networkIP")
            else:
                address = next(
                    (ac["natIP"] for ac in nic.get("accessConfigs", []) if ac.get("natIP")),
                    None,
                )
            if address:
                break

        return InstanceIdentity(
            instance_id=str(item.get("id", item["name"])),
            name=case_name or item["name"],
            address=address,
            machine_type=_short(item.get("machineType", "")),
            zone=zone,
        )

    def list_instances(
        self, zone: str, machine_type: Optional[str] = None
    ) -> List[InstanceIdentity]:
        """
        List RUNNING instances in a zone.

        Args:
            zone: Zone (e.g., 'southamerica-east1-a')
            machine_type: Only return instances of this machine type

        Returns:
            List of InstanceIdentity objects

        Raises:
            RuntimeError: If API call fails
        """
        url = self._url(f"projects/{self.project_id}/zones/{zone}/instances")

        instances: List[InstanceIdentity] = []
        page_token: Optional[str] = None

        while True:
            params = {"filter": "status = RUNNING"}
            if page_token:
                params["pageToken"] = page_token

            result = self._request_with_retry("GET", url, params=params)
            resp = result["response"]
            if resp.status_code != 200:
                raise RuntimeError(
                    f"List instances failed ({resp.status_code}): {resp.text}"
                )

            data = resp.json()
            for item in data.get("items", []):
                identity = self._to_identity(item, zone)
                if machine_type and identity.machine_type != machine_type:
                    continue
                instances.append(identity)

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return instances
