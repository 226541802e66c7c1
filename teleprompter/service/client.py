"""
HTTP client for the prompt versioning service.

Every request carries the access token both as a bearer token and in the
``cf-access-token`` header expected by Cloudflare Access.
"""
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional
from urllib.parse import quote

import httpx

from ..constants import REQUEST_TIMEOUT_SECONDS
from ..exceptions import ServiceError
from ..utils import prompt_filename, wildcard_to_regex
from .models import ImportReport, Prompt, PromptVersion


logger = logging.getLogger(__name__)

REQUIRED_IMPORT_FIELDS = ("id", "namespace", "prompt")


def _prompt_path(prompt_id: str) -> str:
    return f"/prompts/{quote(prompt_id, safe=':@')}"


def _parse_prompts(data: Any) -> list[Prompt]:
    """Build prompts from a list response, skipping entries that are not prompts."""
    if not isinstance(data, list):
        return []

    prompts = []
    for item in data:
        try:
            prompts.append(Prompt.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed prompt entry {item!r}: {e}")
    return prompts


class PromptServiceClient:
    """
    Client for the prompt service REST API.

    Supports listing, fetching, creating versions of and rolling back
    prompts, plus bulk export to and import from JSON files.
    """

    def __init__(
        self,
        url: str,
        token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS
    ) -> None:
        """
        Initialize the client.

        Args:
            url: Base URL of the prompt service
            token: Access token
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self._url = url.rstrip("/")
        self._token = token
        self._transport = transport
        self._timeout = timeout

    @property
    def url(self) -> str:
        """Base URL of the prompt service."""
        return self._url

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "cf-access-token": self._token,
        }

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        request_url = f"{self._url}{path}"
        logger.debug(f"Making {method} request to: {request_url}")

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout
        ) as client:
            response = await client.request(
                method,
                request_url,
                headers=self._build_headers(),
                json=payload
            )

        logger.debug(f"Response status: {response.status_code}")

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ServiceError(
                f"{method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
                body=body
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def list_prompts(self) -> list[Prompt]:
        """List all active prompts."""
        return _parse_prompts(await self._request("GET", "/prompts"))

    async def get_prompt(self, prompt_id: str) -> Prompt:
        """
        Fetch a prompt, including its text.

        Raises:
            ServiceError: If the prompt does not exist
        """
        data = await self._request("GET", _prompt_path(prompt_id))
        if not isinstance(data, dict):
            raise ServiceError(f"Unexpected response for prompt {prompt_id}", body=data)
        return Prompt.from_dict(data)

    async def list_versions(self, prompt_id: str) -> list[PromptVersion]:
        """List all versions of a prompt."""
        return _parse_prompts(await self._request("GET", f"{_prompt_path(prompt_id)}/versions"))

    async def put_prompt(self, prompt_id: str, namespace: str, text: str) -> Optional[Prompt]:
        """
        Create a new version of a prompt.

        Args:
            prompt_id: Prompt ID
            namespace: Prompt namespace
            text: Prompt template text

        Returns:
            The stored prompt if the service echoes it back
        """
        payload = {"id": prompt_id, "namespace": namespace, "prompt": text}
        logger.debug(f"Request payload: {json.dumps(payload, indent=2)}")

        data = await self._request("POST", "/prompts", payload)
        if isinstance(data, dict) and "id" in data:
            return Prompt.from_dict(data)
        return None

    async def rollback(self, prompt_id: str, version: int) -> None:
        """Restore a specific version of a prompt."""
        await self._request("POST", f"{_prompt_path(prompt_id)}/versions/{version}", {})

    async def export_prompts(self, pattern: str, out_dir: Path) -> list[Path]:
        """
        Export prompts whose ID matches a ``*`` wildcard pattern.

        One JSON file per prompt is written to ``out_dir``. A prompt that
        fails to export is logged and skipped.

        Args:
            pattern: Wildcard pattern matched against the whole prompt ID
            out_dir: Output directory, created if needed

        Returns:
            Paths of the files written
        """
        matcher = wildcard_to_regex(pattern)
        prompts = [p for p in await self.list_prompts() if matcher.match(p.id)]
        if not prompts:
            return []

        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Exporting {len(prompts)} prompt(s) to {out_dir}")

        written = []
        for info in prompts:
            try:
                prompt = await self.get_prompt(info.id)
                filepath = out_dir / f"{prompt_filename(prompt.id)}.json"
                with open(filepath, 'w', encoding='utf-8') as f:
                    json.dump(prompt.to_export(), f, indent=2)
            except (ServiceError, httpx.HTTPError, OSError) as e:
                logger.error(f"Error exporting prompt {info.id}: {e}")
                continue

            logger.debug(f"Exported {prompt.id} to {filepath}")
            written.append(filepath)

        return written

    async def import_prompts(self, files: Iterable[Path]) -> ImportReport:
        """
        Import prompts from JSON files.

        Each file holds one prompt object or a list of them. Entries missing
        ``id``, ``namespace`` or ``prompt`` are skipped.

        Args:
            files: JSON files to read

        Returns:
            Which prompts were imported, skipped or failed
        """
        report = ImportReport()

        for file in files:
            try:
                with open(file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.error(f"Error processing file {file}: {e}")
                report.failed.append(str(file))
                continue

            entries = data if isinstance(data, list) else [data]
            logger.debug(f"Found {len(entries)} prompt(s) in {file}")

            for entry in entries:
                if not isinstance(entry, dict) or not all(
                    entry.get(name) for name in REQUIRED_IMPORT_FIELDS
                ):
                    logger.warning(f"Skipping invalid prompt in {file}: missing required fields")
                    report.skipped.append(str(file))
                    continue

                try:
                    await self.put_prompt(entry["id"], entry["namespace"], entry["prompt"])
                except (ServiceError, httpx.HTTPError) as e:
                    logger.error(f"Error importing prompt {entry['id']}: {e}")
                    report.failed.append(entry["id"])
                    continue

                report.imported.append(entry["id"])

        return report
