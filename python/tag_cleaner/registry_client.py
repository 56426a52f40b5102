"""
Docker Hub client for tag listing and deletion.

Wraps the three Docker Hub v2 endpoints the cleaner needs (login, paginated
tag listing, tag deletion) behind a requests.Session with per-request timeouts
and retry with exponential backoff on transient failures (connection errors,
timeouts, HTTP 429 and 5xx). Non-transient failures surface immediately as
AuthError, FetchError or DeleteError.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests

from tag_cleaner.error_utils import (
    DeleteError,
    create_fetch_error,
    create_registry_auth_error,
)
from tag_cleaner.models import Repository, Tag
from tag_cleaner.retry_utils import retry_with_backoff

DEFAULT_API_URL = "https://hub.docker.com/v2"
PAGE_SIZE = 100
USER_AGENT = "tag-cleaner"


def _json_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def describe_response(response: Optional[requests.Response]) -> str:
    """Best-effort diagnostic for a failed response: status plus service message."""
    if response is None:
        return "no response"

    body = _json_body(response)
    detail = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("errinfo")
    if detail is None:
        detail = (response.text or "").strip()[:500]

    status = f"{response.status_code} {response.reason or ''}".strip()
    return f"{status}: {detail}" if detail else status


class DockerHubClient:
    """Standardized Docker Hub client for registry operations."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        session: Optional[requests.Session] = None,
    ):
        """Initialize DockerHubClient.

        Args:
            api_url: Base URL of the Docker Hub v2 API
            timeout: Per-request timeout in seconds
            max_retries: Retries for transient failures (0 disables retrying)
            initial_delay: Delay before the first retry in seconds
            max_delay: Upper bound for the backoff delay
            exponential_base: Backoff multiplier
            jitter: Add random jitter to the backoff delay
            session: Pre-built requests.Session (mainly for tests)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.token: Optional[str] = None

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "DockerHubClient":
        """Build a client from CleanerSettings."""
        return cls(
            api_url=settings.api_url,
            timeout=settings.retry.timeout,
            max_retries=settings.retry.max_retries,
            initial_delay=settings.retry.initial_delay,
            max_delay=settings.retry.max_delay,
            exponential_base=settings.retry.exponential_base,
            jitter=settings.retry.jitter,
            session=session,
        )

    def __enter__(self) -> "DockerHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _auth_headers(self, token: Optional[str]) -> Dict[str, str]:
        token = token or self.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send one request, retrying transient failures.

        Returns the final response for the caller to inspect and close.
        Raises requests.HTTPError when retries are exhausted on 429/5xx and
        requests.RequestException on exhausted network failures.
        """

        @retry_with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
        )
        def request():
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            if response.status_code == 429 or response.status_code >= 500:
                # Read the body before releasing the connection so it can still be reported
                response.content
                response.close()
                raise requests.HTTPError(
                    f"{response.status_code} {response.reason} for {method} {url}", response=response
                )
            return response

        return request()

    def authenticate(self, username: str, secret: str) -> str:
        """Exchange credentials for a session token.

        The token is kept on the client and used by later calls.

        Raises:
            AuthError: If the credentials are rejected or the service is unreachable
        """
        url = f"{self.api_url}/users/login/"
        logging.info(f"Logging in to {self.api_url} as {username}")

        try:
            with self._send("POST", url, data={"username": username, "password": secret}) as response:
                if response.status_code != 200:
                    raise create_registry_auth_error(self.api_url, response.status_code, describe_response(response))
                body = _json_body(response)
        except requests.HTTPError as e:
            raise create_registry_auth_error(
                self.api_url, e.response.status_code, describe_response(e.response)
            ) from e
        except requests.RequestException as e:
            raise create_registry_auth_error(self.api_url, None, str(e)) from e

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise create_registry_auth_error(self.api_url, 200, "login response did not contain a token")

        self.token = token
        logging.info("Docker Hub authentication successful")
        return token

    def _tags_url(self, repository: Repository) -> str:
        return (
            f"{self.api_url}/repositories/{quote(repository.namespace)}/{quote(repository.name)}"
            f"/tags?page_size={PAGE_SIZE}"
        )

    def iter_tag_pages(self, repository: Repository, token: Optional[str] = None) -> Iterator[List[Tag]]:
        """Yield tag pages, following the "next" link until it is absent.

        Raises:
            FetchError: On the first page that cannot be retrieved or decoded
        """
        url: Optional[str] = self._tags_url(repository)
        page = 1
        headers = self._auth_headers(token)

        while url:
            logging.debug(f"Fetching tag page {page}: {url}")
            try:
                with self._send("GET", url, headers=headers) as response:
                    if response.status_code != 200:
                        raise create_fetch_error(
                            str(repository), page, response.status_code, describe_response(response)
                        )
                    body = _json_body(response)
            except requests.HTTPError as e:
                raise create_fetch_error(
                    str(repository), page, e.response.status_code, describe_response(e.response)
                ) from e
            except requests.RequestException as e:
                raise create_fetch_error(str(repository), page, None, str(e)) from e

            if not isinstance(body, dict) or not isinstance(body.get("results"), list):
                raise create_fetch_error(str(repository), page, 200, "response is not a tag listing page")

            try:
                tags = [Tag.from_api(record) for record in body["results"]]
            except (KeyError, TypeError, ValueError) as e:
                raise create_fetch_error(str(repository), page, 200, f"malformed tag record: {e}") from e

            yield tags
            url = body.get("next") or None
            page += 1

    def list_tags(self, repository: Repository, token: Optional[str] = None) -> List[Tag]:
        """Return every tag in the repository, draining all pages.

        Duplicate names (possible when tags move between pages mid-listing)
        are collapsed; the first occurrence wins.
        """
        tags: List[Tag] = []
        seen = set()
        for page in self.iter_tag_pages(repository, token):
            for tag in page:
                if tag.name in seen:
                    logging.warning(f"Tag {tag.name} listed more than once, ignoring duplicate")
                    continue
                seen.add(tag.name)
                tags.append(tag)

        logging.info(f"Found {len(tags)} tags in {repository}")
        return tags

    def delete_tag(self, repository: Repository, tag_name: str, token: Optional[str] = None) -> None:
        """Delete one tag. HTTP 204 means deleted.

        Raises:
            DeleteError: For any other outcome (not found, forbidden, server or network failure)
        """
        url = (
            f"{self.api_url}/repositories/{quote(repository.namespace)}/{quote(repository.name)}"
            f"/tags/{quote(tag_name, safe='')}/"
        )

        try:
            with self._send("DELETE", url, headers=self._auth_headers(token)) as response:
                if response.status_code != 204:
                    raise DeleteError(tag_name, response.status_code, describe_response(response))
        except requests.HTTPError as e:
            raise DeleteError(tag_name, e.response.status_code, describe_response(e.response)) from e
        except requests.RequestException as e:
            raise DeleteError(tag_name, None, str(e)) from e
