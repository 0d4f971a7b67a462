# tweet_harvest/sources/twitter_source.py

"""X/Twitter API v2 user-timeline source."""

from typing import Any

from curl_cffi import requests as curl_requests

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.account import UserProfile
from tweet_harvest.models.collection import Page
from tweet_harvest.models.errors import (
    AuthFailureError,
    NotFoundError,
    TransientError,
    classify_status,
)
from tweet_harvest.sources.base_source import PageSource


class TwitterSource(PageSource):
    """Fetches user timelines and profiles from the v2 REST API."""

    def __init__(self, bearer_token: str | None = None) -> None:
        super().__init__("twitter")
        self.settings = Settings()
        token = bearer_token or self.settings.TWITTER_BEARER_TOKEN
        if not token:
            raise AuthFailureError("TWITTER_BEARER_TOKEN is required")
        self._headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Authorization": f"Bearer {token}",
        }
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _timeline_params(
        self, continuation_token: str | None,
    ) -> dict[str, str | int]:
        params: dict[str, str | int] = {
            "max_results": self.settings.PAGE_SIZE,
            "tweet.fields": ",".join(self.settings.TWEET_FIELDS),
            "media.fields": ",".join(self.settings.MEDIA_FIELDS),
            "user.fields": "id,username,name,public_metrics",
            "expansions": ",".join(self.settings.EXPANSIONS),
        }
        if continuation_token:
            params["pagination_token"] = continuation_token
        return params

    @staticmethod
    def _error_message(resp: curl_requests.Response) -> str:
        """Pull the API's own error description out of a failed response."""
        try:
            body: Any = resp.json()
        except ValueError:
            return f"HTTP {resp.status_code}"
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("title")
            if not detail and body.get("errors"):
                detail = body["errors"][0].get("message")
            if detail:
                return f"HTTP {resp.status_code}: {detail}"
        return f"HTTP {resp.status_code}"

    def _get_json(
        self,
        url: str,
        params: dict[str, str | int],
        operation: str,
    ) -> dict[str, Any]:
        """GET ``url`` and return the decoded body or raise a classified error."""
        try:
            resp = self.session.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            raise TransientError(
                f"Request error: {exc}", operation=operation
            ) from exc

        if resp.status_code != 200:
            self.logger.warning(
                "[%s] HTTP %d for %s",
                self.source_name,
                resp.status_code,
                operation,
            )
            raise classify_status(
                resp.status_code,
                self._error_message(resp),
                operation,
            )

        try:
            body: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise TransientError(
                "Malformed JSON response", operation=operation
            ) from exc
        return body

    def fetch_page(
        self,
        resource_id: str,
        continuation_token: str | None = None,
    ) -> Page:
        """Fetch one page of ``resource_id``'s timeline (newest first)."""
        url = f"{self.settings.API_BASE_URL}/users/{resource_id}/tweets"
        body = self._get_json(
            url,
            self._timeline_params(continuation_token),
            f"userTimeline({resource_id})",
        )
        meta: dict[str, Any] = body.get("meta") or {}
        includes: dict[str, Any] = body.get("includes") or {}
        return Page(
            items=list(body.get("data") or []),
            auxiliary=list(includes.get("media") or []),
            next_token=meta.get("next_token"),
        )

    def get_user_by_username(self, username: str) -> UserProfile:
        """Resolve ``username`` to a profile; suspended accounts are not found."""
        url = (
            f"{self.settings.API_BASE_URL}/users/by/username/{username}"
        )
        operation = f"getUserByUsername({username})"
        body = self._get_json(
            url,
            {"user.fields": ",".join(self.settings.USER_FIELDS)},
            operation,
        )
        data = body.get("data")
        if not data:
            raise NotFoundError(
                f"User not found or suspended: {username}",
                operation=operation,
            )
        return UserProfile.from_api(data)
