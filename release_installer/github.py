"""Resolve private GitHub release download URLs through the REST API."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote

import httpx

from .console import debug
from .constants import GITHUB_API_BASE
from .errors import AcquisitionError, AcquisitionErrorKind
from .http import (
    HttpClientFactory,
    default_http_client_factory,
    describe_http_error,
    github_api_headers,
    http_timeout,
    request_with_retries,
)
from .models import ResolvedAsset

AssetResolver = Callable[[str, str], ResolvedAsset]

_RELEASE_URL_PATTERN = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+)/releases/"
    r"(?:download/(?P<tag>[^/]+)|latest/download)/(?P<asset>[^/?#]+)/?$"
)


@dataclass(frozen=True)
class ReleaseAssetRef:
    owner: str
    repo: str
    tag: Optional[str]
    asset: str

    @property
    def release_api_path(self) -> str:
        if self.tag is None:
            return f"/repos/{self.owner}/{self.repo}/releases/latest"
        return f"/repos/{self.owner}/{self.repo}/releases/tags/{self.tag}"


def _fail(detail: str) -> AcquisitionError:
    return AcquisitionError(AcquisitionErrorKind.ASSET_RESOLUTION_FAILED, detail)


def parse_release_url(url: str) -> ReleaseAssetRef:
    match = _RELEASE_URL_PATTERN.match((url or "").strip())
    if not match:
        raise _fail(
            f"'{url}' is not a GitHub release download URL "
            "(expected https://github.com/<owner>/<repo>/releases/download/<tag>/<asset>)"
        )
    return ReleaseAssetRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        tag=unquote(match.group("tag")) if match.group("tag") else None,
        asset=unquote(match.group("asset")),
    )


def _select_asset(assets: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for asset in assets:
        if isinstance(asset, dict) and asset.get("name") == name:
            return asset
    return None


def find_release_asset(
    url: str,
    token: str,
    *,
    api_base: str = GITHUB_API_BASE,
    client_factory: HttpClientFactory = default_http_client_factory,
) -> ResolvedAsset:
    """
    Turn a browser download URL of a (possibly private) release into the API
    asset URL that accepts token authentication.

    Browser download URLs of private repositories answer 404 to token
    requests; the asset endpoint with ``Accept: application/octet-stream``
    redirects to a signed URL instead.
    """
    if not token:
        raise _fail("a GitHub token is required to resolve private release assets")
    ref = parse_release_url(url)
    endpoint = f"{api_base.rstrip('/')}{ref.release_api_path}"
    debug(f"looking up release asset {ref.asset} via {endpoint}")

    try:
        with client_factory(http_timeout()) as client:
            response = request_with_retries(
                client, "GET", endpoint, headers=github_api_headers(token)
            )
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        detail = describe_http_error(exc)
        if status in {401, 403}:
            raise _fail(f"GitHub rejected the token for {ref.owner}/{ref.repo}: {detail}") from exc
        if status == 404:
            release = ref.tag or "latest"
            raise _fail(
                f"release {release} not found in {ref.owner}/{ref.repo} "
                f"(or the token cannot read it): {detail}"
            ) from exc
        raise _fail(f"GitHub release lookup failed: {detail}") from exc
    except httpx.HTTPError as exc:
        raise _fail(f"GitHub release lookup failed: {describe_http_error(exc)}") from exc
    except ValueError as exc:
        raise _fail(f"GitHub returned an invalid release payload: {exc}") from exc

    if not isinstance(payload, dict):
        raise _fail("GitHub returned an invalid release payload")
    assets = payload.get("assets")
    asset = _select_asset(assets if isinstance(assets, list) else [], ref.asset)
    if asset is None or not asset.get("url"):
        available = ", ".join(
            sorted(str(a.get("name")) for a in (assets or []) if isinstance(a, dict))
        )
        raise _fail(
            f"asset {ref.asset} not found in release {payload.get('tag_name') or ref.tag} "
            f"of {ref.owner}/{ref.repo}" + (f" (available: {available})" if available else "")
        )

    debug(f"resolved {ref.asset} to {asset['url']}")
    return ResolvedAsset(
        url=str(asset["url"]),
        auth=f"token {token}",
        headers={"Accept": "application/octet-stream"},
    )
