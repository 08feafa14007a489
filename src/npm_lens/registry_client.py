from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from npm_lens.models import RegistrySnapshot
from npm_lens.names import registry_path

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"

# registry 不可用时的哨兵值：调用方应将其视为“没有数据”
UNAVAILABLE = None


@dataclass(frozen=True, slots=True)
class RegistryAuth:
    """
    私有 registry 认证配置。
    """

    bearer_token: str | None = None
    basic_username: str | None = None
    basic_password: str | None = None


@dataclass(frozen=True, slots=True)
class RegistrySettings:
    """
    npm registry 查询配置。
    """

    registry_url: str = DEFAULT_REGISTRY_URL
    timeout_s: float | None = None
    auth: RegistryAuth | None = None


def _build_headers(auth: RegistryAuth | None) -> dict[str, str]:
    """
    基于认证配置构造 HTTP Header。
    """
    headers: dict[str, str] = {"Accept": "application/json"}
    if not auth:
        return headers

    if auth.bearer_token:
        headers["Authorization"] = f"Bearer {auth.bearer_token}"
        return headers

    if auth.basic_username is not None and auth.basic_password is not None:
        token = f"{auth.basic_username}:{auth.basic_password}".encode("utf-8")
        headers["Authorization"] = f"Basic {base64.b64encode(token).decode('ascii')}"
        return headers

    return headers


def _build_package_url(registry_url: str, package_name: str) -> str:
    """
    生成 registry 包元数据的请求 URL。
    """
    base = registry_url.rstrip("/")
    return f"{base}/{registry_path(package_name)}"


async def _request_json(client: httpx.AsyncClient, url: str) -> tuple[Any, int | None, str | None]:
    """
    请求 JSON 并返回 (data, status_code, error)，不重试。
    """
    try:
        resp = await client.get(url)
    except httpx.HTTPError as exc:
        return None, None, str(exc) or exc.__class__.__name__
    if resp.status_code < 200 or resp.status_code >= 300:
        return None, resp.status_code, f"http {resp.status_code}"
    try:
        return resp.json(), resp.status_code, None
    except ValueError as exc:
        return None, resp.status_code, f"invalid json: {exc}"


async def fetch_package_metadata(
    package_name: str,
    *,
    settings: RegistrySettings,
    client: httpx.AsyncClient,
) -> RegistrySnapshot | None:
    """
    查询包的全部已发布版本元数据；任何失败都返回 UNAVAILABLE 而不抛出。
    """
    url = _build_package_url(settings.registry_url, package_name)
    data, _status, error = await _request_json(client, url)
    if error is not None:
        logger.debug("registry lookup failed for %s: %s", package_name, error)
        return UNAVAILABLE

    versions = data.get("versions") if isinstance(data, dict) else None
    if not isinstance(versions, dict):
        logger.debug("registry response for %s has no versions object", package_name)
        return UNAVAILABLE

    return RegistrySnapshot(
        name=package_name,
        versions={str(k): (v if isinstance(v, dict) else {}) for k, v in versions.items()},
    )


def create_async_client(settings: RegistrySettings) -> httpx.AsyncClient:
    """
    创建用于访问 registry 的 AsyncClient（未配置超时时沿用 httpx 默认值）。
    """
    headers = _build_headers(settings.auth)
    if settings.timeout_s is None:
        return httpx.AsyncClient(headers=headers, follow_redirects=True)
    return httpx.AsyncClient(headers=headers, timeout=httpx.Timeout(settings.timeout_s), follow_redirects=True)
