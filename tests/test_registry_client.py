from __future__ import annotations

import base64
import json

import httpx
import pytest

from npm_lens.registry_client import (
    RegistryAuth,
    RegistrySettings,
    _build_headers,
    fetch_package_metadata,
)


def _json_response(payload: object) -> httpx.Response:
    return httpx.Response(200, text=json.dumps(payload), headers={"Content-Type": "application/json"})


def test_build_headers_accept_and_auth_variants() -> None:
    """
    认证 header 构造应支持无认证/bearer/basic 三种情况，并始终带 Accept。
    """
    assert _build_headers(None) == {"Accept": "application/json"}

    bearer = _build_headers(RegistryAuth(bearer_token="t"))
    assert bearer["Authorization"] == "Bearer t"

    basic = _build_headers(RegistryAuth(basic_username="u", basic_password="p"))
    token = base64.b64encode(b"u:p").decode("ascii")
    assert basic["Authorization"] == f"Basic {token}"


@pytest.mark.asyncio
async def test_fetch_package_metadata_preserves_version_order() -> None:
    """
    成功时返回 versions 映射，并保留 registry 返回的键顺序。
    """
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return _json_response({"name": "demo", "versions": {"2.0.0": {}, "1.0.0": {"engines": {"node": ">=12"}}}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        snapshot = await fetch_package_metadata(
            "demo", settings=RegistrySettings(registry_url="https://registry.test/"), client=client
        )

    assert seen == ["https://registry.test/demo"]
    assert snapshot is not None
    assert list(snapshot.versions) == ["2.0.0", "1.0.0"]
    assert snapshot.versions["1.0.0"]["engines"]["node"] == ">=12"


@pytest.mark.asyncio
async def test_fetch_package_metadata_scoped_name_is_escaped() -> None:
    """
    作用域包应请求 @scope%2Fname 路径。
    """
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path.decode("ascii"))
        return _json_response({"versions": {}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await fetch_package_metadata("@types/node", settings=RegistrySettings(), client=client)

    assert seen == ["/@types%2Fnode"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda _req: httpx.Response(404, text="not found"),
        lambda _req: httpx.Response(500, text="boom"),
        lambda _req: httpx.Response(200, text="not json", headers={"Content-Type": "application/json"}),
        lambda _req: _json_response({"error": "no versions"}),
        lambda _req: _json_response(["unexpected"]),
    ],
)
async def test_fetch_package_metadata_failures_return_sentinel(handler) -> None:
    """
    非 2xx、非法 JSON、缺少 versions 时都应返回 None 而不是抛出。
    """
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await fetch_package_metadata("demo", settings=RegistrySettings(), client=client) is None


@pytest.mark.asyncio
async def test_fetch_package_metadata_network_error_returns_sentinel() -> None:
    """
    网络错误同样返回 None，且只请求一次（不重试）。
    """
    calls = {"n": 0}

    def handler(_req: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("unreachable")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await fetch_package_metadata("demo", settings=RegistrySettings(), client=client) is None
    assert calls["n"] == 1
