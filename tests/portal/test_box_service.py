"""Unit tests for BoxService: credential selection, search and content access."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from config.settings import BOX_API_BASE
from connectors.box.client import BoxClient
from connectors.box.errors import (
    AuthenticationError,
    ForbiddenError,
    NotFoundCondition,
    UpstreamError,
)
from models.search import FilterSpec, MetadataFilter, SizeBucket, TypeFlags
from services.box_service import BoxService, normalize_folder_id
from utils.cache import TTLCache

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def token_provider():
    provider = AsyncMock()
    provider.get_access_token.return_value = "service_token"
    return provider


@pytest.fixture
def service(box_settings, token_provider, clock):
    return BoxService(
        settings=box_settings,
        client=BoxClient(timeout=5.0),
        token_provider=token_provider,
        folder_cache=TTLCache(default_ttl=60.0, clock=clock),
        now=lambda: NOW,
    )


def _bearer(route) -> str:
    return route.calls.last.request.headers["Authorization"]


# ---------------------------------------------------------------------------
# Credential selection
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_token_is_used_unchanged(service, token_provider):
    assert await service.resolve_token("user_token") == "user_token"
    token_provider.get_access_token.assert_not_called()


@pytest.mark.asyncio
async def test_missing_user_token_falls_back_to_service(service, token_provider):
    assert await service.resolve_token(None) == "service_token"
    token_provider.get_access_token.assert_awaited_once()


@pytest.mark.asyncio
@respx.mock
async def test_folder_listing_falls_back_to_service_token(service):
    route = respx.get(f"{BOX_API_BASE}/folders/0/items").mock(
        return_value=httpx.Response(200, json={"entries": [{"id": "1"}], "total_count": 1})
    )
    result = await service.list_folder_items(None)
    assert result == {"entries": [{"id": "1"}]}
    assert _bearer(route) == "Bearer service_token"
    assert route.calls.last.request.url.params["limit"] == "1000"


@pytest.mark.asyncio
@respx.mock
async def test_folder_prefix_is_stripped(service):
    route = respx.get(f"{BOX_API_BASE}/folders/42/items").mock(
        return_value=httpx.Response(200, json={"entries": []})
    )
    await service.list_folder_items("d_42", "user_token")
    assert _bearer(route) == "Bearer user_token"


@pytest.mark.parametrize("raw, expected", [("d_42", "42"), ("42", "42"), ("", "0"), (None, "0"), ("d_", "0")])
def test_normalize_folder_id(raw, expected):
    assert normalize_folder_id(raw) == expected


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_download_without_user_token_never_uses_service(service, token_provider):
    with pytest.raises(AuthenticationError):
        await service.get_download_url("99", None)
    token_provider.get_access_token.assert_not_called()


@pytest.mark.asyncio
@respx.mock
async def test_download_returns_redirect_location(service):
    route = respx.get(f"{BOX_API_BASE}/files/99/content").mock(
        return_value=httpx.Response(302, headers={"Location": "https://dl.boxcloud.com/abc"})
    )
    assert await service.get_download_url("99", "user_token") == "https://dl.boxcloud.com/abc"
    assert _bearer(route) == "Bearer user_token"


@pytest.mark.asyncio
@respx.mock
async def test_download_forbidden_maps_to_forbidden_error(service):
    respx.get(f"{BOX_API_BASE}/files/99/content").mock(
        return_value=httpx.Response(403, json={"message": "Access denied"})
    )
    with pytest.raises(ForbiddenError) as info:
        await service.get_download_url("99", "user_token")
    assert info.value.forbidden


@pytest.mark.asyncio
@respx.mock
async def test_download_without_location_is_not_found(service):
    respx.get(f"{BOX_API_BASE}/files/99/content").mock(return_value=httpx.Response(200, content=b"x"))
    with pytest.raises(NotFoundCondition):
        await service.get_download_url("99", "user_token")


# ---------------------------------------------------------------------------
# Preview / metadata / folder info
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@respx.mock
async def test_preview_link(service):
    respx.get(f"{BOX_API_BASE}/files/5").mock(
        return_value=httpx.Response(200, json={"expiring_embed_link": {"url": "https://app.box.com/preview/5"}})
    )
    assert await service.get_preview_link("5") == "https://app.box.com/preview/5"


@pytest.mark.asyncio
@respx.mock
async def test_preview_without_embed_link_is_not_found(service):
    respx.get(f"{BOX_API_BASE}/files/5").mock(return_value=httpx.Response(200, json={"id": "5"}))
    with pytest.raises(NotFoundCondition):
        await service.get_preview_link("5")


@pytest.mark.asyncio
@respx.mock
async def test_file_metadata_requests_projection(service):
    route = respx.get(f"{BOX_API_BASE}/files/5").mock(
        return_value=httpx.Response(200, json={"name": "a.pdf"})
    )
    assert await service.get_file_metadata("5", "user_token") == {"name": "a.pdf"}
    assert "sha1" in route.calls.last.request.url.params["fields"]


@pytest.mark.asyncio
@respx.mock
async def test_folder_info_is_cached_per_token(service, clock):
    route = respx.get(f"{BOX_API_BASE}/folders/7").mock(
        return_value=httpx.Response(200, json={"id": "7", "name": "Projects"})
    )
    await service.get_folder_info("7", "user_token_aaaaaaaaaa")
    await service.get_folder_info("7", "user_token_aaaaaaaaaa")
    assert route.call_count == 1

    await service.get_folder_info("7", "user_token_bbbbbbbbbb")
    assert route.call_count == 2

    clock.advance(61)
    await service.get_folder_info("7", "user_token_aaaaaaaaaa")
    assert route.call_count == 3


@pytest.mark.asyncio
@respx.mock
async def test_upstream_error_propagates_status(service):
    respx.get(f"{BOX_API_BASE}/folders/7").mock(
        return_value=httpx.Response(404, json={"message": "Not Found"})
    )
    with pytest.raises(UpstreamError) as info:
        await service.get_folder_info("7", "tok")
    assert info.value.status_code == 404
    assert "Not Found" in info.value.message


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@respx.mock
async def test_search_sends_translated_parameters(service):
    route = respx.get(f"{BOX_API_BASE}/search").mock(
        return_value=httpx.Response(200, json={"entries": [{"id": "1"}, {"id": "2"}], "total_count": 17})
    )
    filters = FilterSpec(
        type_flags=TypeFlags(pdf=True),
        size_bucket=SizeBucket.SMALL,
        metadata_filter=MetadataFilter(template_key="contract", field_values={"status": "signed"}),
    )
    result = await service.search(filters, "user_token")

    sent = route.calls.last.request.url.params
    assert sent["query"] == "pdf"
    assert sent["file_extensions"] == "pdf"
    assert sent["size_range"] == ",1048576"
    assert sent["ancestor_folder_ids"] == "0"
    assert json.loads(sent["mdfilters"])[0]["scope"] == "enterprise_12345"
    assert _bearer(route) == "Bearer user_token"
    # Passed through without re-filtering
    assert result["entries"] == [{"id": "1"}, {"id": "2"}]
    assert result["total_count"] == 17


@pytest.mark.asyncio
@respx.mock
async def test_search_defaults_total_count_to_entry_count(service):
    respx.get(f"{BOX_API_BASE}/search").mock(
        return_value=httpx.Response(200, json={"entries": [{"id": "1"}]})
    )
    result = await service.search(FilterSpec())
    assert result["total_count"] == 1


# ---------------------------------------------------------------------------
# Metadata templates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@respx.mock
async def test_templates_always_use_service_account(service, token_provider):
    route = respx.get(f"{BOX_API_BASE}/metadata_templates/enterprise").mock(
        return_value=httpx.Response(200, json={"entries": [{"templateKey": "contract"}]})
    )
    assert await service.list_metadata_templates("enterprise") == [{"templateKey": "contract"}]
    assert _bearer(route) == "Bearer service_token"


@pytest.mark.asyncio
@respx.mock
async def test_template_schema(service):
    respx.get(f"{BOX_API_BASE}/metadata_templates/enterprise/contract/schema").mock(
        return_value=httpx.Response(200, json={"templateKey": "contract", "fields": []})
    )
    schema = await service.get_metadata_template_schema("enterprise", "contract")
    assert schema["templateKey"] == "contract"
