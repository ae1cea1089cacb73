import json

import httpx
import pytest

from vidscribe.client.api_client import APIClient
from vidscribe.client.routes import View, resolve_route
from vidscribe.client.status_display import status_display
from vidscribe.errors import (
    BillingError,
    PollError,
    SubmissionError,
    TranscriptionNotFound,
    Unauthenticated,
    UploadError,
    ValidationError,
)
from vidscribe.models import JobStatus


def _client(handler, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return APIClient("https://api.test/", access_token="tok", http_client=http_client, **kwargs)


async def test_requests_carry_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "job-1", "status": "processing"})

    api = _client(handler)
    await api.create_transcription("https://x/a.mp4", "a.mp4")
    await api.aclose()

    assert seen[0].url == "https://api.test/transcriptions"
    assert seen[0].headers["authorization"] == "Bearer tok"
    assert json.loads(seen[0].content) == {"video_url": "https://x/a.mp4", "filename": "a.mp4"}


@pytest.mark.parametrize(
    "status_code,error_class",
    [(401, Unauthenticated), (404, TranscriptionNotFound), (400, ValidationError), (502, SubmissionError)],
)
async def test_error_responses_map_to_typed_errors(status_code, error_class):
    api = _client(lambda request: httpx.Response(status_code, json={"detail": "nope", "details": {"status_code": 500}}))

    with pytest.raises(error_class) as exc_info:
        await api.create_transcription("https://x/a.mp4")
    assert exc_info.value.message == "nope"
    await api.aclose()


async def test_network_failure_during_poll_is_poll_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out")

    api = _client(handler)
    with pytest.raises(PollError):
        await api.get_transcription_status("job-1")
    await api.aclose()


async def test_upload_size_checked_before_sending():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    api = _client(handler, max_upload_size_bytes=1024 * 1024)
    with pytest.raises(UploadError) as exc_info:
        await api.upload_video(b"x" * (1024 * 1024 + 1), "big.mp4")
    await api.aclose()

    assert exc_info.value.status_code == 413
    assert seen == []


async def test_list_transcriptions_returns_rows():
    def handler(request):
        assert request.url.params["offset"] == "5"
        assert request.url.params["limit"] == "5"
        return httpx.Response(200, json={"transcriptions": [{"id": "a"}], "has_more": False})

    api = _client(handler)
    assert await api.list_transcriptions(offset=5, limit=5) == [{"id": "a"}]
    await api.aclose()


async def test_checkout_validated_before_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"url": "https://checkout.test"})

    api = _client(handler)
    with pytest.raises(ValidationError, match="Billing interval"):
        await api.create_checkout_session("price_1", "Nano", "fortnight")
    assert seen == []

    assert await api.create_checkout_session("price_1", "Nano", "year") == {"url": "https://checkout.test"}
    await api.aclose()


async def test_checkout_without_url_is_billing_error():
    api = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(BillingError):
        await api.create_checkout_session("price_1", "Nano", "month")
    await api.aclose()


@pytest.mark.parametrize(
    "status,label,spinning,downloadable",
    [
        (JobStatus.PENDING, "Pending", True, False),
        ("processing", "Processing", True, False),
        ("completed", "Completed", False, True),
        ("failed", "Failed", False, False),
    ],
)
def test_status_display(status, label, spinning, downloadable):
    display = status_display(status)
    assert (display.label, display.spinning, display.downloadable) == (label, spinning, downloadable)


def test_status_display_rejects_unknown_status():
    with pytest.raises(ValueError):
        status_display("archived")


@pytest.mark.parametrize(
    "path,authenticated,view",
    [
        ("/", False, View.LANDING),
        ("/login", False, View.LOGIN),
        ("/signup/?session_id=cs_1", False, View.SIGNUP),
        ("/pricing", False, View.PRICING),
        ("/nowhere", False, View.LANDING),
        ("/login", True, View.DASHBOARD),
        ("/anything", True, View.DASHBOARD),
    ],
)
def test_resolve_route(path, authenticated, view):
    assert resolve_route(path, authenticated) is view
