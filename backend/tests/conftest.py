from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from vidscribe.database import Database
from vidscribe.services.assembly_service import AssemblyAIService

ASSEMBLY_BASE_URL = "https://assembly.test/v2"


class FakeAssemblyAI:
    """In-memory stand-in for the AssemblyAI transcript endpoints."""

    def __init__(self) -> None:
        self.transcripts: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.submit_status = 200
        self.submit_body: Optional[Dict[str, Any]] = None
        self.poll_status = 200
        self.raise_on_poll: Optional[Exception] = None
        self._next_id = 1

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/transcript"):
            if self.submit_status >= 400:
                return httpx.Response(self.submit_status, json={"error": "Internal server error"})
            if self.submit_body is not None:
                return httpx.Response(200, json=self.submit_body)
            external_id = f"ext{self._next_id}"
            self._next_id += 1
            body = json.loads(request.content)
            self.transcripts[external_id] = {"id": external_id, "status": "queued", "audio_url": body["audio_url"]}
            return httpx.Response(200, json={"id": external_id, "status": "queued"})

        if request.method == "GET" and "/transcript/" in path:
            if self.raise_on_poll is not None:
                raise self.raise_on_poll
            if self.poll_status >= 400:
                return httpx.Response(self.poll_status, json={"error": "Upstream unavailable"})
            external_id = path.rsplit("/", 1)[-1]
            transcript = self.transcripts.get(external_id)
            if transcript is None:
                return httpx.Response(404, json={"error": "Transcript not found"})
            return httpx.Response(200, json=transcript)

        return httpx.Response(404, json={"error": "not found"})

    def set_status(self, external_id: str, status: str, text: Optional[str] = None, error: Optional[str] = None) -> None:
        transcript = self.transcripts.setdefault(external_id, {"id": external_id})
        transcript["status"] = status
        if text is not None:
            transcript["text"] = text
        if error is not None:
            transcript["error"] = error

    def poll_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'vidscribe.db'}")
    await db.init_models()
    yield db
    await db.dispose()


@pytest.fixture
async def db(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def fake_assembly() -> FakeAssemblyAI:
    return FakeAssemblyAI()


@pytest.fixture
async def provider(fake_assembly):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_assembly.handler))
    yield AssemblyAIService(client, api_key="test-assembly-key", base_url=ASSEMBLY_BASE_URL)
    await client.aclose()


def words(count: int) -> str:
    return " ".join(f"w{i}" for i in range(count))
