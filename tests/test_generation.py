"""Tests for the Gemini image generator and the image helpers it uses."""

import base64
import json

import httpx
import pytest

from errors import GenerationError, ValidationError
from fakes import BLOB_ROOT
from generation import GeminiImageGenerator, GenerationRequest, build_tattoo_prompt
from storage import blob_path, parse_data_url

PNG = b"\x89PNG\r\n\x1a\nfake"
REFERENCE = b"\xff\xd8\xffreference"


def gemini_response(image: bytes = PNG, mime_type: str = "image/png"):
    return {
        "candidates": [{
            "content": {"parts": [
                {"text": "Here is your design."},
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image).decode()}},
            ]},
        }],
    }


class GeminiStub:
    """Mock transport handler recording every request it sees."""

    def __init__(self, response=None, status_code=200):
        self.response = response if response is not None else gemini_response()
        self.status_code = status_code
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.method == "GET":
            return httpx.Response(200, content=REFERENCE, headers={"content-type": "image/jpeg"})
        return httpx.Response(self.status_code, json=self.response)

    @property
    def payload(self):
        posts = [c for c in self.calls if c.method == "POST"]
        return json.loads(posts[-1].content)


@pytest.fixture
def stub():
    return GeminiStub()


@pytest.fixture
async def client(stub):
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
        yield client


@pytest.fixture
def gemini(storage, client):
    return GeminiImageGenerator(storage, client=client, api_key="test-key", model="test-model")


class TestGenerate:

    async def test_uploads_generated_image(self, gemini, storage, stub, owner):
        image_ref = await gemini.generate(GenerationRequest(prompt="dragon", style="fine-line"), owner.id)

        assert image_ref.startswith(f"{BLOB_ROOT}designs/{owner.id}/")
        assert image_ref.endswith(".png")
        assert storage.blobs[image_ref] == PNG

        post = stub.calls[-1]
        assert post.url.path.endswith("/test-model:generateContent")
        assert post.url.params["key"] == "test-key"

    async def test_prompt_only_payload(self, gemini, stub, owner):
        await gemini.generate(GenerationRequest(prompt="dragon", placement="Forearm"), owner.id)

        parts = stub.payload["contents"][0]["parts"]
        assert len(parts) == 1
        assert "SUBJECT: dragon" in parts[0]["text"]
        assert "forearm anatomy" in parts[0]["text"]
        assert stub.payload["generationConfig"] == {"responseModalities": ["IMAGE"]}

    async def test_reference_url_is_fetched_and_inlined(self, gemini, stub, owner):
        request = GenerationRequest(prompt="dragon, add fire", reference_image_ref=f"{BLOB_ROOT}designs/a.png")
        await gemini.generate(request, owner.id)

        assert stub.calls[0].method == "GET"
        assert str(stub.calls[0].url) == f"{BLOB_ROOT}designs/a.png"
        inline = stub.payload["contents"][0]["parts"][0]["inlineData"]
        assert inline == {"mimeType": "image/jpeg", "data": base64.b64encode(REFERENCE).decode()}
        assert "REFERENCE:" in stub.payload["contents"][0]["parts"][1]["text"]

    async def test_reference_data_url_is_not_fetched(self, gemini, stub, owner):
        data_url = "data:image/webp;base64," + base64.b64encode(REFERENCE).decode()
        await gemini.generate(GenerationRequest(reference_image_ref=data_url), owner.id)

        assert [c.method for c in stub.calls] == ["POST"]
        assert stub.payload["contents"][0]["parts"][0]["inlineData"]["mimeType"] == "image/webp"

    async def test_requires_prompt_or_reference(self, gemini, stub, owner):
        with pytest.raises(ValidationError):
            await gemini.generate(GenerationRequest(style="geometric"), owner.id)
        assert stub.calls == []

    async def test_missing_api_key(self, storage, client, owner):
        gemini = GeminiImageGenerator(storage, client=client, api_key="")
        with pytest.raises(GenerationError, match="not configured"):
            await gemini.generate(GenerationRequest(prompt="dragon"), owner.id)

    async def test_upstream_error(self, storage, owner):
        stub = GeminiStub(response={"error": {"message": "quota"}}, status_code=429)
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            gemini = GeminiImageGenerator(storage, client=client, api_key="test-key")
            with pytest.raises(GenerationError, match="unavailable"):
                await gemini.generate(GenerationRequest(prompt="dragon"), owner.id)
        assert storage.blobs == {}

    async def test_response_without_image(self, storage, owner):
        stub = GeminiStub(response={"candidates": [{"content": {"parts": [{"text": "I can't draw that."}]}}]})
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            gemini = GeminiImageGenerator(storage, client=client, api_key="test-key")
            with pytest.raises(GenerationError, match="no image"):
                await gemini.generate(GenerationRequest(prompt="dragon"), owner.id)
        assert storage.blobs == {}

    async def test_unreachable_reference(self, storage, owner):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(404)
            return httpx.Response(200, json=gemini_response())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gemini = GeminiImageGenerator(storage, client=client, api_key="test-key")
            with pytest.raises(GenerationError, match="reference image"):
                await gemini.generate(
                    GenerationRequest(prompt="dragon", reference_image_ref="https://cdn.example.com/gone.png"),
                    owner.id,
                )


class TestPrompt:

    def test_known_style_is_expanded(self):
        text = build_tattoo_prompt("koi", "watercolor", None, has_reference=False)
        assert "STYLE: Watercolor with black outlines" in text
        assert "PLACEMENT" not in text
        assert "REFERENCE" not in text

    def test_unknown_style_is_passed_through(self):
        assert "STYLE: biomechanical" in build_tattoo_prompt("koi", "biomechanical", "back", has_reference=True)


class TestImageHelpers:

    def test_parse_data_url(self):
        data, mime_type = parse_data_url("data:image/jpeg;base64," + base64.b64encode(REFERENCE).decode())
        assert data == REFERENCE
        assert mime_type == "image/jpeg"

    def test_bare_base64_defaults_to_png(self):
        assert parse_data_url(base64.b64encode(PNG).decode()) == (PNG, "image/png")

    def test_invalid_base64(self):
        with pytest.raises(ValidationError):
            parse_data_url("data:image/png;base64,***")

    def test_blob_path(self):
        path = blob_path("user-1", "image/jpeg", folder="references")
        assert path.startswith("references/user-1/")
        assert path.endswith(".jpg")
        assert blob_path("user-1") != blob_path("user-1")
