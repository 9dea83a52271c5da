import json
import unittest
from pathlib import Path

import httpx

from interlude.errors import GenerationError, MalformedResponseError, ServiceStatusError
from interlude.models.track import TrackMetadata
from interlude.services.generation import GenerationClient, build_prompt
from interlude.settings import GenerationSettings


def _settings() -> GenerationSettings:
    return GenerationSettings(
        api_key="test-secret",
        api_base_url="https://llm.example.test/v1/",
        chat_model="chat-model",
        tts_model="speech-model",
        tts_voice="onyx",
        narration_title="DJ break",
    )


def _chat_ok(text: str = "Great songs! Up next, C by Z.") -> httpx.Response:
    return httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": text}}]}
    )


class _FakeServices:
    """Serves fresh responses from factories, one per request."""

    def __init__(self, chat=None, speech=None) -> None:  # noqa: ANN001
        self.chat = chat or _chat_ok
        self.speech = speech or (lambda: httpx.Response(200, content=b"ID3" + b"\x00" * 1024))
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/chat/completions"):
            return self.chat()
        if request.url.path.endswith("/audio/speech"):
            return self.speech()
        return httpx.Response(404)


class BuildPromptTests(unittest.TestCase):
    def test_prompt_lists_history_and_next_track(self) -> None:
        prompt = build_prompt(
            [TrackMetadata(title="A", artist="X"), TrackMetadata(title="B", artist="Y")],
            TrackMetadata(title="C", artist="Z"),
        )
        self.assertIn("A by X, B by Y", prompt)
        self.assertIn("C by Z", prompt)
        self.assertIn("200 words", prompt)

    def test_prompt_without_next_track(self) -> None:
        prompt = build_prompt([TrackMetadata(title="A", artist="X")], None)
        self.assertIn("A by X", prompt)


class GenerationClientTests(unittest.IsolatedAsyncioTestCase):
    def _client(self, services: _FakeServices) -> GenerationClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(services))
        self.addAsyncCleanup(http.aclose)
        return GenerationClient(_settings(), client=http)

    async def test_generate_narration_posts_both_services(self) -> None:
        services = _FakeServices()
        client = self._client(services)

        request = await client.generate_narration(
            [TrackMetadata(title="A", artist="X"), TrackMetadata(title="B", artist="Y")],
            TrackMetadata(title="C", artist="Z"),
            sequence=3,
        )
        self.addCleanup(request.path.unlink, missing_ok=True)

        chat, speech = services.requests
        self.assertEqual(str(chat.url), "https://llm.example.test/v1/chat/completions")
        self.assertEqual(chat.headers["Authorization"], "Bearer test-secret")
        chat_body = json.loads(chat.content)
        self.assertEqual(chat_body["model"], "chat-model")
        self.assertEqual([m["role"] for m in chat_body["messages"]], ["system", "user"])
        self.assertIn("A by X, B by Y", chat_body["messages"][1]["content"])

        speech_body = json.loads(speech.content)
        self.assertEqual(speech_body["model"], "speech-model")
        self.assertEqual(speech_body["input"], "Great songs! Up next, C by Z.")
        self.assertEqual(speech_body["voice"], "onyx")
        self.assertEqual(speech_body["response_format"], "mp3")
        self.assertEqual(speech_body["speed"], 1.0)

        self.assertEqual(request.title, "DJ break")
        self.assertEqual(request.sequence, 3)
        self.assertEqual(request.path.suffix, ".mp3")
        self.assertEqual(request.path.read_bytes(), b"ID3" + b"\x00" * 1024)

    async def test_chat_error_status(self) -> None:
        services = _FakeServices(chat=lambda: httpx.Response(500, text="boom"))
        client = self._client(services)

        with self.assertRaises(ServiceStatusError) as ctx:
            await client.complete("prompt")
        self.assertEqual(ctx.exception.service, "chat")
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.error_kind, "status")

    async def test_chat_non_json_body(self) -> None:
        client = self._client(_FakeServices(chat=lambda: httpx.Response(200, text="<html>")))
        with self.assertRaises(MalformedResponseError):
            await client.complete("prompt")

    async def test_chat_requires_exactly_one_choice(self) -> None:
        def two_choices() -> httpx.Response:
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": "a"}}, {"message": {"content": "b"}}]},
            )

        client = self._client(_FakeServices(chat=two_choices))
        with self.assertRaises(MalformedResponseError):
            await client.complete("prompt")

    async def test_chat_error_shaped_body(self) -> None:
        client = self._client(
            _FakeServices(chat=lambda: httpx.Response(200, json={"error": {"message": "quota"}}))
        )
        with self.assertRaises(MalformedResponseError) as ctx:
            await client.complete("prompt")
        self.assertEqual(ctx.exception.error_kind, "malformed_response")

    async def test_speech_error_status(self) -> None:
        services = _FakeServices(speech=lambda: httpx.Response(401, text="bad key"))
        client = self._client(services)

        with self.assertRaises(ServiceStatusError) as ctx:
            await client.generate_narration([TrackMetadata(title="A", artist="X")], None)
        self.assertEqual(ctx.exception.service, "speech")
        self.assertEqual(ctx.exception.status_code, 401)

    async def test_transport_error_is_generation_error(self) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(broken))
        self.addAsyncCleanup(http.aclose)
        client = GenerationClient(_settings(), client=http)

        with self.assertRaises(GenerationError) as ctx:
            await client.complete("prompt")
        self.assertEqual(ctx.exception.error_kind, "network")

    async def test_disabled_without_api_key(self) -> None:
        client = GenerationClient(GenerationSettings())
        self.addAsyncCleanup(client.aclose)
        self.assertFalse(client.enabled())

    async def test_synthesize_creates_unique_files(self) -> None:
        client = self._client(_FakeServices())
        first = await client.synthesize("one")
        second = await client.synthesize("two")
        self.addCleanup(Path.unlink, first, missing_ok=True)
        self.addCleanup(Path.unlink, second, missing_ok=True)
        self.assertNotEqual(first, second)


if __name__ == "__main__":
    unittest.main()
