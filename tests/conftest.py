import json
import threading
from types import SimpleNamespace

import pytest

from pins import PinStudio


def make_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


def image_part(data, mime_type="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


class FakeClient:
    """Stands in for GeminiClient: `call` and `generate_image` are driven by
    handler functions and every request is recorded."""

    def __init__(self, on_call=None, on_image=None):
        self.on_call = on_call or (lambda prompt, json_mode: None)
        self.on_image = on_image or (lambda prompt: make_response(image_part(b"\x89PNG fake")))
        self.calls = []
        self.image_prompts = []
        self._lock = threading.Lock()

    def call(self, prompt, json_mode=False):
        with self._lock:
            self.calls.append((prompt, json_mode))
        return self.on_call(prompt, json_mode)

    def generate_image(self, prompt):
        with self._lock:
            self.image_prompts.append(prompt)
        return self.on_image(prompt)


def ideas_reply(*ideas):
    return lambda prompt, json_mode: json.dumps(list(ideas))


@pytest.fixture
def fake_client():
    return FakeClient(on_call=ideas_reply("idea-1", "idea-2", "idea-3", "idea-4"))


@pytest.fixture
def studio(fake_client):
    return PinStudio(fake_client)
