import base64
import io
import json

import pytest
from PIL import Image

from conftest import FakeClient, ideas_reply, image_part, make_response, text_part
from errors import (
    GenerationSuperseded,
    ImageGenerationFailed,
    InvalidModelOutput,
    TransportError,
)
from pins import GenerationRequest, GenerationTracker, Pin, PinStudio, parse_concepts
from prompts import DEFAULT_PALETTE


def decode_uri(uri, prefix):
    assert uri.startswith(prefix)
    return base64.b64decode(uri[len(prefix):])


# ── Idea generation ──

def test_ideas_are_truncated_to_four():
    studio = PinStudio(FakeClient(on_call=ideas_reply("a", "b", "c", "d", "e")))
    assert studio.generate_ideas("topic", "", "Stock Photo") == ["a", "b", "c", "d"]


def test_ideas_request_uses_json_mode(studio, fake_client):
    studio.generate_ideas("cozy bedroom", "https://blog.example", "Cinematic")
    prompt, json_mode = fake_client.calls[0]
    assert json_mode is True
    assert "cozy bedroom" in prompt


@pytest.mark.parametrize("reply", [
    "not json at all",
    "[]",
    '{"ideas": ["a"]}',
    "[1, 2, 3]",
    '["a", 2]',
    '["", "b"]',
    "",
    None,
])
def test_bad_idea_reply_is_rejected(reply):
    studio = PinStudio(FakeClient(on_call=lambda prompt, json_mode: reply))
    with pytest.raises(InvalidModelOutput):
        studio.generate_ideas("topic", "", "Stock Photo")


def test_parse_concepts_ignores_surrounding_whitespace():
    assert parse_concepts('  ["one", "two"]\n') == ["one", "two"]


# ── Brand colors ──

def test_extract_colors_normalizes_the_url():
    client = FakeClient(on_call=lambda prompt, json_mode: '["#000000", "#ffffff", "#ff0000"]')
    colors = PinStudio(client).extract_colors("example.com")
    assert colors == ["#000000", "#ffffff", "#ff0000"]
    prompt, json_mode = client.calls[0]
    assert json_mode is True
    assert 'URL: "https://example.com"' in prompt


def test_extract_colors_keeps_at_most_three_valid_hex_codes():
    reply = '["#111", "red", "#222222", "#333333", "#444444"]'
    colors = PinStudio(FakeClient(on_call=lambda p, j: reply)).extract_colors("example.com")
    assert colors == ["#111", "#222222", "#333333"]


def fail_transport(prompt, json_mode):
    raise TransportError(503, "unavailable")


def fail_connection(prompt, json_mode):
    raise ConnectionError("network unreachable")


@pytest.mark.parametrize("on_call", [
    fail_transport,
    fail_connection,
    lambda p, j: "nope",
    lambda p, j: "[]",
    lambda p, j: '{"primary": "#000000"}',
    lambda p, j: None,
])
def test_extract_colors_falls_back_on_any_failure(on_call):
    colors = PinStudio(FakeClient(on_call=on_call)).extract_colors("example.com")
    assert colors == ["#121212", "#FFFFFF", "#E11D48"]
    assert colors is not DEFAULT_PALETTE


# ── Image production ──

def test_inline_png_becomes_png_data_uri():
    client = FakeClient(on_image=lambda prompt: make_response(text_part("here you go"),
                                                              image_part(b"PNGDATA")))
    uri = PinStudio(client).produce_image("A sunny porch.")
    assert decode_uri(uri, "data:image/png;base64,") == b"PNGDATA"
    assert "A sunny porch." in client.image_prompts[0]
    assert "9:16" in client.image_prompts[0]


def test_inline_jpeg_is_reencoded_as_png():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), "red").save(buf, format="JPEG")
    client = FakeClient(on_image=lambda prompt: make_response(image_part(buf.getvalue(), "image/jpeg")))

    uri = PinStudio(client).produce_image("A red square.")

    img = Image.open(io.BytesIO(decode_uri(uri, "data:image/png;base64,")))
    assert img.format == "PNG"


def test_corrupt_inline_image_falls_back_to_placeholder():
    client = FakeClient(
        on_call=lambda prompt, json_mode: "A red square on white.",
        on_image=lambda prompt: make_response(image_part(b"not a jpeg", "image/jpeg")),
    )
    uri = PinStudio(client).produce_image("A red square.")
    svg = decode_uri(uri, "data:image/svg+xml;base64,").decode("utf-8")
    assert "A red square on white." in svg


def test_image_prompt_carries_overlay_and_branding():
    client = FakeClient()
    PinStudio(client).produce_image("A sunny porch.", overlay_text="Porch Goals",
                                    website="myblog.com", typography="Playful Script",
                                    brand_color="#E11D48")
    prompt = client.image_prompts[0]
    assert '"Porch Goals"' in prompt
    assert "Pacifico" in prompt
    assert "#E11D48" in prompt


def test_no_inline_image_falls_back_to_svg_placeholder():
    client = FakeClient(
        on_call=lambda prompt, json_mode: "A wide shot of a sunny porch with wicker chairs.",
        on_image=lambda prompt: make_response(text_part("I cannot draw.")),
    )
    uri = PinStudio(client).produce_image("A sunny porch.", overlay_text="Porch & Patio")
    svg = decode_uri(uri, "data:image/svg+xml;base64,").decode("utf-8")
    assert svg.startswith("<svg")
    assert "wicker chairs" in svg
    assert "Porch &amp; Patio" in svg
    assert client.calls[0][1] is False


def test_placeholder_description_is_truncated():
    client = FakeClient(
        on_call=lambda prompt, json_mode: "q" * 2000,
        on_image=lambda prompt: make_response(),
    )
    svg = decode_uri(PinStudio(client).produce_image("Long."), "data:image/svg+xml;base64,").decode()
    assert svg.count("q") == 500


@pytest.mark.parametrize("status", [400, 404])
def test_unsupported_image_model_falls_back_to_placeholder(status):
    def reject(prompt):
        raise TransportError(status, "response modalities not supported")

    client = FakeClient(on_call=lambda p, j: "A porch.", on_image=reject)
    uri = PinStudio(client).produce_image("A sunny porch.")
    assert uri.startswith("data:image/svg+xml;base64,")


def test_server_error_from_image_model_propagates():
    def boom(prompt):
        raise TransportError(500, "internal")

    client = FakeClient(on_call=lambda p, j: "A porch.", on_image=boom)
    with pytest.raises(TransportError) as exc_info:
        PinStudio(client).produce_image("A sunny porch.")
    assert exc_info.value.status == 500
    assert client.calls == []


def test_no_image_and_no_description_fails():
    client = FakeClient(on_call=lambda p, j: "   ", on_image=lambda prompt: make_response())
    with pytest.raises(ImageGenerationFailed):
        PinStudio(client).produce_image("A sunny porch.")


# ── Orchestration ──

def test_generate_pins_end_to_end(studio, fake_client):
    progress = []
    request = GenerationRequest(topic="cozy bedroom", style="Minimalist")

    pins = studio.generate_pins(request, on_progress=progress.append)

    assert len(pins) == 4
    assert all(isinstance(pin, Pin) for pin in pins)
    assert len({pin.id for pin in pins}) == 4
    assert [pin.prompt for pin in pins] == ["idea-1", "idea-2", "idea-3", "idea-4"]
    assert all(pin.url.startswith("data:image/png;base64,") for pin in pins)

    assert progress[0] == "Brainstorming minimalist pin ideas..."
    assert progress[1:5] == [f"Generating pin {i} of 4..." for i in range(1, 5)]
    assert progress[-1] == "Pins are ready!"
    assert len(fake_client.calls) == 1
    assert len(fake_client.image_prompts) == 4


def test_pin_ids_share_a_timestamp_and_carry_the_index(studio):
    pins = studio.generate_pins(GenerationRequest(topic="t"))
    stamps = {pin.id.rsplit("-", 1)[0] for pin in pins}
    assert len(stamps) == 1
    assert [pin.id.rsplit("-", 1)[1] for pin in pins] == ["0", "1", "2", "3"]


def test_one_failed_image_fails_the_batch(fake_client):
    def flaky(prompt):
        if "idea-3" in prompt:
            raise TransportError(500, "internal")
        return make_response(image_part(b"PNG"))

    fake_client.on_image = flaky
    progress = []

    with pytest.raises(TransportError):
        PinStudio(fake_client).generate_pins(GenerationRequest(topic="t"), on_progress=progress.append)

    assert len(fake_client.image_prompts) == 4
    assert "Pins are ready!" not in progress


def test_idea_failure_stops_before_any_image():
    client = FakeClient(on_call=lambda p, j: "garbage")
    with pytest.raises(InvalidModelOutput):
        PinStudio(client).generate_pins(GenerationRequest(topic="t"))
    assert client.image_prompts == []


def test_superseded_generation_is_discarded(studio, fake_client):
    tracker = GenerationTracker()
    old = tracker.begin("tab-1")

    def supersede(prompt, json_mode):
        tracker.begin("tab-1")
        return json.dumps(["a", "b"])

    fake_client.on_call = supersede
    with pytest.raises(GenerationSuperseded):
        studio.generate_pins(GenerationRequest(topic="t"), token=old)
    assert fake_client.image_prompts == []


def test_tracker_forgets_finished_sessions():
    tracker = GenerationTracker()
    old = tracker.begin("a")
    new = tracker.begin("a")
    tracker.end(old)
    assert len(tracker) == 1
    assert not new.superseded
    tracker.end(new)
    assert len(tracker) == 0


def test_tracker_keeps_sessions_apart():
    tracker = GenerationTracker()
    a = tracker.begin("a")
    b = tracker.begin("b")
    assert not a.superseded and not b.superseded
    a2 = tracker.begin("a")
    assert a.superseded
    assert not a2.superseded
    assert not b.superseded


# ── Request parsing ──

def test_request_from_json_strips_and_defaults():
    request = GenerationRequest.from_json({
        "topic": "  cozy bedroom ",
        "overlay_text": " Sleep Better ",
        "brand_color": "",
    })
    assert request.topic == "cozy bedroom"
    assert request.overlay_text == "Sleep Better"
    assert request.style == "Stock Photo"
    assert request.typography == "Bold Sans-Serif"
    assert request.brand_color is None


@pytest.mark.parametrize("body", [
    None,
    {},
    {"topic": "   "},
    {"topic": "t", "style": "Oil Painting"},
    {"topic": "t", "typography": "Comic Sans"},
])
def test_request_from_json_rejects_bad_input(body):
    with pytest.raises(ValueError):
        GenerationRequest.from_json(body)
