"""Pin generation: concepts from the text model, one image per concept, and
the brand palette lookup used by the branding bar."""

import base64
import itertools
import json
import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import List, Optional

from errors import (
    GenerationSuperseded,
    ImageGenerationFailed,
    InvalidModelOutput,
    TransportError,
)
from placeholder import png_data_uri, render_placeholder_svg, svg_data_uri
from prompts import (
    DEFAULT_PALETTE,
    DEFAULT_STYLE,
    DEFAULT_TYPOGRAPHY,
    STYLES,
    TYPOGRAPHIES,
    build_brand_colors_prompt,
    build_description_request,
    build_ideas_prompt,
    build_image_request,
    compose_image_prompt,
    normalize_website_url,
)

logger = logging.getLogger(__name__)

MAX_IDEAS = 4
MAX_PALETTE = 3

# Image models that cannot emit pictures reject the modality outright.
IMAGE_UNSUPPORTED_STATUSES = {400, 404}

_HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


@dataclass(frozen=True)
class Pin:
    id: str
    url: str
    prompt: str

    def to_dict(self):
        return asdict(self)


@dataclass
class GenerationRequest:
    topic: str
    url: str = ""
    style: str = DEFAULT_STYLE
    overlay_text: str = ""
    website: str = ""
    typography: str = DEFAULT_TYPOGRAPHY
    brand_color: Optional[str] = None

    @classmethod
    def from_json(cls, data):
        """Build a request from a JSON body, raising ValueError on bad input."""
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")

        def text(key, default=""):
            value = data.get(key)
            return str(value).strip() if value is not None else default

        topic = text("topic")
        if not topic:
            raise ValueError("Topic cannot be empty")
        style = text("style") or DEFAULT_STYLE
        if style not in STYLES:
            raise ValueError(f"Unknown style: {style}")
        typography = text("typography") or DEFAULT_TYPOGRAPHY
        if typography not in TYPOGRAPHIES:
            raise ValueError(f"Unknown typography: {typography}")

        return cls(
            topic=topic,
            url=text("url"),
            style=style,
            overlay_text=text("overlay_text"),
            website=text("website"),
            typography=typography,
            brand_color=text("brand_color") or None,
        )


def parse_concepts(text):
    """Validate the idea reply: a non-empty JSON array of non-empty strings."""
    if not text:
        raise InvalidModelOutput("Could not generate pin ideas. The model returned an empty response.")
    try:
        ideas = json.loads(text.strip())
    except json.JSONDecodeError as e:
        logger.error("Failed to parse pin ideas JSON: %s", text)
        raise InvalidModelOutput(
            "Could not generate pin ideas. The model returned an invalid format."
        ) from e

    if not isinstance(ideas, list) or not ideas:
        raise InvalidModelOutput("Could not generate pin ideas. The model returned an invalid format.")
    ideas = ideas[:MAX_IDEAS]
    if not all(isinstance(idea, str) and idea.strip() for idea in ideas):
        raise InvalidModelOutput("Could not generate pin ideas. The model returned an invalid format.")
    return ideas


def parse_palette(text):
    colors = json.loads((text or "").strip())
    if not isinstance(colors, list):
        raise ValueError(f"expected a JSON array, got {type(colors).__name__}")
    colors = [c.strip() for c in colors if isinstance(c, str) and _HEX_RE.match(c.strip())]
    if not colors:
        raise ValueError("no hex colors in reply")
    return colors[:MAX_PALETTE]


def inline_image_uri(response):
    """Scan every candidate and part for inline image bytes."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            try:
                return png_data_uri(data, inline.mime_type)
            except OSError as e:
                logger.warning("Unreadable inline image (%s): %s", inline.mime_type, e)
    return None


class GenerationToken:
    def __init__(self, tracker, session_id, generation):
        self._tracker = tracker
        self.session_id = session_id
        self.generation = generation

    @property
    def superseded(self):
        return not self._tracker.is_current(self)


class GenerationTracker:
    """Hands out one token per generate call; a newer call for the same
    session supersedes the older token."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._latest = {}

    def begin(self, session_id):
        with self._lock:
            generation = next(self._counter)
            self._latest[session_id] = generation
        return GenerationToken(self, session_id, generation)

    def is_current(self, token):
        with self._lock:
            return self._latest.get(token.session_id) == token.generation

    def end(self, token):
        """Forget the session once its current generation has finished."""
        with self._lock:
            if self._latest.get(token.session_id) == token.generation:
                del self._latest[token.session_id]

    def __len__(self):
        with self._lock:
            return len(self._latest)


class PinStudio:
    def __init__(self, client, max_workers=MAX_IDEAS):
        self.client = client
        self.max_workers = max_workers

    def generate_ideas(self, topic, url, style) -> List[str]:
        text = self.client.call(build_ideas_prompt(topic, url, style), json_mode=True)
        return parse_concepts(text)

    def produce_image(self, prompt, overlay_text="", website="", typography=DEFAULT_TYPOGRAPHY,
                      brand_color=None, style=None) -> str:
        final_prompt = compose_image_prompt(
            prompt,
            style=style,
            overlay_text=overlay_text,
            typography=typography,
            website=website,
            brand_color=brand_color,
        )

        try:
            response = self.client.generate_image(build_image_request(final_prompt))
        except TransportError as e:
            if e.status not in IMAGE_UNSUPPORTED_STATUSES:
                raise
            logger.warning("Image model rejected the request (%s), using placeholder", e.status)
            response = None

        if response is not None:
            uri = inline_image_uri(response)
            if uri:
                return uri
            logger.warning("Image model returned no inline image, using placeholder")

        description = self.client.call(build_description_request(final_prompt))
        if not description or not description.strip():
            raise ImageGenerationFailed(
                "Image generation failed to return an image or a description."
            )
        svg = render_placeholder_svg(description, overlay_text, website, brand_color)
        return svg_data_uri(svg)

    def extract_colors(self, website) -> List[str]:
        full_url = normalize_website_url(website)
        try:
            text = self.client.call(build_brand_colors_prompt(full_url), json_mode=True)
            return parse_palette(text)
        except Exception as e:
            logger.warning("Could not extract brand colors for %s, using default: %s", full_url, e)
        return list(DEFAULT_PALETTE)

    def generate_pins(self, request, on_progress=None, token=None) -> List[Pin]:
        """Brainstorm concepts, then render every concept in parallel.

        One failed image fails the whole batch once every request has
        settled. A superseded token discards the batch.
        """
        if on_progress is None:
            on_progress = lambda message: None

        on_progress(f"Brainstorming {request.style.lower()} pin ideas...")
        logger.info("Generating pins for %r (%s)", request.topic, request.style)
        ideas = self.generate_ideas(request.topic, request.url, request.style)
        self._check(token)

        stamp = int(time.time() * 1000)
        futures = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for index, idea in enumerate(ideas):
                on_progress(f"Generating pin {index + 1} of {len(ideas)}...")
                futures.append(executor.submit(
                    self.produce_image,
                    idea,
                    overlay_text=request.overlay_text,
                    website=request.website,
                    typography=request.typography,
                    brand_color=request.brand_color,
                    style=request.style,
                ))
        urls = [future.result() for future in futures]
        self._check(token)

        on_progress("Pins are ready!")
        logger.info("Generated %d pins for %r", len(urls), request.topic)
        return [
            Pin(id=f"image-{stamp}-{index}", url=url, prompt=idea)
            for index, (idea, url) in enumerate(zip(ideas, urls))
        ]

    @staticmethod
    def _check(token):
        if token is not None and token.superseded:
            raise GenerationSuperseded("A newer generation replaced this one.")
