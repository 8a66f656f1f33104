"""Data-URI encoding for generated pins and the SVG placeholder used when the
image model gives back no picture."""

import base64
import io
import textwrap
from xml.sax.saxutils import escape

from PIL import Image

WIDTH, HEIGHT = 900, 1600
MAX_DESCRIPTION_CHARS = 500


def png_data_uri(data, mime_type=None):
    """Encode inline image bytes as a PNG data URI, re-encoding other formats."""
    if mime_type and mime_type != "image/png":
        img = Image.open(io.BytesIO(data))
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        data = buf.getvalue()
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def svg_data_uri(svg):
    b64 = base64.b64encode(svg.encode("utf-8")).decode("utf-8")
    return f"data:image/svg+xml;base64,{b64}"


def _is_light(hex_color):
    h = hex_color.lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    try:
        r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        return False
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255 > 0.5


def _tspans(lines, x, dy):
    out = []
    for i, line in enumerate(lines):
        out.append(f'<tspan x="{x}" dy="{0 if i == 0 else dy}">{escape(line)}</tspan>')
    return "".join(out)


def render_placeholder_svg(description, overlay_text="", website="", brand_color=None):
    """Build a 9:16 SVG that shows the model's description of the pin."""
    description = " ".join(description.split())[:MAX_DESCRIPTION_CHARS]
    body_lines = textwrap.wrap(description, width=40) or [""]

    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{WIDTH}" height="{HEIGHT}" '
        f'viewBox="0 0 {WIDTH} {HEIGHT}">',
        '<defs><linearGradient id="bg" x1="0" y1="0" x2="0" y2="1">'
        '<stop offset="0" stop-color="#1f1b2e"/><stop offset="1" stop-color="#0f0f0f"/>'
        '</linearGradient></defs>',
        f'<rect width="{WIDTH}" height="{HEIGHT}" fill="url(#bg)"/>',
    ]

    y = 160
    if overlay_text:
        title_lines = textwrap.wrap(overlay_text, width=20)
        parts.append(
            f'<text x="{WIDTH // 2}" y="{y}" text-anchor="middle" fill="#ffffff" '
            'font-family="Georgia, serif" font-size="64" font-weight="700">'
            f'{_tspans(title_lines, WIDTH // 2, 76)}</text>'
        )
        y += 76 * len(title_lines) + 80

    parts.append(
        f'<text x="70" y="{y}" fill="#d4d4d8" font-family="Helvetica, Arial, sans-serif" '
        f'font-size="34">{_tspans(body_lines, 70, 50)}</text>'
    )

    if website and brand_color:
        text_color = "#111111" if _is_light(brand_color) else "#ffffff"
        parts.append(
            f'<rect x="0" y="{HEIGHT - 140}" width="{WIDTH}" height="140" '
            f'fill="{escape(brand_color)}" fill-opacity="0.85"/>'
        )
        parts.append(
            f'<text x="{WIDTH // 2}" y="{HEIGHT - 58}" text-anchor="middle" fill="{text_color}" '
            f'font-family="Helvetica, Arial, sans-serif" font-size="40">{escape(website)}</text>'
        )

    parts.append("</svg>")
    return "".join(parts)
