import re

STYLES = [
    "Stock Photo",
    "Cinematic",
    "Illustration",
    "Vintage Film",
    "Minimalist",
    "Food Photography",
]

TYPOGRAPHIES = [
    "Elegant Serif",
    "Bold Sans-Serif",
    "Playful Script",
    "Minimalist",
]

DEFAULT_STYLE = "Stock Photo"
DEFAULT_TYPOGRAPHY = "Bold Sans-Serif"

DEFAULT_PALETTE = ["#121212", "#FFFFFF", "#E11D48"]

STYLE_INSTRUCTIONS = {
    "Stock Photo": (
        "that looks like a high-quality, professional stock photo from a site like Unsplash or Pexels. "
        "Focus on natural lighting, realistic composition, and a clean, modern aesthetic. "
        "The subject should look authentic and not staged."
    ),
    "Cinematic": (
        "with a cinematic feel. Describe dramatic lighting, a shallow depth of field, "
        "an interesting camera angle, and a specific color grade "
        "(e.g., teal and orange, moody blues, warm vintage)."
    ),
    "Illustration": (
        "as a polished digital illustration. Describe a cohesive color palette, clean linework "
        "or painterly brushwork, and simplified, stylized shapes. "
        "It should read clearly at small sizes in a feed."
    ),
    "Vintage Film": (
        "that looks like it was shot on vintage analog film. Describe visible film grain, "
        "slightly faded warm colors, soft highlights, and the mood of a 1970s photograph."
    ),
    "Minimalist": (
        "in a minimalist style. Use a single clear subject, generous empty space, "
        "a restrained palette of two or three colors, and soft, even lighting."
    ),
    "Food Photography": (
        "in a style of professional food photography. Emphasize hyper-realism and appetizing details. "
        "Describe the lighting (e.g., soft natural light, dramatic side lighting), "
        "texture (e.g., glossy glaze, crumbly texture), and small details "
        "(e.g., steam gently rising, fresh herb garnish, condensation on a glass). "
        "The final image should look delicious and irresistible."
    ),
}

TYPOGRAPHY_INSTRUCTIONS = {
    "Elegant Serif": (
        "The text should be in an elegant, high-contrast serif font, like Playfair Display or Lora. "
        "It should look sophisticated and classic."
    ),
    "Bold Sans-Serif": (
        "The text should be in a bold, modern sans-serif font, like Montserrat, Oswald, or Bebas Neue. "
        "It should be impactful and easy to read."
    ),
    "Playful Script": (
        "The text should be in a casual, friendly script or handwritten font, like Pacifico or Amatic SC. "
        "It should feel personal and inviting."
    ),
    "Minimalist": (
        "The text should be in a clean, simple, light-weight sans-serif font, like Lato or Raleway. "
        "It should look modern and unobtrusive."
    ),
}

IDEAS_PROMPT = """\
Based on the following topic and URL, generate 4 distinct, visually compelling concepts for Pinterest pins {style_instruction}
For each concept, provide a detailed visual description suitable for an image generation AI.
The description should account for a potential text overlay, so leave appropriate negative space or a clear area for text.
Focus on creating aesthetically pleasing, high-quality, and engaging visuals that would perform well on Pinterest.

Topic: "{topic}"
URL: "{url}"

Return the output as a JSON array of exactly 4 strings, nothing else.
"""

IMAGE_PROMPT = "Generate an image based on this description: {prompt}. Aspect ratio 9:16."

DESCRIPTION_PROMPT = """\
Describe, in plain text and in no more than 80 words, the vertical 9:16 Pinterest pin image you would create for this brief.
Mention the subject, composition, colors and where any text sits. Do not use markdown.

Brief: {prompt}
"""

BRAND_COLORS_PROMPT = """\
You are a web design assistant. Analyze the website at the following URL and identify its primary brand colors.
Return a JSON array of 3 hex color codes, starting with the most prominent color.
If the URL is invalid, inaccessible, or you cannot determine the colors, return a default palette: {fallback}.
URL: "{url}"
"""

_DOMAIN_RE = re.compile(r"([a-z0-9]+\.)?[a-z0-9]+\.[a-z]+", re.IGNORECASE)


def style_instruction(style):
    if style in STYLE_INSTRUCTIONS:
        return STYLE_INSTRUCTIONS[style]
    return f'in a "{style}" style.'


def typography_instruction(typography):
    return TYPOGRAPHY_INSTRUCTIONS.get(typography, "")


def overlay_instruction(overlay_text, typography=DEFAULT_TYPOGRAPHY):
    if not overlay_text:
        return ""
    instruction = f'The image must have the text "{overlay_text}" elegantly overlaid.'
    font = typography_instruction(typography)
    if font:
        instruction += " " + font
    return instruction


def branding_instruction(website, brand_color):
    if not (website and brand_color):
        return ""
    return (
        "At the bottom, add a simple, elegant branding bar with a semi-transparent "
        f"background color of {brand_color}. This bar should contain the text \"{website}\" "
        "in a clean, legible font that contrasts with the background "
        "(e.g., white text on a dark bar, black text on a light bar)."
    )


def compose_image_prompt(concept, style=None, overlay_text="", typography=DEFAULT_TYPOGRAPHY,
                         website="", brand_color=None):
    """Concept, then style, then overlay/typography, then branding."""
    pieces = [concept.strip()]
    if style:
        pieces.append("Render it " + style_instruction(style))
    pieces.append(overlay_instruction(overlay_text, typography))
    pieces.append(branding_instruction(website, brand_color))
    return " ".join(p for p in pieces if p)


def build_ideas_prompt(topic, url, style):
    return IDEAS_PROMPT.format(
        style_instruction=style_instruction(style),
        topic=topic,
        url=url,
    )


def build_image_request(final_prompt):
    return IMAGE_PROMPT.format(prompt=final_prompt)


def build_description_request(final_prompt):
    return DESCRIPTION_PROMPT.format(prompt=final_prompt)


def normalize_website_url(website):
    website = website.strip()
    if website.startswith("http://") or website.startswith("https://"):
        return website
    return f"https://{website}"


def build_brand_colors_prompt(full_url):
    fallback = "[" + ", ".join(f'"{c}"' for c in DEFAULT_PALETTE) + "]"
    return BRAND_COLORS_PROMPT.format(fallback=fallback, url=full_url)


def looks_like_domain(website):
    return bool(website and _DOMAIN_RE.search(website))
