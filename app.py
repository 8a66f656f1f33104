import json
import logging
import queue
import threading
import time
import uuid

from flask import Flask, Response, request, jsonify

from errors import ConfigurationError, GenerationSuperseded, friendly_error_message
from gemini_client import GeminiClient
from pins import GenerationRequest, GenerationTracker, PinStudio
from prompts import STYLES, TYPOGRAPHIES, looks_like_domain, normalize_website_url
from settings import Settings

logger = logging.getLogger(__name__)

_DONE = object()


def create_app(studio=None, settings=None):
    """Build the Flask app. Without a studio, one is made from the environment;
    a missing API key is reported by the API routes rather than at startup."""
    app = Flask(__name__)
    config_error = None

    if studio is None:
        settings = settings or Settings.from_env()
        try:
            studio = PinStudio(GeminiClient.from_settings(settings), max_workers=settings.max_workers)
        except ConfigurationError as e:
            logger.error("%s", e)
            config_error = e

    tracker = GenerationTracker()
    app.extensions["pin_tracker"] = tracker

    @app.route("/")
    def index():
        return HTML_PAGE.replace(
            "/*__STYLES__*/", json.dumps(STYLES),
        ).replace(
            "/*__TYPOGRAPHIES__*/", json.dumps(TYPOGRAPHIES),
        )

    @app.route("/api/options")
    def options():
        return jsonify({"styles": STYLES, "typographies": TYPOGRAPHIES})

    @app.route("/api/brand-colors", methods=["POST"])
    def brand_colors():
        data = request.get_json(silent=True) or {}
        website = str(data.get("website") or "").strip()

        if not looks_like_domain(website):
            return jsonify({"colors": []})
        if studio is None:
            return jsonify({"error": str(config_error)}), 500

        colors = studio.extract_colors(website)
        return jsonify({"colors": colors, "url": normalize_website_url(website)})

    @app.route("/api/pins", methods=["POST"])
    def generate_pins():
        data = request.get_json(silent=True)
        try:
            gen_request = GenerationRequest.from_json(data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        if studio is None:
            return jsonify({"error": str(config_error)}), 500

        session_id = str(data.get("session") or uuid.uuid4().hex)
        token = tracker.begin(session_id)
        events = queue.Queue()

        def worker():
            start = time.time()
            try:
                pins = studio.generate_pins(
                    gen_request,
                    on_progress=lambda message: events.put({"progress": message}),
                    token=token,
                )
                events.put({
                    "pins": [pin.to_dict() for pin in pins],
                    "elapsed": round(time.time() - start, 1),
                })
            except GenerationSuperseded:
                logger.info("Generation %s for session %s superseded", token.generation, session_id)
                events.put({"superseded": True})
            except Exception as e:
                logger.exception("Pin generation failed")
                events.put({"error": friendly_error_message(e)})
            finally:
                tracker.end(token)
                events.put(_DONE)

        threading.Thread(target=worker, daemon=True).start()

        def stream():
            while True:
                event = events.get()
                if event is _DONE:
                    return
                yield json.dumps(event) + "\n"

        return Response(stream(), mimetype="application/x-ndjson")

    return app


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Gemini Pin Studio</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
    display: flex;
    flex-direction: column;
    align-items: center;
    padding-bottom: 80px;
  }

  .container {
    width: 100%;
    max-width: 960px;
    padding: 32px 20px;
    display: flex;
    flex-direction: column;
    gap: 20px;
  }

  .top-bar h1 { font-size: 1.3rem; font-weight: 600; color: #fff; }
  .top-bar h1 span { color: #e11d48; }
  .top-bar p { font-size: 0.8rem; color: #888; margin-top: 4px; }

  .form {
    background: #141414;
    border: 1px solid #1e1e1e;
    border-radius: 12px;
    padding: 20px;
    display: grid;
    grid-template-columns: 1fr 1fr;
    gap: 14px;
  }
  .form .wide { grid-column: 1 / -1; }

  label { display: block; font-size: 0.72rem; color: #888; margin-bottom: 6px; text-transform: uppercase; letter-spacing: 0.5px; }

  input, select, textarea {
    width: 100%;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 9px 12px;
    font-size: 0.86rem;
    font-family: inherit;
    outline: none;
    transition: border-color 0.2s;
  }
  input:focus, select:focus, textarea:focus { border-color: #e11d48; }
  textarea { min-height: 80px; resize: vertical; line-height: 1.5; }

  .swatches { display: flex; gap: 8px; min-height: 30px; align-items: center; }
  .swatch {
    width: 28px; height: 28px;
    border-radius: 50%;
    border: 2px solid #2a2a2a;
    cursor: pointer;
  }
  .swatch.selected { border-color: #fff; box-shadow: 0 0 0 2px #e11d48; }
  .swatches .hint { font-size: 0.75rem; color: #555; }

  button {
    background: #e11d48;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 10px 20px;
    font-size: 0.86rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #be123c; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }

  .status { font-size: 0.8rem; color: #888; min-height: 1.2em; display: flex; gap: 10px; align-items: center; }
  .status .timer { color: #e11d48; font-variant-numeric: tabular-nums; }
  .spinner {
    width: 16px; height: 16px;
    border: 2px solid #333;
    border-top-color: #e11d48;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  .error {
    display: none;
    border: 1px solid #ef4444;
    color: #fca5a5;
    background: #1a1111;
    border-radius: 10px;
    padding: 12px 16px;
    font-size: 0.86rem;
  }
  .error.visible { display: block; }

  .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(210px, 1fr)); gap: 16px; }
  .pin {
    background: #141414;
    border: 1px solid #1e1e1e;
    border-radius: 12px;
    overflow: hidden;
    display: flex;
    flex-direction: column;
  }
  .pin img { width: 100%; aspect-ratio: 9 / 16; object-fit: cover; background: #1a1a1a; }
  .pin p { font-size: 0.74rem; color: #999; padding: 10px 12px; line-height: 1.45; flex: 1; }
  .pin a {
    margin: 0 12px 12px;
    text-align: center;
    font-size: 0.74rem;
    color: #aaa;
    background: #232323;
    border: 1px solid #333;
    border-radius: 6px;
    padding: 6px;
    text-decoration: none;
  }
  .pin a:hover { color: #fff; background: #2e2e2e; }
</style>
</head>
<body>
<div class="container">
  <div class="top-bar">
    <h1>Gemini <span>Pin</span> Studio</h1>
    <p>Describe a topic and get four Pinterest-ready pins.</p>
  </div>

  <div class="form">
    <div class="wide">
      <label for="topic">Topic</label>
      <textarea id="topic" placeholder="e.g. cozy bedroom makeover on a budget" autofocus></textarea>
    </div>
    <div>
      <label for="url">Reference URL</label>
      <input id="url" placeholder="https://myblog.com/cozy-bedroom">
    </div>
    <div>
      <label for="style">Style</label>
      <select id="style"></select>
    </div>
    <div>
      <label for="overlay">Overlay text</label>
      <input id="overlay" placeholder="10 Cozy Bedroom Ideas">
    </div>
    <div>
      <label for="typography">Typography</label>
      <select id="typography"></select>
    </div>
    <div>
      <label for="website">Website (branding bar)</label>
      <input id="website" placeholder="myblog.com">
    </div>
    <div>
      <label>Brand color</label>
      <div id="swatches" class="swatches"><span class="hint">Enter a website to fetch its palette</span></div>
    </div>
    <div class="wide">
      <button id="generateBtn" onclick="generate()">Generate Pins</button>
    </div>
  </div>

  <div id="status" class="status"></div>
  <div id="error" class="error"></div>
  <div id="grid" class="grid"></div>
</div>

<script>
  const STYLES = /*__STYLES__*/;
  const TYPOGRAPHIES = /*__TYPOGRAPHIES__*/;

  const topicEl = document.getElementById('topic');
  const urlEl = document.getElementById('url');
  const styleEl = document.getElementById('style');
  const overlayEl = document.getElementById('overlay');
  const typographyEl = document.getElementById('typography');
  const websiteEl = document.getElementById('website');
  const swatchesEl = document.getElementById('swatches');
  const generateBtn = document.getElementById('generateBtn');
  const statusEl = document.getElementById('status');
  const errorEl = document.getElementById('error');
  const gridEl = document.getElementById('grid');

  const sessionId = (window.crypto && crypto.randomUUID) ? crypto.randomUUID() : String(Math.random()).slice(2);
  let selectedColor = null;
  let paletteTimer = null;
  let paletteRequest = 0;
  let controller = null;
  let generation = 0;

  function fillSelect(el, values, selected) {
    values.forEach(v => {
      const opt = document.createElement('option');
      opt.value = v;
      opt.textContent = v;
      if (v === selected) opt.selected = true;
      el.appendChild(opt);
    });
  }
  fillSelect(styleEl, STYLES, 'Stock Photo');
  fillSelect(typographyEl, TYPOGRAPHIES, 'Bold Sans-Serif');

  // ── Brand palette (debounced) ──
  function renderSwatches(colors) {
    swatchesEl.innerHTML = '';
    if (!colors.length) {
      swatchesEl.innerHTML = '<span class="hint">Enter a website to fetch its palette</span>';
      selectedColor = null;
      return;
    }
    selectedColor = colors[0];
    colors.forEach(c => {
      const sw = document.createElement('div');
      sw.className = 'swatch' + (c === selectedColor ? ' selected' : '');
      sw.style.background = c;
      sw.title = c;
      sw.addEventListener('click', () => {
        selectedColor = c;
        swatchesEl.querySelectorAll('.swatch').forEach(s => s.classList.toggle('selected', s === sw));
      });
      swatchesEl.appendChild(sw);
    });
  }

  websiteEl.addEventListener('input', () => {
    clearTimeout(paletteTimer);
    paletteTimer = setTimeout(async () => {
      const website = websiteEl.value.trim();
      const mine = ++paletteRequest;
      if (!website) { renderSwatches([]); return; }
      try {
        const res = await fetch('/api/brand-colors', {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ website }),
        });
        const data = await res.json();
        if (mine !== paletteRequest) return;
        renderSwatches(data.colors || []);
      } catch (e) {
        if (mine === paletteRequest) renderSwatches([]);
      }
    }, 500);
  });

  // ── Generation ──
  function setStatus(message, busy) {
    statusEl.innerHTML = '';
    if (busy) {
      const sp = document.createElement('div');
      sp.className = 'spinner';
      statusEl.appendChild(sp);
    }
    const span = document.createElement('span');
    span.textContent = message;
    statusEl.appendChild(span);
  }

  function setElapsed(elapsed) {
    setStatus('Completed in ', false);
    const timer = document.createElement('span');
    timer.className = 'timer';
    timer.textContent = elapsed + 's';
    statusEl.appendChild(timer);
  }

  function showError(message) {
    errorEl.textContent = 'Error: ' + message;
    errorEl.classList.add('visible');
  }

  function renderPins(pins) {
    gridEl.innerHTML = '';
    pins.forEach(pin => {
      const card = document.createElement('div');
      card.className = 'pin';
      const img = document.createElement('img');
      img.src = pin.url;
      img.alt = pin.prompt;
      const p = document.createElement('p');
      p.textContent = pin.prompt;
      const a = document.createElement('a');
      a.href = pin.url;
      a.download = pin.id + (pin.url.startsWith('data:image/svg') ? '.svg' : '.png');
      a.textContent = 'Download';
      card.appendChild(img);
      card.appendChild(p);
      card.appendChild(a);
      gridEl.appendChild(card);
    });
  }

  function handleEvent(event, mine) {
    if (mine !== generation) return;
    if (event.progress) setStatus(event.progress, true);
    if (event.pins) {
      renderPins(event.pins);
      setElapsed(event.elapsed);
    }
    if (event.error) { showError(event.error); setStatus('', false); }
  }

  async function generate() {
    const topic = topicEl.value.trim();
    if (!topic) return;

    if (controller) controller.abort();
    controller = new AbortController();
    const mine = ++generation;

    gridEl.innerHTML = '';
    errorEl.classList.remove('visible');
    generateBtn.disabled = true;
    generateBtn.textContent = 'Generating...';
    setStatus('Starting...', true);

    const body = {
      session: sessionId,
      topic,
      url: urlEl.value.trim(),
      style: styleEl.value,
      overlay_text: overlayEl.value.trim(),
      website: websiteEl.value.trim(),
      typography: typographyEl.value,
      brand_color: selectedColor,
    };

    try {
      const res = await fetch('/api/pins', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify(body),
        signal: controller.signal,
      });
      if (!res.ok) {
        const data = await res.json();
        throw new Error(data.error || 'HTTP ' + res.status);
      }

      const reader = res.body.getReader();
      const decoder = new TextDecoder();
      let buffer = '';
      while (true) {
        const { value, done } = await reader.read();
        if (done) break;
        buffer += decoder.decode(value, { stream: true });
        let nl;
        while ((nl = buffer.indexOf('\n')) >= 0) {
          const line = buffer.slice(0, nl).trim();
          buffer = buffer.slice(nl + 1);
          if (line) handleEvent(JSON.parse(line), mine);
        }
      }
    } catch (e) {
      if (e.name === 'AbortError') return;
      if (mine === generation) { showError(e.message); setStatus('', false); }
    } finally {
      if (mine === generation) {
        generateBtn.disabled = false;
        generateBtn.textContent = 'Generate Pins';
        controller = null;
      }
    }
  }

  topicEl.addEventListener('keydown', e => {
    if (e.key === 'Enter' && (e.metaKey || e.ctrlKey)) { e.preventDefault(); generate(); }
  });
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        level=logging.INFO,
    )
    settings = Settings.from_env()
    create_app(settings=settings).run(debug=True, port=settings.port, threaded=True)
