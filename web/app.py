"""All-Breed Canine Assistant: JSON API behind the site chat widget.

Routes:
  - POST /chat          grounded answer from the completion model
  - GET  /health        snapshot counts + LLM availability
  - GET  /widget.js     embeddable chat widget
  - GET  /debug/route   routing diagnostics (only with ROUTE_DEBUG=1)

The source map and house notes are loaded once at import. A broken source
map raises ConfigurationError here, so the process never starts serving.
"""

import logging
import os

from flask import Flask, Response, jsonify, request, send_from_directory

from canine import config
from canine.grounding import get_grounding
from canine.llm_client import complete_chat, is_llm_available
from canine.prompts import build_messages
from canine.source_map import HEALTH, TRAINING
from web.helpers import _is_rate_limited, client_ip
from web.security import init_security

# Configure logging so the WSGI server captures warnings from the core modules
logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

app = Flask(__name__, static_folder=None)
app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024
app.json.sort_keys = False

# Fail fast: ConfigurationError propagates out of the import
GROUNDING = get_grounding()

init_security(app)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

@app.before_request
def _rate_limit_chat():
    """Per-IP limit on /chat; everything else is cheap."""
    if request.method != "POST" or request.path != "/chat":
        return None
    if _is_rate_limited(client_ip(), config.RATE_LIMIT_MAX_CHAT):
        return jsonify({"error": "Rate limit exceeded. Please wait a minute."}), 429
    return None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.route("/health")
def health():
    """Health check: reports what the startup snapshot loaded."""
    info = {
        "status": "ok",
        "source_map_version": GROUNDING.source_map.version,
        "buckets": len(GROUNDING.source_map.buckets),
        "house_notes": len(GROUNDING.notes),
        "llm_configured": is_llm_available(),
    }
    if not info["llm_configured"]:
        info["status"] = "degraded"
    return jsonify(info)


@app.route("/widget.js")
def widget_js():
    return send_from_directory(_STATIC_DIR, "widget.js", mimetype="application/javascript")


@app.route("/chat", methods=["POST"])
def chat():
    """Answer one question, citing only curated links."""
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "message is required"}), 400
    message = message.strip()
    if len(message) > config.MAX_MESSAGE_CHARS:
        return jsonify({"error": f"message exceeds {config.MAX_MESSAGE_CHARS} characters"}), 400

    if not is_llm_available():
        return jsonify({"error": "Assistant is not configured"}), 503

    payload = GROUNDING.build(message)
    result = complete_chat(build_messages(message, payload))
    if not result.success:
        logger.error("Completion failed for /chat: %s", result.error)
        return jsonify({"error": "The assistant is unavailable right now. Please try again."}), 502

    return jsonify({"reply": result.text, "sources": list(payload.links)})


@app.route("/debug/route")
def debug_route():
    """Show how a question would be routed, without calling the model."""
    if not config.ROUTE_DEBUG:
        return jsonify({"error": "Not found"}), 404

    q = request.args.get("q", "")
    smap = GROUNDING.source_map
    matched = smap.match_buckets(q)
    payload = GROUNDING.build(q)
    return jsonify({
        "query": q,
        "matched_buckets": [b.tag for b in matched],
        "fallback": None if matched else (TRAINING if smap.is_training(q) else HEALTH),
        "links": list(payload.links),
        "notes": [n.id for n in payload.notes],
    })


@app.route("/robots.txt")
def robots():
    return Response("User-agent: *\nDisallow: /\n", mimetype="text/plain")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "3000"))
    app.run(host="0.0.0.0", port=port)
