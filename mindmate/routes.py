from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from . import __version__
from .errors import InvalidInput
from .sentiment_service import classify
from .store import validate_content

main_bp = Blueprint("main", __name__)
journal_bp = Blueprint("journal", __name__)
mood_bp = Blueprint("mood", __name__)
ai_bp = Blueprint("ai", __name__)

ENDPOINTS = [
    "GET /",
    "GET /health",
    "POST /journal",
    "GET /journal",
    "POST /journal/analyze",
    "GET /journal/<id>",
    "PUT /journal/<id>",
    "DELETE /journal/<id>",
    "POST /mood",
    "GET /mood",
    "POST /ai/chat",
    "GET /ai/test",
]


def _services():
    return current_app.extensions["mindmate"]


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _now():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------- Service ----------

@main_bp.route("/")
def index():
    return jsonify({
        "message": "MindMate backend is running",
        "environment": _services().settings.environment,
        "version": __version__,
        "timestamp": _now(),
    }), 200


@main_bp.route("/health")
def health():
    """Liveness plus the connection cache state; never opens a connection."""
    return jsonify({
        "status": "ok",
        "database": _services().cache.state.value,
        "timestamp": _now(),
    }), 200


# ---------- Journal ----------

@journal_bp.route("", methods=["POST"])
def create_entry():
    data = _json_body()
    content = validate_content(data.get("content"))
    entry = _services().store.create_entry(content)
    return jsonify(entry), 201


@journal_bp.route("", methods=["GET"])
def list_entries():
    """All entries, latest first."""
    return jsonify(_services().store.list_entries()), 200


@journal_bp.route("/analyze", methods=["POST"])
def analyze():
    """Classify text without saving it."""
    text = _json_body().get("text")
    if not isinstance(text, str):
        raise InvalidInput("Text is required")
    result = classify(text)
    return jsonify({"mood": result.label, "score": result.score}), 200


@journal_bp.route("/<entry_id>", methods=["GET"])
def get_entry(entry_id):
    return jsonify(_services().store.get_entry(entry_id)), 200


@journal_bp.route("/<entry_id>", methods=["PUT"])
def update_entry(entry_id):
    entry = _services().store.update_entry(entry_id, _json_body())
    return jsonify(entry), 200


@journal_bp.route("/<entry_id>", methods=["DELETE"])
def delete_entry(entry_id):
    _services().store.delete_entry(entry_id)
    return jsonify({"message": "Deleted successfully", "id": entry_id}), 200


# ---------- Mood ----------

@mood_bp.route("", methods=["POST"])
def create_mood():
    record = _services().store.create_mood(_json_body().get("mood"))
    return jsonify(record), 201


@mood_bp.route("", methods=["GET"])
def list_moods():
    return jsonify(_services().store.list_moods()), 200


# ---------- AI ----------

@ai_bp.route("/chat", methods=["POST"])
def chat():
    message = _json_body().get("message")
    if not isinstance(message, str) or not message.strip():
        raise InvalidInput("Message is required")
    reply = _services().gateway.chat(message)
    return jsonify({"response": reply}), 200


@ai_bp.route("/test", methods=["GET"])
def ai_test():
    return jsonify({
        "message": "AI route is working",
        "endpoint": "/ai/chat",
        "method": "POST",
    }), 200
