import asyncio
import hmac
import logging
import os

from flask import Flask, abort, jsonify, request, send_from_directory

from . import config
from .errors import DailyVerseError, ReferenceSyntaxError
from .generate import generate_daily
from .store import DailyStore

logger = logging.getLogger(__name__)


app = Flask(__name__)
app.config["OUTPUT_DIR"] = config.OUTPUT_DIR
app.config["ADMIN_TOKEN"] = config.ADMIN_TOKEN


def get_store() -> DailyStore:
    return DailyStore(app.config["OUTPUT_DIR"])


def no_store(response):
    response.headers["Cache-Control"] = "no-store"
    return response


@app.get("/")
def health():
    return "Daily Verse Service is running.", 200, {"Content-Type": "text/plain; charset=utf-8"}


@app.get("/daily.json")
@app.get("/daily.js")
def published_file():
    # the raw published artifacts, for pages that still load `daily.js` with a script tag
    name = os.path.basename(request.path)
    return no_store(send_from_directory(os.path.abspath(app.config["OUTPUT_DIR"]), name))


@app.get("/api/daily")
def daily():
    data = get_store().load_current()
    if data is None:
        return no_store(jsonify(error="Daily verse not ready yet.")), 503
    return no_store(jsonify(data))


@app.get("/api/archive")
def archive_index():
    entries = get_store().load_archive_index()
    return jsonify([e.to_dict() for e in entries])


@app.get("/api/archive/<date>")
def archive_entry(date: str):
    data = get_store().load_archive_entry(date)
    if data is None:
        abort(404)
    return jsonify(data)


def check_admin():
    expected = app.config.get("ADMIN_TOKEN")
    if not expected:
        abort(404)
    given = request.headers.get("X-Admin-Token", "")
    if not hmac.compare_digest(given.encode(), expected.encode()):
        abort(403)


@app.post("/admin/generate")
def admin_generate():
    check_admin()
    form = request.get_json(silent=True) or request.form
    date_key = form.get("date") or None
    reference = form.get("reference") or None
    try:
        record = asyncio.run(generate_daily(date_key, reference, force=True,
            out_dir=app.config["OUTPUT_DIR"]))
    except ReferenceSyntaxError as err:
        return jsonify(error=str(err)), 400
    except DailyVerseError as err:
        logger.error("admin generation for %s failed: %s", date_key or "today", err)
        return jsonify(error=str(err)), 502
    except ValueError as err:
        return jsonify(error=str(err)), 400
    return jsonify(record.to_dict())

