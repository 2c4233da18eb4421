"""
HTTP routes: quote submission, tokenized PDF download, health.

    POST /api/quote                       submit a quote request
    GET  /<DOWNLOAD_PATH>/<file>?token=   download a generated PDF
    GET  /api/health                      cache + config status
"""

import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from ..core.config import validate_all
from ..core.errors import DeliveryFailure, RenderFailure, TokenInvalid, ValidationError
from ..core.security import rate_limit, require_api_key
from ..forms.quote_request import parse_quote_request

log = logging.getLogger("quotes.api")

bp = Blueprint("quotes", __name__)

GENERIC_ERROR = "Failed to process quote request"


def _services() -> dict:
    return current_app.extensions["quote_mailer"]


def _download_base() -> str:
    cfg = current_app.config["QUOTE_CONFIG"]
    base = cfg.public_base_url or request.host_url.rstrip("/")
    return f"{base}/{cfg.download_path}"


@bp.route("/api/quote", methods=["POST"])
@rate_limit("heavy")
@require_api_key
def submit_quote():
    """Validate, render, mail and return a download link."""
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({"success": False, "error": "Request body must be JSON"}), 400

    try:
        quote = parse_quote_request(payload)
    except ValidationError as e:
        log.info("Quote request rejected: %s", e.message)
        return jsonify({"success": False, "error": e.message}), e.status_code

    try:
        result = _services()["orchestrator"].deliver(quote, payload, _download_base())
    except (RenderFailure, DeliveryFailure) as e:
        log.error("Quote request failed: %s", e.message,
                  extra={"fingerprint": (e.fingerprint or "")[:16]})
        return jsonify({"success": False, "error": GENERIC_ERROR}), e.status_code
    except Exception:
        log.exception("Unexpected error processing quote request")
        return jsonify({"success": False, "error": GENERIC_ERROR}), 500

    if result.duplicate:
        return jsonify({"success": True, "duplicate": True}), 202

    return jsonify({
        "success": True,
        "download_url": result.download_url,
        "delivery": result.to_dict(),
    })


def download_quote(filename):
    """Stream a generated PDF if the token is valid for this file."""
    token = request.args.get("token", "")
    if not token:
        return jsonify({"success": False, "error": "Unauthorized"}), 401

    services = _services()
    try:
        payload = services["codec"].decode(token)
        if payload.get("artifactName") != filename:
            raise TokenInvalid("token issued for another file")
    except TokenInvalid as e:
        log.warning("Download refused for %s from %s", filename, request.remote_addr,
                    extra={"file": filename})
        log.debug("Download token rejected: %s", e.message)
        return jsonify({"success": False, "error": "Forbidden"}), e.status_code

    store = services["store"]
    if not store.exists(filename):
        return jsonify({"success": False, "error": "Not found"}), 404
    return send_file(store.path_for(filename), mimetype="application/pdf",
                     as_attachment=True, download_name=filename)


@bp.route("/api/health")
def health():
    report = validate_all()
    return jsonify({
        "ok": True,
        "cache": _services()["cache"].stats(),
        "config": {"set": report["set"], "total": report["total"],
                   "warnings": report["warnings"]},
    })
