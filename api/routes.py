"""
API routes for the Contact Extraction API.

Flask REST endpoints over the cardrecon engine. The vision model is
called upstream; requests carry its output and any decoded QR/barcode
payloads.
"""

import logging
from typing import Any, List, Optional

from flask import Blueprint, Response, current_app, jsonify, request

from cardrecon import (
    CardEngineError,
    CardPipeline,
    ContactExporter,
    ImageJob,
    ParsedContact,
    assess_contact_quality,
    decode_payloads,
    deduplicate_contacts,
)

logger = logging.getLogger(__name__)

# Create Blueprint
api_bp = Blueprint("api", __name__, url_prefix="/api")

EXPORT_MIMETYPES = {
    "vcf": "text/vcard",
    "csv": "text/csv",
    "json": "application/json",
}

PIPELINE_EXTENSION = "card_pipeline"


def reported_failure(job: ImageJob):
    """Reader for images whose vision call already failed upstream."""
    raise CardEngineError(str(job.image) if job.image else "vision call failed")


def get_pipeline() -> CardPipeline:
    """Get or create the pipeline of the current app.

    Returns:
        CardPipeline instance
    """
    pipeline = current_app.extensions.get(PIPELINE_EXTENSION)

    if pipeline is None:
        pipeline = CardPipeline(reader=reported_failure, **current_app.config["PIPELINE_OPTIONS"])
        current_app.extensions[PIPELINE_EXTENSION] = pipeline
        logger.info("Pipeline initialized")

    return pipeline


def bad_request(message: str):
    return jsonify({
        "success": False,
        "error": message
    }), 400


def contacts_from_body(data: Any) -> Optional[List[ParsedContact]]:
    """Read the 'contacts' list of a request body, or None if it is missing."""
    if not isinstance(data, dict) or not isinstance(data.get("contacts"), list):
        return None
    return [ParsedContact.from_dict(item) for item in data["contacts"]]


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns:
        JSON with health status
    """
    return jsonify({
        "success": True,
        "status": "healthy",
        "message": "Contact Extraction API is running",
        "version": "1.0.0"
    }), 200


@api_bp.route("/status", methods=["GET"])
def get_status():
    """Get pipeline settings."""
    return jsonify({
        "success": True,
        "data": {
            "api_status": "running",
            "pipeline_status": get_pipeline().get_status()
        }
    }), 200


@api_bp.route("/parse-text", methods=["POST"])
def parse_text():
    """Extract one card from plain recognized text.

    Expects:
        - JSON body with 'text' field

    Returns:
        JSON with the parsed contact and its acceptance
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get("text"), str):
        return bad_request("No text provided. Send JSON with 'text' field.")

    contact = get_pipeline().parser.parse_text(data["text"])

    return jsonify({
        "success": True,
        "data": {
            "contact": contact.to_dict(),
            "accepted": contact.has_substantial_info()
        }
    }), 200


@api_bp.route("/process", methods=["POST"])
def process_single():
    """Process one image's vision output.

    Expects:
        - JSON body with 'response' (model text or JSON) and optional
          'machine_codes' (list of decoded payload strings)

    Returns:
        JSON with the BatchResult of the image
    """
    data = request.get_json(silent=True)

    if not data or "response" not in data:
        return bad_request("No vision response provided. Send JSON with 'response' field.")

    machine_codes = data.get("machine_codes") or []
    if not isinstance(machine_codes, list):
        return bad_request("'machine_codes' must be a list of strings")

    result = get_pipeline().process_response(
        data["response"],
        [str(code) for code in machine_codes],
        data.get("source") or "image",
    )

    return jsonify({
        "success": True,
        "data": result.to_dict()
    }), 200


@api_bp.route("/batch", methods=["POST"])
def process_batch():
    """Process several images and reconcile their contacts.

    Expects:
        - JSON body with 'images': list of objects with 'source',
          'response' or 'error', and optional 'machine_codes'
        - Optional 'dedupe' flag (default: configured CROSS_IMAGE_DEDUP)

    Returns:
        JSON with the joined BatchResult
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get("images"), list) or not data["images"]:
        return bad_request("No images provided. Send JSON with a non-empty 'images' list.")

    jobs = []
    for index, image in enumerate(data["images"], start=1):
        if not isinstance(image, dict) or ("response" not in image and "error" not in image):
            return bad_request(f"Image {index} needs a 'response' or an 'error' field")
        jobs.append(ImageJob(
            source=str(image.get("source") or f"image_{index}"),
            response=image.get("response"),
            machine_codes=[str(code) for code in image.get("machine_codes") or []],
            image=image.get("error"),
        ))

    pipeline = get_pipeline()
    dedupe = data.get("dedupe")
    if dedupe is not None and bool(dedupe) != pipeline.cross_image_dedup:
        pipeline = CardPipeline(
            reader=pipeline.reader,
            parser=pipeline.parser,
            builder=pipeline.builder,
            similarity=pipeline.similarity,
            max_workers=pipeline.max_workers,
            timeout=pipeline.timeout,
            cross_image_dedup=bool(dedupe),
        )

    result = pipeline.process_batch(jobs)

    return jsonify({
        "success": True,
        "data": result.to_dict()
    }), 200


@api_bp.route("/decode", methods=["POST"])
def decode_machine_codes():
    """Classify decoded QR/barcode payloads.

    Expects:
        - JSON body with 'payloads' (list of strings)
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get("payloads"), list):
        return bad_request("No payloads provided. Send JSON with a 'payloads' list.")

    codes, errors = decode_payloads([str(payload) for payload in data["payloads"]])

    return jsonify({
        "success": True,
        "data": {
            "machine_codes": [code.to_dict() for code in codes],
            "errors": errors
        }
    }), 200


@api_bp.route("/dedupe", methods=["POST"])
def dedupe_contacts():
    """Merge duplicate contacts.

    Expects:
        - JSON body with 'contacts' (list of contact objects)
    """
    contacts = contacts_from_body(request.get_json(silent=True))
    if contacts is None:
        return bad_request("No contacts provided. Send JSON with a 'contacts' list.")

    result = deduplicate_contacts(contacts, get_pipeline().similarity)

    return jsonify({
        "success": True,
        "data": result.to_dict()
    }), 200


@api_bp.route("/quality", methods=["POST"])
def contact_quality():
    """Score one contact for completeness.

    Expects:
        - JSON body with 'contact' (contact object)
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get("contact"), dict):
        return bad_request("No contact provided. Send JSON with a 'contact' object.")

    report = assess_contact_quality(ParsedContact.from_dict(data["contact"]))

    return jsonify({
        "success": True,
        "data": report.to_dict()
    }), 200


@api_bp.route("/export/<fmt>", methods=["POST"])
def export_contacts(fmt: str):
    """Export contacts as a vCard, CSV or JSON download.

    Args:
        fmt: One of vcf, csv, json

    Returns:
        Text download with the format's mimetype
    """
    fmt = fmt.lower()
    if fmt not in EXPORT_MIMETYPES:
        return bad_request(f"Unsupported export format: {fmt}. Allowed: {', '.join(EXPORT_MIMETYPES)}")

    contacts = contacts_from_body(request.get_json(silent=True))
    if contacts is None:
        return bad_request("No contacts provided. Send JSON with a 'contacts' list.")

    body = ContactExporter.export(contacts, fmt)
    logger.info(f"Exported {len(contacts)} contact(s) as {fmt}")

    return Response(
        body,
        mimetype=EXPORT_MIMETYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename=contacts.{fmt}"}
    )
