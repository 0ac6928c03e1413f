#!/usr/bin/env python3
"""
slimcam API Server
Stands in for the camera app's editing screen: upload a capture, drag the
sliders (parameter updates), show the range indicator, save the result.
One EffectController per session.
"""

import os
import logging
import uuid
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from slimcam.pipeline.effect_controller import EffectController
from slimcam.services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
RESULTS_FOLDER = os.getenv("RESULTS_FOLDER", "data/api_results")
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,bmp,webp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50")) * 1024 * 1024
RUN_TIMEOUT_S = float(os.getenv("RUN_TIMEOUT_S", "30"))

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

image_service = ImageService()

logger = logging.getLogger(__name__)

# Session storage: session_id → EffectController
sessions: Dict[str, EffectController] = {}

_detectors = None


def build_detectors():
    """
    (face_detector, person_detector) shared by every session.
    The ML models load on first use, not at import time.
    """
    global _detectors
    if _detectors is None:
        from slimcam.services.face_detection_service import FaceDetectionService
        from slimcam.services.segmentation_service import SegmentationService
        _detectors = (FaceDetectionService(), SegmentationService())
    return _detectors


def get_or_create_session(session_id: Optional[str] = None) -> str:
    """Get existing session or create new one."""
    if not session_id:
        session_id = str(uuid.uuid4())
    if session_id not in sessions:
        face_detector, person_detector = build_detectors()
        sessions[session_id] = EffectController(face_detector, person_detector, image_service=image_service)
    return session_id


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _wants_wait(value) -> bool:
    return str(value).lower() not in ("0", "false", "no")


def parse_bool(value) -> bool:
    """JSON booleans, or the usual string spellings of them."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def state_payload(session_id: str, controller: EffectController) -> dict:
    return {
        'success': True,
        'session_id': session_id,
        'state': controller.state.value,
        'effect_applied': controller.effect_applied,
        'has_result': controller.processed_image is not None,
        'parameters': controller.parameters.as_dict(),
        'generation': controller.generation,
    }


def _session_from_request():
    payload = request.get_json(silent=True) or {}
    session_id = payload.get('session_id') or request.args.get('session_id')
    if not session_id or session_id not in sessions:
        return None, None, payload
    return session_id, sessions[session_id], payload


@app.route('/api/capture', methods=['POST'])
def capture():
    """Upload a new photo; runs detection + warp."""
    if 'image' not in request.files:
        return jsonify({'success': False, 'message': 'No image provided'}), 400

    file = request.files['image']
    if file.filename == '' or not allowed_file(secure_filename(file.filename)):
        return jsonify({'success': False, 'message': 'Missing or unsupported file'}), 400

    try:
        image = image_service.decode(file.read())
    except ValueError as e:
        logger.error(f"Upload decode error: {e}")
        return jsonify({'success': False, 'message': 'Could not decode image'}), 400

    session_id = get_or_create_session(request.form.get('session_id'))
    controller = sessions[session_id]
    controller.capture(image)
    logger.info(f"Capture {image.width}x{image.height} for session {session_id}")

    if _wants_wait(request.form.get('wait', '1')):
        controller.wait(timeout=RUN_TIMEOUT_S)
    return jsonify(state_payload(session_id, controller))


@app.route('/api/parameters', methods=['POST'])
def update_parameters():
    """Slider changes; re-runs the warp only."""
    session_id, controller, payload = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    changes = {}
    try:
        if 'intensity' in payload:
            changes['intensity'] = float(payload['intensity'])
        if 'face_effect_radius' in payload:
            changes['face_effect_radius'] = float(payload['face_effect_radius'])
        if 'center_offset' in payload:
            dx, dy = payload['center_offset']
            changes['center_offset'] = (float(dx), float(dy))
        if 'shoulder_enabled' in payload:
            changes['shoulder_enabled'] = parse_bool(payload['shoulder_enabled'])
    except (TypeError, ValueError) as e:
        return jsonify({'success': False, 'message': f'Bad parameter value: {e}'}), 400

    if not changes:
        return jsonify({'success': False, 'message': 'No parameters given'}), 400

    future = controller.update_parameters(**changes)
    if future is not None and _wants_wait(payload.get('wait', True)):
        controller.wait(timeout=RUN_TIMEOUT_S)
    return jsonify(state_payload(session_id, controller))


@app.route('/api/range-indicator', methods=['POST'])
def range_indicator_visibility():
    """Radius slider drag started / ended."""
    session_id, controller, payload = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400
    try:
        visible = parse_bool(payload.get('visible', False))
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    controller.set_range_indicator_visible(visible)
    return jsonify(state_payload(session_id, controller))


@app.route('/api/indicator', methods=['GET'])
def indicator():
    """Range indicator geometry, optionally in the coordinates of an aspect-fit view."""
    session_id, controller, _ = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    display_size = None
    if 'view_width' in request.args and 'view_height' in request.args:
        try:
            display_size = (float(request.args['view_width']), float(request.args['view_height']))
        except ValueError:
            return jsonify({'success': False, 'message': 'Bad view size'}), 400

    geometry = controller.indicator_geometry(display_size)
    return jsonify({
        'success': True,
        'session_id': session_id,
        'indicator': geometry.as_dict() if geometry else None,
    })


@app.route('/api/state', methods=['GET'])
def state():
    session_id, controller, _ = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400
    return jsonify(state_payload(session_id, controller))


@app.route('/api/image/<session_id>/<kind>')
def serve_image(session_id, kind):
    """Serve the captured or processed image as JPEG."""
    controller = sessions.get(session_id)
    if controller is None:
        return jsonify({'error': 'Session not found'}), 404
    if kind == 'processed':
        image = controller.processed_image
    elif kind == 'captured':
        image = controller.captured_image
    else:
        return jsonify({'error': f'Unknown image kind: {kind}'}), 400
    if image is None:
        return jsonify({'error': 'Image not available'}), 404
    return send_file(BytesIO(image_service.to_jpeg_bytes(image)), mimetype='image/jpeg')


@app.route('/api/save', methods=['POST'])
def save():
    """Persist the processed image under RESULTS_FOLDER."""
    session_id, controller, payload = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    filename = secure_filename(payload.get('filename') or f"slimcam_{session_id}_{uuid.uuid4().hex[:8]}.jpg")
    try:
        path = controller.save(Path(RESULTS_FOLDER) / filename)
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 409
    except OSError as e:
        logger.error(f"Save error for session {session_id}: {e}")
        return jsonify({'success': False, 'message': 'Error saving image'}), 500

    logger.info(f"Saved result for session {session_id} to {path}")
    return jsonify({'success': True, 'session_id': session_id, 'filename': path.name})


@app.route('/api/retake', methods=['POST'])
def retake():
    session_id, controller, _ = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400
    controller.retake()
    return jsonify(state_payload(session_id, controller))


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    session_id, controller, _ = _session_from_request()
    if controller is None:
        return jsonify({'success': False, 'message': 'Session not found'})
    controller.retake()
    controller.shutdown(wait=False)
    del sessions[session_id]
    return jsonify({'success': True, 'message': 'Session cleared'})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'slimcam API is running',
        'active_sessions': len(sessions)
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    Path(RESULTS_FOLDER).mkdir(parents=True, exist_ok=True)
    logger.info(f"Starting slimcam API (results in {RESULTS_FOLDER})")
    app.run(host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "5000")), debug=False)


if __name__ == '__main__':
    main()
