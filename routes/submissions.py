import logging
import os

from flask import Blueprint, current_app, jsonify, request, send_from_directory

from routes.auth import require_auth
from utils.errors import PipelineError
from utils.margin_segmenter import margin_crop_images

logger = logging.getLogger(__name__)

submissions_bp = Blueprint('submissions', __name__)


def _pipeline():
    return current_app.extensions['submission_pipeline']


def _read_upload():
    if 'file' not in request.files:
        return None, (jsonify({"error": "No file provided"}), 400)
    file = request.files['file']
    if file.filename == '':
        return None, (jsonify({"error": "No file selected"}), 400)
    return file, None


@submissions_bp.errorhandler(PipelineError)
def handle_pipeline_error(error):
    return jsonify(error.to_dict()), error.http_status


@submissions_bp.route('/api/submissions/<student_id>/<assignment_id>', methods=['POST'])
@require_auth
def submit(student_id, assignment_id):
    """Process an uploaded answer document end to end"""
    file, error_response = _read_upload()
    if error_response:
        return error_response

    responses = _pipeline().process_submission(student_id, assignment_id, file.read(), file.filename)
    return jsonify({
        "student_id": student_id,
        "assignment_id": assignment_id,
        "status": "graded",
        "responses": responses
    })


@submissions_bp.route('/api/submissions/<student_id>/<assignment_id>/retry', methods=['POST'])
@require_auth
def retry(student_id, assignment_id):
    """Re-run a failed or stuck submission with the same document"""
    file, error_response = _read_upload()
    if error_response:
        return error_response

    responses = _pipeline().retry(student_id, assignment_id, file.read(), file.filename)
    return jsonify({
        "student_id": student_id,
        "assignment_id": assignment_id,
        "status": "graded",
        "responses": responses
    })


@submissions_bp.route('/api/submissions/<student_id>/<assignment_id>/status', methods=['GET'])
@require_auth
def submission_status(student_id, assignment_id):
    attempt = _pipeline().get_attempt(student_id, assignment_id)
    return jsonify({
        "student_id": student_id,
        "assignment_id": assignment_id,
        "status": attempt.status,
        "submission_date": attempt.submission_date.isoformat() if attempt.submission_date else None,
        "graded_at": attempt.graded_at.isoformat() if attempt.graded_at else None,
        "last_error": _error_summary(attempt.last_error)
    })


@submissions_bp.route('/api/submissions/<student_id>/<assignment_id>/feedback', methods=['GET'])
@require_auth
def submission_feedback(student_id, assignment_id):
    attempt = _pipeline().get_attempt(student_id, assignment_id)
    return jsonify({
        "student_id": student_id,
        "assignment_id": assignment_id,
        "status": attempt.status,
        "responses": [r.to_dict() for r in attempt.responses]
    })


@submissions_bp.route('/api/margin-crop', methods=['POST'])
@require_auth
def margin_crop():
    """Find the margin split column of each uploaded page image"""
    files = request.files.getlist('files')
    if not files:
        return jsonify({"error": "No files provided"}), 400

    names = [f.filename for f in files]
    results = margin_crop_images((f.filename, f.read()) for f in files)
    return jsonify({
        "results": {name: crop.to_dict() for name, crop in results.items()},
        "skipped": [name for name in names if name not in results]
    })


@submissions_bp.route('/uploads/<path:filename>', methods=['GET'])
def uploaded_file(filename):
    """Serve page images written by local storage"""
    upload_folder = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    return send_from_directory(upload_folder, filename)


def _error_summary(last_error):
    if not last_error:
        return None
    summary = dict(last_error)
    if summary.get('at') is not None:
        summary['at'] = summary['at'].isoformat()
    return summary
