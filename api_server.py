#!/usr/bin/env python3
"""
Greenscreen Keyer API Server
Upload an image shot (or generated) on a flat key color, get a trimmed
transparent PNG back.
"""

import os
import logging
import uuid
from io import BytesIO
from pathlib import Path
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

from models.errors import BackendUnavailableError, InvalidImageError
from models.keying_config import KeyingConfig, STRATEGIES
from pipeline.background_remover import remove_background
from repositories.image_repository import ImageRepository
from repositories.ffmpeg_repository import FfmpegColorkeyRepository
from repositories.raster_backend import get_backend

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "data/temp_uploads")
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,webp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")) * 1024 * 1024

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Ensure directories exist
Path(UPLOAD_FOLDER).mkdir(parents=True, exist_ok=True)

image_repository = ImageRepository()

logger = logging.getLogger(__name__)


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


@app.route('/api/health', methods=['GET'])
def health():
    """Report which raster backends can run on this host."""
    config = KeyingConfig.from_env()
    backends = {
        "opencv": True,
        "magick": get_backend("magick", binary=config.magick_binary).is_available(),
        "ffmpeg": FfmpegColorkeyRepository(config.ffmpeg_binary).is_available(),
    }
    return jsonify({
        'status': 'healthy',
        'strategy': config.strategy,
        'raster_backend': config.raster_backend,
        'backends': backends,
    })


@app.route('/api/remove-background', methods=['POST'])
def remove_background_endpoint():
    """Key out the background of one uploaded image and return a PNG."""
    if 'image' not in request.files:
        return jsonify({'success': False, 'message': 'No image provided'}), 400

    file = request.files['image']
    if file.filename == '':
        return jsonify({'success': False, 'message': 'No file selected'}), 400
    if not allowed_file(file.filename):
        return jsonify({'success': False, 'message': f'Unsupported file type: {file.filename}'}), 400

    strategy = request.form.get('strategy') or None
    if strategy is not None and strategy not in STRATEGIES:
        return jsonify({'success': False, 'message': f'Unknown strategy: {strategy}'}), 400

    try:
        tolerance = float(request.form['tolerance']) if request.form.get('tolerance') else None
    except ValueError:
        return jsonify({'success': False, 'message': 'Tolerance must be a number'}), 400

    key_color = request.form.get('key_color') or None

    # Save uploaded file temporarily
    filename = secure_filename(file.filename)
    temp_path = Path(UPLOAD_FOLDER) / f"upload_{uuid.uuid4().hex}_{filename}"
    file.save(str(temp_path))

    try:
        image = image_repository.load(temp_path)
        logger.info(f"Keying upload {filename}: {image.width}x{image.height}")

        result = remove_background(image, key_color=key_color, tolerance=tolerance, strategy=strategy)

        buffer = BytesIO(image_repository.to_png_bytes(result.image))
        response = send_file(
            buffer,
            mimetype='image/png',
            as_attachment=False,
            download_name=f"{Path(filename).stem}.png",
        )
        response.headers['X-Key-Color'] = result.key_color.to_hex()
        response.headers['X-Keying-Method'] = result.method
        if result.degraded:
            response.headers['X-Keying-Degraded'] = result.failed_stage or 'unknown'
        return response

    except (InvalidImageError, ValueError) as e:
        logger.error(f"Rejected upload {filename}: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except BackendUnavailableError as e:
        logger.error(f"Backend unavailable: {e}")
        return jsonify({'success': False, 'message': str(e)}), 503
    finally:
        # Clean up temp file
        if temp_path.exists():
            temp_path.unlink()


if __name__ == '__main__':
    port = int(os.getenv("PORT", "5000"))
    print(f"Starting Greenscreen Keyer API on port {port}")
    app.run(host='0.0.0.0', port=port, debug=os.getenv("FLASK_DEBUG", "0") == "1")
