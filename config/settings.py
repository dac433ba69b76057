import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Settings:
    # Database
    MONGO_URI = os.getenv('MONGO_URI', 'mongodb://localhost:27017/gradeflow')
    DB_NAME = os.getenv('DB_NAME', 'gradeflow')

    # Auth (tokens are issued elsewhere, we only verify them)
    SECRET_KEY = os.getenv('SECRET_KEY', 'your-secret-key-here')
    AUTH_REQUIRED = _env_bool('AUTH_REQUIRED', True)

    # Storage
    STORAGE_TYPE = os.getenv('STORAGE_TYPE', 'local')  # 'local', 's3'
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', 'uploads')
    PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', 'http://localhost:5000')
    S3_BUCKET = os.getenv('S3_BUCKET', '')
    S3_ENDPOINT_URL = os.getenv('S3_ENDPOINT_URL') or None
    S3_REGION = os.getenv('S3_REGION', 'auto')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY') or None
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY') or None
    S3_PUBLIC_BASE_URL = os.getenv('S3_PUBLIC_BASE_URL', '')
    S3_URL_EXPIRES = int(os.getenv('S3_URL_EXPIRES', str(7 * 24 * 3600)))

    # Rendering
    PAGE_DPI = int(os.getenv('PAGE_DPI', '200'))

    # Cropping / grading oracle (both endpoints live on the same origin)
    ORACLE_BASE_URL = os.getenv('ORACLE_BASE_URL', 'http://localhost:8000')
    CROP_PATH = os.getenv('CROP_PATH', '/crop')
    GRADE_PATH = os.getenv('GRADE_PATH', '/grade')
    ORACLE_TIMEOUT_SECONDS = float(os.getenv('ORACLE_TIMEOUT_SECONDS', '300'))

    # Pipeline
    PERSIST_MAX_RETRIES = int(os.getenv('PERSIST_MAX_RETRIES', '3'))
    STALE_PROCESSING_SECONDS = int(os.getenv('STALE_PROCESSING_SECONDS', '1800'))

    # Application
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    MAX_CONTENT_LENGTH = 32 * 1024 * 1024  # 32MB max upload

settings = Settings()
