import io
import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config.settings import settings
from utils.errors import StorageError, STAGE_RENDER

logger = logging.getLogger(__name__)


class StorageService:
    """
    Stores rendered page images and hands back a URL the oracles can fetch.

    'local' writes under UPLOAD_FOLDER and relies on the app serving
    /uploads/<path>; 's3' uploads to any S3-compatible bucket (AWS, R2, MinIO).
    """

    def __init__(self, storage_type=None, upload_folder=None, public_base_url=None, s3_client=None):
        self.storage_type = storage_type or settings.STORAGE_TYPE
        self.upload_folder = os.path.abspath(upload_folder or settings.UPLOAD_FOLDER)
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip('/')
        self.bucket = settings.S3_BUCKET
        self._s3 = s3_client

        if self.storage_type not in ('local', 's3'):
            raise ValueError(f"Unsupported STORAGE_TYPE: {self.storage_type}")

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = boto3.client(
                's3',
                endpoint_url=settings.S3_ENDPOINT_URL,
                region_name=settings.S3_REGION,
                aws_access_key_id=settings.S3_ACCESS_KEY,
                aws_secret_access_key=settings.S3_SECRET_KEY,
            )
        return self._s3

    def save_bytes(self, data, folder, filename, content_type='application/octet-stream'):
        """Persist `data` as folder/filename and return its fetchable URL"""
        key = f"{folder.strip('/')}/{filename}"
        if self.storage_type == 'local':
            return self._save_local(data, key)
        return self._save_s3(data, key, content_type)

    def _save_local(self, data, key):
        path = os.path.join(self.upload_folder, *key.split('/'))
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as fh:
                fh.write(data)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}", stage=STAGE_RENDER) from e
        logger.debug("Stored %s locally at %s", key, path)
        return f"{self.public_base_url}/uploads/{key}"

    def _save_s3(self, data, key, content_type):
        try:
            self.s3.upload_fileobj(
                Fileobj=io.BytesIO(data),
                Bucket=self.bucket,
                Key=key,
                ExtraArgs={'ContentType': content_type},
            )
            if settings.S3_PUBLIC_BASE_URL:
                return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
            return self.s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=settings.S3_URL_EXPIRES,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not upload {key} to bucket {self.bucket}: {e}", stage=STAGE_RENDER) from e
