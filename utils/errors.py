"""
Error taxonomy for the submission pipeline.

Every failure a caller can see is a PipelineError. The class says what went
wrong and whether an explicit retry may help; `stage` says where in the run
it happened.
"""

STAGE_LOCATE = 'locate'
STAGE_CHECKPOINT = 'checkpoint'
STAGE_RENDER = 'render'
STAGE_EXTRACT = 'extract'
STAGE_GRADE = 'grade'
STAGE_MERGE = 'merge'
STAGE_COMMIT = 'commit'


class PipelineError(Exception):
    code = 'pipeline_error'
    retryable = False
    http_status = 500

    def __init__(self, message, stage=None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self):
        return {
            'error': self.message,
            'code': self.code,
            'stage': self.stage,
            'retryable': self.retryable,
        }


class NotFoundError(PipelineError):
    code = 'not_found'
    http_status = 404


class RenderError(PipelineError):
    code = 'render_error'
    http_status = 422


class StorageError(PipelineError):
    code = 'storage_error'
    retryable = True
    http_status = 502


class OracleTimeout(PipelineError):
    code = 'timeout'
    retryable = True
    http_status = 504


class ServiceUnavailable(PipelineError):
    code = 'service_unavailable'
    retryable = True
    http_status = 503


class RemoteError(PipelineError):
    code = 'remote_error'
    retryable = True
    http_status = 502

    def __init__(self, message, status=None, body=None, stage=None):
        super().__init__(message, stage=stage)
        self.status = status
        self.body = body

    def to_dict(self):
        data = super().to_dict()
        data['status'] = self.status
        # keep diagnostics readable in a JSON response
        data['body'] = self.body[:2000] if isinstance(self.body, str) else self.body
        return data


class NoRegionsFound(PipelineError):
    code = 'no_regions_found'
    retryable = True
    http_status = 422


class PersistenceError(PipelineError):
    code = 'persistence_error'
    http_status = 500


class InvalidTransition(PipelineError):
    code = 'invalid_transition'
    http_status = 409


class StaleProcessing(PipelineError):
    code = 'stale'
    retryable = True
    http_status = 500
