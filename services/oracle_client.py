"""
HTTP clients for the cropping and grading oracles.

Both endpoints live on the same service origin. Calls block until the
response, the timeout (5 minutes by default, the remote side may cold-start),
or a connection error. Nothing is retried here; the orchestrator surfaces the
typed error and leaves retry to the caller.
"""
import logging
from typing import Any, List

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from config.settings import settings
from models.attempt import GradedQuestionResult
from models.submission import RegionMap
from utils.errors import (
    OracleTimeout,
    RemoteError,
    ServiceUnavailable,
    STAGE_EXTRACT,
    STAGE_GRADE,
)

logger = logging.getLogger(__name__)


class _Schema(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class RegionUpload(_Schema):
    question_id: str
    image_url: str


class RegionExtractionResponse(_Schema):
    uploads: List[RegionUpload]


class GradedQuestion(_Schema):
    question_id: str
    correct_steps: List[Any]
    incorrect_steps: List[Any]
    total_awarded: float
    total_deducted: float


class GradingResponse(_Schema):
    results: List[GradedQuestion]


def _sibling_url(base_url, path):
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class OracleClient:
    def __init__(self, base_url=None, path='/', timeout=None, session=None):
        self.base_url = base_url or settings.ORACLE_BASE_URL
        self.url = _sibling_url(self.base_url, path)
        self.timeout = timeout if timeout is not None else settings.ORACLE_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _post(self, payload, stage):
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            # checked before ConnectionError: ConnectTimeout is both
            raise OracleTimeout(f"{self.url} did not answer within {self.timeout}s", stage=stage) from e
        except requests.exceptions.ConnectionError as e:
            raise ServiceUnavailable(f"Could not reach {self.url}: {e}", stage=stage) from e
        except requests.exceptions.RequestException as e:
            raise RemoteError(f"Request to {self.url} failed: {e}", stage=stage) from e

        if not 200 <= resp.status_code < 300:
            raise RemoteError(f"{self.url} responded with HTTP {resp.status_code}",
                              status=resp.status_code, body=resp.text, stage=stage)
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"{self.url} returned a non-JSON body",
                              status=resp.status_code, body=resp.text, stage=stage) from e

    def _validate(self, schema, data, stage):
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise RemoteError(f"Unexpected response shape from {self.url}: {e.error_count()} error(s)",
                              status=200, body=str(data), stage=stage) from e


class RegionExtractionClient(OracleClient):
    def __init__(self, base_url=None, timeout=None, session=None):
        super().__init__(base_url, settings.CROP_PATH, timeout, session)

    def extract_regions(self, page_urls):
        """POST the ordered page urls; returns a RegionMap"""
        page_urls = list(page_urls)
        data = self._post({'urls': page_urls}, STAGE_EXTRACT)
        parsed = self._validate(RegionExtractionResponse, data, STAGE_EXTRACT)

        regions = {}
        for upload in parsed.uploads:
            if upload.question_id in regions:
                raise RemoteError(f"Cropping oracle returned question {upload.question_id} twice",
                                  status=200, body=str(data), stage=STAGE_EXTRACT)
            regions[upload.question_id] = upload.image_url

        logger.info("Cropping oracle located %d region(s) across %d page(s)", len(regions), len(page_urls))
        return RegionMap(regions)


class GradingClient(OracleClient):
    def __init__(self, base_url=None, timeout=None, session=None):
        super().__init__(base_url, settings.GRADE_PATH, timeout, session)

    def grade(self, questions):
        """
        Grade regions. `questions` is a list of
        {question_id, image_url, rubric}; returns GradedQuestionResult list
        in the order the oracle returned them.
        """
        questions = list(questions)
        requested = {str(q['question_id']) for q in questions}
        data = self._post({'questions': questions}, STAGE_GRADE)
        parsed = self._validate(GradingResponse, data, STAGE_GRADE)

        results = []
        seen = set()
        for item in parsed.results:
            if item.question_id not in requested:
                raise RemoteError(f"Grading oracle returned unrequested question {item.question_id}",
                                  status=200, body=str(data), stage=STAGE_GRADE)
            if item.question_id in seen:
                raise RemoteError(f"Grading oracle returned question {item.question_id} twice",
                                  status=200, body=str(data), stage=STAGE_GRADE)
            seen.add(item.question_id)
            results.append(GradedQuestionResult(item.model_dump()))

        logger.info("Grading oracle graded %d of %d question(s)", len(results), len(questions))
        return results
