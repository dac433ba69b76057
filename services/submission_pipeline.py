"""
Submission pipeline: document -> pages -> regions -> grades -> student record.

Run sequence for one (student, assignment) pair:

    1. locate the attempt                       NotFoundError
    2. checkpoint submission_date, processing   (must land before any network call)
    3. render pages and upload them             RenderError / StorageError
    4. cropping oracle: page urls -> regions    OracleTimeout / ServiceUnavailable / RemoteError
    5. grading oracle: regions + rubrics        same taxonomy
    6. merge grades with region urls
    7. write responses and status=graded in one document replace

Any failure after step 2 records status=failed and re-raises. Nothing is
retried inside a run; running steps 3-7 again overwrites responses wholesale.
"""
import logging
import uuid
from datetime import timedelta

import requests

from config.database import db_instance
from config.settings import settings
from models.assignment import AssignmentModel
from models.attempt import FAILED, PENDING, utcnow
from models.student import StudentModel
from models.submission import Submission
from services.oracle_client import GradingClient, RegionExtractionClient
from services.page_renderer import PageRenderer
from services.storage_service import StorageService
from utils.errors import (
    InvalidTransition,
    NoRegionsFound,
    PipelineError,
    RemoteError,
    StaleProcessing,
    STAGE_CHECKPOINT,
    STAGE_COMMIT,
    STAGE_EXTRACT,
    STAGE_GRADE,
    STAGE_LOCATE,
    STAGE_MERGE,
    STAGE_RENDER,
)

logger = logging.getLogger(__name__)


def render_pages(renderer, submission, folder):
    """Render and upload every page; returns urls in page order."""
    pages = sorted(renderer.render(submission.document, folder), key=lambda p: p.page_number)
    return [p.image_url for p in pages]


def extract_regions(extractor, page_urls):
    region_map = extractor.extract_regions(page_urls)
    if not len(region_map):
        raise NoRegionsFound("No answer regions were located in the submission", stage=STAGE_EXTRACT)
    return region_map


def build_grading_requests(region_map, questions):
    """
    Join located regions with the assignment's questions.

    Questions without a region are left out; region keys that are not
    questions of this assignment are dropped.
    """
    known = {q._id for q in questions}
    unknown = [qid for qid in region_map.question_ids() if qid not in known]
    if unknown:
        logger.warning("Ignoring regions for questions not in the assignment: %s", ', '.join(unknown))

    return [
        {'question_id': q._id, 'image_url': region_map.url_for(q._id), 'rubric': q.rubric}
        for q in questions
        if q._id in region_map
    ]


def grade_regions(grader, grading_requests):
    if not grading_requests:
        raise NoRegionsFound("None of the located regions belong to this assignment", stage=STAGE_GRADE)
    results = grader.grade(grading_requests)
    if not results:
        raise RemoteError("Grading oracle returned no results", status=200, stage=STAGE_GRADE)
    return results


def merge_results(region_map, results):
    """Attach each result's region url, keyed by question id, keeping grading order."""
    merged = []
    seen = set()
    for result in results:
        if result.question_id in seen:
            raise RemoteError(f"Question {result.question_id} graded twice", stage=STAGE_MERGE)
        url = region_map.url_for(result.question_id)
        if url is None:
            raise RemoteError(f"Graded question {result.question_id} has no located region", stage=STAGE_MERGE)
        seen.add(result.question_id)
        result.image_url = url
        merged.append(result)
    return merged


class SubmissionPipeline:
    def __init__(self, students, assignments, renderer, extractor, grader, stale_seconds=1800):
        self.students = students
        self.assignments = assignments
        self.renderer = renderer
        self.extractor = extractor
        self.grader = grader
        self.stale_seconds = stale_seconds

    def process_submission(self, student_id, assignment_id, document, filename=None):
        """Run the whole pipeline; returns the persisted responses as dicts"""
        submission = Submission(student_id, assignment_id, document, filename)
        self._locate(student_id, assignment_id)
        return self._run(submission)

    def retry(self, student_id, assignment_id, document, filename=None):
        """
        Re-run a submission that failed, was never processed, or has been
        stuck in processing for longer than the staleness threshold.
        """
        submission = Submission(student_id, assignment_id, document, filename)
        attempt = self._locate(student_id, assignment_id)
        if attempt.status not in (FAILED, PENDING) and not attempt.is_stale(self.stale_seconds):
            raise InvalidTransition(
                f"Cannot retry a submission that is {attempt.status}", stage=STAGE_LOCATE)
        logger.info("Retrying submission %s/%s (was %s)", student_id, assignment_id, attempt.status)
        return self._run(submission)

    def get_attempt(self, student_id, assignment_id):
        return self._locate(student_id, assignment_id)

    def sweep_stale(self, now=None):
        """Fail every attempt stuck in processing past the threshold. Returns the count."""
        now = now or utcnow()
        cutoff = now - timedelta(seconds=self.stale_seconds)
        swept = 0
        for student_id, assignment_id in self.students.find_stale_processing(cutoff):
            error = StaleProcessing(
                f"No result recorded within {self.stale_seconds}s of submission")

            def fail_if_still_stale(attempt):
                # re-checked on the fresh document in case the run finished meanwhile
                if attempt.is_stale(self.stale_seconds, now):
                    attempt.mark_failed(error, now)

            attempt = self.students.update_attempt(student_id, assignment_id, fail_if_still_stale)
            if attempt.status == FAILED and attempt.last_error and attempt.last_error.get('code') == error.code:
                logger.warning("Marked stale submission %s/%s as failed", student_id, assignment_id)
                swept += 1
        return swept

    def _locate(self, student_id, assignment_id):
        try:
            return self.students.get_attempt(student_id, assignment_id)
        except PipelineError as exc:
            exc.stage = exc.stage or STAGE_LOCATE
            raise

    def _run(self, submission):
        student_id, assignment_id = submission.student_id, submission.assignment_id

        try:
            self.students.update_attempt(student_id, assignment_id, lambda a: a.mark_processing())
        except PipelineError as exc:
            exc.stage = exc.stage or STAGE_CHECKPOINT
            logger.error("Checkpoint failed for %s/%s: %s", student_id, assignment_id, exc)
            raise
        logger.info("Submission %s/%s received, processing", student_id, assignment_id)

        stage = STAGE_RENDER
        try:
            folder = f"submissions/{student_id}/{assignment_id}/{uuid.uuid4().hex}"
            page_urls = render_pages(self.renderer, submission, folder)
            logger.info("Rendered %d page(s) for %s/%s", len(page_urls), student_id, assignment_id)

            stage = STAGE_EXTRACT
            region_map = extract_regions(self.extractor, page_urls)

            stage = STAGE_GRADE
            questions = self.assignments.get_questions(assignment_id)
            grading_requests = build_grading_requests(region_map, questions)
            results = grade_regions(self.grader, grading_requests)

            stage = STAGE_MERGE
            responses = merge_results(region_map, results)

            stage = STAGE_COMMIT
            self.students.update_attempt(student_id, assignment_id, lambda a: a.mark_graded(responses))
        except PipelineError as exc:
            exc.stage = exc.stage or stage
            self._record_failure(student_id, assignment_id, exc, stage)
            raise
        except Exception as exc:
            failure = PipelineError(str(exc) or type(exc).__name__, stage=stage)
            self._record_failure(student_id, assignment_id, failure, stage)
            raise failure from exc

        logger.info("Submission %s/%s graded with %d response(s)", student_id, assignment_id, len(responses))
        return [r.to_dict() for r in responses]

    def _record_failure(self, student_id, assignment_id, failure, stage):
        logger.warning("Submission %s/%s failed at %s: %s", student_id, assignment_id, stage, failure)
        try:
            self.students.update_attempt(student_id, assignment_id, lambda a: a.mark_failed(failure))
        except PipelineError as write_error:
            # the original error is what the caller sees; the record stays processing
            logger.error("Could not record failure for %s/%s, left in processing: %s",
                         student_id, assignment_id, write_error)


def build_pipeline(db=None):
    """Wire the pipeline from settings against the shared database"""
    if db is None:
        db = db_instance
    session = requests.Session()
    return SubmissionPipeline(
        students=StudentModel(db, max_retries=settings.PERSIST_MAX_RETRIES),
        assignments=AssignmentModel(db),
        renderer=PageRenderer(StorageService(settings.STORAGE_TYPE)),
        extractor=RegionExtractionClient(session=session),
        grader=GradingClient(session=session),
        stale_seconds=settings.STALE_PROCESSING_SECONDS,
    )
