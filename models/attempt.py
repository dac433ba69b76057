from datetime import datetime, timezone

PENDING = 'pending'
PROCESSING = 'processing'
GRADED = 'graded'
FAILED = 'failed'

STATUSES = (PENDING, PROCESSING, GRADED, FAILED)


def utcnow():
    """Naive UTC timestamp, the form pymongo hands back from the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GradedQuestionResult:
    def __init__(self, data):
        self.question_id = str(data['question_id'])
        self.image_url = data.get('image_url')
        self.correct_steps = list(data.get('correct_steps') or [])
        self.incorrect_steps = list(data.get('incorrect_steps') or [])
        self.total_awarded = data.get('total_awarded', 0)
        self.total_deducted = data.get('total_deducted', 0)

    def to_dict(self):
        return {
            'question_id': self.question_id,
            'image_url': self.image_url,
            'correct_steps': self.correct_steps,
            'incorrect_steps': self.incorrect_steps,
            'total_awarded': self.total_awarded,
            'total_deducted': self.total_deducted
        }


class AssignmentAttempt:
    """
    One assignment issued to one student, embedded in the student document.
    Status is limited to STATUSES; responses hold one entry per graded question.
    """

    def __init__(self, data):
        self.assignment_id = str(data['assignment'])
        self.status = data.get('status', PENDING)
        self.submission_date = data.get('submission_date')
        self.graded_at = data.get('graded_at')
        self.last_error = data.get('last_error')
        self.responses = [GradedQuestionResult(r) for r in data.get('responses', [])]

    @property
    def status(self):
        return self._status

    @status.setter
    def status(self, value):
        if value not in STATUSES:
            raise ValueError(f"Invalid attempt status: {value!r}")
        self._status = value

    def mark_processing(self, now=None):
        self.status = PROCESSING
        self.submission_date = now or utcnow()
        self.last_error = None

    def mark_failed(self, error, now=None):
        self.status = FAILED
        self.last_error = {
            'stage': getattr(error, 'stage', None),
            'code': getattr(error, 'code', 'error'),
            'message': str(error),
            'at': now or utcnow()
        }

    def mark_graded(self, responses, now=None):
        if not responses:
            raise ValueError("A graded attempt needs at least one response")
        seen = set()
        for result in responses:
            if result.question_id in seen:
                raise ValueError(f"Duplicate response for question {result.question_id}")
            seen.add(result.question_id)
        self.responses = list(responses)
        self.status = GRADED
        self.graded_at = now or utcnow()
        self.last_error = None

    def is_stale(self, threshold_seconds, now=None):
        """True for a processing attempt that has been running too long."""
        if self.status != PROCESSING or self.submission_date is None:
            return False
        age = (now or utcnow()) - self.submission_date
        return age.total_seconds() > threshold_seconds

    def to_dict(self):
        return {
            'assignment': self.assignment_id,
            'status': self.status,
            'submission_date': self.submission_date,
            'graded_at': self.graded_at,
            'last_error': self.last_error,
            'responses': [r.to_dict() for r in self.responses]
        }
