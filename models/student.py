import logging

from bson import ObjectId
from pymongo.errors import PyMongoError

from models.attempt import AssignmentAttempt, PENDING, PROCESSING
from utils.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


class Student:
    def __init__(self, data):
        self._id = str(data.get('_id') or ObjectId())
        self.full_name = data.get('full_name', '')
        self.roll_no = data.get('roll_no', '')
        self.class_id = data.get('class_id')
        # Documents written before versioning existed have no stamp at all
        self.has_version = 'version' in data
        self.version = data.get('version', 0)
        self.assignments = [AssignmentAttempt(a) for a in data.get('assignments', [])]

    def find_attempt(self, assignment_id):
        assignment_id = str(assignment_id)
        for attempt in self.assignments:
            if attempt.assignment_id == assignment_id:
                return attempt
        return None

    def to_dict(self):
        return {
            '_id': self._id,
            'full_name': self.full_name,
            'roll_no': self.roll_no,
            'class_id': self.class_id,
            'version': self.version,
            'assignments': [a.to_dict() for a in self.assignments]
        }


class StudentModel:
    def __init__(self, db, max_retries=3):
        self.collection = db.get_collection('students')
        self.max_retries = max_retries

    def get_by_id(self, student_id):
        try:
            student_data = self.collection.find_one({'_id': str(student_id)})
        except PyMongoError as e:
            raise PersistenceError(f"Could not load student {student_id}: {e}") from e
        return Student(student_data) if student_data else None

    def get_attempt(self, student_id, assignment_id):
        """Return the student's attempt for an assignment or raise NotFoundError"""
        student = self.get_by_id(student_id)
        if not student:
            raise NotFoundError(f"Student not found: {student_id}")
        attempt = student.find_attempt(assignment_id)
        if not attempt:
            raise NotFoundError(f"Assignment {assignment_id} not issued to student {student_id}")
        return attempt

    def issue_assignment(self, student_id, assignment_id):
        """Create a pending attempt; issuing twice leaves the first one alone"""
        def add_attempt(student):
            if not student.find_attempt(assignment_id):
                student.assignments.append(AssignmentAttempt({
                    'assignment': str(assignment_id),
                    'status': PENDING
                }))
        student = self._compare_and_swap(student_id, add_attempt)
        return student.find_attempt(assignment_id)

    def update_attempt(self, student_id, assignment_id, mutate):
        """
        Apply `mutate(attempt)` and write the whole student document back.

        The write only lands if the document still carries the version we
        read; on a conflict the document is re-read and the mutation
        re-applied to the fresh copy, up to max_retries times.
        """
        def apply(student):
            attempt = student.find_attempt(assignment_id)
            if not attempt:
                raise NotFoundError(f"Assignment {assignment_id} not issued to student {student_id}")
            mutate(attempt)
        student = self._compare_and_swap(student_id, apply)
        return student.find_attempt(assignment_id)

    def _compare_and_swap(self, student_id, apply):
        for attempt_no in range(self.max_retries + 1):
            student = self.get_by_id(student_id)
            if not student:
                raise NotFoundError(f"Student not found: {student_id}")
            apply(student)

            if student.has_version:
                expected = {'_id': student._id, 'version': student.version}
            else:
                expected = {'_id': student._id, 'version': {'$exists': False}}
            student.version += 1
            try:
                result = self.collection.replace_one(expected, student.to_dict())
            except PyMongoError as e:
                raise PersistenceError(f"Could not save student {student_id}: {e}") from e

            if result.matched_count == 1:
                return student
            logger.warning("Version conflict saving student %s (try %d of %d)",
                           student_id, attempt_no + 1, self.max_retries + 1)

        raise PersistenceError(f"Gave up saving student {student_id} after repeated version conflicts")

    def find_stale_processing(self, cutoff):
        """
        (student_id, assignment_id) pairs still processing with a
        submission_date older than cutoff.
        """
        query = {
            'assignments': {
                '$elemMatch': {'status': PROCESSING, 'submission_date': {'$lt': cutoff}}
            }
        }
        try:
            docs = list(self.collection.find(query))
        except PyMongoError as e:
            raise PersistenceError(f"Could not query stale submissions: {e}") from e

        pairs = []
        for doc in docs:
            student = Student(doc)
            for attempt in student.assignments:
                if (attempt.status == PROCESSING and attempt.submission_date is not None
                        and attempt.submission_date < cutoff):
                    pairs.append((student._id, attempt.assignment_id))
        return pairs
