import pytest

from conftest import ASSIGNMENT_ID, STUDENT_ID
from models.attempt import AssignmentAttempt, FAILED, GRADED, GradedQuestionResult, PENDING
from models.student import StudentModel
from utils.errors import NotFoundError, PersistenceError


def _result(qid):
    return GradedQuestionResult({'question_id': qid, 'image_url': f"u-{qid}", 'total_awarded': 1})


class TestAssignmentAttempt:
    def test_rejects_unknown_status(self):
        attempt = AssignmentAttempt({'assignment': 'a'})
        with pytest.raises(ValueError):
            attempt.status = 'submitted'
        assert attempt.status == PENDING

    def test_graded_needs_responses(self):
        attempt = AssignmentAttempt({'assignment': 'a'})
        with pytest.raises(ValueError):
            attempt.mark_graded([])
        assert attempt.status == PENDING

    def test_graded_rejects_duplicate_questions(self):
        attempt = AssignmentAttempt({'assignment': 'a'})
        with pytest.raises(ValueError):
            attempt.mark_graded([_result('q1'), _result('q1')])

    def test_failure_keeps_submission_date(self):
        attempt = AssignmentAttempt({'assignment': 'a'})
        attempt.mark_processing()
        submitted = attempt.submission_date

        attempt.mark_failed(RuntimeError("boom"))

        assert attempt.status == FAILED
        assert attempt.submission_date == submitted
        assert attempt.last_error['message'] == 'boom'

    def test_processing_clears_previous_error(self):
        attempt = AssignmentAttempt({'assignment': 'a'})
        attempt.mark_failed(RuntimeError("boom"))

        attempt.mark_processing()

        assert attempt.last_error is None
        assert attempt.to_dict()['last_error'] is None


class TestStudentModel:
    def test_update_attempt_bumps_version(self, students, seeded_db):
        students.update_attempt(STUDENT_ID, ASSIGNMENT_ID, lambda a: a.mark_graded([_result('q1')]))

        doc = seeded_db.students.find_one({'_id': STUDENT_ID})
        assert doc['version'] == 1
        assert doc['assignments'][0]['status'] == GRADED
        assert doc['assignments'][0]['responses'][0]['question_id'] == 'q1'

    def test_conflicting_write_is_retried_on_fresh_copy(self, students, seeded_db):
        calls = []

        def mutate(attempt):
            calls.append(attempt.status)
            if len(calls) == 1:
                # another writer lands between our read and our write
                seeded_db.students.update_one({'_id': STUDENT_ID}, {'$inc': {'version': 1}, '$set': {'full_name': 'Renamed'}})
            attempt.mark_processing()

        students.update_attempt(STUDENT_ID, ASSIGNMENT_ID, mutate)

        doc = seeded_db.students.find_one({'_id': STUDENT_ID})
        assert len(calls) == 2
        assert doc['version'] == 2
        # the concurrent change survives our write
        assert doc['full_name'] == 'Renamed'
        assert doc['assignments'][0]['status'] == 'processing'

    def test_gives_up_after_repeated_conflicts(self, seeded_db):
        students = StudentModel(seeded_db, max_retries=2)
        calls = []

        def mutate(attempt):
            calls.append(1)
            seeded_db.students.update_one({'_id': STUDENT_ID}, {'$inc': {'version': 1}})

        with pytest.raises(PersistenceError):
            students.update_attempt(STUDENT_ID, ASSIGNMENT_ID, mutate)
        assert len(calls) == 3

    def test_unversioned_document_is_upgraded(self, db):
        db.students.insert_one({'_id': 'legacy', 'assignments': [{'assignment': ASSIGNMENT_ID}]})
        students = StudentModel(db)

        students.update_attempt('legacy', ASSIGNMENT_ID, lambda a: a.mark_processing())

        assert db.students.find_one({'_id': 'legacy'})['version'] == 1

    def test_missing_attempt_raises_not_found(self, students):
        with pytest.raises(NotFoundError):
            students.update_attempt(STUDENT_ID, 'other', lambda a: None)

    def test_issue_assignment_creates_pending_attempt_once(self, students):
        attempt = students.issue_assignment(STUDENT_ID, 'asg-2')
        students.issue_assignment(STUDENT_ID, 'asg-2')

        student = students.get_by_id(STUDENT_ID)
        assert attempt.status == PENDING
        assert [a.assignment_id for a in student.assignments] == [ASSIGNMENT_ID, 'asg-2']

    def test_other_attempts_are_untouched(self, students):
        students.issue_assignment(STUDENT_ID, 'asg-2')
        students.update_attempt(STUDENT_ID, 'asg-2', lambda a: a.mark_graded([_result('q9')]))

        assert students.get_attempt(STUDENT_ID, ASSIGNMENT_ID).status == PENDING
        assert students.get_attempt(STUDENT_ID, 'asg-2').status == GRADED


class TestAssignmentModel:
    def test_questions_come_back_in_order(self, assignments, seeded_db):
        seeded_db.questions.update_one({'_id': 'q1'}, {'$set': {'order': 10}})

        questions = assignments.get_questions(ASSIGNMENT_ID)

        assert [q._id for q in questions] == ['q2', 'q3', 'q1']
        assert questions[0].rubric == 'rubric for q2'

    def test_missing_assignment(self, assignments):
        with pytest.raises(NotFoundError):
            assignments.get_questions('nope')
