import mongomock
import pytest

from models.assignment import AssignmentModel
from models.attempt import GradedQuestionResult, PENDING
from models.student import StudentModel
from models.submission import PageImage, RegionMap
from services.submission_pipeline import SubmissionPipeline

STUDENT_ID = 'stu-1'
ASSIGNMENT_ID = 'asg-1'
QUESTION_IDS = ['q1', 'q2', 'q3']


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def seeded_db(db):
    db.questions.insert_many([
        {'_id': qid, 'text': f"Question {i}", 'rubric': f"rubric for {qid}", 'order': i}
        for i, qid in enumerate(QUESTION_IDS, start=1)
    ])
    db.assignments.insert_one({'_id': ASSIGNMENT_ID, 'title': 'Algebra 1', 'questions': QUESTION_IDS})
    db.students.insert_one({
        '_id': STUDENT_ID,
        'full_name': 'Test Student',
        'version': 0,
        'assignments': [{'assignment': ASSIGNMENT_ID, 'status': PENDING, 'responses': []}]
    })
    return db


@pytest.fixture
def students(seeded_db):
    return StudentModel(seeded_db, max_retries=3)


@pytest.fixture
def assignments(seeded_db):
    return AssignmentModel(seeded_db)


class FakeRenderer:
    def __init__(self, pages=3, error=None):
        self.pages = pages
        self.error = error
        self.calls = 0

    def render(self, document, folder):
        self.calls += 1
        if self.error:
            raise self.error
        return (PageImage(n, f"https://cdn.test/{folder}/page_{n}.png") for n in range(1, self.pages + 1))


class FakeExtractor:
    def __init__(self, regions=None, error=None):
        self.regions = regions if regions is not None else {
            qid: f"https://cdn.test/regions/{qid}.png" for qid in QUESTION_IDS
        }
        self.error = error
        self.calls = []

    def extract_regions(self, page_urls):
        self.calls.append(list(page_urls))
        if self.error:
            raise self.error
        return RegionMap(self.regions)


class FakeGrader:
    def __init__(self, error=None, reverse=False):
        self.error = error
        self.reverse = reverse
        self.calls = []

    def grade(self, questions):
        self.calls.append(list(questions))
        if self.error:
            raise self.error
        ordered = list(reversed(questions)) if self.reverse else questions
        return [
            GradedQuestionResult({
                'question_id': q['question_id'],
                'correct_steps': [f"{q['question_id']} step ok"],
                'incorrect_steps': [],
                'total_awarded': 2,
                'total_deducted': 1
            })
            for q in ordered
        ]


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
def pipeline(students, assignments, renderer, extractor, grader):
    return SubmissionPipeline(students, assignments, renderer, extractor, grader, stale_seconds=600)
