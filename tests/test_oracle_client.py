import pytest
import requests

from services.oracle_client import GradingClient, RegionExtractionClient
from utils.errors import OracleTimeout, RemoteError, ServiceUnavailable


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append({'url': url, 'json': json, 'timeout': timeout})
        if self.error:
            raise self.error
        return self.response


def _extractor(session):
    return RegionExtractionClient(base_url='http://oracle.test:8000/', timeout=300, session=session)


def _grader(session):
    return GradingClient(base_url='http://oracle.test:8000', timeout=300, session=session)


class TestRegionExtractionClient:
    def test_posts_urls_in_order(self):
        session = FakeSession(FakeResponse(payload={'uploads': [
            {'question_id': 'q1', 'image_url': 'https://cdn/q1.png'},
            {'question_id': 'q2', 'image_url': 'https://cdn/q2.png'},
        ]}))

        region_map = _extractor(session).extract_regions(['p1', 'p2', 'p3'])

        post = session.posts[0]
        assert post['url'] == 'http://oracle.test:8000/crop'
        assert post['json'] == {'urls': ['p1', 'p2', 'p3']}
        assert post['timeout'] == 300
        assert region_map.to_dict() == {'q1': 'https://cdn/q1.png', 'q2': 'https://cdn/q2.png'}

    def test_numeric_question_ids_become_strings(self):
        session = FakeSession(FakeResponse(payload={'uploads': [{'question_id': 7, 'image_url': 'u7'}]}))

        region_map = _extractor(session).extract_regions(['p1'])

        assert region_map.url_for('7') == 'u7'

    def test_timeout(self):
        session = FakeSession(error=requests.exceptions.ReadTimeout("read timed out"))
        with pytest.raises(OracleTimeout) as excinfo:
            _extractor(session).extract_regions(['p1'])
        assert excinfo.value.stage == 'extract'

    def test_connect_timeout_counts_as_timeout(self):
        session = FakeSession(error=requests.exceptions.ConnectTimeout("connect timed out"))
        with pytest.raises(OracleTimeout):
            _extractor(session).extract_regions(['p1'])

    def test_connection_refused(self):
        session = FakeSession(error=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(ServiceUnavailable):
            _extractor(session).extract_regions(['p1'])

    def test_http_error_keeps_status_and_body(self):
        session = FakeSession(FakeResponse(status_code=503, text='warming up'))
        with pytest.raises(RemoteError) as excinfo:
            _extractor(session).extract_regions(['p1'])
        assert excinfo.value.status == 503
        assert excinfo.value.body == 'warming up'

    def test_non_json_body(self):
        session = FakeSession(FakeResponse(status_code=200, payload=None, text='<html>'))
        with pytest.raises(RemoteError) as excinfo:
            _extractor(session).extract_regions(['p1'])
        assert excinfo.value.body == '<html>'

    def test_wrong_shape(self):
        session = FakeSession(FakeResponse(payload={'regions': []}))
        with pytest.raises(RemoteError):
            _extractor(session).extract_regions(['p1'])

    def test_duplicate_question(self):
        session = FakeSession(FakeResponse(payload={'uploads': [
            {'question_id': 'q1', 'image_url': 'a'},
            {'question_id': 'q1', 'image_url': 'b'},
        ]}))
        with pytest.raises(RemoteError):
            _extractor(session).extract_regions(['p1'])


class TestGradingClient:
    QUESTIONS = [
        {'question_id': 'q1', 'image_url': 'u1', 'rubric': 'r1'},
        {'question_id': 'q2', 'image_url': 'u2', 'rubric': 'r2'},
    ]

    def test_grades_questions(self):
        session = FakeSession(FakeResponse(payload={'results': [
            {'question_id': 'q2', 'correct_steps': ['expanded'], 'incorrect_steps': [{'step': 2, 'why': 'sign'}],
             'total_awarded': 3, 'total_deducted': 1.5},
            {'question_id': 'q1', 'correct_steps': [], 'incorrect_steps': [],
             'total_awarded': 0, 'total_deducted': 0},
        ]}))

        results = _grader(session).grade(self.QUESTIONS)

        assert session.posts[0]['url'] == 'http://oracle.test:8000/grade'
        assert session.posts[0]['json'] == {'questions': self.QUESTIONS}
        assert [r.question_id for r in results] == ['q2', 'q1']
        assert results[0].incorrect_steps == [{'step': 2, 'why': 'sign'}]
        assert results[0].total_deducted == 1.5
        assert results[0].image_url is None

    def test_unrequested_question_is_rejected(self):
        session = FakeSession(FakeResponse(payload={'results': [
            {'question_id': 'q9', 'correct_steps': [], 'incorrect_steps': [],
             'total_awarded': 1, 'total_deducted': 0},
        ]}))
        with pytest.raises(RemoteError) as excinfo:
            _grader(session).grade(self.QUESTIONS)
        assert excinfo.value.stage == 'grade'
        assert 'unrequested' in str(excinfo.value)

    def test_result_missing_totals_is_rejected(self):
        session = FakeSession(FakeResponse(payload={'results': [
            {'question_id': 'q1', 'correct_steps': ['ok'], 'incorrect_steps': [], 'total_deducted': 0},
        ]}))
        with pytest.raises(RemoteError) as excinfo:
            _grader(session).grade(self.QUESTIONS)
        assert excinfo.value.stage == 'grade'

    def test_bare_question_id_is_rejected(self):
        session = FakeSession(FakeResponse(payload={'results': [{'question_id': 'q1'}]}))
        with pytest.raises(RemoteError):
            _grader(session).grade(self.QUESTIONS)

    def test_bad_totals_are_rejected(self):
        session = FakeSession(FakeResponse(payload={'results': [
            {'question_id': 'q1', 'correct_steps': [], 'incorrect_steps': [],
             'total_awarded': 'lots', 'total_deducted': 0},
        ]}))
        with pytest.raises(RemoteError):
            _grader(session).grade(self.QUESTIONS)

    def test_timeout(self):
        session = FakeSession(error=requests.exceptions.Timeout())
        with pytest.raises(OracleTimeout) as excinfo:
            _grader(session).grade(self.QUESTIONS)
        assert excinfo.value.retryable
