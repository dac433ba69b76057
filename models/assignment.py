from pymongo.errors import PyMongoError

from utils.errors import NotFoundError, PersistenceError


class Question:
    def __init__(self, data):
        self._id = str(data['_id'])
        self.text = data.get('text', '')
        self.rubric = data.get('rubric', '')
        self.max_marks = data.get('max_marks', 0)
        self.question_type = data.get('question_type', 'subjective')
        self.order = data.get('order', 0)

    def to_dict(self):
        return {
            '_id': self._id,
            'text': self.text,
            'rubric': self.rubric,
            'max_marks': self.max_marks,
            'question_type': self.question_type,
            'order': self.order
        }


class Assignment:
    def __init__(self, data):
        self._id = str(data['_id'])
        self.title = data.get('title', '')
        self.question_ids = [str(q) for q in data.get('questions', [])]
        self.active = data.get('active', True)


class AssignmentModel:
    """
    Read-only view over assignments and their questions.
    Assignment/question authoring happens elsewhere; this pipeline only
    needs question ids and rubric text.
    """

    def __init__(self, db):
        self.collection = db.get_collection('assignments')
        self.questions = db.get_collection('questions')

    def get_by_id(self, assignment_id):
        try:
            assignment_data = self.collection.find_one({'_id': str(assignment_id)})
        except PyMongoError as e:
            raise PersistenceError(f"Could not load assignment {assignment_id}: {e}") from e
        return Assignment(assignment_data) if assignment_data else None

    def get_questions(self, assignment_id):
        """Questions of an assignment, ordered by their `order` field"""
        assignment = self.get_by_id(assignment_id)
        if not assignment:
            raise NotFoundError(f"Assignment not found: {assignment_id}")
        if not assignment.question_ids:
            return []

        try:
            docs = list(self.questions.find({'_id': {'$in': assignment.question_ids}}))
        except PyMongoError as e:
            raise PersistenceError(f"Could not load questions for {assignment_id}: {e}") from e

        position = {qid: i for i, qid in enumerate(assignment.question_ids)}
        questions = [Question(d) for d in docs]
        # ties on `order` fall back to the order the assignment lists them in
        questions.sort(key=lambda q: (q.order, position.get(q._id, 0)))
        return questions
