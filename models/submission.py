class Submission:
    """
    One uploaded answer document for one assignment.
    Never stored; it only carries the input into the pipeline.
    """

    def __init__(self, student_id, assignment_id, document, filename=None):
        self.student_id = str(student_id)
        self.assignment_id = str(assignment_id)
        self.document = document
        self.filename = filename


class PageImage:
    def __init__(self, page_number, image_url):
        self.page_number = page_number  # 1-indexed
        self.image_url = image_url

    def __repr__(self):
        return f"PageImage({self.page_number}, {self.image_url!r})"


class RegionMap:
    """
    question_id -> region image url, as returned by the cropping oracle.
    A missing key means that question's answer was not located.
    """

    def __init__(self, regions=None):
        self._regions = dict(regions or {})

    def url_for(self, question_id):
        return self._regions.get(str(question_id))

    def question_ids(self):
        return list(self._regions)

    def __contains__(self, question_id):
        return str(question_id) in self._regions

    def __len__(self):
        return len(self._regions)

    def __iter__(self):
        return iter(self._regions.items())

    def to_dict(self):
        return dict(self._regions)
