import unittest

import requests

from lint_pr_reviewer.errors import SCMError
from lint_pr_reviewer.models import FilteredFinding, Finding, ReviewEvent, ReviewVerdict
from lint_pr_reviewer.scm_client import DIFF_MEDIA_TYPE, GitHubClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", links=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.links = links or {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def branch(login, name, sha, ref):
    return {
        "sha": sha,
        "ref": ref,
        "repo": {
            "name": name,
            "full_name": f"{login}/{name}",
            "clone_url": f"https://github.com/{login}/{name}.git",
            "owner": {"login": login},
        },
    }


PULL = {
    "number": 7,
    "base": branch("acme", "widgets", "base-sha", "main"),
    "head": branch("forker", "widgets", "head-sha", "feature"),
}


def make_client(*responses):
    session = FakeSession(responses)
    client = GitHubClient(lambda: "tok", api_base_url="https://github.example.com/api/v3/", session=session)
    return client, session


class TestGitHubClient(unittest.TestCase):
    def test_get_pull_request(self):
        client, session = make_client(FakeResponse(payload=PULL))

        pr = client.get_pull_request("acme", "widgets", 7)

        self.assertEqual(pr.number, 7)
        self.assertEqual(pr.base.owner, "acme")
        self.assertEqual(pr.head.full_name, "forker/widgets")
        self.assertEqual(pr.head.sha, "head-sha")
        self.assertEqual(pr.head.ref, "feature")

        method, url, kwargs = session.calls[0]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://github.example.com/api/v3/repos/acme/widgets/pulls/7")
        self.assertEqual(kwargs["headers"]["Authorization"], "token tok")
        self.assertEqual(kwargs["timeout"], 30)

    def test_timeout_is_capped_by_caller(self):
        client, session = make_client(FakeResponse(text="a"), FakeResponse(text="b"), FakeResponse(payload=[]))

        client.get_diff("acme", "widgets", 7, timeout=4.5)
        client.get_diff("acme", "widgets", 7, timeout=300)
        client.list_review_comments("acme", "widgets", 7, page=2, timeout=1)

        self.assertEqual([call[2]["timeout"] for call in session.calls], [4.5, 30, 1])

    def test_pull_request_missing_fields(self):
        payload = dict(PULL, head={"sha": "x", "ref": "y", "repo": None})
        client, _ = make_client(FakeResponse(payload=payload))

        with self.assertRaises(SCMError) as ctx:
            client.get_pull_request("acme", "widgets", 7)
        self.assertIn("head", str(ctx.exception))

    def test_get_diff_uses_diff_media_type(self):
        client, session = make_client(FakeResponse(text="diff --git a/a.go b/a.go\n"))

        self.assertEqual(client.get_diff("acme", "widgets", 7), "diff --git a/a.go b/a.go\n")
        self.assertEqual(session.calls[0][2]["headers"]["Accept"], DIFF_MEDIA_TYPE)

    def test_list_review_comments_pages(self):
        client, session = make_client(
            FakeResponse(
                payload=[{"path": "a.go", "position": 3, "body": "x"}, {"path": "a.go", "position": None, "body": "y"}],
                links={"next": {"url": "https://github.example.com/api/v3/repos/acme/widgets/pulls/7/comments"
                                       "?per_page=100&page=2"}},
            ),
            FakeResponse(payload=[{"path": "b.go", "position": 1, "body": "z"}]),
        )

        first, next_page = client.list_review_comments("acme", "widgets", 7)
        last, after_last = client.list_review_comments("acme", "widgets", 7, page=next_page)

        self.assertEqual(next_page, 2)
        self.assertIsNone(after_last)
        self.assertEqual([(c.path, c.position) for c in first], [("a.go", 3), ("a.go", None)])
        self.assertEqual(last[0].body, "z")
        self.assertEqual(session.calls[1][2]["params"], {"per_page": 100, "page": 2})

    def test_create_review(self):
        client, session = make_client(FakeResponse(payload={"id": 99}))
        comment = FilteredFinding(Finding("unused", "x", "a.go", 4), hunk_position=2, body="x (from unused)")
        verdict = ReviewVerdict(event=ReviewEvent.REQUEST_CHANGES, body="golangci-lint found 1 issue",
                                comments=[comment])

        self.assertEqual(client.create_review("acme", "widgets", 7, "head-sha", verdict), {"id": 99})

        method, url, kwargs = session.calls[0]
        self.assertEqual((method, url), ("POST", "https://github.example.com/api/v3/repos/acme/widgets/pulls/7/reviews"))
        self.assertEqual(kwargs["json"], {
            "commit_id": "head-sha",
            "body": "golangci-lint found 1 issue",
            "event": "REQUEST_CHANGES",
            "comments": [{"path": "a.go", "position": 2, "body": "x (from unused)"}],
        })

    def test_unexpected_status_raises(self):
        client, _ = make_client(FakeResponse(status_code=422, text="Unprocessable Entity"))

        with self.assertRaises(SCMError) as ctx:
            client.create_review("acme", "widgets", 7, "sha", ReviewVerdict(ReviewEvent.APPROVE, "ok"))
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertIn("/repos/acme/widgets/pulls/7/reviews", str(ctx.exception))

    def test_transport_error_raises(self):
        client, _ = make_client(requests.exceptions.ConnectionError("connection refused"))

        with self.assertRaises(SCMError) as ctx:
            client.get_diff("acme", "widgets", 7)
        self.assertIsNone(ctx.exception.status_code)


if __name__ == '__main__':
    unittest.main()
