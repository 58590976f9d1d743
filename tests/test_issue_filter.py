import unittest

from lint_pr_reviewer.deduplicator import collect_existing_comments, dedupe_findings
from lint_pr_reviewer.issue_filter import filter_findings, render_comment_body
from lint_pr_reviewer.models import DiffPosition, ExistingComment, FilteredFinding, Finding

INDEX = {
    "pkg/foo.go": [
        DiffPosition(line_number=42, hunk_position=3),
        DiffPosition(line_number=43, hunk_position=4),
    ],
    "a.go": [DiffPosition(line_number=7, hunk_position=5), DiffPosition(line_number=9, hunk_position=8)],
    "renamed.go": [],
    "vendor/lib/lib.go": [DiffPosition(line_number=1, hunk_position=1)],
}


class TestFilterFindings(unittest.TestCase):
    def test_keeps_findings_on_added_lines(self):
        findings = [
            Finding("unused", "var x is unused", "pkg/foo.go", 42),
            Finding("govet", "unreachable code", "pkg/foo.go", 10),
        ]

        kept = filter_findings(findings, INDEX)

        self.assertEqual(len(kept), 1)
        self.assertEqual(kept[0].path, "pkg/foo.go")
        self.assertEqual(kept[0].hunk_position, 3)
        self.assertEqual(kept[0].body, "var x is unused (from unused)")

    def test_drops_files_outside_the_patch(self):
        findings = [
            Finding("errcheck", "error not checked", "other.go", 42),
            Finding("errcheck", "error not checked", "renamed.go", 1),
        ]
        self.assertEqual(filter_findings(findings, INDEX), [])

    def test_keeps_input_order_and_same_line_duplicates(self):
        findings = [
            Finding("staticcheck", "SA4006", "a.go", 9),
            Finding("unused", "x unused", "a.go", 7),
            Finding("ineffassign", "ineffectual assignment", "a.go", 7),
        ]

        kept = filter_findings(findings, INDEX)

        self.assertEqual([(f.finding.linter_name, f.hunk_position) for f in kept],
                         [("staticcheck", 8), ("unused", 5), ("ineffassign", 5)])

    def test_without_linter_name(self):
        kept = filter_findings([Finding("unused", "x unused", "a.go", 7)], INDEX, include_linter_name=False)
        self.assertEqual(kept[0].body, "x unused")

    def test_exclude_patterns(self):
        findings = [Finding("unused", "x unused", "vendor/lib/lib.go", 1), Finding("unused", "y", "a.go", 7)]

        kept = filter_findings(findings, INDEX, exclude_patterns=["vendor/**"])

        self.assertEqual([f.path for f in kept], ["a.go"])

    def test_normalizes_relative_paths(self):
        kept = filter_findings([Finding("unused", "x unused", "./a.go", 7)], INDEX)
        self.assertEqual(kept[0].path, "a.go")
        self.assertEqual(kept[0].to_comment(), {"path": "a.go", "position": 5, "body": "x unused (from unused)"})

    def test_filtering_is_idempotent(self):
        findings = [
            Finding("unused", "x unused", "a.go", 7),
            Finding("govet", "shadow", "a.go", 8),
            Finding("errcheck", "unchecked", "pkg/foo.go", 43),
        ]
        once = filter_findings(findings, INDEX)
        twice = filter_findings([f.finding for f in once], INDEX)
        self.assertEqual(once, twice)

    def test_render_comment_body(self):
        finding = Finding("misspell", "`recieve` is a misspelling of `receive`", "a.go", 1)
        self.assertEqual(render_comment_body(finding, True),
                         "`recieve` is a misspelling of `receive` (from misspell)")
        self.assertEqual(render_comment_body(finding, False), "`recieve` is a misspelling of `receive`")


def filtered(path: str, position: int, body: str) -> FilteredFinding:
    return FilteredFinding(finding=Finding("unused", body, path, 1), hunk_position=position, body=body)


class TestDedupeFindings(unittest.TestCase):
    def test_removes_exact_matches(self):
        findings = [
            filtered("a.go", 5, "unused var (from unused)"),
            filtered("a.go", 6, "unused var (from unused)"),
            filtered("b.go", 5, "unused var (from unused)"),
        ]
        existing = [ExistingComment(path="a.go", position=5, body="unused var (from unused)")]

        remaining = dedupe_findings(findings, existing)

        self.assertEqual([(f.path, f.hunk_position) for f in remaining], [("a.go", 6), ("b.go", 5)])

    def test_body_must_match_exactly(self):
        findings = [filtered("a.go", 5, "unused var (from unused)")]
        existing = [ExistingComment(path="a.go", position=5, body="unused var")]
        self.assertEqual(dedupe_findings(findings, existing), findings)

    def test_outdated_comments_never_match(self):
        findings = [filtered("a.go", 5, "x")]
        self.assertEqual(dedupe_findings(findings, [ExistingComment("a.go", None, "x")]), findings)

    def test_repeats_within_batch_are_dropped(self):
        findings = [filtered("a.go", 5, "x"), filtered("a.go", 5, "x"), filtered("a.go", 5, "y")]
        self.assertEqual([f.body for f in dedupe_findings(findings, [])], ["x", "y"])

    def test_all_deduplicated(self):
        findings = [filtered("a.go", 5, "x")]
        self.assertEqual(dedupe_findings(findings, [ExistingComment("a.go", 5, "x")]), [])


class TestCollectExistingComments(unittest.TestCase):
    PAGES = {
        1: [ExistingComment("a.go", 1, "first")],
        2: [ExistingComment("a.go", 5, "x")],
        3: [ExistingComment("b.go", 2, "last")],
    }

    def fetcher(self, order):
        calls = []

        def fetch(page):
            calls.append(page)
            index = order.index(page)
            next_page = order[index + 1] if index + 1 < len(order) else None
            return self.PAGES[page], next_page

        return fetch, calls

    def test_walks_all_pages(self):
        fetch, calls = self.fetcher([1, 2, 3])

        comments = collect_existing_comments(fetch)

        self.assertEqual(calls, [1, 2, 3])
        self.assertEqual(len(comments), 3)

    def test_match_on_a_later_page_is_found(self):
        findings = [filtered("a.go", 5, "x"), filtered("a.go", 6, "y")]
        fetch, _ = self.fetcher([1, 2, 3])

        remaining = dedupe_findings(findings, collect_existing_comments(fetch))

        self.assertEqual([f.body for f in remaining], ["y"])

    def test_page_order_does_not_matter(self):
        findings = [filtered("a.go", 5, "x"), filtered("b.go", 2, "last"), filtered("c.go", 1, "new")]
        fetch_forward, _ = self.fetcher([1, 2, 3])
        fetch_backward, _ = self.fetcher([3, 2, 1])

        forward = dedupe_findings(findings, collect_existing_comments(fetch_forward, first_page=1))
        backward = dedupe_findings(findings, collect_existing_comments(fetch_backward, first_page=3))

        self.assertEqual(forward, backward)
        self.assertEqual([f.body for f in forward], ["new"])

    def test_stops_on_repeated_page(self):
        calls = []

        def fetch(page):
            calls.append(page)
            return [], 1

        self.assertEqual(collect_existing_comments(fetch), [])
        self.assertEqual(calls, [1])


if __name__ == '__main__':
    unittest.main()
