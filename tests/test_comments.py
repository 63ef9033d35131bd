"""Tests for comment rendering and documentation links."""

from __future__ import annotations

from iam_reviewer.analysis.comments import (
    COMMENT_MARKER,
    create_review_comments,
    format_comment,
)
from iam_reviewer.analysis.docs import format_action_with_link, get_action_doc_url
from iam_reviewer.models.review import WildcardBlock

S3_GET_OBJECT_URL = (
    "https://docs.aws.amazon.com/service-authorization/latest/reference/"
    "list_amazons3.html#amazons3-actions-as-permissions:~:text=GetObject"
)


def _block(*actions: str, start: int = 10, end: int = 10, file: str = "policy.json") -> WildcardBlock:
    return WildcardBlock(file=file, start_line=start, end_line=end, actions=tuple(actions))


# ---------------------------------------------------------------------------
# Documentation links
# ---------------------------------------------------------------------------


class TestDocLinks:
    def test_known_service(self) -> None:
        assert get_action_doc_url("s3:GetObject") == S3_GET_OBJECT_URL

    def test_other_services(self) -> None:
        assert "list_amazondynamodb.html" in get_action_doc_url("dynamodb:GetItem")
        assert get_action_doc_url("iam:CreateRole").endswith(
            "list_awsidentityandaccessmanagementiam.html"
            "#awsidentityandaccessmanagementiam-actions-as-permissions:~:text=CreateRole"
        )

    def test_service_prefix_case_insensitive(self) -> None:
        assert "list_amazons3.html" in get_action_doc_url("S3:GetObject")

    def test_unknown_service(self) -> None:
        assert get_action_doc_url("unknownservice:SomeAction") is None

    def test_malformed(self) -> None:
        assert get_action_doc_url("invalid") is None
        assert get_action_doc_url("") is None
        assert get_action_doc_url("s3:") is None

    def test_link_formatting(self) -> None:
        assert format_action_with_link("s3:GetObject") == f"[`s3:GetObject`]({S3_GET_OBJECT_URL})"
        assert format_action_with_link("unknownservice:Action") == "`unknownservice:Action`"


# ---------------------------------------------------------------------------
# format_comment
# ---------------------------------------------------------------------------


class TestFormatComment:
    def test_single_pattern_exact_body(self) -> None:
        body = format_comment(["s3:Get*"], ["s3:GetBucket", "foo:GetObject"])
        assert body == (
            "**🔍 IAM Wildcard Expansion**\n"
            "\n"
            "`s3:Get*` expands to 2 action(s):\n"
            "\n"
            "- [`s3:GetBucket`](https://docs.aws.amazon.com/service-authorization/latest/reference/"
            "list_amazons3.html#amazons3-actions-as-permissions:~:text=GetBucket)\n"
            "- `foo:GetObject`"
        )

    def test_marker_present(self) -> None:
        assert COMMENT_MARKER in format_comment(["s3:Get*"], ["s3:GetObject"])

    def test_marker_present_in_every_layout(self) -> None:
        bodies = [
            format_comment(["s3:Get*", "s3:Put*"], ["s3:GetObject", "s3:PutObject"]),
            format_comment(["s3:*"], [f"s3:Action{n}" for n in range(10)]),
            format_comment(["s3:Get*"], ["s3:GetObject"], redundant_actions=["s3:GetObject"]),
        ]
        assert all(body.startswith(COMMENT_MARKER) for body in bodies)

    def test_multiple_patterns(self) -> None:
        body = format_comment(["s3:Get*", "s3:Put*"], ["s3:GetObject", "s3:PutObject"])
        assert "2 wildcard patterns expand to 2 action(s):\n**Patterns:**\n- `s3:Get*`\n- `s3:Put*`" in body

    def test_collapses_above_threshold(self) -> None:
        expanded = [f"s3:Get{n}" for n in range(1, 7)]
        body = format_comment(["s3:Get*"], expanded)
        assert "<details>\n<summary>Click to expand</summary>\n\n- " in body
        assert body.endswith("\n\n</details>")

    def test_at_threshold_not_collapsed(self) -> None:
        expanded = [f"s3:Get{n}" for n in range(1, 6)]
        assert "<details>" not in format_comment(["s3:Get*"], expanded)

    def test_threshold_boundary_custom(self) -> None:
        expanded = ["s3:Get1", "s3:Get2", "s3:Get3"]
        assert "<details>" not in format_comment(["s3:Get*"], expanded, collapse_threshold=3)
        assert "<details>" in format_comment(["s3:Get*"], expanded, collapse_threshold=2)

    def test_zero_threshold_always_collapses(self) -> None:
        assert "<details>" in format_comment(["s3:Get*"], ["s3:GetObject"], collapse_threshold=0)

    def test_redundancy_warning(self) -> None:
        body = format_comment(
            ["s3:Get*"],
            ["s3:GetObject", "s3:GetBucket"],
            redundant_actions=["s3:GetObject", "s3:GetBucket"],
        )
        assert (
            "\n\n**⚠️ Redundant actions detected:**\n"
            "The following explicit actions are already covered by the wildcard pattern(s) above:\n"
            "- `s3:GetObject`\n- `s3:GetBucket`\n\n"
        ) in body

    def test_no_warning_without_redundant_actions(self) -> None:
        for redundant in (None, []):
            body = format_comment(["s3:Get*"], ["s3:GetObject"], redundant_actions=redundant)
            assert "⚠️" not in body
            assert "Redundant" not in body


# ---------------------------------------------------------------------------
# create_review_comments
# ---------------------------------------------------------------------------


class TestCreateReviewComments:
    def test_anchored_at_block_end(self) -> None:
        comments = create_review_comments(
            [_block("s3:Get*", start=10, end=12)],
            {"s3:Get*": ["s3:getobject", "s3:getbucket"]},
            [],
            5,
        )
        assert len(comments) == 1
        assert (comments[0].path, comments[0].line) == ("policy.json", 12)
        assert COMMENT_MARKER in comments[0].body

    def test_block_without_expansion_skipped(self) -> None:
        assert create_review_comments([_block("unknown:Action*")], {}, [], 5) == []

    def test_dedupes_and_sorts_case_insensitively(self) -> None:
        comments = create_review_comments(
            [_block("s3:Get*", "s3:GetB*", end=11)],
            {
                "s3:Get*": ["s3:GetObject", "s3:getbucket"],
                "s3:GetB*": ["s3:getbucket", "s3:GetBucketAcl"],
            },
            [],
            10,
        )
        body = comments[0].body
        assert "2 wildcard patterns expand to 3 action(s):" in body
        positions = [body.index(f"[`{action}`]") for action in ("s3:getbucket", "s3:GetBucketAcl", "s3:GetObject")]
        assert positions == sorted(positions)

    def test_only_expanded_patterns_listed(self) -> None:
        comments = create_review_comments(
            [_block("s3:Get*", "nope:*")],
            {"s3:Get*": ["s3:GetObject", "s3:GetBucketAcl"]},
            [],
            5,
        )
        assert "`s3:Get*` expands to 2 action(s):" in comments[0].body
        assert "nope:*" not in comments[0].body

    def test_global_redundancy_in_every_comment(self) -> None:
        comments = create_review_comments(
            [_block("s3:Get*", start=1, end=1), _block("kms:Describe*", start=9, end=9)],
            {"s3:Get*": ["s3:GetObject"] * 1 + ["s3:GetBucketAcl"], "kms:Describe*": ["kms:DescribeKey", "kms:DescribeCustomKeyStores"]},
            ["s3:GetObject"],
            5,
        )
        assert len(comments) == 2
        assert all("- `s3:GetObject`" in comment.body for comment in comments)

    def test_collapse_threshold_applied(self) -> None:
        many = [f"s3:action{n}" for n in range(20)]
        comments = create_review_comments([_block("s3:*")], {"s3:*": many}, [], 5)
        assert "<details>" in comments[0].body

    def test_payload_shape(self) -> None:
        comment = create_review_comments([_block("s3:Get*")], {"s3:Get*": ["s3:GetObject", "s3:GetBucketAcl"]}, [], 5)[0]
        assert comment.to_payload() == {"path": "policy.json", "line": 10, "body": comment.body, "side": "RIGHT"}
