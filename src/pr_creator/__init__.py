"""Race-tolerant pull request creation against the GitHub API.

This package composes non-atomic GitHub operations into one idempotent
workflow, providing:
- Tree and commit creation from a set of file changes
- Branch creation or fast-forward, tolerant of concurrent creators
- Pull request creation with duplicate and deleted-base detection
- Best-effort labels, reviewers, assignees and milestone
- Classification of GitHub failures into a small set of typed errors
"""
