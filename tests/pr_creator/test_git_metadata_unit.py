"""Unit tests for ref discovery over git smart HTTP."""

import asyncio

import httpx
import pytest

from src.pr_creator.config import PRCreatorSettings
from src.pr_creator.github.git_metadata import (
    GitMetadataFetcher,
    GitUnreachable,
    parse_pkt_lines,
    parse_ref_names,
)
from src.pr_creator.models import RemoteRepoIdentity


def run_async(coro):
    return asyncio.run(coro)


def pkt(line: bytes) -> bytes:
    return b"%04x" % (len(line) + 4) + line


SHA = b"a" * 40

ADVERTISEMENT = (
    pkt(b"# service=git-upload-pack\n")
    + b"0000"
    + pkt(SHA + b" HEAD\0multi_ack side-band-64k symref=HEAD:refs/heads/main\n")
    + pkt(SHA + b" refs/heads/main\n")
    + pkt(SHA + b" refs/heads/dep/update\n")
    + pkt(SHA + b" refs/pull/1/head\n")
    + pkt(SHA + b" refs/tags/v1.0\n")
    + pkt(SHA + b" refs/tags/v1.0^{}\n")
    + b"0000"
)


class TestParsing:
    def test_pkt_lines_skip_flush(self):
        lines = parse_pkt_lines(pkt(b"one\n") + b"0000" + pkt(b"two\n"))
        assert lines == [b"one\n", b"two\n"]

    def test_invalid_length_raises(self):
        with pytest.raises(ValueError):
            parse_pkt_lines(b"zzzzabc")

    def test_overrunning_length_raises(self):
        with pytest.raises(ValueError):
            parse_pkt_lines(b"00ffabc")

    def test_ref_names_are_branches_and_tags(self):
        assert parse_ref_names(ADVERTISEMENT) == ["main", "dep/update", "v1.0"]

    def test_empty_repository(self):
        data = pkt(b"# service=git-upload-pack\n") + b"0000" + b"0000"
        assert parse_ref_names(data) == []

    def test_non_utf8_ref_does_not_hide_other_refs(self):
        data = (
            pkt(b"# service=git-upload-pack\n")
            + b"0000"
            + pkt(SHA + b" refs/heads/caf\xe9\n")
            + pkt(SHA + b" refs/heads/dep/update\n")
            + b"0000"
        )

        names = parse_ref_names(data)

        assert "dep/update" in names
        assert len(names) == 2
        assert "caf\xe9" not in names


class TestGitMetadataFetcher:
    def _fetcher(self, handler) -> GitMetadataFetcher:
        return GitMetadataFetcher(
            RemoteRepoIdentity(repo="acme/widgets"),
            token="ghp_test",
            transport=httpx.MockTransport(handler),
        )

    def test_fetches_upload_pack_advertisement(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, content=ADVERTISEMENT)

        names = run_async(self._fetcher(handler).ref_names())

        assert names == ["main", "dep/update", "v1.0"]
        assert seen["url"] == (
            "https://github.com/acme/widgets.git/info/refs?service=git-upload-pack"
        )
        assert seen["auth"].startswith("Basic ")

    @pytest.mark.parametrize("status", [401, 403, 404, 500])
    def test_error_status_is_unreachable(self, status):
        def handler(request):
            return httpx.Response(status)

        with pytest.raises(GitUnreachable) as exc_info:
            run_async(self._fetcher(handler).ref_names())

        assert exc_info.value.status_code == status
        assert exc_info.value.url == "https://github.com/acme/widgets"

    def test_transport_failure_is_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GitUnreachable):
            run_async(self._fetcher(handler).ref_names())

    def test_malformed_advertisement_is_unreachable(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>login</html>")

        with pytest.raises(GitUnreachable):
            run_async(self._fetcher(handler).ref_names())

    def test_from_settings_uses_token_and_timeout(self, monkeypatch):
        monkeypatch.setenv("PR_CREATOR_GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("PR_CREATOR_REQUEST_TIMEOUT_SECONDS", "5")
        identity = RemoteRepoIdentity(repo="acme/widgets")

        fetcher = GitMetadataFetcher.from_settings(identity, PRCreatorSettings())

        assert fetcher.token == "ghp_env"
        assert fetcher.timeout == 5.0
        assert fetcher.upload_pack_url == "https://github.com/acme/widgets.git/info/refs"

    def test_non_utf8_ref_is_not_unreachable(self):
        content = (
            pkt(b"# service=git-upload-pack\n")
            + b"0000"
            + pkt(SHA + b" refs/tags/r\xe9sum\xe9\n")
            + pkt(SHA + b" refs/heads/main\n")
            + b"0000"
        )

        def handler(request):
            return httpx.Response(200, content=content)

        names = run_async(self._fetcher(handler).ref_names())

        assert "main" in names

    def test_from_settings_applies_configured_hostname(self, monkeypatch):
        monkeypatch.setenv("PR_CREATOR_GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("PR_CREATOR_GITHUB_HOSTNAME", "ghe.example.com")
        identity = RemoteRepoIdentity(repo="acme/widgets")

        fetcher = GitMetadataFetcher.from_settings(identity, PRCreatorSettings())

        assert fetcher.upload_pack_url == "https://ghe.example.com/acme/widgets.git/info/refs"
        assert fetcher.identity.repo == "acme/widgets"

    def test_explicit_identity_hostname_wins_over_settings(self, monkeypatch):
        monkeypatch.setenv("PR_CREATOR_GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("PR_CREATOR_GITHUB_HOSTNAME", "ghe.example.com")
        identity = RemoteRepoIdentity(repo="acme/widgets", hostname="git.internal")

        fetcher = GitMetadataFetcher.from_settings(identity, PRCreatorSettings())

        assert fetcher.upload_pack_url == "https://git.internal/acme/widgets.git/info/refs"
