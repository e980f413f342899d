"""Branch and tag discovery over the git smart HTTP protocol.

The REST API lags behind the git transport when refs are created
concurrently, so branch existence is probed the way ``git ls-remote``
does it: by reading the upload-pack ref advertisement at
``<repo url>.git/info/refs?service=git-upload-pack``.
"""

import logging
from typing import List, Optional

import httpx

from src.pr_creator.config import PRCreatorSettings
from src.pr_creator.models import RemoteRepoIdentity


logger = logging.getLogger(__name__)

_REF_PREFIXES = ("refs/heads/", "refs/tags/")


class GitUnreachable(Exception):
    """Raised when the repository's git metadata cannot be fetched.

    Attributes:
        url: Repository URL that was probed.
        status_code: HTTP status of the failed request, if any.
    """

    def __init__(self, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code else ""
        super().__init__(f"Git metadata unreachable for {url}{detail}")


def parse_pkt_lines(data: bytes) -> List[bytes]:
    """Split a pkt-line stream into payloads, dropping flush packets.

    Raises:
        ValueError: If a length prefix is not valid hexadecimal or
                    overruns the buffer.
    """
    lines = []
    pos = 0
    while pos < len(data):
        length = int(data[pos:pos + 4], 16)
        if length == 0:
            pos += 4
            continue
        if length < 4 or pos + length > len(data):
            raise ValueError(f"invalid pkt-line length {length} at offset {pos}")
        lines.append(data[pos + 4:pos + length])
        pos += length
    return lines


def parse_ref_names(data: bytes) -> List[str]:
    """Extract branch and tag names from an upload-pack advertisement."""
    names = []
    for raw in parse_pkt_lines(data):
        # Ref names are raw bytes; undecodable ones never match a branch name.
        line = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape").rstrip("\n")
        if not line or line.startswith("#"):
            continue
        _, _, ref = line.partition(" ")
        if ref.endswith("^{}"):
            continue
        for prefix in _REF_PREFIXES:
            if ref.startswith(prefix):
                names.append(ref[len(prefix):])
                break
    return names


class GitMetadataFetcher:
    """Reads ref names for one repository.

    Results are never cached: the workflow probes the same branch before
    and after mutating it.
    """

    def __init__(
        self,
        identity: RemoteRepoIdentity,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.identity = identity
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        identity: RemoteRepoIdentity,
        settings: PRCreatorSettings,
    ) -> "GitMetadataFetcher":
        """Build a fetcher from settings.

        The configured hostname applies unless the identity names its own.
        """
        if "hostname" not in identity.model_fields_set:
            identity = identity.model_copy(
                update={"hostname": settings.github_hostname}
            )
        return cls(
            identity=identity,
            token=settings.github_token,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def upload_pack_url(self) -> str:
        return f"{self.identity.url}.git/info/refs"

    async def ref_names(self) -> List[str]:
        """Return branch and tag names advertised by the remote.

        Raises:
            GitUnreachable: If the advertisement cannot be fetched or parsed.
        """
        auth = ("x-access-token", self.token) if self.token else None
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.upload_pack_url,
                    params={"service": "git-upload-pack"},
                    auth=auth,
                )
        except httpx.RequestError as e:
            logger.warning(
                "Git metadata request failed",
                extra={"url": self.identity.url, "error": str(e)},
            )
            raise GitUnreachable(self.identity.url) from e

        if response.status_code != 200:
            raise GitUnreachable(self.identity.url, response.status_code)

        try:
            return parse_ref_names(response.content)
        except ValueError as e:
            raise GitUnreachable(self.identity.url) from e
