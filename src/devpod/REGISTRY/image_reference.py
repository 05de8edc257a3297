# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Image reference parsing and handling.
Parses transport-prefixed image names like 'docker://nginx:latest' or
'docker://gcr.io/project/image@sha256:abc123'.
"""

import re
from typing import Optional, Tuple
from dataclasses import dataclass

# Transports this package can read metadata through.
DOCKER_TRANSPORT = "docker"
SUPPORTED_TRANSPORTS = (DOCKER_TRANSPORT,)

_REPOSITORY_PATTERN = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$")
_TAG_PATTERN = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[0-9a-fA-F]{32,}$")
_REGISTRY_PATTERN = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9.-]*[a-zA-Z0-9])?(?::[0-9]+)?$")


@dataclass
class ImageReference:
    """
    Parsed Docker image reference.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - nginx:1.21 -> docker.io/library/nginx:1.21
        - myuser/myimage:v1 -> docker.io/myuser/myimage:v1
        - localhost:5000/myimage:v1 -> localhost:5000/myimage:v1
        - gcr.io/project/image@sha256:abc123... -> gcr.io/project/image@sha256:abc123...
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse a Docker image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: if the reference is empty or malformed.
        """
        if not reference:
            raise ValueError("Empty image reference")

        original = reference

        # Handle digest format (image@sha256:...)
        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)
            if not _DIGEST_PATTERN.match(digest):
                raise ValueError(f"Invalid digest in image reference {original!r}")

        # Handle tag format (image:tag)
        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1 :]
            # A slash after the colon means it was a registry port, not a tag
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]
                if not _TAG_PATTERN.match(tag):
                    raise ValueError(f"Invalid tag in image reference {original!r}")

        parts = reference.split("/")
        first_part = parts[0]
        if len(parts) > 1 and ("." in first_part or ":" in first_part or first_part == "localhost"):
            registry = first_part
            repository = "/".join(parts[1:])
            if not _REGISTRY_PATTERN.match(registry):
                raise ValueError(f"Invalid registry host in image reference {original!r}")
        else:
            registry = cls.DEFAULT_REGISTRY
            repository = reference

        # Official images live under library/ on Docker Hub
        if registry == cls.DEFAULT_REGISTRY and "/" not in repository:
            repository = f"library/{repository}"

        if not _REPOSITORY_PATTERN.match(repository):
            raise ValueError(f"Invalid repository name in image reference {original!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def reference(self) -> str:
        """The tag or digest used to address the manifest."""
        return self.digest if self.digest else self.tag

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def registry_url(self) -> str:
        """Get the registry URL for API calls."""
        if self.registry == self.DEFAULT_REGISTRY:
            return "https://registry-1.docker.io"
        if self.registry.startswith("localhost"):
            return f"http://{self.registry}"
        return f"https://{self.registry}"

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"


def parse_image_name(name: str) -> Tuple[str, ImageReference]:
    """
    Split a transport-prefixed image name into its transport and reference.

    'docker://nginx:1.21' -> ('docker', ImageReference(docker.io/library/nginx:1.21))

    Raises:
        ValueError: if the transport is missing or unsupported, or the
            reference does not parse.
    """
    transport, sep, rest = name.partition(":")
    if not sep or not transport:
        raise ValueError(f"Invalid image name {name!r}, expected transport:details format")
    if transport not in SUPPORTED_TRANSPORTS:
        raise ValueError(f"Unsupported transport {transport!r} in image name {name!r}")
    if not rest.startswith("//"):
        raise ValueError(f"Invalid image name {name!r}, docker transport requires docker://")
    return transport, ImageReference.parse(rest[2:])
