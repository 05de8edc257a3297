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
Docker registry client for reading image metadata.
Implements the read-only parts of the Docker Registry HTTP API V2 needed to
get an image's config without pulling any layers.
"""

import http.client
import json
import logging
import re
from typing import Optional, Dict, Any, Tuple
from urllib.request import urlopen, Request
from urllib.error import HTTPError
from urllib.parse import urlencode

from .image_reference import ImageReference, parse_image_name
from ..MODELS.image_metadata import ImageMetadata
from ..errors import ImageSourceError, ManifestError, ConfigError

logger = logging.getLogger(__name__)

MANIFEST_LIST_TYPES = (
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
)
MANIFEST_TYPES = (
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
) + MANIFEST_LIST_TYPES

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class RegistryClient:
    """
    Client for reading image metadata from Docker and OCI registries.
    Only anonymous access is supported; nothing is cached between calls.
    """

    def __init__(self, os_name: str = "linux", architecture: str = "amd64", timeout: int = 60):
        """
        Initialize the registry client.

        Args:
            os_name: Platform OS used to pick an entry from multi-arch indexes
            architecture: Platform architecture used to pick an entry from multi-arch indexes
            timeout: Socket timeout in seconds for registry requests
        """
        self.os_name = os_name
        self.architecture = architecture
        self.timeout = timeout
        self._auth_tokens: Dict[str, str] = {}

    def _get_bearer_token(self, challenge: str) -> Optional[str]:
        """Answer a 'WWW-Authenticate: Bearer ...' challenge anonymously."""
        if not challenge.lower().startswith("bearer "):
            return None

        params = dict(_CHALLENGE_PARAM.findall(challenge))
        realm = params.pop("realm", None)
        if not realm:
            return None

        url = f"{realm}?{urlencode(params)}" if params else realm
        logger.debug("Requesting anonymous registry token from %s", url)
        with urlopen(Request(url), timeout=30) as response:
            data = json.loads(response.read().decode())

        token = data.get("token") or data.get("access_token")
        return f"Bearer {token}" if token else None

    def _make_request(
        self, url: str, ref: ImageReference, accept: Optional[str] = None
    ) -> Tuple[bytes, Dict[str, str]]:
        """Make a request to the registry, answering one auth challenge if needed."""
        request = Request(url)

        cache_key = f"{ref.registry}/{ref.repository}"
        token = self._auth_tokens.get(cache_key)
        if token:
            # Blob downloads redirect to storage backends that reject foreign credentials
            request.add_unredirected_header("Authorization", token)

        if accept:
            request.add_header("Accept", accept)

        logger.debug("GET %s", url)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                headers = dict(response.headers)
                return response.read(), headers
        except HTTPError as e:
            if e.code == 401 and cache_key not in self._auth_tokens:
                token = self._get_bearer_token(e.headers.get("WWW-Authenticate", ""))
                if token:
                    self._auth_tokens[cache_key] = token
                    return self._make_request(url, ref, accept)
            raise

    def get_manifest(self, ref: ImageReference) -> Dict[str, Any]:
        """
        Get the image manifest, resolving multi-arch indexes to a single platform.

        Args:
            ref: Image reference

        Returns:
            Manifest as a dictionary
        """
        url = f"{ref.registry_url}/v2/{ref.repository}/manifests/{ref.reference}"

        content, headers = self._make_request(url, ref, ", ".join(MANIFEST_TYPES))
        manifest = json.loads(content.decode())

        media_type = manifest.get("mediaType") or headers.get("Content-Type", "")
        if media_type in MANIFEST_LIST_TYPES or "manifests" in manifest:
            manifest = self._select_platform_manifest(ref, manifest)

        if not manifest.get("config", {}).get("digest"):
            raise ValueError("manifest has no config descriptor")

        return manifest

    def _select_platform_manifest(
        self, ref: ImageReference, manifest_list: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Select the manifest matching the configured platform."""
        manifests = manifest_list.get("manifests", [])
        if not manifests:
            raise ValueError("No suitable manifest found")

        chosen = manifests[0]
        for manifest in manifests:
            platform_info = manifest.get("platform", {})
            if (
                platform_info.get("os") == self.os_name
                and platform_info.get("architecture") == self.architecture
            ):
                chosen = manifest
                break

        new_ref = ImageReference(
            registry=ref.registry, repository=ref.repository, digest=chosen["digest"]
        )
        return self.get_manifest(new_ref)

    def get_config(
        self, ref: ImageReference, manifest: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Get the image configuration blob.

        Args:
            ref: Image reference
            manifest: Image manifest

        Returns:
            Image configuration as a dictionary
        """
        digest = manifest["config"]["digest"]
        url = f"{ref.registry_url}/v2/{ref.repository}/blobs/{digest}"
        content, _ = self._make_request(url, ref)
        return json.loads(content.decode())

    def inspect(self, image_name: str) -> ImageMetadata:
        """
        Read the entrypoint, command and working directory an image declares.

        Args:
            image_name: Transport-prefixed image name, e.g. 'docker://nginx:1.21'

        Returns:
            ImageMetadata for the image

        Raises:
            ImageSourceError: the name or transport could not be parsed
            ManifestError: the manifest could not be read
            ConfigError: the image config could not be read
        """
        try:
            _, ref = parse_image_name(image_name)
        except ValueError as e:
            raise ImageSourceError(image_name, f"Error parsing image source ({e})") from e

        try:
            manifest = self.get_manifest(ref)
        except (OSError, http.client.HTTPException, ValueError, KeyError) as e:
            raise ManifestError(image_name, f"Error parsing manifest for image ({e})") from e

        try:
            config = self.get_config(ref, manifest)
        except (OSError, http.client.HTTPException, ValueError, KeyError) as e:
            raise ConfigError(image_name, f"Error inspecting image ({e})") from e

        container_config = config.get("config") or {}
        return ImageMetadata(
            entrypoint=container_config.get("Entrypoint") or [],
            cmd=container_config.get("Cmd") or [],
            working_dir=container_config.get("WorkingDir") or "",
        )
