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
Exceptions raised while building and applying a devpod.

Every error that should stop a run derives from DevpodError; the CLI is the
only place that turns one into an exit code.
"""


class DevpodError(Exception):
    """Base class for all devpod failures."""


class ImageInspectionError(DevpodError):
    """An image's registry metadata could not be read."""

    def __init__(self, image: str, message: str):
        self.image = image
        super().__init__(f"{message}: {image}")


class ImageSourceError(ImageInspectionError):
    """The image name or its transport prefix could not be parsed."""


class ManifestError(ImageInspectionError):
    """The image manifest could not be fetched or decoded."""


class ConfigError(ImageInspectionError):
    """The image config blob could not be fetched or decoded."""


class FatalAPIError(DevpodError):
    """A Kubernetes API call failed in a way the run cannot recover from."""

    def __init__(self, message: str, status=None):
        self.status = status
        super().__init__(message)


class SourceNotFoundError(FatalAPIError):
    """The resource to clone does not exist."""


class ConflictError(DevpodError):
    """The devpod could not be created or updated and --force was not given."""


class UnsupportedResourceError(DevpodError):
    """The requested resource kind has no adapter."""


class MissingSelectorError(DevpodError):
    """The workload has no selector match labels to disambiguate."""


class NamespaceResolutionError(DevpodError):
    """No namespace was given and none could be read from the kubeconfig."""


class KubeconfigError(DevpodError):
    """The kubeconfig could not be loaded."""
