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
devpod - suspended debugging copies of Kubernetes workloads.

Clones a Deployment into a ``<name>-devpod`` copy whose containers sleep
instead of running their entrypoint, and saves the original command line of
every container as a script in a ConfigMap.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"
