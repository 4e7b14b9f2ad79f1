# Copyright 2023 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
cfssl_sidekick is a small service which runs alongside a workload and acquires a TLS certificate from a cfssl CA.
It generates a private key and CSR once, requests a signed certificate, writes it to disk, optionally calls an
external command to reload the workload and then re-acquires the certificate on a fixed rotation schedule.
"""
from . import errors
from .config import Config
from .controller import Controller

__version__ = "1.0.0"
__pdoc__ = {"tests": False}    # Excludes 'tests' submodule from documentation
__all__ = ["Config", "Controller", "errors"]
