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
"""Configuration object for the cfssl_sidekick service."""
import math
import os
import re
from dataclasses import dataclass, field

import validators

from . import errors


# Constants and Variables
DEFAULT_ENDPOINT_URL = "https://ca.kube-tls.svc.cluster.local"
DEFAULT_EXPIRY = 90 * 24 * 60 * 60
DEFAULT_TIMEOUT = 60
KEY_SIZES = [2048, 3072, 4096]
DURATION_UNITS = {"ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1, "m": 60, "h": 3600}
DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
PLACEHOLDER = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


@dataclass(frozen=True)
class Config:
    """
    The immutable configuration for a single sidekick process. It is built once at start-up and never changed.
    """
    # pylint: disable=too-many-instance-attributes
    domains: list = field(default_factory=list)
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    endpoint_token: str = ""
    endpoint_profile: str = ""
    tls_ca_path: str = ""
    size: int = 2048
    organization: str = "ACP Homeoffice"
    country: str = "GB"
    locality: str = "London"
    province: str = "London"
    certs_dir: str = "/certs"
    tls_ca_filename: str = "tls-ca.pem"
    tls_certificate_filename: str = "tls.pem"
    tls_private_key_filename: str = "tls-key.pem"
    expiry: float = DEFAULT_EXPIRY
    timeout: float = DEFAULT_TIMEOUT
    exec_command: str = ""
    onetime: bool = False
    verbose: bool = False

    def validate(self) -> None:
        """
        Checks the configuration is usable before the controller starts.

        Raises:
            cfssl_sidekick.errors.InvalidDomain: When no domains are set or a domain is not a valid hostname.
            cfssl_sidekick.errors.InvalidKeySize: When the key size is not one of `KEY_SIZES`.
            cfssl_sidekick.errors.InvalidConfig: When any other option is malformed.
        """
        if not self.domains:
            raise errors.InvalidDomain("No domains found. You must specify at least one domain.")

        # Each domain (minus the wildcard if present) must be a hostname or an IP address
        for domain in self.domains:
            if not validators.hostname(strip_wildcard(domain), may_have_port=False):
                raise errors.InvalidDomain(f"Invalid domain name '{domain}'.")

        if not validators.url(self.endpoint_url, simple_host=True) or \
                not self.endpoint_url.startswith(("http://", "https://")):
            raise errors.InvalidConfig(f"Invalid endpoint url '{self.endpoint_url}'.")

        if self.size not in KEY_SIZES:
            raise errors.InvalidKeySize(f"Invalid private key size '{self.size}'. Options {KEY_SIZES}")

        if not math.isfinite(self.expiry) or self.expiry <= 0:
            raise errors.InvalidConfig("The rotation expiry must be greater than zero.")

        if not math.isfinite(self.timeout) or self.timeout <= 0:
            raise errors.InvalidConfig("The operation timeout must be greater than zero.")

        for name in (self.tls_ca_filename, self.tls_certificate_filename, self.tls_private_key_filename):
            if not name:
                raise errors.InvalidConfig("The certificate, private key and ca filenames must not be empty.")

        if not self.certs_dir:
            raise errors.InvalidConfig("The certificate directory must not be empty.")

    def certificate_file(self) -> str:
        """Returns the full path of the certificate file."""
        return os.path.join(self.certs_dir, self.tls_certificate_filename)

    def private_key_file(self) -> str:
        """Returns the full path of the private key file."""
        return os.path.join(self.certs_dir, self.tls_private_key_filename)

    def ca_file(self) -> str:
        """Returns the full path of the CA bundle file."""
        return os.path.join(self.certs_dir, self.tls_ca_filename)


def strip_wildcard(domain: str) -> str:
    """
    Strips the wildcard portion of a domain (*.) if present.

    Args:
        domain (str): The domain string to strip wildcards from.

    Returns:
        str: The domain string without the wildcard portion.
    """
    return domain[2:] if domain.startswith("*.") else domain


def expand_domains(domains: list) -> list:
    """
    Expands `$NAME` and `${NAME}` placeholders in each domain from the environment, which allows values such as
    `name.${KUBE_NAMESPACE}.svc.cluster.local`. Unset variables expand to an empty string.

    Args:
        domains (list): The raw domain values.

    Returns:
        list: The expanded domain values, empty entries removed.

    Examples:
        >>> os.environ["KUBE_NAMESPACE"] = "web"
        >>> expand_domains(["app.${KUBE_NAMESPACE}.svc.cluster.local"])
        ['app.web.svc.cluster.local']
    """
    expanded = []

    for domain in domains:
        value = PLACEHOLDER.sub(lambda match: os.environ.get(match.group(1) or match.group(2), ""), domain).strip()
        if value:
            expanded.append(value)

    return expanded


def parse_duration(value) -> float:
    """
    Parses a Go style duration string (e.g. `90s`, `1h30m`, `2160h`) into seconds. A bare number is
    treated as seconds.

    Args:
        value (str): The duration string to parse.

    Returns:
        float: The duration in seconds.

    Raises:
        cfssl_sidekick.errors.InvalidConfig: When the value is not a valid duration.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass

    # The whole string must be consumed by duration parts, otherwise it is malformed
    if not text or DURATION_PART.sub("", text):
        raise errors.InvalidConfig(f"Invalid duration '{value}'.")

    return sum(float(amount) * DURATION_UNITS[unit] for amount, unit in DURATION_PART.findall(text))
