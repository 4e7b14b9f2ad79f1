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
"""Private key and certificate signing request generation."""
import ipaddress
import os

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, NoEncryption
from cryptography.x509.oid import NameOID

from . import errors
from .config import Config, KEY_SIZES


class CertificateRequest:
    """
    Holds the private key and CSR for the lifetime of the process. The key and the encoded CSR are generated
    once and re-submitted unchanged on every rotation.
    """

    def __init__(self, config: Config) -> None:
        """
        Args:
            config (cfssl_sidekick.config.Config): The configuration supplying the key size, subject and domains.
        """
        self.config = config
        self.key = None
        self.csr = None
        self._private_key = b""
        self._encoded = ""

    def generate_private_key(self) -> bytes:
        """
        Generates a new RSA private key of the configured size.

        Returns:
            bytes: The PEM encoded private key data bytes-string. This method will update the `private_key` property
                of the object with the same value.

        Raises:
            cfssl_sidekick.errors.InvalidKeySize: When the configured size is not supported.
        """
        if self.config.size not in KEY_SIZES:
            raise errors.InvalidKeySize(f"Invalid private key size '{self.config.size}'. Options {KEY_SIZES}")

        self.key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=self.config.size,
            backend=default_backend()
        )
        self._private_key = self.key.private_bytes(
            encoding=Encoding.PEM,
            format=PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=NoEncryption()
        )
        return self._private_key

    def generate_csr(self) -> str:
        """
        Generates the CSR from the subject fields and domains. The first domain is used as the common name and
        every domain is listed as a subject alternative name.

        Returns:
            str: The PEM encoded CSR. This method will update the `encoded` property with the same value.

        Raises:
            cfssl_sidekick.errors.InvalidCSR: When no private key exists or the CSR could not be built.
        """
        if self.key is None:
            raise errors.InvalidCSR("A private key must be generated before the CSR.")

        try:
            subject = x509.Name([
                x509.NameAttribute(NameOID.COMMON_NAME, self.config.domains[0]),
                x509.NameAttribute(NameOID.ORGANIZATION_NAME, self.config.organization),
                x509.NameAttribute(NameOID.COUNTRY_NAME, self.config.country),
                x509.NameAttribute(NameOID.LOCALITY_NAME, self.config.locality),
                x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, self.config.province),
            ])
            self.csr = x509.CertificateSigningRequestBuilder().subject_name(subject).add_extension(
                x509.SubjectAlternativeName(subject_alt_names(self.config.domains)),
                critical=False
            ).sign(self.key, hashes.SHA256(), default_backend())
            self._encoded = self.csr.public_bytes(Encoding.PEM).decode()
        except (ValueError, TypeError, IndexError) as err:
            raise errors.InvalidCSR(f"Failed to generate the certificate request: {err}") from err

        return self._encoded

    def generate_private_key_and_csr(self) -> tuple:
        """
        Generates the private key and CSR. This is expected to run exactly once per process.

        Returns:
            tuple: The private key object, the CSR object and the PEM encoded CSR text.
        """
        self.generate_private_key()
        self.generate_csr()
        return self.key, self.csr, self.encoded

    def write_private_key(self, path: str) -> None:
        """
        Writes the private key to disk, readable by the owner only.

        Args:
            path (str): The file path to write the key to.

        Raises:
            cfssl_sidekick.errors.InvalidPath: When the key file could not be written.
        """
        try:
            write_file(path, self.private_key)
        except OSError as err:
            raise errors.InvalidPath(f"Failed to write the private key to '{path}': {err}") from err

    @property
    def private_key(self) -> bytes:
        """
        Getter for the `private_key` property.

        Raises:
            cfssl_sidekick.errors.InvalidCSR: When the key has not been generated yet.
        """
        if not self._private_key:
            raise errors.InvalidCSR("Private key must be generated before referencing 'private_key'.")

        return self._private_key

    @property
    def encoded(self) -> str:
        """
        Getter for the `encoded` property, the PEM encoded CSR submitted to the CA.

        Raises:
            cfssl_sidekick.errors.InvalidCSR: When the CSR has not been generated yet.
        """
        if not self._encoded:
            raise errors.InvalidCSR("CSR must be generated before referencing 'encoded'.")

        return self._encoded


def subject_alt_names(domains: list) -> list:
    """Converts the domains into DNS or IP subject alternative names."""
    names = []
    for domain in domains:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(domain)))
        except ValueError:
            names.append(x509.DNSName(domain))

    return names


def write_file(path: str, content) -> None:
    """
    Creates or truncates a file with owner only read/write permissions and writes the content to it.

    Args:
        path (str): The file to write.
        content (str, bytes): The data to write.

    Raises:
        TypeError: When the content is neither text nor bytes. The file is left untouched.
    """
    if not isinstance(content, (str, bytes)):
        raise TypeError(f"content must be str or bytes, not '{type(content).__name__}'")

    data = content.encode() if isinstance(content, str) else content
    fd = os.open(path, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, 0o600)
    with os.fdopen(fd, "wb") as output_file:
        output_file.write(data)

    # The mode passed to open() only applies to new files
    os.chmod(path, 0o600)
