# Copyright 2025 Jared Hendrickson
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
"""Tests private key and CSR generation of the cfssl_sidekick package."""
import ipaddress
import os
import tempfile
import unittest

from cryptography import x509
from cryptography.x509.oid import NameOID

import cfssl_sidekick
from cfssl_sidekick.csr import CertificateRequest, write_file
from cfssl_sidekick.tests import TEST_DOMAINS
from cfssl_sidekick.tests.tools import file_mode, is_csr, is_private_key, make_config


class TestCertificateRequest(unittest.TestCase):
    """Tests the CertificateRequest object."""

    # Shared attributes
    request = None

    @classmethod
    def setUpClass(cls):
        """Generates a shared key and CSR for each test to inspect."""
        cls.request = CertificateRequest(make_config("/tmp/certs"))
        cls.request.generate_private_key_and_csr()

    def test_private_key(self):
        """Checks an RSA key of the configured size is generated."""
        self.assertTrue(is_private_key(self.request.private_key))
        self.assertEqual(self.request.key.key_size, 2048)

    def test_csr_subject(self):
        """Checks the CSR subject carries the configured fields and the first domain as common name."""
        self.assertTrue(is_csr(self.request.encoded))
        csr = x509.load_pem_x509_csr(self.request.encoded.encode())
        subject = csr.subject

        self.assertTrue(csr.is_signature_valid)
        self.assertEqual(subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value, TEST_DOMAINS[0])
        self.assertEqual(subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value, "ACP Homeoffice")
        self.assertEqual(subject.get_attributes_for_oid(NameOID.COUNTRY_NAME)[0].value, "GB")
        self.assertEqual(subject.get_attributes_for_oid(NameOID.LOCALITY_NAME)[0].value, "London")
        self.assertEqual(subject.get_attributes_for_oid(NameOID.STATE_OR_PROVINCE_NAME)[0].value, "London")

    def test_csr_subject_alt_names(self):
        """Checks every domain is listed as a SAN, IP addresses as IP SANs."""
        csr = x509.load_pem_x509_csr(self.request.encoded.encode())
        sans = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value

        self.assertEqual(sans.get_values_for_type(x509.DNSName), TEST_DOMAINS[:2])
        self.assertEqual(sans.get_values_for_type(x509.IPAddress), [ipaddress.ip_address(TEST_DOMAINS[2])])

    def test_csr_matches_key(self):
        """Checks the CSR is for the generated key."""
        csr = x509.load_pem_x509_csr(self.request.encoded.encode())
        self.assertEqual(csr.public_key().public_numbers(), self.request.key.public_key().public_numbers())

    def test_encoded_is_stable(self):
        """Checks the encoded CSR does not change between reads."""
        self.assertEqual(self.request.encoded, self.request.encoded)

    def test_write_private_key(self):
        """Checks the private key is written readable by the owner only."""
        with tempfile.TemporaryDirectory() as certs_dir:
            path = os.path.join(certs_dir, "tls-key.pem")
            self.request.write_private_key(path)

            self.assertEqual(file_mode(path), 0o600)
            with open(path, "rb") as key_file:
                self.assertEqual(key_file.read(), self.request.private_key)

    def test_write_private_key_invalid_path(self):
        """Checks a key that cannot be written raises an error."""
        with self.assertRaises(cfssl_sidekick.errors.InvalidPath):
            self.request.write_private_key("/INVALID_PATH/tls-key.pem")


class TestCertificateRequestErrors(unittest.TestCase):
    """Checks errors are raised when the request cannot be built."""

    def test_values_before_generation(self):
        """Checks the key and CSR cannot be referenced before they are generated."""
        request = CertificateRequest(make_config("/tmp/certs"))

        with self.assertRaises(cfssl_sidekick.errors.InvalidCSR):
            return request.private_key
        with self.assertRaises(cfssl_sidekick.errors.InvalidCSR):
            return request.encoded

    def test_csr_requires_key(self):
        """Checks the CSR cannot be generated without a key."""
        with self.assertRaises(cfssl_sidekick.errors.InvalidCSR):
            CertificateRequest(make_config("/tmp/certs")).generate_csr()

    def test_invalid_key_size(self):
        """Checks unsupported key sizes are rejected."""
        with self.assertRaises(cfssl_sidekick.errors.InvalidKeySize):
            CertificateRequest(make_config("/tmp/certs", size=1024)).generate_private_key()

    def test_invalid_subject(self):
        """Checks an unusable subject is reported as a CSR error."""
        request = CertificateRequest(make_config("/tmp/certs", country="GBR"))
        request.generate_private_key()

        with self.assertRaises(cfssl_sidekick.errors.InvalidCSR):
            request.generate_csr()


class TestWriteFile(unittest.TestCase):
    """Tests the owner only file writer."""

    def test_truncates_existing_file(self):
        """Checks existing files are truncated and their mode restricted."""
        with tempfile.TemporaryDirectory() as certs_dir:
            path = os.path.join(certs_dir, "tls.pem")
            with open(path, "w", encoding="utf-8") as existing:
                existing.write("a much longer previous certificate")
            os.chmod(path, 0o644)

            write_file(path, "new")

            self.assertEqual(file_mode(path), 0o600)
            with open(path, "r", encoding="utf-8") as written:
                self.assertEqual(written.read(), "new")

    def test_rejects_non_text_content(self):
        """Checks content which is neither text nor bytes is rejected before the existing file is truncated."""
        with tempfile.TemporaryDirectory() as certs_dir:
            path = os.path.join(certs_dir, "tls.pem")
            with open(path, "w", encoding="utf-8") as existing:
                existing.write("previous certificate")

            for content in (123, None, ["cert"]):
                with self.assertRaises(TypeError):
                    write_file(path, content)

            with open(path, "r", encoding="utf-8") as written:
                self.assertEqual(written.read(), "previous certificate")

            with self.assertRaises(TypeError):
                write_file(os.path.join(certs_dir, "new.pem"), 123)
            self.assertFalse(os.path.exists(os.path.join(certs_dir, "new.pem")))


if __name__ == "__main__":
    unittest.main()
