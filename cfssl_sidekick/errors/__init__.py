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
"""Custom exception classes for cfssl_sidekick."""


class InvalidConfig(Exception):
    """Error occurs when the service configuration is incomplete or malformed"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidDomain(Exception):
    """Error occurs when no domains are configured or a domain is not a valid hostname/IP"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidKeySize(Exception):
    """Error occurs when the requested private key size is unsupported"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidCSR(Exception):
    """Error occurs when the certificate signing request cannot be built or encoded"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidPath(Exception):
    """Error occurs when the certificate directory cannot be created or written to"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SigningRequestFailed(Exception):
    """Error occurs when the signing exchange with the CA fails at the transport or decoding level"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SigningResponseError(Exception):
    """Error occurs when the CA reports an unsuccessful signing operation"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidCertificate(Exception):
    """Error occurs when a successful signing response carries no certificate"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CertificateWriteFailed(Exception):
    """Error occurs when the certificate cannot be persisted to disk"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class OperationTimeout(Exception):
    """Error occurs when no certificate was acquired within the operational timeout"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
