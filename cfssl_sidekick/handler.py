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
"""Validates signing responses, persists the certificate and runs the reload command."""
import logging
import subprocess
import threading

from . import errors
from .client import SigningResponse
from .config import Config
from .csr import write_file


class ResponseHandler:
    """Handles a signing response from the CA."""

    def __init__(self, config: Config, logger: logging.Logger) -> None:
        self.config = config
        self.logger = logger

    def handle(self, response: SigningResponse) -> None:
        """
        Validates the response, writes the certificate (or the bundle when present) to disk and calls the
        external command if one is configured.

        Args:
            response (cfssl_sidekick.client.SigningResponse): The decoded signing response.

        Raises:
            cfssl_sidekick.errors.SigningResponseError: When the CA reports the operation as unsuccessful.
            cfssl_sidekick.errors.InvalidCertificate: When a successful response carries no certificate.
            cfssl_sidekick.errors.CertificateWriteFailed: When the certificate could not be written.
        """
        if not response.success:
            message = response.errors[0].message if response.errors else "unknown error"
            raise errors.SigningResponseError(f"unsuccessful operation, errors: {message}")

        if not response.certificate:
            raise errors.InvalidCertificate("no certificate found in the response")

        path = self.config.certificate_file()
        self.logger.info("writing the certificate to disk", extra={"path": path})

        try:
            write_file(path, response.bundle or response.certificate)
        except (OSError, TypeError) as err:
            raise errors.CertificateWriteFailed(f"failed to write certificate to '{path}': {err}") from err

        if self.config.exec_command:
            self.run_command()

    def run_command(self) -> bool:
        """
        Runs the external command with the certificate, private key and CA paths as arguments. The command is
        killed if it has not exited within the operation timeout. Failures are logged and never raised.

        Returns:
            bool: True if the command exited successfully.
        """
        command = self.config.exec_command
        self.logger.info("calling external command", extra={"command": command, "timeout": self.config.timeout})

        try:
            process = subprocess.Popen(
                [command, self.config.certificate_file(), self.config.private_key_file(), self.config.ca_file()]
            )
        except OSError as err:
            self.logger.error("error calling external command", extra={"command": command, "error": str(err)})
            return False

        timed_out = threading.Event()

        def kill():
            timed_out.set()
            process.kill()
            self.logger.error("external command took too long, operation timed out", extra={"command": command})

        timer = threading.Timer(self.config.timeout, kill)
        timer.daemon = True
        timer.start()
        try:
            returncode = process.wait()
        finally:
            timer.cancel()

        # A kill racing with a normal exit still leaves the timer callback to finish its log line
        if timed_out.is_set():
            timer.join()
            return False

        if returncode != 0:
            self.logger.error(
                "error calling external command",
                extra={"command": command, "error": f"exit status {returncode}"}
            )
            return False

        return True
