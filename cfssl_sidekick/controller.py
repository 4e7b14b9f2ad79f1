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
"""The certificate rotation loop and the operational timeout watchdog."""
import os
import threading
import time

from . import errors
from .client import SigningClient
from .config import Config
from .csr import CertificateRequest, write_file
from .handler import ResponseHandler
from .logs import setup_logger


# Constants and Variables
RETRY_INTERVAL = 5
TRANSIENT_ERRORS = (
    errors.SigningRequestFailed,
    errors.SigningResponseError,
    errors.InvalidCertificate,
    errors.CertificateWriteFailed,
)


def hard_exit(status: int) -> None:
    """Terminates the whole process immediately, regardless of which thread calls it."""
    os._exit(status)  # pylint: disable=protected-access


class Watchdog:
    """
    Races a one-time success signal against the operational timeout. If the timeout elapses first the exit
    function is called with a non-zero status. Signalling success after the timeout has fired is a no-op.
    """

    def __init__(self, timeout: float, logger, exit_func=hard_exit) -> None:
        self.timeout = timeout
        self.logger = logger
        self.exit_func = exit_func
        self.expired = False
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._watch, name="watchdog", daemon=True)

    def start(self) -> 'Watchdog':
        self._thread.start()
        return self

    def done(self) -> None:
        """Signals the first acquisition succeeded. Safe to call any number of times."""
        self._done.set()

    def join(self, timeout: float = None) -> None:
        self._thread.join(timeout)

    def _watch(self) -> None:
        if self._done.wait(self.timeout):
            return

        self.expired = True
        err = errors.OperationTimeout(f"failed to acquire a certificate within {self.timeout}s, exiting")
        self.logger.error(err.message, extra={"timeout": self.timeout})
        for handler in self.logger.handlers:
            handler.flush()
        self.exit_func(1)


class Controller:
    """
    Acquires a certificate from the CA and rotates it every `expiry` seconds.
    """

    def __init__(
            self,
            config: Config,
            logger=None,
            session=None,
            sleep=time.sleep,
            exit_func=hard_exit
    ) -> None:
        """
        Args:
            config (cfssl_sidekick.config.Config): The validated service configuration.
            logger (logging.Logger): The logger to use. One is configured from `config.verbose` if not given.
            session (requests.Session): The HTTP client for the CA. One is created from `config` if not given.
            sleep (callable): The function used for the retry and rotation sleeps.
            exit_func (callable): Called with status 1 when the operational timeout is exceeded.

        Raises:
            cfssl_sidekick.errors.InvalidConfig: When the configuration is invalid.
            cfssl_sidekick.errors.InvalidDomain: When no valid domains are configured.
            cfssl_sidekick.errors.InvalidKeySize: When the key size is unsupported.
        """
        config.validate()
        self.config = config
        self.logger = logger if logger is not None else setup_logger(config.verbose)
        self.client = SigningClient(config, session=session)
        self.handler = ResponseHandler(config, self.logger)
        self.request = CertificateRequest(config)
        self.sleep = sleep
        self.exit_func = exit_func
        self.watchdog = None

    def prepare(self) -> str:
        """
        Ensures the certificate directory exists, generates the private key and CSR and writes the key (and the
        custom CA when configured) to disk. This runs once before the rotation loop.

        Returns:
            str: The PEM encoded CSR.

        Raises:
            cfssl_sidekick.errors.InvalidPath: When the certificate directory or key cannot be written.
            cfssl_sidekick.errors.InvalidCSR: When the CSR could not be generated.
        """
        try:
            os.makedirs(self.config.certs_dir, mode=0o770, exist_ok=True)
        except OSError as err:
            raise errors.InvalidPath(f"failed to ensure certificate directory: {err}") from err

        if not os.access(self.config.certs_dir, os.W_OK):
            raise errors.InvalidPath(f"certificate directory '{self.config.certs_dir}' is not writable")

        self.request.generate_private_key_and_csr()
        self.request.write_private_key(self.config.private_key_file())

        if self.config.tls_ca_path:
            self.copy_ca()

        return self.request.encoded

    def copy_ca(self) -> None:
        """Copies the custom CA into the certificate directory so the CA path given to the command exists."""
        try:
            if os.path.abspath(self.config.tls_ca_path) != os.path.abspath(self.config.ca_file()):
                with open(self.config.tls_ca_path, "rb") as ca_file:
                    write_file(self.config.ca_file(), ca_file.read())
        except OSError as err:
            raise errors.InvalidPath(f"failed to copy the ca to '{self.config.ca_file()}': {err}") from err

    def acquire(self, encoded: str) -> None:
        """
        Requests a signed certificate and hands the response to the handler, retrying every `RETRY_INTERVAL`
        seconds until it succeeds.

        Args:
            encoded (str): The PEM encoded CSR.
        """
        while True:
            self.logger.info("attempting to acquire certificate from ca", extra={
                "domains": ",".join(self.config.domains),
                "endpoint": self.config.endpoint_url,
                "expiry": self.config.expiry,
                "profile": self.config.endpoint_profile,
            })

            try:
                response = self.client.sign(encoded, self.config.endpoint_profile)
            except TRANSIENT_ERRORS as err:
                self.logger.error("failed to retrieve certificate signing", extra={"error": str(err)})
                self.sleep(RETRY_INTERVAL)
                continue

            try:
                self.handler.handle(response)
            except TRANSIENT_ERRORS as err:
                self.logger.error("failed to process certificate response", extra={"error": str(err)})
                self.sleep(RETRY_INTERVAL)
                continue

            return

    def run(self) -> int:
        """
        Runs the service. In onetime mode this returns 0 after the first certificate is written, otherwise it
        rotates the certificate forever.

        Returns:
            int: The exit status of the service.

        Raises:
            cfssl_sidekick.errors.InvalidPath: When the certificate directory or key cannot be written.
            cfssl_sidekick.errors.InvalidCSR: When the CSR could not be generated.
        """
        encoded = self.prepare()

        # The watchdog only guards the first acquisition after start-up
        self.watchdog = Watchdog(self.config.timeout, self.logger, exit_func=self.exit_func).start()

        while True:
            self.acquire(encoded)
            self.logger.info("successfully wrote the tls certificates", extra={
                "certificate": self.config.certificate_file(),
                "private_key": self.config.private_key_file(),
            })
            self.watchdog.done()

            if self.config.onetime:
                self.logger.info("onetime mode enabled, exiting the service")
                return 0

            self.logger.info("going to sleep until next certificate rotation", extra={"duration": self.config.expiry})
            self.sleep(self.config.expiry)
