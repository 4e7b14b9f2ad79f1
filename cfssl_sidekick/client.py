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
"""Client for the cfssl signing API."""
import os
from dataclasses import dataclass, field

import requests

from . import errors
from .config import Config


# Constants and Variables
SIGN_PATH = "/api/v1/cfssl/sign"
AUTHSIGN_PATH = "/api/v1/cfssl/authsign"
USER_AGENT = "cfssl_sidekick/1.0.0"


@dataclass
class SigningRequest:
    """A request for the CA to sign the CSR."""
    certificate_request: str
    profile: str = ""
    bundle: bool = True

    def to_json(self) -> dict:
        return {"certificate_request": self.certificate_request, "profile": self.profile, "bundle": self.bundle}


@dataclass
class AuthSigningRequest:
    """A signing request wrapped with the bearer token for the authenticated endpoint."""
    token: str
    request: SigningRequest

    def to_json(self) -> dict:
        return {"token": self.token, "request": self.request.to_json()}


@dataclass
class ResponseMessage:
    """A single error entry reported by the CA."""
    code: int = 0
    message: str = ""


@dataclass
class SigningResponse:
    """The decoded response of a signing request."""
    success: bool = False
    certificate: str = ""
    bundle: str = ""
    errors: list = field(default_factory=list)

    @staticmethod
    def from_json(data: dict) -> 'SigningResponse':
        """
        Builds a SigningResponse from the decoded JSON body.

        Args:
            data (dict): The decoded JSON response body.

        Returns:
            cfssl_sidekick.client.SigningResponse: The parsed response.

        Raises:
            cfssl_sidekick.errors.SigningRequestFailed: When the body is not shaped like a signing response.
        """
        if not isinstance(data, dict):
            raise errors.SigningRequestFailed("The signing response is not a JSON object.")

        try:
            result = data.get("result") or {}
            bundle = result.get("bundle") or {}
            items = data.get("errors") or []
            if not isinstance(items, list):
                raise TypeError("'errors' must be a list")

            messages = [
                ResponseMessage(code=item.get("code", 0), message=item.get("message") or "")
                for item in items
            ]
            response = SigningResponse(
                success=data.get("success") is True,
                certificate=result.get("certificate") or "",
                bundle=(bundle.get("bundle") or "") if isinstance(bundle, dict) else "",
                errors=messages
            )
        except (AttributeError, TypeError) as err:
            raise errors.SigningRequestFailed(f"Malformed signing response: {err}") from err

        # Anything written to disk or surfaced in a log must be text
        values = [response.certificate, response.bundle] + [item.message for item in messages]
        if not all(isinstance(value, str) for value in values):
            raise errors.SigningRequestFailed("Malformed signing response: expected string certificate values")

        return response


class SigningClient:
    """Performs the signing exchange with a cfssl CA. Retrying is left to the caller."""

    def __init__(self, config: Config, session: requests.Session = None) -> None:
        """
        Args:
            config (cfssl_sidekick.config.Config): The service configuration.
            session (requests.Session): A pre-configured HTTP client. One is created from `config` if not given.
        """
        self.config = config
        self.session = session if session is not None else create_http_client(config)

    def sign(self, encoded: str, profile: str) -> SigningResponse:
        """
        Requests the CA sign the encoded CSR. The authenticated endpoint is used when a token is configured.

        Args:
            encoded (str): The PEM encoded CSR.
            profile (str): The cfssl signing profile name.

        Returns:
            cfssl_sidekick.client.SigningResponse: The decoded signing response.

        Raises:
            cfssl_sidekick.errors.SigningRequestFailed: On any transport or decoding failure.
        """
        request = SigningRequest(certificate_request=encoded, profile=profile, bundle=True)

        if self.config.endpoint_token:
            url = self.config.endpoint_url.rstrip("/") + AUTHSIGN_PATH
            body = AuthSigningRequest(token=self.config.endpoint_token, request=request).to_json()
        else:
            url = self.config.endpoint_url.rstrip("/") + SIGN_PATH
            body = request.to_json()

        try:
            response = self.session.post(
                url,
                json=body,
                headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                timeout=self.config.timeout
            )
            data = response.json()
        except requests.exceptions.RequestException as err:
            raise errors.SigningRequestFailed(f"Signing request to '{url}' failed: {err}") from err
        except ValueError as err:
            raise errors.SigningRequestFailed(f"Unable to decode the signing response from '{url}': {err}") from err

        return SigningResponse.from_json(data)


def create_http_client(config: Config) -> requests.Session:
    """
    Creates the HTTP client used to talk to the CA, trusting the custom CA file when one is configured.

    Args:
        config (cfssl_sidekick.config.Config): The service configuration.

    Returns:
        requests.Session: The configured session.

    Raises:
        cfssl_sidekick.errors.InvalidConfig: When the custom CA file does not exist.
    """
    session = requests.Session()
    if config.tls_ca_path:
        if not os.path.isfile(config.tls_ca_path):
            raise errors.InvalidConfig(f"No CA certificate found at '{config.tls_ca_path}'")
        session.verify = config.tls_ca_path

    return session
