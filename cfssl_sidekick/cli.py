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
"""Command line entry point for the cfssl_sidekick service."""
import argparse
import os
import sys

from . import __version__
from . import errors
from .config import Config, DEFAULT_ENDPOINT_URL, expand_domains, parse_duration
from .controller import Controller


# Constants and Variables
STARTUP_ERRORS = (
    errors.InvalidConfig,
    errors.InvalidDomain,
    errors.InvalidKeySize,
    errors.InvalidCSR,
    errors.InvalidPath,
)


def env_bool(name: str) -> bool:
    """Reads a boolean flag from the environment."""
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def env_list(name: str) -> list:
    """Reads a comma separated list from the environment."""
    return [item.strip() for item in os.environ.get(name, "").split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser. Each flag falls back to an environment variable of the same name."""
    env = os.environ.get
    parser = argparse.ArgumentParser(
        prog="cfssl-sidekick",
        description="is a small utility service used to acquire certificates from cfssl"
    )
    parser.add_argument("--token", default=env("TOKEN", ""), help="a authentication token for cfssl")
    parser.add_argument("--url", default=env("URL", DEFAULT_ENDPOINT_URL), help="a cfssl endpoint url for the service")
    parser.add_argument("--profile", default=env("PROFILE", ""), help="a cfssl profile to use when signing")
    parser.add_argument("--tls-ca", default=env("TLS_CA", ""), help="the path to a file containing the CA certificate")
    parser.add_argument("--domain", action="append", default=None, help="a domain you are requesting, can be repeated")
    parser.add_argument("--size", type=int, default=env("SIZE", "2048"), help="the size of the private key")
    parser.add_argument(
        "--expiry", default=env("EXPIRY", "2160h"), help="the duration between we rotate the certificate"
    )
    parser.add_argument("--certs", default=env("CERTS", "/certs"), help="the certificates directory")
    parser.add_argument(
        "--command", default=env("COMMAND", ""), help="an executable to run when a new certificate is acquired"
    )
    parser.add_argument("--organization", default=env("ORGANIZATION", "ACP Homeoffice"), help="the organization name")
    parser.add_argument("--country", default=env("COUNTRY", "GB"), help="the country name")
    parser.add_argument("--locality", default=env("LOCALITY", "London"), help="the locality name")
    parser.add_argument("--province", default=env("PROVINCE", "London"), help="the province name")
    parser.add_argument(
        "--onetime", action="store_true", default=env_bool("ONETIME"), help="run once and exit"
    )
    parser.add_argument("--tls-ca-name", default=env("TLS_CA_NAME", "tls-ca.pem"), help="the filename of the ca file")
    parser.add_argument(
        "--tls-cert-name", default=env("TLS_CERT_NAME", "tls.pem"), help="the filename of the certificate generated"
    )
    parser.add_argument(
        "--tls-key-name", default=env("TLS_KEY_NAME", "tls-key.pem"), help="the filename of the private key file"
    )
    parser.add_argument(
        "--timeout", default=env("TIMEOUT", "1m"),
        help="a timeout for operation, if we've not received a certificate in this time, exit"
    )
    parser.add_argument(
        "--verbose", action="store_true", default=env_bool("VERBOSE"), help="whether to enable verbose logging"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    """
    Converts the parsed arguments into the service configuration.

    Raises:
        cfssl_sidekick.errors.InvalidConfig: When a duration is malformed.
    """
    domains = args.domain if args.domain else env_list("DOMAIN")

    return Config(
        domains=expand_domains(domains),
        endpoint_url=args.url,
        endpoint_token=args.token,
        endpoint_profile=args.profile,
        tls_ca_path=args.tls_ca,
        size=args.size,
        organization=args.organization,
        country=args.country,
        locality=args.locality,
        province=args.province,
        certs_dir=args.certs,
        tls_ca_filename=args.tls_ca_name,
        tls_certificate_filename=args.tls_cert_name,
        tls_private_key_filename=args.tls_key_name,
        expiry=parse_duration(args.expiry),
        timeout=parse_duration(args.timeout),
        exec_command=args.command,
        onetime=args.onetime,
        verbose=args.verbose,
    )


def main(argv: list = None) -> int:
    """Runs the service, returning the exit status."""
    args = build_parser().parse_args(argv)

    try:
        controller = Controller(config_from_args(args))
    except STARTUP_ERRORS as err:
        print(f"[error] failed to initialize controller, error: {err.message}", file=sys.stderr)
        return 1

    try:
        return controller.run()
    except STARTUP_ERRORS as err:
        print(f"[error] failed to start controller, error: {err.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
