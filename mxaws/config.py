"""
Credential configuration sourced from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .events import FALLBACK_CREDENTIALS, Observer, resolve

logger = logging.getLogger(__name__)

# Earlier names win when both are set.
ACCESS_KEY_VARS = ("awsAccessKeyId", "AWS_ACCESS_KEY_ID")
SECRET_KEY_VARS = ("awsSecretAccessKey", "AWS_SECRET_ACCESS_KEY")
REGION_VARS = ("awsRegion", "AWS_REGION")

MODE_VAR = "MXAWS_CREDENTIAL_MODE"


class CredentialMode(Enum):
    """How to react when explicit credentials are missing."""
    STRICT = "strict"           # refuse to start
    PERMISSIVE = "permissive"   # warn and let boto3 find ambient credentials


@dataclass(frozen=True)
class AWSConfig:
    """Resolved AWS settings used to build the provider clients."""
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None

    @property
    def uses_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key and self.region)

    def session_kwargs(self) -> Dict[str, str]:
        """Keyword arguments for ``boto3.session.Session``."""
        kwargs: Dict[str, str] = {}
        if self.uses_explicit_credentials:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        if self.region:
            kwargs["region_name"] = self.region
        return kwargs

    def __repr__(self) -> str:
        secret = "***" if self.secret_access_key else None
        return (
            f"AWSConfig(access_key_id={self.access_key_id!r}, "
            f"secret_access_key={secret!r}, region={self.region!r})"
        )


def _first_set(environ: Mapping[str, str], names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def parse_mode(value: Optional[str]) -> CredentialMode:
    """
    Parse a credential mode name.

    Args:
        value: "strict", "permissive", or None for the default

    Returns:
        The matching CredentialMode

    Raises:
        ConfigurationError: If the name is not recognised
    """
    if not value:
        return CredentialMode.PERMISSIVE
    try:
        return CredentialMode(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid {MODE_VAR} value: {value!r}. Expected 'strict' or 'permissive'"
        ) from None


def load_config(
    mode: Optional[CredentialMode] = None,
    environ: Optional[Mapping[str, str]] = None,
    observer: Optional[Observer] = None,
) -> AWSConfig:
    """
    Resolve AWS credentials from the environment.

    Explicit credentials are used only when the access key, secret key and
    region all resolve. Otherwise strict mode fails and permissive mode
    reports the fallback and leaves credential discovery to boto3.

    Args:
        mode: Credential mode; read from MXAWS_CREDENTIAL_MODE when omitted
        environ: Environment mapping (defaults to os.environ)
        observer: Receives FALLBACK_CREDENTIALS when falling back

    Returns:
        AWSConfig with whatever values were found

    Raises:
        ConfigurationError: In strict mode when any value is missing
    """
    env = os.environ if environ is None else environ
    if mode is None:
        mode = parse_mode(env.get(MODE_VAR))

    config = AWSConfig(
        access_key_id=_first_set(env, ACCESS_KEY_VARS),
        secret_access_key=_first_set(env, SECRET_KEY_VARS),
        region=_first_set(env, REGION_VARS),
    )

    if config.uses_explicit_credentials:
        return config

    missing = [
        names[0]
        for names, value in (
            (ACCESS_KEY_VARS, config.access_key_id),
            (SECRET_KEY_VARS, config.secret_access_key),
            (REGION_VARS, config.region),
        )
        if not value
    ]

    if mode is CredentialMode.STRICT:
        raise ConfigurationError(
            "AWS credential environment variables are missing or malformed: "
            + ", ".join(missing)
        )

    logger.warning(
        f"AWS credential env variables not detected ({', '.join(missing)}); "
        "falling back to IAM roles/other automatic credentials"
    )
    resolve(observer)(FALLBACK_CREDENTIALS, {"missing": missing})
    return config
