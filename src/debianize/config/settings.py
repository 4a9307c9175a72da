"""Process-level settings read from the environment."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from debianize.domain.policy import Maintainer, parse_maintainer

from .env import env_argument_list, optional_env_var
from .errors import ConfigurationError

POLICY_FILE_ENV: Final[str] = "DEBIANIZE_POLICY_FILE"
EXTRA_ARGUMENTS_ENV: Final[str] = "CABALDEBIAN"
EMAIL_ENV: Final[str] = "DEBEMAIL"
FULLNAME_ENV: Final[str] = "DEBFULLNAME"


@dataclass(frozen=True, slots=True)
class DebianizeSettings:
    """Holds environment-provided settings."""

    policy_file: Path | None = None
    extra_arguments: tuple[str, ...] = ()
    maintainer: Maintainer | None = None


def get_settings() -> DebianizeSettings:
    policy_file = optional_env_var(POLICY_FILE_ENV)
    return DebianizeSettings(
        policy_file=Path(policy_file).expanduser() if policy_file else None,
        extra_arguments=tuple(env_argument_list(EXTRA_ARGUMENTS_ENV)),
        maintainer=maintainer_from_env(),
    )


def maintainer_from_env() -> Maintainer | None:
    """Maintainer from ``DEBFULLNAME``/``DEBEMAIL``, as debchange reads them.

    ``DEBEMAIL`` may itself hold ``Name <address>``; an explicit
    ``DEBFULLNAME`` replaces that name.
    """

    email = optional_env_var(EMAIL_ENV)
    if email is None:
        return None
    fullname = optional_env_var(FULLNAME_ENV)
    if "<" in email:
        try:
            parsed = parse_maintainer(email)
        except ValueError as exc:
            raise ConfigurationError(f"{EMAIL_ENV} is not a valid address: {email!r}") from exc
        return Maintainer(name=fullname or parsed.name, email=parsed.email)
    if fullname is None:
        raise ConfigurationError(f"{EMAIL_ENV} is set but {FULLNAME_ENV} is missing")
    return Maintainer(name=fullname, email=email)
