"""Bearer token lookup from the process environment."""

from __future__ import annotations

import os
from typing import Mapping

from waterpoints.common.errors import ConfigError

DEFAULT_TOKEN_ENV_VAR = "BEARER_TOKEN"


def get_token(env_var: str = DEFAULT_TOKEN_ENV_VAR, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    token = (env.get(env_var) or "").strip()
    if not token:
        raise ConfigError(f"The {env_var} environment variable must be set in order to run a harvest")
    return token
