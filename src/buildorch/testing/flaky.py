"""Known-flaky test list from the test result server."""

from __future__ import annotations

import re
from pathlib import Path

import httpx
from pydantic import BaseModel

from buildorch.core.errors import ConfigurationError
from buildorch.core.log import logger

DEFAULT_TIMEOUT = 30.0


class FlakyTestList(BaseModel):
    """Test names allowed to be flaky in this run.

    ``attempts`` is the effective retry count handed to the tests; it
    is forced to 1 whenever the list could not be fetched.
    """

    names: tuple[str, ...] = ()
    attempts: int = 1
    fetched: bool = False

    def __bool__(self) -> bool:
        return bool(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{name}\n" for name in self.names))
        return path


def parse_test_list(body: str) -> tuple[str, ...]:
    """Newline-delimited names, blanks dropped, order kept, no repeats."""
    names = dict.fromkeys(
        line.strip() for line in body.splitlines() if line.strip()
    )
    return tuple(names)


def build_filter(names) -> str:
    """ctest -R expression matching exactly the given test names."""
    return "|".join(f"^{re.escape(name)}$" for name in names)


def list_flaky_tests(
    server: str,
    days: int = 3,
    build_pattern: str = "%kudu-test%",
    client: httpx.Client | None = None,
) -> tuple[str, ...]:
    """Ask the result server which tests failed recently.

    Raises:
        httpx.HTTPError: on transport errors or a non-2xx response
    """
    url = f"http://{server}/list_failed_tests"
    params = {"num_days": days, "build_pattern": build_pattern}
    if client is None:
        with httpx.Client(timeout=DEFAULT_TIMEOUT) as own_client:
            response = own_client.get(url, params=params)
    else:
        response = client.get(url, params=params)
    response.raise_for_status()
    return parse_test_list(response.text)


def maybe_fetch_flaky_list(
    attempts: int,
    server: str | None,
    client: httpx.Client | None = None,
    days: int = 3,
    build_pattern: str = "%kudu-test%",
) -> FlakyTestList:
    """Fetch the flaky list only when retries were asked for.

    attempts <= 1 never touches the network. A failed fetch disables
    flaky-test resistance for this run instead of failing it.

    Raises:
        ConfigurationError: attempts > 1 but no server configured
    """
    if attempts <= 1:
        return FlakyTestList()

    if not server:
        raise ConfigurationError(
            f"Flaky test attempts set to {attempts} but no test result "
            f"server is configured"
        )

    logger.info("Fetching flaky test list...", server=server)
    try:
        names = list_flaky_tests(server, days, build_pattern, client)
    except httpx.HTTPError as e:
        logger.warn(
            "Unable to fetch flaky test list. "
            "Disabling flaky test resistance.",
            server=server,
            error=str(e),
        )
        return FlakyTestList()

    logger.info(
        f"Will retry flaky tests up to {attempts} times",
        tests=list(names),
    )
    return FlakyTestList(names=names, attempts=attempts, fetched=True)
