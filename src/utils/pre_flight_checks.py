from typing import Callable, Dict, Optional

from src.migrators.endpoints import uniform_headers
from src.utils.errors import EndpointUnreachable


class PreFlightCheckError(Exception):
    """Custom exception for pre-flight check failures."""
    pass


def run_uniform_pre_flight_checks(config, api, log: Optional[Callable[[str, str], None]] = None) -> Dict[str, str]:
    """
    Verifies that the Uniform project is reachable before a run.

    Args:
        config: The :class:`~src.config.ReconcilerConfig` in use.
        api: A :class:`~src.migrators.uniform_api.UniformApi` client.

    Returns:
        A dict with the working entries URL and the number of records found.

    Raises:
        ConfigurationError: If credentials are missing.
        PreFlightCheckError: If entries cannot be listed.
    """
    log = log or (lambda message, level="INFO": print(f"[{level}] {message}"))
    log("Running pre-flight checks...", "INFO")

    config.require_credentials()
    log(f"API Host: {config.uniform.api_host}", "INFO")
    log(f"Project ID: {config.uniform.project_id[:8]}...", "INFO")

    try:
        url = api.resolver.resolve("list_entries", api.candidates("entries"), headers=uniform_headers(config.uniform.api_key))
    except EndpointUnreachable as e:
        if e.last_status == 401:
            raise PreFlightCheckError("The Uniform API key is invalid or lacks read permissions.") from e
        raise PreFlightCheckError(
            f"Could not connect to the Uniform API with any endpoint pattern. "
            f"Check UNIFORM_PROJECT_ID and the UNIFORM_API_BASE format. ({e})"
        ) from e
    log(f"Working endpoint: {url}", "INFO")

    try:
        records = api.list_entries(config.matching.content_type)
    except EndpointUnreachable as e:
        raise PreFlightCheckError(f"Entries endpoint answered once but failed on the listing call: {e}") from e
    log(f"Found {len(records)} {config.matching.content_type} entries", "INFO")
    for record in records[:5]:
        log(f"   - {record.display_name} ({record.id[:8]}...)", "INFO")

    log("Pre-flight checks passed successfully.", "INFO")
    return {"entries_url": url, "records": str(len(records))}
