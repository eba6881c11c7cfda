"""
Wayback Machine Timemap API Python Client

A Python wrapper for the Wayback Machine timemap endpoint.
Provides a small, Pythonic interface for listing the captures archived
under a URL prefix.

Example usage:
    from linkharvest.timemap import TimemapClient, MatchType

    with TimemapClient() as client:
        results = client.search(
            url="tio.run",
            match_type=MatchType.PREFIX,
            collapse=["digest"],
            limit=100,
        )
        for record in results:
            print(record.timestamp, record.original)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Iterator, Union, Dict, Any
from urllib.parse import urlencode
import json
import logging

import requests

from .. import __version__

logger = logging.getLogger("linkharvest.timemap")

DEFAULT_BASE_URL = "https://web.archive.org/web/timemap/"
DEFAULT_TIMEOUT = 30
DEFAULT_LIMIT = 10000
DEFAULT_USER_AGENT = f"linkharvest/{__version__}"

# Position of the `original` column in a timemap row
ORIGINAL_INDEX = 2


class MatchType(Enum):
    """URL matching modes for timemap queries."""
    EXACT = "exact"
    PREFIX = "prefix"
    HOST = "host"
    DOMAIN = "domain"


class OutputFormat(Enum):
    """Output format for timemap results."""
    TEXT = "text"
    JSON = "json"


@dataclass
class TimemapRecord:
    """A single timemap row (capture), mapped by column position."""
    urlkey: str = ""
    timestamp: str = ""
    original: str = ""
    mimetype: str = ""
    statuscode: str = ""
    digest: str = ""
    # Columns past the fixed ones, in server order
    extra: List[Any] = field(default_factory=list)

    POSITIONAL_FIELDS = ("urlkey", "timestamp", "original", "mimetype", "statuscode", "digest")

    @classmethod
    def from_row(cls, row: List[Any]) -> "TimemapRecord":
        """Create a record from a JSON row. Values are kept as the server sent them."""
        record = cls()
        for name, value in zip(cls.POSITIONAL_FIELDS, row):
            setattr(record, name, value)
        record.extra = list(row[len(cls.POSITIONAL_FIELDS):])
        return record

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        result: Dict[str, Any] = {name: getattr(self, name) for name in self.POSITIONAL_FIELDS}
        if self.extra:
            result["extra"] = list(self.extra)
        return result


@dataclass
class TimemapResponse:
    """Response from a timemap query."""
    records: List[TimemapRecord]
    field_names: List[str]
    resume_key: Optional[str] = None
    skipped: int = 0

    def __iter__(self) -> Iterator[TimemapRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> TimemapRecord:
        return self.records[index]

    def originals(self) -> List[str]:
        """The `original` URL of every record, in server order."""
        return [r.original for r in self.records]


class TimemapError(Exception):
    """Exception raised for timemap API errors."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TimemapQuery:
    """Builder class for constructing timemap queries."""

    def __init__(self, url: str):
        self.params: Dict[str, Any] = {"url": url}

    def collapse(self, *fields: str) -> "TimemapQuery":
        """Add collapse/deduplication fields. Format: field or field:N"""
        self.params["collapse"] = list(fields)
        return self

    def match_type(self, match_type: Union[MatchType, str]) -> "TimemapQuery":
        """Set URL matching mode."""
        if isinstance(match_type, MatchType):
            self.params["matchType"] = match_type.value
        else:
            self.params["matchType"] = match_type
        return self

    def output_json(self) -> "TimemapQuery":
        """Set output format to JSON."""
        self.params["output"] = "json"
        return self

    def limit(self, n: int) -> "TimemapQuery":
        """Limit number of results."""
        self.params["limit"] = n
        return self

    def build_params(self) -> Dict[str, Any]:
        """Build the final query parameters dictionary."""
        return self.params.copy()


class TimemapClient:
    """
    Client for querying the Wayback Machine timemap endpoint.

    Example:
        client = TimemapClient()

        # Everything archived under a prefix, one capture per distinct body
        for url in client.original_urls("ato.pxeger.com/run"):
            print(url)

        # Using the query builder
        query = client.query("tio.run").match_type(MatchType.PREFIX).limit(10)
        results = client.execute(query)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize timemap client.

        Args:
            base_url: Timemap endpoint URL
            timeout: Request timeout in seconds
            session: Optional requests Session (a new one is created otherwise)
            user_agent: User-Agent header sent with every request
        """
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def query(self, url: str) -> TimemapQuery:
        """
        Create a new query builder for the given URL.

        Args:
            url: The URL (or URL prefix) to query

        Returns:
            TimemapQuery builder instance
        """
        return TimemapQuery(url)

    def execute(self, query: TimemapQuery, output: OutputFormat = OutputFormat.JSON) -> TimemapResponse:
        """
        Execute a timemap query.

        Args:
            query: TimemapQuery instance
            output: Output format (only JSON is parsed)

        Returns:
            TimemapResponse containing the results
        """
        params = query.build_params()
        if output == OutputFormat.JSON and "output" not in params:
            params["output"] = "json"
        return self._execute_request(params)

    def search(
        self,
        url: str,
        match_type: Optional[Union[MatchType, str]] = None,
        collapse: Optional[List[str]] = None,
        limit: Optional[int] = None,
        output: Union[OutputFormat, str] = OutputFormat.JSON,
    ) -> TimemapResponse:
        """
        Search for captures in the timemap index.

        Args:
            url: URL or URL prefix to search for (required)
            match_type: URL matching mode (exact, prefix, host, domain)
            collapse: List of fields to collapse/deduplicate on
            limit: Maximum number of results
            output: Output format (json or text)

        Returns:
            TimemapResponse containing the results
        """
        query = self.query(url)
        if collapse:
            query.collapse(*collapse)
        if match_type:
            query.match_type(match_type)
        if output in (OutputFormat.JSON, "json"):
            query.output_json()
        if limit is not None:
            query.limit(limit)
        return self._execute_request(query.build_params())

    def original_urls(self, prefix: str, limit: int = DEFAULT_LIMIT) -> Iterator[str]:
        """
        Yield the archived URL of every distinct capture under a prefix.

        Args:
            prefix: URL prefix, e.g. "tio.run" or "ato.pxeger.com/run"
            limit: Upper bound on the number of captures returned

        Yields:
            The `original` column of each timemap record
        """
        response = self.search(
            url=prefix,
            match_type=MatchType.PREFIX,
            collapse=["digest"],
            limit=limit,
        )
        logger.info("Timemap returned %d captures for %s", len(response), prefix)
        for record in response:
            yield record.original

    def _execute_request(self, params: Dict[str, Any]) -> TimemapResponse:
        """Execute a request and parse the response."""
        if params.get("output") != "json":
            raise TimemapError("Only JSON timemap output is supported")
        response = self._make_request(params)
        return self._parse_json_response(response.text)

    def _make_request(self, params: Dict[str, Any]) -> requests.Response:
        """Make HTTP request to the timemap endpoint."""
        # Handle list parameters (collapse)
        query_params = []
        for key, value in params.items():
            if isinstance(value, list):
                for v in value:
                    query_params.append((key, v))
            else:
                query_params.append((key, value))

        url = f"{self.base_url}?{urlencode(query_params)}"
        logger.debug("GET %s", url)

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TimemapError(f"HTTP error: {e}", status) from e
        except requests.exceptions.RequestException as e:
            raise TimemapError(f"Request failed: {e}") from e

    def _parse_json_response(self, text: str) -> TimemapResponse:
        """Parse JSON format response."""
        text = text.strip()
        if not text:
            return TimemapResponse(records=[], field_names=[])

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise TimemapError(f"Failed to parse JSON response: {e}") from e

        if not isinstance(data, list):
            raise TimemapError(f"Expected a JSON array, got {type(data).__name__}")
        if not data:
            return TimemapResponse(records=[], field_names=[])

        # First row is field names
        header = data[0]
        field_names = [str(name) for name in header] if isinstance(header, list) else []
        records = []
        resume_key = None
        skipped = 0

        for row in data[1:]:
            if not isinstance(row, list):
                logger.warning("Skipping non-array timemap row: %r", row)
                skipped += 1
                continue
            # Empty row separates the resume key
            if not row:
                continue
            # Resume key is a single-element array
            if len(row) == 1 and len(data) > 2:
                resume_key = row[0]
                continue
            if len(row) <= ORIGINAL_INDEX or not isinstance(row[ORIGINAL_INDEX], str):
                logger.warning("Skipping malformed timemap row: %r", row)
                skipped += 1
                continue

            records.append(TimemapRecord.from_row(row))

        return TimemapResponse(
            records=records,
            field_names=field_names,
            resume_key=resume_key,
            skipped=skipped,
        )

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self) -> "TimemapClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Convenience function for quick queries
def search(url: str, base_url: str = DEFAULT_BASE_URL, **kwargs) -> TimemapResponse:
    """
    Quick search function without creating a client instance.

    Args:
        url: URL to search
        base_url: Timemap endpoint
        **kwargs: Additional search parameters

    Returns:
        TimemapResponse with results
    """
    with TimemapClient(base_url) as client:
        return client.search(url, **kwargs)
