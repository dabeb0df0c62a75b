"""
Candidate feeds.

Scrapers run elsewhere and publish their normalised output as JSON, either a
bare list of events or an object with an "events" list. A feed location is a
local path or an http(s) URL, configured per source in config.toml:

    [feeds.ticketmaster]
    url = "https://scrapers.example.com/ticketmaster/latest.json"
    enabled = true
"""

import json
from pathlib import Path
from typing import Any

import requests

from eventmerge.errors import FeedError
from eventmerge.models import CandidateEvent

REQUEST_TIMEOUT = 30
HEADERS = {"User-Agent": "eventmerge/0.1", "Accept": "application/json"}


def load_candidates(location: str, timeout: int = REQUEST_TIMEOUT) -> list[CandidateEvent]:
    payload = _read_json(location, timeout)
    records = payload.get("events") if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        raise FeedError(f"{location}: expected a list of events")

    events: list[CandidateEvent] = []
    for i, record in enumerate(records):
        try:
            event = CandidateEvent.from_dict(record)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise FeedError(f"{location}: malformed event at index {i} ({exc!r})") from exc
        # Feed records without an id get a positional one so the matcher can report them
        if event.id is None:
            event.id = f"{event.source or 'feed'}:{event.source_id or i}"
        events.append(event)
    return events


def _read_json(location: str, timeout: int) -> Any:
    if location.startswith(("http://", "https://")):
        try:
            response = requests.get(location, timeout=timeout, headers=HEADERS)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise FeedError(f"{location}: {exc}") from exc
        except ValueError as exc:
            raise FeedError(f"{location}: response is not JSON") from exc

    path = Path(location)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise FeedError(f"{location}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise FeedError(f"{location}: invalid JSON ({exc})") from exc
