"""HTTP client for the leaves backend (add-leaf, get-leaves, stats)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from services.exceptions import RemoteUnavailable
from services.leaf import MAX_LEAVES, Leaf, MalformedLeaf

logger = logging.getLogger(__name__)


@dataclass
class ServerStats:
    total_leaves: int
    total_students: int
    total_teachers: int
    recent_leaves: int
    last_updated: str

    @classmethod
    def from_dict(cls, data: Any) -> 'ServerStats':
        try:
            return cls(
                total_leaves=int(data['totalLeaves']),
                total_students=int(data['totalStudents']),
                total_teachers=int(data['totalTeachers']),
                recent_leaves=int(data['recentLeaves']),
                last_updated=str(data['lastUpdated']),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteUnavailable(f'Malformed stats payload: {e}')


class RemoteStore:
    def __init__(self, base_url: str, timeout: Optional[float] = 10.0, session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._sesh = session or requests.Session()

    def _call(self, endpoint: str, verb: str = 'GET', data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a request to a backend endpoint and unwrap the {success, data, error} envelope.
        Any failure, including a malformed body, is raised as RemoteUnavailable.
        """
        url = f'{self._base_url}{endpoint}'
        try:
            response = self._sesh.request(method=verb, url=url, json=data, timeout=self._timeout)
        except requests.RequestException as e:
            raise RemoteUnavailable(f'{verb} {url}: {e}')

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteUnavailable(f'{verb} {url} {response.status_code}: Error decoding JSON ({e})')

        if not isinstance(body, dict):
            raise RemoteUnavailable(f'{verb} {url}: unexpected response type {type(body).__name__}')
        if response.status_code >= 400 or not body.get('success'):
            raise RemoteUnavailable(f'{verb} {url} {response.status_code}: {body.get("error", "unknown error")}')
        return body.get('data')

    def insert(self, fields: Dict[str, Any]) -> Leaf:
        data = self._call('/add-leaf', verb='POST', data=fields)
        try:
            leaf = Leaf.from_dict(data)
        except MalformedLeaf as e:
            raise RemoteUnavailable(f'Malformed leaf in add-leaf response: {e}')
        logger.info('Leaf %s stored remotely', leaf.id)
        return leaf

    def list_recent(self) -> List[Leaf]:
        data = self._call('/get-leaves')
        if not isinstance(data, list):
            raise RemoteUnavailable('Malformed get-leaves response: data is not a list')
        try:
            leaves = [Leaf.from_dict(item) for item in data[:MAX_LEAVES]]
        except MalformedLeaf as e:
            raise RemoteUnavailable(f'Malformed leaf in get-leaves response: {e}')
        logger.info('Fetched %s leaves from %s', len(leaves), self._base_url)
        return leaves

    def aggregate_counts(self) -> ServerStats:
        return ServerStats.from_dict(self._call('/stats'))
