"""
Unit tests for the position feed client
"""

import os
import sys
from unittest.mock import Mock

import pytest
import requests

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from collector.feed import FeedClient, parse_feed
from common.errors import MissingFieldError
from common.types import Observation


SAMPLE = {
    "Trucks": {
        "1": {"name": "a", "h": 1.5, "p_id": "x", "server": 5, "mp_id": 1, "t": 0, "online": True, "x": 100, "y": -200},
        "2": {"server": 10, "x": 1_500_000, "y": 0},
        "3": {"server": 5, "x": 3},                 # no y
        "4": {"server": "5", "x": 1, "y": 1},       # wrong type
        "5": "garbage",
    }
}


class TestParseFeed:
    """Document validation"""

    def test_parses_valid_records(self):
        """Only records with integer server/x/y survive; domain checks are left to the collector"""
        obs = parse_feed(SAMPLE)
        assert obs == [Observation(5, 100, -200), Observation(10, 1_500_000, 0)]

    def test_missing_trucks(self):
        """A document without Trucks is a missing-field error"""
        with pytest.raises(MissingFieldError):
            parse_feed({"Servers": {}})

    def test_non_object_root(self):
        """A JSON list is not a feed"""
        with pytest.raises(MissingFieldError):
            parse_feed([1, 2, 3])

    def test_bool_is_not_a_coordinate(self):
        """JSON true is not accepted as an integer"""
        assert parse_feed({"Trucks": {"a": {"server": 1, "x": True, "y": 0}}}) == []


class TestFeedClient:
    """HTTP behaviour with a mocked session"""

    def _client(self, response=None, exc=None):
        session = Mock(spec=requests.Session)
        if exc is not None:
            session.get.side_effect = exc
        else:
            session.get.return_value = response
        return FeedClient("http://feed.local/fullmap", session=session, timeout=3.0), session

    def test_fetch_success(self):
        """A 200 response is parsed into observations"""
        resp = Mock()
        resp.status_code = 200
        resp.json.return_value = SAMPLE
        client, session = self._client(resp)
        obs = client.fetch()
        assert len(obs) == 2
        session.get.assert_called_once_with("http://feed.local/fullmap", timeout=3.0)

    def test_fetch_non_success_still_parsed(self):
        """Status is logged, but a parsable body is still used"""
        resp = Mock()
        resp.status_code = 503
        resp.json.return_value = SAMPLE
        client, _ = self._client(resp)
        assert len(client.fetch()) == 2

    def test_fetch_bad_json(self):
        """An HTML error page is a missing-field error"""
        resp = Mock()
        resp.status_code = 502
        resp.json.side_effect = ValueError("Expecting value")
        client, _ = self._client(resp)
        with pytest.raises(MissingFieldError):
            client.fetch()

    def test_fetch_network_error_propagates(self):
        """Transport errors are left to the polling loop"""
        client, _ = self._client(exc=requests.ConnectionError("down"))
        with pytest.raises(requests.RequestException):
            client.fetch()
