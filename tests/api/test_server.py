"""
API Server Tests

Endpoint behavior through FastAPI's TestClient. The lifespan (milestone
ticker) is not entered; these tests drive the store's clock by hand.
"""

import pytest
from fastapi.testclient import TestClient

from launchday.api.server import API_PREFIX, create_app, housekeeping
from launchday.config import ServerConfig
from launchday.contracts.base import ActorContext, LogKind
from launchday.store.milestones import MilestoneAnnouncer
from tests.fixtures import EVENT_ID, make_clock, make_context, make_store


HEADERS = {'X-Actor-Id': 'user-alice', 'X-Session-Id': 'sess-a', 'X-Actor-Name': 'Alice'}


@pytest.fixture
def store():
    return make_store(make_clock())


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


def url(kind=None, event_id=EVENT_ID):
    path = f"{API_PREFIX}/{event_id}"
    return f"{path}/{kind}" if kind else path


class TestReads:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()['status'] == "online"

    def test_event_summary(self, client):
        response = client.get(url())
        assert response.status_code == 200
        data = response.json()['data']
        assert data['event']['event_id'] == EVENT_ID
        assert data['mission_time']['elapsed_seconds'] == -3600
        assert data['phase']['phase']['id'] == 'pre_launch'
        assert data['telemetry']['stage_status'] == 'attached'

    def test_unknown_event_summary(self, client):
        assert client.get(url(event_id="no-such-launch")).status_code == 404

    def test_unknown_kind(self, client):
        assert client.get(url("gossip")).status_code == 404

    def test_cursor_and_limit(self, client, store):
        ids = [store.post_system_message(EVENT_ID, f"update {i}").id for i in range(5)]

        data = client.get(url("chat"), params={'cursor': ids[1], 'limit': 2}).json()['data']
        assert [r['id'] for r in data['records']] == ids[2:4]
        assert data['cursor'] == ids[3]

    def test_limit_bounds(self, client):
        assert client.get(url("chat"), params={'limit': 0}).status_code == 422
        assert client.get(url("chat"), params={'limit': 501}).status_code == 422

    def test_demo_event_registered(self):
        client = TestClient(create_app(make_store(), ServerConfig(demo_event_id="demo")))
        assert client.get(url(event_id="demo")).status_code == 200
        polls = client.get(url("poll", event_id="demo")).json()['data']['snapshot']['polls']
        assert polls[0]['poll_id'] == "booster-landing"


class TestWrites:

    def test_chat_write(self, client):
        response = client.post(url("chat"), json={'message': "Go for launch"}, headers=HEADERS)
        assert response.status_code == 200
        data = response.json()['data']
        assert data['status'] == 'success'
        assert data['record']['payload']['message'] == "Go for launch"

    def test_rate_limited(self, client, store):
        client.post(url("chat"), json={'message': "one"}, headers=HEADERS)
        response = client.post(url("chat"), json={'message': "two"}, headers=HEADERS)

        assert response.status_code == 429
        assert response.headers['Retry-After'] == "5"
        assert response.json()['error']['code'] == "RATE_LIMITED"

        store.clock.advance(5)
        assert client.post(url("chat"), json={'message': "two"}, headers=HEADERS).status_code == 200

    def test_invalid_chat(self, client):
        response = client.post(url("chat"), json={'message': "   "}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()['error']['code'] == "INVALID_PAYLOAD"

    def test_shape_errors(self, client):
        assert client.post(url("chat"), json={'text': "wrong field"}, headers=HEADERS).status_code == 400
        assert client.post(url("poll"), json={'poll_id': 'x', 'option_index': "1"}, headers=HEADERS).status_code == 400
        response = client.post(url("chat"), content=b"{not json", headers=HEADERS)
        assert response.status_code == 400

    def test_read_only_kind(self, client):
        response = client.post(url("weather"), json={}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()['error']['code'] == "READ_ONLY_KIND"

    def test_actor_required(self, client):
        response = client.post(url("chat"), json={'message': "hi"})
        assert response.status_code == 400
        assert response.json()['error']['code'] == "ACTOR_REQUIRED"

    def test_duplicate_vote_conflict(self, client, store):
        store.create_poll(EVENT_ID, "Landing?", ["Yes", "No"], poll_id="landing")
        body = {'poll_id': 'landing', 'option_index': 0}

        assert client.post(url("poll"), json=body, headers=HEADERS).status_code == 200
        store.clock.advance(10)
        response = client.post(url("poll"), json=body, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()['error']['code'] == "ALREADY_VOTED"

    def test_write_visible_to_read(self, client):
        written = client.post(url("reaction"), json={'emoji': 'fire'}, headers=HEADERS).json()['data']
        read = client.get(url("reaction")).json()['data']
        assert [r['id'] for r in read['records']] == [written['record']['id']]
        assert read['totals']['totals']['fire'] == 1


class TestActiveLaunches:

    @pytest.fixture
    def fleet(self):
        clock = make_clock()
        store = make_store(clock)
        for event_id, offset in [
            ("just-lifted", -5),
            ("climbing", -600),
            ("wrapped-up", -7200),
            ("tomorrow-ish", 7200),
            ("next-week", 7 * 86400),
        ]:
            store.register_event(make_context(launch_in_seconds=offset, event_id=event_id))
        return store

    def test_live_and_imminent(self, fleet):
        client = TestClient(create_app(fleet, ServerConfig(demo_event_id=None)))
        response = client.get(f"{API_PREFIX}/active")
        assert response.status_code == 200
        data = response.json()['data']

        assert [launch['id'] for launch in data['live']] == ["just-lifted", "climbing"]
        assert [launch['id'] for launch in data['imminent']] == [EVENT_ID, "tomorrow-ish"]
        climbing = data['live'][1]
        assert climbing['is_live'] is True
        assert climbing['mission_time']['label'] == "T+10:00"
        assert climbing['phase'] == "booster_landing"
        assert data['imminent'][0]['is_live'] is False
        assert data['imminent'][0]['phase'] == "pre_launch"

    def test_window_is_configurable(self, fleet):
        config = ServerConfig(demo_event_id=None, imminent_window_seconds=3600)
        data = TestClient(create_app(fleet, config)).get(f"{API_PREFIX}/active").json()['data']
        assert [launch['id'] for launch in data['imminent']] == [EVENT_ID]

    def test_nothing_active(self):
        store = make_store(make_clock(), make_context(launch_in_seconds=30 * 86400))
        client = TestClient(create_app(store, ServerConfig(demo_event_id=None)))
        assert client.get(f"{API_PREFIX}/active").json()['data'] == {'live': [], 'imminent': []}

    def test_event_routes_still_reachable(self, fleet):
        client = TestClient(create_app(fleet, ServerConfig(demo_event_id=None)))
        assert client.get(url(event_id="climbing")).status_code == 200
        assert client.get(url("chat", event_id="climbing")).status_code == 200


class TestHousekeeping:

    def test_sweeps_idle_rate_limit_buckets(self, store):
        for i in range(20):
            store.write(EVENT_ID, LogKind.REACTION, {'emoji': 'fire'}, ActorContext(actor_id=f"fan-{i}"))
        assert store._limiter.bucket_count == 20

        store.clock.advance(60)
        housekeeping(store, MilestoneAnnouncer(store), store.clock.now())
        assert store._limiter.bucket_count == 0
