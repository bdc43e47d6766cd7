"""
Optimistic Write Tests

INVARIANTS TESTED:
1. A rejected optimistic change rolls back exactly itself
2. An acknowledged change is never counted twice
3. A poll is voted at most once per client, across restarts
"""

import asyncio
from datetime import timedelta

from launchday.contracts.base import ActorContext, ErrorCode, LogKind
from launchday.contracts.records import WriteOutcome, WriteStatus
from launchday.storage import MemoryKeyValueStore
from launchday.sync.client import SyncClient
from launchday.sync.optimistic import OptimisticWriteBuffer, ReactionTally
from tests.fixtures import ALICE, ANONYMOUS, BOB, EVENT_ID, NOW, ScriptedTransport, make_clock, make_context, make_store


def make_buffer(store=None, clock=None, storage=None, actor=ALICE):
    clock = clock or make_clock()
    store = store or make_store(clock)
    transport = ScriptedTransport(store)
    sync = SyncClient(make_context(), transport, clock)
    buffer = OptimisticWriteBuffer(sync, storage or MemoryKeyValueStore(), actor, clock)
    return buffer, sync, transport, store, clock


class TestReactionTally:

    def test_rollback_removes_exactly_one_delta(self):
        tally = ReactionTally()
        tally.apply_snapshot({'totals': {'fire': 10}}, NOW)
        tally.add('fire', NOW)
        middle = tally.add('fire', NOW)
        tally.add('rocket', NOW)

        assert tally.rollback(middle.delta_id)
        assert tally.totals() == {'fire': 11, 'rocket': 1}
        assert not tally.rollback(middle.delta_id)

    def test_stale_snapshot_ignored(self):
        tally = ReactionTally()
        assert tally.apply_snapshot({'totals': {'fire': 5}}, NOW + timedelta(seconds=2))
        assert not tally.apply_snapshot({'totals': {'fire': 3}}, NOW)
        assert tally.totals() == {'fire': 5}

    def test_acknowledged_delta_survives_older_read(self):
        tally = ReactionTally()
        delta = tally.add('star', NOW)
        tally.acknowledge(delta.delta_id, NOW + timedelta(seconds=2))

        tally.apply_snapshot({'totals': {'star': 0}}, NOW + timedelta(seconds=1))
        assert tally.totals()['star'] == 1

        tally.apply_snapshot({'totals': {'star': 1}}, NOW + timedelta(seconds=3))
        assert tally.totals()['star'] == 1
        assert tally.pending == ()

    def test_unacknowledged_delta_survives_any_snapshot(self):
        tally = ReactionTally()
        tally.add('heart', NOW)
        tally.apply_snapshot({'totals': {'heart': 4}}, NOW + timedelta(seconds=10))
        assert tally.totals()['heart'] == 5


class TestChat:

    def test_provisional_until_confirmed(self):
        buffer, sync, _, _, _ = make_buffer()

        outcome = asyncio.run(buffer.send_chat("T-minus ten!"))
        assert outcome.is_success
        log = sync.view(LogKind.CHAT).log
        assert len(log.provisional) == 1
        assert log.provisional[0].confirmed_id == outcome.record.id

        asyncio.run(sync.poll_once(LogKind.CHAT))
        assert log.provisional == ()
        assert [e.id for e in log.entries] == [outcome.record.id]

    def test_rejection_removes_provisional(self):
        buffer, sync, transport, _, _ = make_buffer()
        transport.write_outcomes.append(WriteOutcome.invalid("nope"))

        outcome = asyncio.run(buffer.send_chat("hello"))
        assert outcome.status == WriteStatus.INVALID
        assert sync.view(LogKind.CHAT).log.provisional == ()
        assert buffer.last_error.code == ErrorCode.INVALID_PAYLOAD

    def test_local_validation_skips_network(self):
        buffer, _, transport, _, _ = make_buffer()
        assert asyncio.run(buffer.send_chat("   ")).status == WriteStatus.INVALID
        assert asyncio.run(buffer.send_chat("x" * 501)).status == WriteStatus.INVALID
        assert transport.writes == 0

    def test_network_failure_sets_no_error(self):
        buffer, sync, transport, _, _ = make_buffer()
        transport.write_outcomes.append(WriteOutcome.network_failure())

        outcome = asyncio.run(buffer.send_chat("hello"))
        assert outcome.is_retryable
        assert buffer.last_error is None
        assert sync.view(LogKind.CHAT).log.provisional == ()

    def test_cooldown_blocks_locally(self):
        buffer, _, transport, _, clock = make_buffer()
        transport.write_outcomes.append(WriteOutcome.rate_limited(5.0))

        asyncio.run(buffer.send_chat("one"))
        blocked = asyncio.run(buffer.send_chat("two"))
        assert blocked.status == WriteStatus.RATE_LIMITED
        assert transport.writes == 1
        assert buffer.last_error.code == ErrorCode.RATE_LIMITED


class TestReactions:

    def test_acknowledged_reaction_counted_once(self):
        buffer, sync, _, _, clock = make_buffer()

        asyncio.run(buffer.react('rocket', 'max_q'))
        assert buffer.tally.totals()['rocket'] == 1

        clock.advance(1)
        asyncio.run(sync.poll_once(LogKind.REACTION))
        assert buffer.tally.totals()['rocket'] == 1
        assert buffer.tally.pending == ()

    def test_rejected_reaction_rolls_back(self):
        buffer, _, transport, _, _ = make_buffer()
        transport.write_outcomes.append(WriteOutcome.rate_limited(2.0))

        outcome = asyncio.run(buffer.react('fire'))
        assert outcome.status == WriteStatus.RATE_LIMITED
        assert buffer.tally.totals().get('fire', 0) == 0
        assert buffer.tally.pending == ()

    def test_rejection_during_concurrent_increment(self):
        """A rejected +1 is undone while another actor's +1 that landed meanwhile stays."""
        buffer, sync, transport, store, clock = make_buffer()
        seeded = 6
        for i in range(seeded):
            store.write(EVENT_ID, LogKind.REACTION, {'emoji': 'fire'}, ActorContext(actor_id=f"fan-{i}"))
        transport.write_delay = 0.05
        transport.write_outcomes.append(WriteOutcome.rate_limited(2.0))

        async def scenario():
            await sync.poll_once(LogKind.REACTION)
            assert buffer.tally.totals()['fire'] == seeded

            clock.advance(1)
            in_flight = asyncio.create_task(buffer.react('fire'))
            await asyncio.sleep(0)
            assert buffer.tally.totals()['fire'] == seeded + 1

            store.write(EVENT_ID, LogKind.REACTION, {'emoji': 'fire'}, BOB)
            clock.advance(1)
            await sync.poll_once(LogKind.REACTION)
            during = buffer.tally.totals()['fire']

            outcome = await in_flight
            return during, outcome

        during, outcome = asyncio.run(scenario())
        assert during == seeded + 2
        assert outcome.status == WriteStatus.RATE_LIMITED
        assert buffer.tally.totals()['fire'] == seeded + 1
        assert buffer.tally.pending == ()

    def test_unknown_emoji(self):
        buffer, _, transport, _, _ = make_buffer()
        assert asyncio.run(buffer.react('skull')).status == WriteStatus.INVALID
        assert transport.writes == 0

    def test_anonymous_reactions(self):
        buffer, _, _, _, _ = make_buffer(actor=ANONYMOUS)
        assert asyncio.run(buffer.react('star')).is_success


class TestVotes:

    def make(self, storage=None):
        clock = make_clock()
        store = make_store(clock)
        store.create_poll(EVENT_ID, "Landing?", ["Yes", "No"], poll_id="landing")
        return make_buffer(store, clock, storage)

    def test_second_vote_never_sent(self):
        buffer, _, transport, _, clock = self.make()

        assert asyncio.run(buffer.vote('landing', 0)).is_success
        clock.advance(60)
        again = asyncio.run(buffer.vote('landing', 1))

        assert again.error_code == ErrorCode.ALREADY_VOTED
        assert transport.writes == 1
        assert buffer.votes.choice('landing') == 0

    def test_vote_survives_restart(self):
        storage = MemoryKeyValueStore()
        buffer, _, _, store, clock = self.make(storage)
        asyncio.run(buffer.vote('landing', 1))

        restarted, _, transport, _, _ = make_buffer(store, clock, storage)
        assert restarted.votes.has_voted('landing')
        assert asyncio.run(restarted.vote('landing', 0)).error_code == ErrorCode.ALREADY_VOTED
        assert transport.writes == 0

    def test_failed_vote_is_forgotten(self):
        buffer, _, transport, _, _ = self.make()
        transport.write_outcomes.append(WriteOutcome.network_failure())

        asyncio.run(buffer.vote('landing', 0))
        assert not buffer.votes.has_voted('landing')

    def test_server_already_voted_is_remembered(self):
        buffer, _, _, store, _ = self.make()
        store.write(EVENT_ID, LogKind.POLL, {'poll_id': 'landing', 'option_index': 1}, ALICE)

        outcome = asyncio.run(buffer.vote('landing', 0))
        assert outcome.error_code == ErrorCode.ALREADY_VOTED
        assert buffer.votes.has_voted('landing')

    def test_vote_response_counts_fresher_than_snapshot(self):
        buffer, sync, _, _, clock = self.make()

        asyncio.run(sync.poll_once(LogKind.POLL))
        assert buffer.polls()[0].total_votes == 0

        clock.advance(1)
        asyncio.run(buffer.vote('landing', 1))
        assert buffer.polls()[0].count_for(1) == 1

        clock.advance(1)
        asyncio.run(sync.poll_once(LogKind.POLL))
        assert buffer.polls()[0].count_for(1) == 1
