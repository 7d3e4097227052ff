import itertools

import pytest
from conftest import make_questions

from quizlive.exceptions import SessionNotFound
from quizlive.models import Phase
from quizlive.services.quiz import RoomRegistry, generate_pin


@pytest.fixture()
def reg(broadcaster, store, clock):
    pins = (str(n) for n in itertools.count(100000))
    return RoomRegistry(broadcaster, store, clock=clock, pin_factory=lambda: next(pins))


def _play_two_questions(reg):
    room = reg.create('host-1')
    room.load_quiz('host-1', make_questions(4))
    reg.join('p-ann', room.pin, 'Ann')
    reg.join('p-bob', room.pin, 'Bob')
    room.next_question('host-1')
    room.submit_answer('p-ann', 0)
    room.submit_answer('p-bob', 1)
    room.next_question('host-1')
    room.submit_answer('p-ann', 1)
    room.submit_answer('p-bob', 1)
    return room


def test_generated_pins_are_six_digits():
    for _ in range(50):
        pin = generate_pin()
        assert len(pin) == 6 and pin.isdigit()


def test_create_registers_room_with_host(reg):
    room = reg.create('host-1')
    assert reg.get(room.pin) is room
    assert room.host_sid == 'host-1'
    assert room.phase == Phase.LOBBY
    assert reg.room_for('host-1') is room


def test_join_unknown_pin_raises(reg):
    with pytest.raises(SessionNotFound):
        reg.join('p-1', '000000', 'Ann')


def test_host_disconnect_removes_room(reg):
    room = reg.create('host-1')
    reg.join('p-ann', room.pin, 'Ann')
    assert reg.disconnect('host-1') == 'host'
    assert reg.get(room.pin) is None
    with pytest.raises(SessionNotFound):
        reg.join('p-new', room.pin, 'Newcomer')


def test_participant_disconnect_keeps_room(reg):
    room = reg.create('host-1')
    reg.join('p-ann', room.pin, 'Ann')
    assert reg.disconnect('p-ann') == 'participant'
    assert reg.get(room.pin) is room
    assert room.participants == {}
    assert reg.disconnect('p-ann') is None


def test_resume_without_snapshot_raises(reg):
    with pytest.raises(SessionNotFound) as info:
        reg.resume('654321')
    assert info.value.message == 'no snapshot'


def test_resume_round_trip(reg):
    room = _play_two_questions(reg)
    pin = room.pin
    ann_score = room.participants['p-ann'].score
    bob_score = room.participants['p-bob'].score
    assert ann_score == 2000 and bob_score == 1000

    reg.disconnect('host-1')
    assert reg.get(pin) is None

    resumed = reg.resume(pin)
    assert resumed is reg.get(pin)
    assert resumed.host_sid is None
    assert resumed.phase == Phase.LOBBY
    assert resumed.current_index == 1
    assert resumed.carried_scores == {'Ann': 2000, 'Bob': 1000}
    assert [h.index for h in resumed.history] == [0, 1]

    # host-only calls are ignored until a host attaches
    assert resumed.next_question('host-2') is False
    reg.attach('host-2', pin)
    assert resumed.host_sid == 'host-2'

    _, ann = reg.join('p-ann-2', pin, 'Ann')
    _, eve = reg.join('p-eve', pin, 'Eve')
    _, lower = reg.join('p-ann-lower', pin, 'ann')
    assert ann.score == 2000
    assert eve.score == 0
    assert lower.score == 0

    resumed.load_quiz('host-2', make_questions(4))
    resumed.next_question('host-2')
    assert resumed.current_index == 2


def test_attach_does_not_replace_existing_host(reg):
    room = reg.create('host-1')
    reg.attach('intruder', room.pin)
    assert room.host_sid == 'host-1'


def test_resume_of_live_room_returns_it_unchanged(reg):
    room = reg.create('host-1')
    room.persist()
    assert reg.resume(room.pin) is room


def test_snapshot_prefers_live_then_store(reg, store):
    room = _play_two_questions(reg)
    live = reg.snapshot(room.pin)
    assert live['currentIndex'] == 1
    assert '_v' not in live
    reg.disconnect('host-1')
    durable = reg.snapshot(room.pin)
    assert durable['currentIndex'] == 1
    assert durable['_v'] == 1
    assert reg.snapshot('999999') is None


def test_joining_another_session_leaves_the_first(reg):
    first = reg.create('host-1')
    second = reg.create('host-2')
    reg.join('p-ann', first.pin, 'Ann')
    reg.join('p-ann', second.pin, 'Ann')
    assert first.participants == {}
    assert 'p-ann' in second.participants


def test_host_creating_twice_ends_the_first_session(reg, broadcaster):
    first = reg.create('host-1')
    second = reg.create('host-1')
    assert reg.get(first.pin) is None
    assert first.phase == Phase.ENDED
    assert broadcaster.session_named('session-ended') == [{'pin': first.pin}]
    with pytest.raises(SessionNotFound):
        reg.join('p-ann', first.pin, 'Ann')

    assert reg.disconnect('host-1') == 'host'
    assert reg.get(second.pin) is None
    assert len(reg) == 0


def test_participant_creating_a_session_leaves_the_room(reg):
    room = reg.create('host-1')
    room.load_quiz('host-1', make_questions(2))
    reg.join('p-ann', room.pin, 'Ann')
    reg.join('p-bob', room.pin, 'Bob')

    own = reg.create('p-ann')
    assert 'p-ann' not in room.participants
    assert reg.room_for('p-ann') is own

    reg.disconnect('p-ann')
    assert reg.get(own.pin) is None
    assert list(room.participants) == ['p-bob']

    room.next_question('host-1')
    room.submit_answer('p-bob', 0)
    assert room.phase == Phase.REVEAL


def test_attach_releases_the_previous_session(reg):
    room = _play_two_questions(reg)
    pin = room.pin
    reg.disconnect('host-1')
    resumed = reg.resume(pin)

    other = reg.create('host-2')
    reg.join('p-cat', other.pin, 'Cat')
    reg.attach('p-cat', pin)
    assert resumed.host_sid == 'p-cat'
    assert other.participants == {}
    assert reg.room_for('p-cat') is resumed

    assert reg.disconnect('p-cat') == 'host'
    assert reg.get(pin) is None
    assert reg.get(other.pin) is other


def test_failed_attach_keeps_the_previous_session(reg):
    first = reg.create('host-1')
    second = reg.create('host-2')
    reg.join('p-ann', first.pin, 'Ann')
    reg.attach('p-ann', second.pin)
    assert second.host_sid == 'host-2'
    assert 'p-ann' in first.participants
    assert reg.room_for('p-ann') is first


def test_host_joining_another_session_ends_their_own(reg):
    own = reg.create('host-1')
    other = reg.create('host-2')
    reg.join('host-1', other.pin, 'Hal')
    assert reg.get(own.pin) is None
    assert own.phase == Phase.ENDED
    assert 'host-1' in other.participants


def test_join_unknown_pin_keeps_current_session(reg):
    own = reg.create('host-1')
    with pytest.raises(SessionNotFound):
        reg.join('host-1', '000000', 'Hal')
    assert reg.get(own.pin) is own
    assert own.host_sid == 'host-1'


def test_resume_with_malformed_scores_is_not_found(reg, store):
    store.save('333333', {
        'pin': '333333',
        'currentIndex': 0,
        'leaderboard': [{'name': 'Ann', 'score': 'abc'}],
        'history': [],
        'timestamp': 1,
    })
    with pytest.raises(SessionNotFound) as info:
        reg.resume('333333')
    assert info.value.message == 'no snapshot'
    assert reg.get('333333') is None
