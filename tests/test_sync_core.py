import random
import threading

import pytest

from services.exceptions import RemoteUnavailable, ValidationError
from services.leaf import GRADIENTS, LEAF_TYPES, X_RANGE, Y_RANGE, Leaf, is_local_id
from services.local_store import LocalFallbackStore
from services.render import LeafRenderer
from services.sync_core import ConnectivityMode, GratitudeTree, TreeStats


class FakeRemote:
    """In-memory stand-in for the leaves API."""

    def __init__(self, leaves=None, reachable=True, fail_inserts=False):
        self.leaves = list(leaves or [])
        self.reachable = reachable
        self.fail_inserts = fail_inserts
        self.insert_calls = 0
        self.next_id = 100

    def list_recent(self):
        if not self.reachable:
            raise RemoteUnavailable('connection refused')
        return list(self.leaves)

    def insert(self, fields):
        self.insert_calls += 1
        if not self.reachable or self.fail_inserts:
            raise RemoteUnavailable('500: database error')
        self.next_id += 1
        leaf = Leaf(
            id=self.next_id,
            student_name=fields['name'],
            teacher_name=fields['teacher'],
            message=fields['message'],
            x=fields['x'],
            y=fields['y'],
            leaf_type=fields['type'],
            gradient=fields['gradient'],
            created_at='2025-11-20T08:00:00+00:00',
        )
        self.leaves.insert(0, leaf)
        return leaf

    def aggregate_counts(self):
        raise RemoteUnavailable('not used')


class RecordingRenderer(LeafRenderer):
    def __init__(self):
        self.renders = []
        self.details = []
        self.statuses = []

    def render(self, leaves):
        self.renders.append(list(leaves))

    def show_detail(self, leaf):
        self.details.append(leaf)

    def show_status(self, mode):
        self.statuses.append(mode)


def make_leaf(leaf_id, name='Lan', teacher='Mr. Tran', message='Thank you'):
    return Leaf(
        id=leaf_id,
        student_name=name,
        teacher_name=teacher,
        message=message,
        x=100,
        y=200,
        leaf_type='heart',
        gradient='gradient-1',
        created_at='2025-11-19T08:00:00+00:00',
    )


@pytest.fixture
def local(tmp_path):
    return LocalFallbackStore(tmp_path / 'local_storage.json')


def make_tree(remote, local, renderer=None):
    return GratitudeTree(remote, local, renderers=[renderer] if renderer else None, rng=random.Random(7))


def test_initialize_online_loads_remote_leaves(local):
    remote = FakeRemote([make_leaf(2, name='Minh'), make_leaf(1)])
    renderer = RecordingRenderer()
    tree = make_tree(remote, local, renderer)

    assert tree.initialize() is ConnectivityMode.REMOTE
    assert tree.is_online
    assert [leaf.id for leaf in tree.leaves] == [2, 1]
    assert tree.stats() == TreeStats(total_leaves=2, total_students=2, total_teachers=1)
    assert renderer.statuses == [ConnectivityMode.REMOTE]
    assert [leaf.id for leaf in renderer.renders[-1]] == [2, 1]


def test_initialize_caps_remote_result(local):
    remote = FakeRemote([make_leaf(i) for i in range(1200, 0, -1)])
    tree = make_tree(remote, local)
    tree.initialize()
    assert len(tree.leaves) == 1000
    assert tree.leaves[0].id == 1200


def test_initialize_offline_loads_local_snapshot(local):
    local.save([make_leaf('local-abc', name='Hoa')])
    tree = make_tree(FakeRemote(reachable=False), local)

    assert tree.initialize() is ConnectivityMode.LOCAL_FALLBACK
    assert tree.mode is ConnectivityMode.LOCAL_FALLBACK
    assert len(tree.leaves) == 1
    assert tree.leaves[0].student_name == 'Hoa'
    assert tree.stats().total_students == 1


def test_initialize_offline_without_snapshot_is_empty(local):
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()
    assert tree.leaves == []
    assert tree.stats() == TreeStats(0, 0, 0)


def test_initialize_offline_with_corrupt_snapshot_is_empty(local):
    local.path.write_text('{not json', encoding='utf-8')
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()
    assert tree.leaves == []


def test_add_leaf_online_uses_remote_id_and_mirrors_locally(local):
    remote = FakeRemote()
    tree = make_tree(remote, local)
    tree.initialize()

    leaf = tree.add_leaf('Lan', 'Mr. Tran', 'Thank you')

    assert isinstance(leaf.id, int)
    assert tree.leaves[0].student_name == 'Lan'
    assert tree.stats().total_leaves == 1
    assert [saved.id for saved in local.load()] == [leaf.id]


def test_add_leaf_trims_inputs(local):
    tree = make_tree(FakeRemote(), local)
    tree.initialize()
    leaf = tree.add_leaf('  Lan ', '\tMr. Tran', ' Thank you\n')
    assert (leaf.student_name, leaf.teacher_name, leaf.message) == ('Lan', 'Mr. Tran', 'Thank you')


def test_add_leaf_assigns_random_placement_in_bounds(local):
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()
    for i in range(20):
        leaf = tree.add_leaf(f'Student {i}', 'Mr. Tran', 'Thanks')
        assert X_RANGE[0] <= leaf.x <= X_RANGE[1]
        assert Y_RANGE[0] <= leaf.y <= Y_RANGE[1]
        assert leaf.leaf_type in LEAF_TYPES
        assert leaf.gradient in GRADIENTS


def test_failed_remote_write_falls_back_without_downgrading(local):
    remote = FakeRemote(fail_inserts=True)
    tree = make_tree(remote, local)
    tree.initialize()

    first = tree.add_leaf('Lan', 'Mr. Tran', 'Thank you')
    assert is_local_id(first.id)
    assert tree.mode is ConnectivityMode.REMOTE
    assert [saved.id for saved in local.load()] == [first.id]

    remote.fail_inserts = False
    second = tree.add_leaf('Minh', 'Ms. Hoa', 'Thanks a lot')
    assert isinstance(second.id, int)
    assert remote.insert_calls == 2
    assert [leaf.id for leaf in tree.leaves] == [second.id, first.id]


def test_add_leaf_offline_never_calls_remote(local):
    remote = FakeRemote(reachable=False)
    tree = make_tree(remote, local)
    tree.initialize()

    leaf = tree.add_leaf('Lan', 'Mr. Tran', 'Thank you')

    assert remote.insert_calls == 0
    assert is_local_id(leaf.id)
    assert leaf.created_at
    assert leaf.id in [saved.id for saved in local.load()]


@pytest.mark.parametrize('fields', [
    ('', 'Mr. Tran', 'Thank you'),
    ('Lan', '   ', 'Thank you'),
    ('Lan', 'Mr. Tran', ''),
    ('Lan', 'Mr. Tran', '  \n '),
])
def test_add_leaf_rejects_blank_fields(local, fields):
    remote = FakeRemote()
    tree = make_tree(remote, local)
    tree.initialize()

    with pytest.raises(ValidationError):
        tree.add_leaf(*fields)

    assert tree.leaves == []
    assert remote.insert_calls == 0
    assert local.load() == []


def test_each_add_grows_collection_by_one(local):
    tree = make_tree(FakeRemote(), local)
    tree.initialize()
    for i in range(5):
        before = len(tree.leaves)
        tree.add_leaf(f'Student {i % 3}', f'Teacher {i % 2}', 'Thanks')
        assert len(tree.leaves) == before + 1


def test_stats_track_distinct_names(local):
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()
    added = [('Lan', 'Mr. Tran'), ('Lan', 'Ms. Hoa'), ('Minh', 'Mr. Tran'), ('An', 'Mr. Tran')]
    for student, teacher in added:
        tree.add_leaf(student, teacher, 'Thanks')

    stats = tree.stats()
    assert stats.total_leaves == 4
    assert stats.total_students == len({s for s, _ in added})
    assert stats.total_teachers == len({t for _, t in added})
    assert tree.stats() == stats


def test_renderer_sees_every_change(local):
    renderer = RecordingRenderer()
    tree = make_tree(FakeRemote(), local, renderer)
    tree.initialize()
    tree.add_leaf('Lan', 'Mr. Tran', 'Thank you')
    assert len(renderer.renders) == 2
    assert renderer.renders[-1][0].student_name == 'Lan'


def test_select_leaf_shows_detail(local):
    renderer = RecordingRenderer()
    tree = make_tree(FakeRemote([make_leaf(5), make_leaf(4, name='Minh')]), local, renderer)
    tree.initialize()

    leaf = tree.select_leaf(4)
    assert leaf.student_name == 'Minh'
    assert renderer.details == [leaf]
    assert tree.select_leaf(999) is None
    assert renderer.details == [leaf]


def test_local_ids_are_unique(local):
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()
    ids = {tree.add_leaf('Lan', 'Mr. Tran', 'Thanks').id for _ in range(50)}
    assert len(ids) == 50


def test_concurrent_local_writes_keep_every_leaf(local):
    tree = make_tree(FakeRemote(reachable=False), local)
    tree.initialize()

    def worker(n):
        for i in range(10):
            tree.add_leaf(f'Student {n}-{i}', 'Mr. Tran', 'Thanks')

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(tree.leaves) == 40
    assert len(local.load()) == 40


def test_initialize_offline_with_nan_snapshot_is_empty(local):
    local.path.write_text(
        '{"gratitudeLeaves": [{"id": "local-1", "name": "a", "teacher": "b", "message": "c", "x": NaN, "y": 1}]}',
        encoding='utf-8',
    )
    tree = make_tree(FakeRemote(reachable=False), local)
    assert tree.initialize() is ConnectivityMode.LOCAL_FALLBACK
    assert tree.leaves == []
