"""Local key-value stores."""

import json

from launchday.storage import JsonFileKeyValueStore, MemoryKeyValueStore


class TestMemoryKeyValueStore:

    def test_values_are_copied(self):
        store = MemoryKeyValueStore()
        value = {'votes': {'landing': 1}}
        store.set('k', value)
        value['votes']['landing'] = 2
        fetched = store.get('k')
        fetched['votes'].clear()
        assert store.get('k') == {'votes': {'landing': 1}}

    def test_default_and_remove(self):
        store = MemoryKeyValueStore({'a': 1})
        store.remove('a')
        store.remove('a')
        assert store.get('a', 'missing') == 'missing'


class TestJsonFileKeyValueStore:

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "nested" / "state.json")
        JsonFileKeyValueStore(path).set('launch-reminders', [{'label': 'Liftoff'}])
        assert JsonFileKeyValueStore(path).get('launch-reminders') == [{'label': 'Liftoff'}]

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding='utf-8')
        store = JsonFileKeyValueStore(str(path))
        assert store.get('anything') is None

        store.set('k', 1)
        assert json.loads(path.read_text(encoding='utf-8')) == {'k': 1}

    def test_remove_flushes(self, tmp_path):
        path = str(tmp_path / "state.json")
        store = JsonFileKeyValueStore(path)
        store.set('k', 1)
        store.remove('k')
        assert JsonFileKeyValueStore(path).get('k') is None
