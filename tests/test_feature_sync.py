import json
import unittest

from core.errors import CorruptStoreError, InvalidFeatureError, NotFoundError, PersistenceError
from core.feature import Feature
from core.feature_store import FeatureStore
from core.feature_sync import FeatureSynchronizer
from fakes import FakeSurface, MemorySettings, sequential_ids


class FeatureSynchronizerTestBase(unittest.TestCase):
    def setUp(self):
        self.settings = MemorySettings()
        self.store = FeatureStore(self.settings)
        self.surface = FakeSurface()
        self.sync = FeatureSynchronizer(self.surface, self.store, id_factory=sequential_ids())
        self.sync.initialize()

    def stored_records(self):
        raw = self.settings.value("features")
        return json.loads(raw) if raw else []

    def assert_three_way_consistent(self):
        list_ids = [f.id for f in self.sync.list()]
        store_ids = [r["id"] for r in self.stored_records()]
        self.assertEqual(len(list_ids), len(self.surface.markers))
        self.assertEqual(len(list_ids), len(store_ids))
        self.assertEqual(set(list_ids), set(self.surface.markers))
        self.assertEqual(set(list_ids), set(store_ids))
        self.assertTrue(self.sync.is_consistent())


class TestCreateRemove(FeatureSynchronizerTestBase):

    def test_scenario_base_point(self):
        feature = self.sync.create((-11000000, 4600000), "Base")
        self.assertTrue(feature.id)
        self.assertEqual(feature.name, "Base")
        self.assertEqual(feature.coordinate, (-11000000.0, 4600000.0))
        self.assertEqual(self.store.load(), [feature])
        self.assertEqual(self.surface.markers, {feature.id: (-11000000.0, 4600000.0)})

        self.sync.remove(feature.id)
        self.assertEqual(self.sync.list(), ())
        self.assertEqual(self.store.load(), [])
        self.assertEqual(self.surface.markers, {})

        with self.assertRaises(NotFoundError):
            self.sync.remove(feature.id)

    def test_list_keeps_insertion_order(self):
        names = ["Norte", "Sur", "Este"]
        for i, name in enumerate(names):
            self.sync.create((i * 1000.0, i * 1000.0), name)
        self.assertEqual([f.name for f in self.sync.list()], names)

    def test_remove_by_id_is_independent_of_position(self):
        a = self.sync.create((0, 0), "A")
        b = self.sync.create((1, 1), "B")
        c = self.sync.create((2, 2), "C")
        d = self.sync.create((3, 3), "D")

        self.sync.remove(a.id)   # positions shift
        self.sync.remove(c.id)
        self.assertEqual([f.id for f in self.sync.list()], [b.id, d.id])
        self.assertEqual(set(self.surface.markers), {b.id, d.id})
        self.assertEqual({r["id"] for r in self.stored_records()}, {b.id, d.id})

        self.sync.remove(d.id)
        self.assertEqual(self.sync.list(), (b,))
        self.assert_three_way_consistent()

    def test_invariant_holds_after_mixed_sequence(self):
        created = []
        for i in range(6):
            created.append(self.sync.create((i * 10.0, -i * 10.0), f"P{i}"))
            self.assert_three_way_consistent()
        for feat in created[::2]:
            self.sync.remove(feat.id)
            self.assert_three_way_consistent()
        self.sync.create((5.0, 5.0), "Nuevo")
        self.assert_three_way_consistent()
        self.assertEqual(len(self.sync.list()), 4)

    def test_ids_are_never_reused(self):
        ids = iter(["dup", "dup", "dup", "otro"])
        sync = FeatureSynchronizer(FakeSurface(), FeatureStore(MemorySettings()), id_factory=lambda: next(ids))
        sync.initialize()
        first = sync.create((0, 0), "Uno")
        sync.remove(first.id)
        second = sync.create((0, 0), "Dos")
        self.assertEqual(first.id, "dup")
        self.assertEqual(second.id, "otro")

    def test_default_ids_are_unique(self):
        sync = FeatureSynchronizer(FakeSurface(), FeatureStore(MemorySettings()))
        ids = {sync.create((0, 0), f"n{i}").id for i in range(20)}
        self.assertEqual(len(ids), 20)

    def test_name_is_stripped(self):
        feature = self.sync.create((1, 2), "  Pozo  ")
        self.assertEqual(feature.name, "Pozo")


class TestValidation(FeatureSynchronizerTestBase):

    def assert_no_side_effects(self):
        self.assertEqual(self.sync.list(), ())
        self.assertEqual(self.surface.markers, {})
        self.assertEqual(self.settings.write_count, 0)

    def test_empty_name_rejected(self):
        with self.assertRaises(InvalidFeatureError):
            self.sync.create((-11000000, 4600000), "")
        self.assert_no_side_effects()

    def test_blank_name_rejected(self):
        with self.assertRaises(InvalidFeatureError):
            self.sync.create((0, 0), "   ")
        self.assert_no_side_effects()

    def test_missing_coordinate_rejected(self):
        with self.assertRaises(InvalidFeatureError):
            self.sync.create(None, "X")
        self.assert_no_side_effects()

    def test_malformed_coordinates_rejected(self):
        for bad in [(1,), (1, 2, 3), ("a", 2), (float("nan"), 0), (True, 1), "12"]:
            with self.subTest(coordinate=bad):
                with self.assertRaises(InvalidFeatureError):
                    self.sync.create(bad, "X")
        self.assert_no_side_effects()


class TestCenterAndLookup(FeatureSynchronizerTestBase):

    def test_center_on_recenters_surface(self):
        feature = self.sync.create((123.5, -456.25), "Centro")
        writes = self.settings.write_count
        self.sync.center_on(feature.id)
        self.assertEqual(self.surface.centered_on, (123.5, -456.25))
        self.assertEqual(self.settings.write_count, writes)
        self.assertEqual(self.sync.list(), (feature,))

    def test_center_on_unknown_id(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.sync.center_on("no-existe")
        self.assertEqual(ctx.exception.feature_id, "no-existe")
        self.assertIsNone(self.surface.centered_on)

    def test_get(self):
        feature = self.sync.create((1, 1), "Uno")
        self.assertEqual(self.sync.get(feature.id), feature)
        with self.assertRaises(NotFoundError):
            self.sync.get("zzz")


class TestInitialize(unittest.TestCase):

    def test_absent_store_is_empty(self):
        surface = FakeSurface()
        sync = FeatureSynchronizer(surface, FeatureStore(MemorySettings()))
        self.assertEqual(sync.initialize(), ())
        self.assertEqual(surface.markers, {})

    def test_loads_features_and_adds_markers(self):
        records = [
            {"id": "a", "name": "Uno", "coordinate": [1.0, 2.0]},
            {"id": "b", "name": "Dos", "coordinate": [3, 4]},
        ]
        surface = FakeSurface()
        sync = FeatureSynchronizer(surface, FeatureStore(MemorySettings({"features": json.dumps(records)})))
        loaded = sync.initialize()
        self.assertEqual([f.id for f in loaded], ["a", "b"])
        self.assertEqual(surface.markers, {"a": (1.0, 2.0), "b": (3.0, 4.0)})

    def test_loaded_ids_are_not_reissued(self):
        records = [{"id": "f1", "name": "Uno", "coordinate": [1.0, 2.0]}]
        sync = FeatureSynchronizer(FakeSurface(), FeatureStore(MemorySettings({"features": json.dumps(records)})),
                                   id_factory=sequential_ids())
        sync.initialize()
        self.assertEqual(sync.create((0, 0), "Nuevo").id, "f2")

    def test_corrupt_store_raises(self):
        surface = FakeSurface()
        sync = FeatureSynchronizer(surface, FeatureStore(MemorySettings({"features": "not json"})))
        with self.assertRaises(CorruptStoreError):
            sync.initialize()
        self.assertEqual(sync.list(), ())
        self.assertEqual(surface.markers, {})

    def test_reinitialize_replaces_markers(self):
        settings = MemorySettings()
        surface = FakeSurface()
        sync = FeatureSynchronizer(surface, FeatureStore(settings), id_factory=sequential_ids())
        sync.initialize()
        sync.create((0, 0), "Uno")
        settings.values["features"] = json.dumps([{"id": "x", "name": "Otro", "coordinate": [5, 5]}])
        sync.initialize()
        self.assertEqual(set(surface.markers), {"x"})
        self.assertEqual([f.id for f in sync.list()], ["x"])


class TestPersistenceFailure(FeatureSynchronizerTestBase):

    def test_failed_write_keeps_memory_and_marker(self):
        kept = self.sync.create((0, 0), "Guardado")
        self.settings.fail_writes = True

        with self.assertRaises(PersistenceError):
            self.sync.create((1, 1), "Sólo en memoria")

        self.assertEqual(len(self.sync.list()), 2)
        self.assertEqual(len(self.surface.markers), 2)
        self.assertTrue(self.sync.has_pending_changes)
        self.assertEqual([r["id"] for r in self.stored_records()], [kept.id])

    def test_retry_save_persists_pending_changes(self):
        self.settings.fail_writes = True
        with self.assertRaises(PersistenceError):
            self.sync.create((1, 1), "Pendiente")
        with self.assertRaises(PersistenceError):
            self.sync.retry_save()
        self.assertTrue(self.sync.has_pending_changes)

        self.settings.fail_writes = False
        self.sync.retry_save()
        self.assertFalse(self.sync.has_pending_changes)
        self.assert_three_way_consistent()

    def test_failed_status_reported_as_persistence_error(self):
        self.settings.status_value = "AccessError"
        with self.assertRaises(PersistenceError):
            self.sync.create((1, 1), "Sin acceso")
        self.assertEqual(len(self.surface.markers), 1)

    def test_remove_with_failed_write(self):
        feature = self.sync.create((0, 0), "Uno")
        self.settings.fail_writes = True
        with self.assertRaises(PersistenceError):
            self.sync.remove(feature.id)
        self.assertEqual(self.sync.list(), ())
        self.assertEqual(self.surface.markers, {})
        self.assertEqual(len(self.stored_records()), 1)


class TestConsistencyCheck(unittest.TestCase):

    def test_detects_marker_mismatch(self):
        surface = FakeSurface()
        sync = FeatureSynchronizer(surface, FeatureStore(MemorySettings()))
        feature = sync.create((0, 0), "Uno")
        surface.markers.pop(feature.id)
        with self.assertLogs("core.feature_sync", level="WARNING"):
            self.assertFalse(sync.is_consistent())

    def test_feature_is_immutable(self):
        feature = Feature(id="a", name="Uno", coordinate=(0.0, 0.0))
        with self.assertRaises(AttributeError):
            feature.name = "Otro"


if __name__ == '__main__':
    unittest.main()
