import os, json, pdb
import unittest as test

from crudmvc.data import inmem, base
from crudmvc.data.query import QueryDefinition, FilterDefinition, SortDefinition

class SimpleDataObject(base.DataObject):
    schema = {
        "properties": {
            "value": { "type": "integer", "minimum": 0, "maximum": 100 }
        }
    }

class StringKeyedDataObject(base.DataObject):
    key_type = base.STRING_KEY

class FlaggedDataObject(base.DataObject):
    schema = {
        "properties": {
            "flag": { "type": "boolean" }
        }
    }

class SimpleSubDataObject(base.SubDataObject):
    pass

def seed(n=100):
    return [{"name": "rec%02d" % i, "value": i % 10} for i in range(1, n+1)]

class TestInMemoryCRUDDataLayer(test.TestCase):

    def setUp(self):
        self.dl = inmem.InMemoryCRUDDataLayer(SimpleDataObject, {"initial_records": seed()},
                                              conflict_check=lambda r: r.integer_id == 99)

    def test_ctor(self):
        self.assertIs(self.dl.record_class, SimpleDataObject)
        self.assertEqual(self.dl.count(), 100)
        with self.assertRaises(ValueError):
            inmem.InMemoryCRUDDataLayer(dict)
        with self.assertRaises(ValueError):
            inmem.InMemorySubCRUDDataLayer(SimpleDataObject)

        dl = inmem.InMemoryCRUDDataLayer(SimpleDataObject, records=[SimpleDataObject({"integerID": 7})])
        self.assertEqual(dl.count(), 1)
        self.assertIsNotNone(dl.get_single(lambda r: r.integer_id == 7))

    def test_keys_assigned(self):
        ids = [r.integer_id for r in self.dl.get_all()]
        self.assertEqual(ids, list(range(1, 101)))

    def test_create(self):
        rec = self.dl.create(SimpleDataObject({"name": "goob", "value": 5, "integerID": 3}))
        self.assertEqual(rec.integer_id, 101)
        self.assertEqual(rec.name, "goob")
        self.assertEqual(rec["value"], 5)
        self.assertTrue(rec.last_edited_on)
        self.assertEqual(self.dl.count(), 101)

        rec = self.dl.create(SimpleDataObject({"name": "gurn"}))
        self.assertEqual(rec.integer_id, 102)

    def test_create_keeps_one_key(self):
        rec = self.dl.create(SimpleDataObject({"name": "goob", "value": 5, "stringID": "abc"}))
        self.assertEqual(rec.integer_id, 101)
        self.assertIsNone(rec.string_id)
        self.assertIsNone(self.dl.get_single(lambda r: r.string_id == "abc"))

        dl = inmem.InMemoryCRUDDataLayer(StringKeyedDataObject)
        rec = dl.create(StringKeyedDataObject({"name": "goob", "integerID": 7}))
        self.assertEqual(rec.integer_id, 0)
        self.assertTrue(rec.string_id)

    def test_create_invalid(self):
        with self.assertRaises(base.DataObjectValidationError) as cm:
            self.dl.create(SimpleDataObject({"name": "goob", "value": 500}))
        self.assertEqual(cm.exception.validation_results[0].member_names, ["value"])
        self.assertEqual(self.dl.count(), 100)

    def test_create_string_key(self):
        dl = inmem.InMemoryCRUDDataLayer(StringKeyedDataObject)
        rec = dl.create(StringKeyedDataObject({"name": "goob"}))
        self.assertTrue(rec.string_id)
        self.assertEqual(rec.integer_id, 0)

        rec = dl.create(StringKeyedDataObject({"name": "gurn", "stringID": "gurn"}))
        self.assertEqual(rec.string_id, "gurn")
        with self.assertRaises(base.DataObjectValidationError):
            dl.create(StringKeyedDataObject({"name": "gurn", "stringID": "gurn"}))
        self.assertEqual(dl.count(), 2)

    def test_delete(self):
        rec = self.dl.get_single(lambda r: r.integer_id == 5)
        self.dl.delete(rec)
        self.assertEqual(self.dl.count(), 99)
        self.assertIsNone(self.dl.get_single(lambda r: r.integer_id == 5))

        # deleting a missing record is not an error
        self.dl.delete(rec)
        self.assertEqual(self.dl.count(), 99)

    def test_delete_conflict(self):
        rec = self.dl.get_single(lambda r: r.integer_id == 99)
        with self.assertRaises(base.DeleteConflict):
            self.dl.delete(rec)
        self.assertEqual(self.dl.count(), 100)

    def test_get_all(self):
        recs = self.dl.get_all(lambda r: r["value"] == 3)
        self.assertEqual(len(recs), 10)
        recs[0].name = "changed"
        self.assertNotEqual(self.dl.get_single(lambda r: r.integer_id == recs[0].integer_id).name,
                            "changed")

        lvs = self.dl.get_all_list_view()
        self.assertEqual(len(lvs), 100)
        self.assertIsInstance(lvs[0], base.ListView)

    def test_get_page(self):
        page = self.dl.get_page(QueryDefinition(0, 20))
        self.assertEqual(len(page.data_objects), 20)
        self.assertEqual(page.total_records, 100)
        self.assertEqual(page.data_objects[0].integer_id, 1)

        page = self.dl.get_page(QueryDefinition(90, 20))
        self.assertEqual(len(page.data_objects), 10)
        self.assertEqual(page.total_records, 100)

        page = self.dl.get_page(QueryDefinition())
        self.assertEqual(len(page.data_objects), 100)

    def test_get_page_filtered(self):
        qd = QueryDefinition(0, 5, [FilterDefinition("value", "Equals", "3")])
        page = self.dl.get_page(qd)
        self.assertEqual(page.total_records, 10)
        self.assertEqual(len(page.data_objects), 5)
        self.assertTrue(all(r["value"] == 3 for r in page.data_objects))

        qd = QueryDefinition(0, 0, [FilterDefinition("value", "GreaterThanOrEquals", "8"),
                                    FilterDefinition("name", "StartsWith", "rec1")])
        page = self.dl.get_page(qd)
        self.assertEqual(sorted(r.name for r in page.data_objects), ["rec18", "rec19"])

        qd = QueryDefinition(0, 0, [FilterDefinition("name", "Contains", "9")])
        self.assertEqual(self.dl.get_page(qd).total_records, 19)

    def test_get_page_sorted(self):
        qd = QueryDefinition(0, 3, sort_definitions=[SortDefinition("value", "Descending"),
                                                     SortDefinition("name")])
        page = self.dl.get_page(qd)
        self.assertEqual([r.name for r in page.data_objects], ["rec09", "rec19", "rec29"])

        lvpage = self.dl.get_page_list_view(qd)
        self.assertEqual([lv.name for lv in lvpage.data_objects], ["rec09", "rec19", "rec29"])
        self.assertEqual(lvpage.total_records, 100)

    def test_get_page_property_case(self):
        qd = QueryDefinition(0, 0, [FilterDefinition("Name", "Contains", "9")])
        self.assertEqual(self.dl.get_page(qd).total_records, 19)

        qd = QueryDefinition(0, 3, [FilterDefinition("VALUE", "Equals", "3")],
                             [SortDefinition("Name", "Descending")])
        page = self.dl.get_page(qd)
        self.assertEqual(page.total_records, 10)
        self.assertEqual([r.name for r in page.data_objects], ["rec93", "rec83", "rec73"])

        qd = QueryDefinition(0, 0, [FilterDefinition("Goober", "Equals", "3")])
        self.assertEqual(self.dl.get_page(qd).total_records, 0)

    def test_get_page_boolean(self):
        recs = [{"name": "flag%d" % i, "flag": bool(i % 2)} for i in range(6)]
        dl = inmem.InMemoryCRUDDataLayer(FlaggedDataObject, {"initial_records": recs})

        page = dl.get_page(QueryDefinition(0, 0, [FilterDefinition("flag", "Equals", "true")]))
        self.assertEqual([r.name for r in page.data_objects], ["flag1", "flag3", "flag5"])

        page = dl.get_page(QueryDefinition(0, 0, [FilterDefinition("Flag", "NotEquals", "true")]))
        self.assertEqual([r.name for r in page.data_objects], ["flag0", "flag2", "flag4"])

    def test_get_single(self):
        self.assertEqual(self.dl.get_single().integer_id, 1)
        self.assertEqual(self.dl.get_single(lambda r: r.name == "rec42").integer_id, 42)
        self.assertIsNone(self.dl.get_single(lambda r: r.name == "goob"))

    def test_update(self):
        rec = self.dl.create(SimpleDataObject({"name": "goob", "value": 5}))
        rec.name = "gurn"
        upd = self.dl.update(rec)
        self.assertEqual(upd.name, "gurn")
        self.assertEqual(self.dl.get_single(lambda r: r.integer_id == rec.integer_id).name, "gurn")

        stale = upd.copy()
        stale.last_edited_on = "2000-01-01T00:00:00+00:00"
        with self.assertRaises(base.UpdateConflict):
            self.dl.update(stale)

        upd.name = "hank"
        self.assertEqual(self.dl.update(upd).name, "hank")

    def test_update_not_found(self):
        with self.assertRaises(base.IDNotFound):
            self.dl.update(SimpleDataObject({"integerID": 500, "name": "goob"}))
        with self.assertRaises(base.IDNotFound):
            self.dl.update(SimpleDataObject({"name": "goob"}))

    def test_update_invalid(self):
        rec = self.dl.get_single(lambda r: r.integer_id == 5)
        rec["value"] = -1
        with self.assertRaises(base.DataObjectValidationError):
            self.dl.update(rec)

    def test_reset(self):
        self.dl.create(SimpleDataObject({"name": "goob"}))
        self.dl.delete(self.dl.get_single())
        self.assertEqual(self.dl.count(), 100)
        self.dl.reset()
        self.assertEqual(self.dl.count(), 100)
        self.assertEqual(self.dl.get_single().integer_id, 1)
        self.assertIsNone(self.dl.get_single(lambda r: r.name == "goob"))

class TestInMemorySubCRUDDataLayer(test.TestCase):

    def setUp(self):
        recs = [{"name": "sub%d" % i, "ownerIntegerID": (i % 3) + 1} for i in range(30)]
        self.dl = inmem.InMemorySubCRUDDataLayer(SimpleSubDataObject, {"initial_records": recs})

    def test_owner_filter(self):
        recs = self.dl.get_all(lambda r: r.owner_integer_id == 2)
        self.assertEqual(len(recs), 10)
        self.assertTrue(all(r.owner_integer_id == 2 for r in recs))

        page = self.dl.get_page(QueryDefinition(0, 4, [FilterDefinition("ownerIntegerID", "Equals", "3")]))
        self.assertEqual(page.total_records, 10)
        self.assertEqual(len(page.data_objects), 4)
        self.assertTrue(all(r.owner_integer_id == 3 for r in page.data_objects))


if __name__ == '__main__':
    test.main()
