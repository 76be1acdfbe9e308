import os, sys, pdb, json
import unittest as test

from crudmvc import ext
from crudmvc.data.base import ValidationResult, DataObjectValidationError

class TestSpaceCapitalLetters(test.TestCase):

    def test_space(self):
        self.assertEqual(ext.space_capital_letters("SimpleDataObject"), "Simple Data Object")
        self.assertEqual(ext.space_capital_letters("record"), "record")
        self.assertEqual(ext.space_capital_letters(""), "")
        self.assertEqual(ext.space_capital_letters("ABC"), "A B C")

class TestModelState(test.TestCase):

    def test_add(self):
        ms = ext.ModelState()
        self.assertTrue(ms.is_valid)
        self.assertEqual(ms.error_count(), 0)

        ms.add_model_error("value", "too big")
        ms.add_model_error("value", "not even")
        ms.add_model_error("", "just wrong")
        self.assertFalse(ms.is_valid)
        self.assertEqual(ms.error_count(), 3)
        self.assertEqual(ms["value"], ["too big", "not even"])

    def test_copy_to_model_state(self):
        results = [ValidationResult("too big", ["value"]),
                   ValidationResult("mismatch", ["integerID", "stringID"]),
                   ValidationResult("whole record"),
                   ValidationResult(None, ["name"])]
        ms = ext.copy_to_model_state(results, ext.ModelState())
        self.assertEqual(list(ms.keys()), ["value", "integerID", "stringID", ""])
        self.assertEqual(ms["stringID"], ["mismatch"])
        self.assertEqual(ms[""], ["whole record"])
        self.assertNotIn("name", ms)

        ms = ext.copy_to_model_state(DataObjectValidationError(results[:1]), ext.ModelState())
        self.assertEqual(ms, {"value": ["too big"]})

    def test_errors_to_json(self):
        ms = ext.ModelState()
        ms.add_model_error("value", "too big")
        data = json.loads(ext.errors_to_json(ms))
        self.assertEqual(data, {"value": ["too big"]})
        self.assertEqual(json.loads(ext.errors_to_json(ext.ModelState())), {})


if __name__ == '__main__':
    test.main()
