import os, sys, pdb, json, logging, tempfile
import unittest as test
from io import StringIO
from collections import OrderedDict

from crudmvc.controller import api, base
from crudmvc.data import DataObject, STRING_KEY, inmem

tmpdir = tempfile.TemporaryDirectory(prefix="_test_api.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    rootlog.setLevel(logging.DEBUG)
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_api.log"))
    loghdlr.setLevel(logging.DEBUG)
    loghdlr.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

class SimpleDataObject(DataObject):
    schema = {
        "properties": {
            "value": { "type": "integer", "minimum": 0, "maximum": 100 }
        }
    }

class CodedDataObject(DataObject):
    key_type = STRING_KEY

class BrokenDataLayer(inmem.InMemoryCRUDDataLayer):

    def count(self):
        raise RuntimeError("disk on fire")

    def get_all(self, where=None):
        raise RuntimeError("disk on fire")

    def get_page(self, query):
        raise RuntimeError("disk on fire")

    def get_single(self, where=None):
        raise RuntimeError("disk on fire")

def seed(n=100):
    return [{"name": "rec%02d" % i, "value": i % 10} for i in range(1, n+1)]

class TestFunctions(test.TestCase):

    def test_parse_id(self):
        self.assertEqual(base.parse_id("42"), 42)
        self.assertEqual(base.parse_id("abc"), "abc")
        self.assertEqual(base.parse_id("42", "integer"), 42)
        self.assertEqual(base.parse_id("42", STRING_KEY), "42")
        self.assertEqual(base.parse_id("٤٢"), "٤٢")

class TestStandardCRUDApp(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def body2data(self, body):
        return json.loads("\n".join(self.tostr(body)), object_pairs_hook=OrderedDict)

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def setUp(self):
        self.resp = []
        self.dl = inmem.InMemoryCRUDDataLayer(SimpleDataObject, {"initial_records": seed()},
                                              conflict_check=lambda r: r.integer_id == 99)
        self.app = api.StandardCRUDApp(self.dl, rootlog.getChild("simple"))

    def request(self, meth, path, body=None, query=None, **extra):
        self.resp = []
        env = { 'REQUEST_METHOD': meth, 'PATH_INFO': path }
        if body is not None:
            env['wsgi.input'] = StringIO(body if isinstance(body, str) else json.dumps(body))
        if query:
            env['QUERY_STRING'] = query
        env.update(extra)
        return self.app(env, self.start)

    def test_ctor(self):
        self.assertIs(self.app.datalayer, self.dl)
        self.assertEqual(self.app.type_name, "SimpleDataObject")
        self.assertEqual(self.app.name, "SimpleDataObject")
        self.assertIs(self.app.record_class, SimpleDataObject)

        app = api.StandardCRUDApp(self.dl, rootlog, {"record_type_name": "Thing"}, "things")
        self.assertEqual(app.type_name, "Thing")
        self.assertEqual(app.name, "things")

        with self.assertRaises(ValueError):
            api.StandardCRUDApp(None, rootlog)
        with self.assertRaises(ValueError):
            api.StandardCRUDApp(self.dl, None)
        with self.assertRaises(ValueError):
            api.StandardSubCRUDApp(self.dl, rootlog)

    def test_count(self):
        body = self.request("GET", "/Count")
        self.assertIn("200 ", self.resp[0])
        self.assertIn("Content-Type: application/json", self.resp)
        self.assertEqual(self.body2data(body), 100)

        body = self.request("GET", "/count")
        self.assertEqual(self.body2data(body), 100)

        body = self.request("HEAD", "/Count")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(body, [])

    def test_not_acceptable(self):
        self.request("GET", "/Count", HTTP_ACCEPT="text/html")
        self.assertIn("406 ", self.resp[0])

        body = self.request("GET", "/Count", HTTP_ACCEPT="text/html, application/*;q=0.5")
        self.assertIn("200 ", self.resp[0])

    def test_options(self):
        self.request("OPTIONS", "/", HTTP_ORIGIN="http://example.com")
        self.assertIn("200 ", self.resp[0])
        self.assertIn("Allow: POST, PUT, OPTIONS", self.resp)
        self.assertIn("Access-Control-Allow-Origin: http://example.com", self.resp)

    def test_create(self):
        body = self.request("POST", "/", {"name": "goob", "value": 42})
        self.assertIn("200 ", self.resp[0])
        rec = self.body2data(body)
        self.assertEqual(rec["integerID"], 101)
        self.assertEqual(rec["name"], "goob")
        self.assertTrue(rec["lastEditedOn"])
        self.assertEqual(self.dl.count(), 101)

    def test_create_ignores_string_key(self):
        body = self.request("POST", "/", {"name": "goob", "value": 5, "stringID": "abc"})
        self.assertIn("200 ", self.resp[0])
        rec = self.body2data(body)
        self.assertEqual(rec["integerID"], 101)
        self.assertIsNone(rec["stringID"])

        self.request("DELETE", "/abc")
        self.assertIn("404 ", self.resp[0])
        self.assertEqual(self.dl.count(), 101)

    def test_create_invalid(self):
        body = self.request("POST", "/", {"name": "goob", "value": 420})
        self.assertIn("400 ", self.resp[0])
        self.assertIn("Content-Type: application/problem+json", self.resp)
        prob = self.body2data(body)
        self.assertEqual(prob["status"], 400)
        self.assertEqual(list(prob["errors"].keys()), ["value"])
        self.assertEqual(self.dl.count(), 100)

        body = self.request("POST", "/", "{ goob")
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Input not parseable as JSON")

        body = self.request("POST", "/", [1, 2])
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Input not a record")

        body = self.request("POST", "/")
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Missing input")

    def test_update(self):
        rec = self.dl.create(SimpleDataObject({"name": "goob", "value": 5}))
        data = rec.to_dict()
        data["name"] = "gurn"
        body = self.request("PUT", "/", data)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body)["name"], "gurn")
        self.assertEqual(self.dl.get_single(lambda r: r.integer_id == rec.integer_id).name, "gurn")

        data["lastEditedOn"] = "2000-01-01T00:00:00+00:00"
        body = self.request("PUT", "/", data)
        self.assertIn("409 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"],
                         "Simple Data Object Update Error - Data Conflict")

    def test_update_fails(self):
        body = self.request("PUT", "/", {"integerID": 500, "name": "goob"})
        self.assertIn("404 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Update Error - Not Found")

        body = self.request("PUT", "/", {"integerID": 5, "name": "goob", "value": -5})
        self.assertIn("400 ", self.resp[0])
        self.assertIn("value", self.body2data(body)["errors"])

    def test_delete(self):
        body = self.request("DELETE", "/5")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertEqual(self.dl.count(), 99)

        body = self.request("DELETE", "/5")
        self.assertIn("404 ", self.resp[0])
        prob = self.body2data(body)
        self.assertEqual(prob["title"], "Simple Data Object Delete Error - Not Found")
        self.assertEqual(prob["status"], 404)

        body = self.request("DELETE", "/99")
        self.assertIn("409 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Delete Error - Data Conflict")
        self.assertEqual(self.dl.count(), 99)

    def test_get_all(self):
        body = self.request("GET", "/All")
        recs = self.body2data(body)
        self.assertEqual(len(recs), 100)
        self.assertEqual(recs[0]["name"], "rec01")
        self.assertIn("value", recs[0])

        body = self.request("GET", "/All/ListView")
        recs = self.body2data(body)
        self.assertEqual(len(recs), 100)
        self.assertEqual(list(recs[0].keys()), ["integerID", "stringID", "name"])

        self.request("GET", "/All/goob")
        self.assertIn("404 ", self.resp[0])

    def test_get_page(self):
        body = self.request("GET", "/Page", query="Skip=0&Take=20")
        self.assertIn("200 ", self.resp[0])
        page = self.body2data(body)
        self.assertEqual(len(page["dataObjects"]), 20)
        self.assertEqual(page["totalRecords"], 100)

        body = self.request("GET", "/Page/ListView",
                            query="Take=5&FilterDefinitions[0].FilterOn=value&FilterDefinitions[0].Value=3"+
                                  "&SortDefinitions[0].SortOn=name&SortDefinitions[0].SortOrder=Descending")
        page = self.body2data(body)
        self.assertEqual(page["totalRecords"], 10)
        self.assertEqual([r["name"] for r in page["dataObjects"]],
                         ["rec93", "rec83", "rec73", "rec63", "rec53"])
        self.assertNotIn("value", page["dataObjects"][0])

        body = self.request("GET", "/Page",
                            query="FilterDefinitions[0].FilterOn=Name&FilterDefinitions[0].Operator=Contains"+
                                  "&FilterDefinitions[0].Value=9&SortDefinitions[0].SortOn=Value"+
                                  "&SortDefinitions[0].SortOrder=Descending")
        page = self.body2data(body)
        self.assertEqual(page["totalRecords"], 19)
        self.assertEqual(page["dataObjects"][0]["name"], "rec09")

        body = self.request("GET", "/Page", query="Skip=goob")
        self.assertIn("400 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Invalid query")

    def test_get_single(self):
        body = self.request("GET", "/Single")
        self.assertEqual(self.body2data(body)["integerID"], 1)

        body = self.request("GET", "/Single/42")
        self.assertEqual(self.body2data(body)["name"], "rec42")

        body = self.request("GET", "/Single/500")
        self.assertIn("200 ", self.resp[0])
        self.assertIsNone(self.body2data(body))

    def test_string_keys(self):
        recs = [{"stringID": "123", "name": "digits"}, {"stringID": "abc", "name": "letters"}]
        dl = inmem.InMemoryCRUDDataLayer(CodedDataObject, {"initial_records": recs})
        self.app = api.StandardCRUDApp(dl, rootlog)

        body = self.request("GET", "/Single/123")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body)["name"], "digits")

        body = self.request("GET", "/Single/abc")
        self.assertEqual(self.body2data(body)["name"], "letters")

        self.request("DELETE", "/123")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(dl.count(), 1)
        self.request("DELETE", "/123")
        self.assertIn("404 ", self.resp[0])

    def test_not_found(self):
        self.request("GET", "/goob/gurn")
        self.assertIn("404 ", self.resp[0])
        self.request("GET", "/Single/42/goob")
        self.assertIn("404 ", self.resp[0])

    def test_method_not_allowed(self):
        self.request("DELETE", "/Count")
        self.assertIn("405 ", self.resp[0])

    def test_server_errors(self):
        self.app = api.StandardCRUDApp(BrokenDataLayer(SimpleDataObject), rootlog)
        body = self.request("GET", "/Count")
        self.assertIn("500 ", self.resp[0])
        prob = self.body2data(body)
        self.assertEqual(prob["title"], "Simple Data Object Count Error")
        self.assertEqual(prob["detail"],
                         "Failed to return the Simple Data Object count because of an error on the server.")

        body = self.request("GET", "/All/ListView")
        self.assertIn("500 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Get All List View Error")

        body = self.request("GET", "/Page")
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Get Page Error")

        body = self.request("GET", "/Single/3")
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Get Single Error")

        body = self.request("DELETE", "/3")
        self.assertIn("500 ", self.resp[0])
        self.assertEqual(self.body2data(body)["title"], "Simple Data Object Delete Error")


if __name__ == '__main__':
    test.main()
