import os, sys, pdb, json, logging, re, tempfile
import unittest as test

from crudmvc.web import rest
from crudmvc.config import ConfigurationException

tmpdir = tempfile.TemporaryDirectory(prefix="_test_rest.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    rootlog.setLevel(logging.DEBUG)
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_rest.log"))
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

class EchoHandler(rest.Handler):

    def do_GET(self, path, ashead=False):
        return self.send_ok("echo:"+path, ashead=ashead)

    def do_PUT(self, path):
        raise RuntimeError("oops")

class EchoApp(rest.ServiceApp):

    def __init__(self, name, config=None):
        super(EchoApp, self).__init__(name, rootlog, config)

    def create_handler(self, env, start_resp, path):
        return EchoHandler(self.name+":"+path, env, start_resp, self.cfg, self.log, self)

class TestHandler(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def setUp(self):
        self.resp = []

    def test_get(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'GET'}, self.start)
        body = hdlr.handle()
        self.assertIn("200 OK", self.resp[0])
        self.assertIn("Content-Type: text/plain", self.resp)
        self.assertIn("Content-Length: 9", self.resp)
        self.assertEqual(self.tostr(body), ["echo:goob"])

    def test_head(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'HEAD'}, self.start)
        body = hdlr.handle()
        self.assertIn("200 OK", self.resp[0])
        self.assertIn("Content-Length: 9", self.resp)
        self.assertEqual(body, [])

    def test_not_allowed(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'PATCH'}, self.start)
        hdlr.handle()
        self.assertIn("405 ", self.resp[0])

    def test_failure(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'PUT'}, self.start, log=rootlog)
        hdlr.handle()
        self.assertIn("500 Server failure", self.resp[0])

    def test_send_redirect(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'POST'}, self.start)
        body = hdlr.send_redirect("/goob/Index")
        self.assertIn("302 Found", self.resp[0])
        self.assertIn("Location: /goob/Index", self.resp)
        self.assertEqual(body, [])

    def test_send_options(self):
        hdlr = EchoHandler("goob", {'REQUEST_METHOD': 'OPTIONS'}, self.start)
        hdlr.send_options(["GET", "POST"], "http://example.com")
        self.assertIn("200 No Content", self.resp[0])
        self.assertIn("Allow: GET, POST, OPTIONS", self.resp)
        self.assertIn("Access-Control-Allow-Origin: http://example.com", self.resp)

    def test_get_accepts(self):
        hdlr = EchoHandler("goob", {'HTTP_ACCEPT': "text/html;q=0.5, application/json"}, self.start)
        self.assertEqual(hdlr.get_accepts(), ["application/json", "text/html"])
        hdlr = EchoHandler("goob", {}, self.start)
        self.assertEqual(hdlr.get_accepts(), [])

    def test_get_query_params(self):
        hdlr = EchoHandler("goob", {'QUERY_STRING': "skip=2&take=&skip=3"}, self.start)
        self.assertEqual(hdlr.get_query_params(), {"skip": ["2", "3"], "take": [""]})

class TestServiceApp(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def setUp(self):
        self.resp = []

    def test_include_headers(self):
        app = EchoApp("goob", {"include_headers": {"Access-Control-Allow-Origin": "*"}})
        body = app({'REQUEST_METHOD': 'GET', 'PATH_INFO': 'gurn'}, self.start)
        self.assertIn("Access-Control-Allow-Origin: *", self.resp)
        self.assertEqual(self.tostr(body), ["echo:goob:gurn"])

        app = EchoApp("goob", {"include_headers": [["X-Goob", "gurn"]]})
        self.assertEqual(app.include_headers["X-Goob"], "gurn")

        with self.assertRaises(ConfigurationException):
            EchoApp("goob", {"include_headers": "X-Goob"})

class TestWSGIAppSuite(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def setUp(self):
        self.resp = []
        self.app = rest.WSGIAppSuite({}, {"": EchoApp("root"), "goob": EchoApp("goob"),
                                          "goob/gurn": EchoApp("gurn"), "a/b": EchoApp("ab")},
                                     rootlog, "/crud")

    def get(self, path):
        self.resp = []
        return self.tostr(self.app({'REQUEST_METHOD': 'GET', 'PATH_INFO': path}, self.start))

    def test_routing(self):
        self.assertEqual(self.get("/crud/goob/Count"), ["echo:goob:Count"])
        self.assertEqual(self.get("/crud/goob/gurn/Page"), ["echo:gurn:Page"])
        self.assertEqual(self.get("/crud//goob"), ["echo:goob:"])
        self.assertEqual(self.get("/crud/hank"), ["echo:root:hank"])
        self.assertEqual(self.get("/crud"), ["echo:root:"])

    def test_outside_base(self):
        self.get("/other/goob")
        self.assertIn("404 ", self.resp[0])
        self.get("/")
        self.assertIn("403 ", self.resp[0])

    def test_parent_path(self):
        app = rest.WSGIAppSuite({}, {"a/b": EchoApp("ab")}, rootlog)
        self.resp = []
        app({'REQUEST_METHOD': 'GET', 'PATH_INFO': '/a'}, self.start)
        self.assertIn("403 ", self.resp[0])
        self.resp = []
        app({'REQUEST_METHOD': 'GET', 'PATH_INFO': '/c'}, self.start)
        self.assertIn("404 ", self.resp[0])

    def test_not_found_handler(self):
        hdlr = rest.NotFoundHandler("goob", {'REQUEST_METHOD': 'GET'}, self.start)
        hdlr.handle()
        self.assertIn("404 ", self.resp[0])


if __name__ == '__main__':
    test.main()
