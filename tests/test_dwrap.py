from unittest import TestCase

from pwapi.dwrap import SiteInfo, User

from .base import file_to_json


class TestSiteInfo(TestCase):
    """Tests reading siteinfo responses"""

    def setUp(self) -> None:
        self.info = SiteInfo(file_to_json("siteinfo"))

    def test_wikibase(self):
        self.assertEqual("https://query.wikidata.org/sparql", self.info.sparql_endpoint)
        self.assertEqual("http://www.wikidata.org/entity/", self.info.concept_base_uri)

        self.assertEqual("Q42", self.info.entity_id_from_uri("http://www.wikidata.org/entity/Q42"))
        self.assertIsNone(self.info.entity_id_from_uri("http://example.org/entity/Q42"))

    def test_namespace_name(self):
        self.assertEqual("Talk", self.info.namespace_name(1))
        self.assertEqual("Diskussion", self.info.namespace_name(1, True))
        self.assertEqual("Special", self.info.namespace_name(-1))
        self.assertEqual("", self.info.namespace_name(0))
        self.assertIsNone(self.info.namespace_name(9000))

    def test_not_wikibase(self):
        info = SiteInfo({"query": {"general": {"sitename": "Wikipedia"}}})

        self.assertIsNone(info.sparql_endpoint)
        self.assertIsNone(info.entity_id_from_uri("http://www.wikidata.org/entity/Q42"))
        self.assertIsNone(info.namespace_name(0))


class TestUser(TestCase):
    """Tests reading userinfo responses"""

    def test_user(self):
        u = User(file_to_json("userinfo")["query"]["userinfo"])

        self.assertEqual(1043, u.id)
        self.assertFalse(u.is_anon)
        self.assertTrue(u.is_bot)
        self.assertTrue(u.has_right("upload"))
        self.assertFalse(u.has_right("delete"))

    def test_anon(self):
        u = User(file_to_json("userinfo_anon")["query"]["userinfo"])

        self.assertTrue(u.is_anon)
        self.assertFalse(u.is_bot)
        self.assertListEqual(["*"], u.groups)
