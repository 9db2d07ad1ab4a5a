import unittest

from posledger import create_app
from posledger.extensions import db
from posledger.models import StoreSettings
from posledger.services import settings_service
from posledger.services.settings_service import SettingsError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "TESTING": True,
            "ALLOW_NEGATIVE_STOCK": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(StoreSettings).delete()
        db.session.commit()
        self.app.config["ALLOW_NEGATIVE_STOCK"] = False

    def test_config_default_without_row(self):
        self.assertFalse(settings_service.allow_negative_stock())
        self.app.config["ALLOW_NEGATIVE_STOCK"] = True
        self.assertTrue(settings_service.allow_negative_stock())
        self.assertEqual(settings_service.effective_settings()["source"], "config")

    def test_update_creates_single_row(self):
        settings_service.update_store_settings(allow_negative_stock=True)
        settings_service.update_store_settings(allow_negative_stock=False)
        settings_service.update_store_settings(allow_negative_stock=True)

        self.assertEqual(db.session.query(StoreSettings).count(), 1)
        self.assertTrue(settings_service.allow_negative_stock())

    def test_row_wins_over_config(self):
        self.app.config["ALLOW_NEGATIVE_STOCK"] = True
        settings_service.update_store_settings(allow_negative_stock=False)

        effective = settings_service.effective_settings()
        self.assertFalse(effective["allow_negative_stock"])
        self.assertEqual(effective["source"], "store_settings")
        self.assertIsNotNone(effective["updated_at"])

    def test_validation_enforced_for_invalid_bool(self):
        with self.assertRaises(SettingsError):
            settings_service.update_store_settings(allow_negative_stock="yes")
        self.assertEqual(db.session.query(StoreSettings).count(), 0)


if __name__ == "__main__":
    unittest.main()
