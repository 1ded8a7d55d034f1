from unittest.mock import patch

from api_mock_studio.mock.controller import MockServerController
from api_mock_studio.mock.settings import SETTINGS_KEY


class TestController:
    def test_from_settings_file(self, tmp_path, widgets):
        path = tmp_path / "conf" / "settings.json"
        controller = MockServerController.from_settings_file([widgets], path)
        controller.handle_toggle_collection("c1")
        assert path.exists()
        assert controller.get_collections() == [widgets]
        assert controller.get_settings().enabled_collections == ("c1",)

    def test_settings_survive_new_controller(self, store, widgets):
        first = MockServerController(store, [widgets])
        first.handle_toggle_collection("c1")
        first.handle_set_delay("c1", "e1", 1200)
        first.handle_set_custom_response("c1", "e1", {"ok": 1})

        second = MockServerController(store, [widgets])
        assert second.get_settings().enabled_collections == ("c1",)
        assert second.get_settings().endpoint_delays == {"c1_e1": 1200}
        assert second.get_custom_response("c1", "e1") == {"ok": 1}
        assert len(second.engine.routes) == 3

    def test_custom_status_code_accessors(self, store, widgets):
        controller = MockServerController(store, [widgets])
        assert controller.get_custom_status_code("c1", "e1") is None
        assert controller.handle_set_custom_status_code("c1", "e1", 409).success
        assert controller.get_custom_status_code("c1", "e1") == 409
        assert store.get(SETTINGS_KEY)["customStatusCodes"] == {"c1_e1": 409}

    def test_status(self, store, widgets):
        controller = MockServerController(store, [widgets])
        assert controller.get_status() == {"running": False, "port": 3000, "requestCount": 0}

    def test_clear_request_logs(self, store, widgets):
        import asyncio

        controller = MockServerController(store, [widgets])
        controller.handle_toggle_collection("c1")
        asyncio.run(controller.engine.handle_request("POST", "/widgets"))
        assert len(controller.get_request_logs()) == 1
        assert controller.clear_request_logs().success
        assert controller.get_request_logs() == []

    def test_set_collections_and_reload(self, store, widgets, gadgets):
        controller = MockServerController(store, [widgets])
        controller.handle_toggle_collection("c2")
        assert controller.engine.routes.match("GET", "/gadgets") is None

        assert controller.handle_set_collections([widgets, gadgets]).success
        assert controller.engine.routes.match("GET", "/gadgets") is not None

        MockServerController(store, [widgets, gadgets]).handle_toggle_collection("c2")
        assert controller.handle_reload_settings().success
        assert controller.engine.routes.match("GET", "/gadgets") is None

    def test_start_and_stop_delegate_to_engine(self, store, widgets):
        controller = MockServerController(store, [widgets])
        with patch.object(controller.engine, "start") as mock_start, patch.object(controller.engine, "stop") as mock_stop:
            controller.handle_start()
            controller.handle_stop()
        mock_start.assert_called_once()
        mock_stop.assert_called_once()
