import pytest

from dogfetch.core.pagination import CursorConfig, CursorStrategy

MOCK_RESPONSE_WITH_CURSOR = {
    "data": [{"id": 1}, {"id": 2}],
    "meta": {"page": {"after": "eyJhZnRlciI6IkFRQUFBWE"}}
}

MOCK_RESPONSE_LAST_PAGE = {
    "data": [{"id": 3}],
    "meta": {"elapsed": 12, "status": "done"}
}


class TestCursorStrategy:
    """Test suite for cursor based pagination."""

    @pytest.fixture
    def strategy(self) -> CursorStrategy:
        return CursorStrategy()

    def test_initial_params_without_cursor(self, strategy):
        base_params = {"filter[query]": "service:web"}
        result = strategy.get_initial_params(base_params, 100)

        assert result == {"filter[query]": "service:web", "page[limit]": 100}
        assert "page[cursor]" not in result
        # Base params are not mutated
        assert base_params == {"filter[query]": "service:web"}

    def test_initial_params_with_cursor(self, strategy):
        result = strategy.get_initial_params({}, 50, cursor="C2")
        assert result["page[cursor]"] == "C2"
        assert result["page[limit]"] == 50

    def test_next_cursor(self, strategy):
        assert strategy.get_next_cursor(MOCK_RESPONSE_WITH_CURSOR) == "eyJhZnRlciI6IkFRQUFBWE"

    @pytest.mark.parametrize("response", [
        MOCK_RESPONSE_LAST_PAGE,
        {"data": []},
        {"meta": None},
        {"meta": {"page": {"after": None}}},
        {"meta": {"page": "unexpected"}}
    ])
    def test_no_next_cursor(self, strategy, response):
        assert strategy.get_next_cursor(response) == ""

    def test_custom_config(self):
        strategy = CursorStrategy(CursorConfig(
            cursor_param="next_token",
            limit_param="limit",
            cursor_field="next_cursor"
        ))
        params = strategy.get_initial_params({}, 10, cursor="abc")
        assert params == {"limit": 10, "next_token": "abc"}
        assert strategy.get_next_cursor({"next_cursor": "def"}) == "def"
