import pytest
from unittest.mock import patch, MagicMock

from shortener.main import app, lifespan, root
from shortener.clicks import ClickDispatcher

@pytest.mark.asyncio
async def test_lifespan():
    # Create app mock
    mock_app = MagicMock()
    mock_app.state = MagicMock()

    mock_geo = MagicMock()

    with patch('shortener.main.GeoLocationResolver', return_value=mock_geo):
        async with lifespan(mock_app) as _:
            dispatcher = mock_app.state.click_dispatcher
            assert isinstance(dispatcher, ClickDispatcher)
            assert dispatcher.running
            assert mock_app.state.geo_resolver is mock_geo

    # Dispatcher drained and geolocation client closed on shutdown
    assert not dispatcher.running
    mock_geo.close.assert_called_once()

@pytest.mark.asyncio
async def test_log_requests_middleware(caplog):
    from shortener.main import log_requests

    mock_request = MagicMock()
    mock_request.url.path = "/urls"
    mock_request.method = "POST"

    mock_response = MagicMock()
    mock_response.status_code = 201

    async def mock_call_next(_):
        return mock_response

    with caplog.at_level("INFO", logger="shortener"):
        response = await log_requests(mock_request, mock_call_next)

    assert response == mock_response
    assert "POST /urls - 201" in caplog.text

@pytest.mark.asyncio
async def test_root_endpoint():
    result = await root()

    assert "message" in result
    assert "docs_url" in result
    assert "version" in result
    assert result["docs_url"] == "/docs"

def test_redirect_route_registered_last():
    paths = [route.path for route in app.routes]
    assert paths[-1] == "/{short_code}"
    assert paths.index("/") < paths.index("/{short_code}")
