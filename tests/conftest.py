"""Pytest configuration and shared fixtures."""

from typing import Any, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from postcrawl_mcp_server.config import ClientConfig, Config, ServerConfig
from postcrawl_mcp_server.postcrawl_client import PostCrawlClient
from postcrawl_mcp_server.server import create_app


TEST_BASE_URL = "https://api.postcrawl.test"
TEST_API_KEY = "sk_test_key"


class StubUpstream:
    """Canned PostCrawl API that records every request it receives."""

    def __init__(self, status_code: int = 200, json_body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else []
        self.text = text
        self.calls: List[httpx.Request] = []
        self.api_keys: List[str] = []

    def respond(self, status_code: int = 200, json_body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else []
        self.text = text

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body)

    def client(self, api_key: str = TEST_API_KEY) -> PostCrawlClient:
        self.api_keys.append(api_key)
        return PostCrawlClient(
            ClientConfig(api_key=api_key, base_url=TEST_BASE_URL),
            transport=httpx.MockTransport(self.handler)
        )


@pytest.fixture
def upstream():
    """Stub upstream answering 200 with an empty JSON array."""
    return StubUpstream()


@pytest.fixture
def test_config():
    """Configuration that logs to the console only."""
    return Config(
        server=ServerConfig(log_file=None, api_log_file=None),
        api_base_url=TEST_BASE_URL
    )


@pytest.fixture
def client(upstream, test_config):
    """Test client for the server, wired to the stub upstream."""
    app = create_app(config=test_config, client_factory=upstream.client)
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TEST_API_KEY}"}


@pytest.fixture
def sample_mcp_request():
    """Sample MCP request for testing."""
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {}
    }


@pytest.fixture
def sample_tool_call_request():
    """Sample tool call request for testing."""
    return {
        "jsonrpc": "2.0",
        "id": 2,
        "method": "tools/call",
        "params": {
            "name": "search",
            "arguments": {"query": "artificial intelligence", "social_platforms": ["reddit"]}
        }
    }


@pytest.fixture
def sample_search_results():
    return [
        {
            "title": "AI Discussion Thread",
            "url": "https://reddit.com/r/MachineLearning/comments/abc123",
            "snippet": "Discussing the latest...",
            "date": "Dec 28, 2024",
            "imageUrl": None
        }
    ]


@pytest.fixture
def sample_extracted_posts():
    return [
        {
            "url": "https://reddit.com/r/MachineLearning/comments/abc123",
            "source": "reddit",
            "raw": {"id": "abc123", "title": "Post Title", "upvotes": 1234},
            "markdown": None,
            "error": None
        }
    ]
