"""Pytest configuration and fixtures."""

import pytest


@pytest.fixture
def sample_tool_params():
    """Sample tool parameters for testing."""
    from imgtrust_core.plugin import ToolParam

    return [
        ToolParam(name="tag", description="Image tag", default="latest", positional=True),
        ToolParam(name="platform", description="Platform filter", default="linux/amd64"),
        ToolParam(name="identity", description="Signer identity"),
    ]


@pytest.fixture
def mock_plugin():
    """Mock plugin for testing."""
    from imgtrust_core.plugin import ToolParam, ToolResult, ResultStatus

    class MockPlugin:
        name = "mock"
        description = "Mock plugin for testing"
        version = "0.1.0"

        def get_params(self):
            return [
                ToolParam(name="input", description="Input value", required=True),
            ]

        def run(self, args, ctx):
            return ToolResult(
                status=ResultStatus.SUCCESS,
                summary=f"Processed: {args['input']}",
                data={"input": args["input"]},
            )

    return MockPlugin()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the CLI at a config file that does not exist yet."""
    path = tmp_path / "config.yaml"
    monkeypatch.setenv("IMGTRUST_CONFIG", str(path))
    return path
