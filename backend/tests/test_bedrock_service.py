"""Tests for the Bedrock wrapper using botocore's Stubber (no AWS access)."""

import asyncio
import io
import json

import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from ppob_chat.services.bedrock_service import BedrockService, extract_text_from_content


def _body(payload):
    raw = json.dumps(payload).encode()
    return StreamingBody(io.BytesIO(raw), len(raw))


def test_invoke_claude_returns_content_blocks():
    service = BedrockService(model_id="test-model", timeout_seconds=5)
    reply = {
        "content": [{"type": "text", "text": '{"intent": "buy"}'}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 6},
    }

    with Stubber(service.client) as stubber:
        stubber.add_response(
            "invoke_model",
            {"body": _body(reply), "contentType": "application/json"},
            {
                "modelId": "test-model",
                "body": json.dumps({
                    "anthropic_version": "bedrock-2023-05-31",
                    "messages": [{"role": "user", "content": "beli pulsa"}],
                    "max_tokens": 300,
                    "temperature": 0.0,
                    "system": "prompt",
                }),
                "contentType": "application/json",
                "accept": "application/json",
            },
        )
        result = asyncio.run(service.invoke_claude(
            [{"role": "user", "content": "beli pulsa"}], system_prompt="prompt", max_tokens=300,
        ))

    assert result["stop_reason"] == "end_turn"
    assert extract_text_from_content(result["content"]) == '{"intent": "buy"}'


def test_aws_error_becomes_runtime_error():
    service = BedrockService(model_id="test-model", timeout_seconds=5)

    with Stubber(service.client) as stubber:
        stubber.add_client_error("invoke_model", service_error_code="ThrottlingException")
        with pytest.raises(RuntimeError, match="ThrottlingException"):
            asyncio.run(service.invoke_claude([{"role": "user", "content": "halo"}]))


def test_extract_text_skips_non_text_blocks():
    content = [{"type": "text", "text": "Halo"}, {"type": "tool_use", "id": "x"}, {"type": "text", "text": "!"}]
    assert extract_text_from_content(content) == "Halo!"
