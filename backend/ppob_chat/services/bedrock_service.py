"""
AWS Bedrock Service

Thin async wrapper over the bedrock-runtime InvokeModel API for the two
short, non-streaming calls the storefront makes: turning a chat command
into an intent and wording a confirmation or apology.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings

logger = logging.getLogger(__name__)


ANTHROPIC_VERSION = "bedrock-2023-05-31"


def build_request_body(
    messages: List[Dict[str, Any]],
    system_prompt: Optional[str],
    max_tokens: int,
    temperature: float,
) -> str:
    body: Dict[str, Any] = {
        "anthropic_version": ANTHROPIC_VERSION,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if system_prompt:
        body["system"] = system_prompt
    return json.dumps(body)


def extract_text_from_content(content: List[Dict[str, Any]]) -> str:
    """Concatenate the text blocks of a Claude reply, ignoring other block types."""
    return "".join(block.get("text", "") for block in content if block.get("type") == "text")


class BedrockService:
    """
    Claude on AWS Bedrock.

    Every failure (client setup, AWS error, timeout, undecodable reply)
    surfaces as RuntimeError; the intent parser and message composer each
    decide what a failed call means for them.

    Args:
        model_id: Bedrock model or inference-profile id
        timeout_seconds: Upper bound for one call, including retries
    """

    def __init__(self, model_id: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.model_id = model_id or settings.aws_bedrock_model_id
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        try:
            self.client = boto3.client(
                service_name="bedrock-runtime",
                region_name=settings.aws_region,
                config=Config(read_timeout=self.timeout_seconds, retries={"max_attempts": 2}),
            )
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize Bedrock client: {e}")
            raise RuntimeError(f"Bedrock initialization failed: {e}") from e
        logger.info(f"Bedrock client initialized: region={settings.aws_region}, model={self.model_id}")

    def invoke_model(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> Dict[str, Any]:
        """
        Blocking InvokeModel call.

        Returns:
            Dict with 'content' (block list), 'stop_reason' and 'usage'

        Raises:
            RuntimeError: If the call fails or the reply is not JSON
        """
        try:
            response = self.client.invoke_model(
                modelId=self.model_id,
                body=build_request_body(messages, system, max_tokens, temperature),
                contentType="application/json",
                accept="application/json",
            )
            reply = json.loads(response["body"].read())
        except ClientError as e:
            error = e.response.get("Error", {})
            logger.error(f"Bedrock ClientError: {error.get('Code', 'Unknown')} - {error.get('Message', e)}")
            raise RuntimeError(f"Model invocation failed: {error.get('Code', 'Unknown')}") from e
        except BotoCoreError as e:
            logger.error(f"Bedrock BotoCoreError: {e}")
            raise RuntimeError(f"Bedrock communication error: {e}") from e
        except ValueError as e:
            raise RuntimeError(f"Undecodable model reply: {e}") from e

        usage = reply.get("usage", {})
        logger.debug(
            f"Bedrock call: input_tokens={usage.get('input_tokens')}, "
            f"output_tokens={usage.get('output_tokens')}, stop={reply.get('stop_reason')}"
        )
        return {
            "content": reply.get("content", []),
            "stop_reason": reply.get("stop_reason"),
            "usage": usage,
        }

    async def invoke_claude(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> Dict[str, Any]:
        """
        Run invoke_model in the default executor, bounded by timeout_seconds.

        Raises:
            RuntimeError: If invocation fails or times out
        """
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(
            None,
            lambda: self.invoke_model(messages, system_prompt, max_tokens, temperature),
        )
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Bedrock invocation timed out after {self.timeout_seconds} seconds")
            raise RuntimeError("Bedrock call timed out") from e


_bedrock_service: Optional[BedrockService] = None


def get_bedrock_service() -> BedrockService:
    """
    Process-wide BedrockService, created on first use.

    Raises:
        RuntimeError: If initialization fails
    """
    global _bedrock_service
    if _bedrock_service is None:
        _bedrock_service = BedrockService()
    return _bedrock_service
