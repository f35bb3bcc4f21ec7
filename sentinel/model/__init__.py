"""
Sentinel Models — message types and model transports.

Usage:
    from sentinel.model import OpenAIChat, Message, ModelSettings
"""

from typing import TYPE_CHECKING

from sentinel.model.base import Model, ModelResponse, Usage
from sentinel.model.message import (
  BaseMessage,
  GenericResource,
  GenericText,
  Message,
  MessageRole,
  MessageType,
  StructuredOutput,
  SystemPrompt,
  Text,
  ToolCall,
  ToolCallResponse,
  UserPrompt,
)
from sentinel.model.settings import ModelSettings

if TYPE_CHECKING:
  from sentinel.model.openai import OpenAIChat
  from sentinel.model.retry import RetryConfig, RetryingModel


def __getattr__(name: str):
  if name == "OpenAIChat":
    from sentinel.model.openai import OpenAIChat

    return OpenAIChat
  if name == "RetryingModel":
    from sentinel.model.retry import RetryingModel

    return RetryingModel
  if name == "RetryConfig":
    from sentinel.model.retry import RetryConfig

    return RetryConfig
  raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
  "BaseMessage",
  "GenericResource",
  "GenericText",
  "Message",
  "MessageRole",
  "MessageType",
  "Model",
  "ModelResponse",
  "ModelSettings",
  "StructuredOutput",
  "SystemPrompt",
  "Text",
  "ToolCall",
  "ToolCallResponse",
  "Usage",
  "UserPrompt",
  "OpenAIChat",
  "RetryingModel",
  "RetryConfig",
]
