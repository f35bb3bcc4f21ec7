"""
Unit tests for the error taxonomy and classifiers.

Covers:
  - Every ErrorType has a template and retryable flag
  - render() fills or blanks template slots
  - SentinelError success/error/permanent_error/from_exception/equality
  - root_cause_message walks exception chains
  - classify_exception mapping per exception family
  - classify_finish_reason success, mapped and unknown reasons
  - classify_tool_failure: contract violations are permanent, others temporary
"""

import asyncio
import json

import pytest
from pydantic import BaseModel

from sentinel.agent.cancellation import AgentCancelled
from sentinel.agent.errors import (
  ErrorType,
  SentinelError,
  classify_exception,
  classify_finish_reason,
  classify_tool_failure,
  root_cause_message,
)
from sentinel.exceptions import ModelCallError, SerializationError, ToolContractViolation


@pytest.mark.unit
class TestErrorType:
  def test_every_type_has_template(self):
    for error_type in ErrorType:
      assert error_type.template
      assert isinstance(error_type.retryable, bool)

  @pytest.mark.parametrize(
    "error_type",
    [
      ErrorType.SUCCESS,
      ErrorType.REFUSED,
      ErrorType.FILTERED,
      ErrorType.LENGTH_EXCEEDED,
      ErrorType.TOOL_CALL_PERMANENT_FAILURE,
      ErrorType.MODEL_RUN_TERMINATED,
    ],
  )
  def test_non_retryable_types(self, error_type):
    assert error_type.retryable is False

  @pytest.mark.parametrize(
    "error_type",
    [
      ErrorType.NO_RESPONSE,
      ErrorType.TOOL_CALL_TEMPORARY_FAILURE,
      ErrorType.JSON_ERROR,
      ErrorType.GENERIC_MODEL_CALL_FAILURE,
      ErrorType.DATA_VALIDATION_FAILURE,
      ErrorType.MODEL_CALL_COMMUNICATION_ERROR,
      ErrorType.MODEL_CALL_RATE_LIMIT_EXCEEDED,
    ],
  )
  def test_retryable_types(self, error_type):
    assert error_type.retryable is True

  def test_render_fills_slot(self):
    assert ErrorType.TOOL_CALL_PERMANENT_FAILURE.render("getName") == "Tool call failed permanently for tool: getName"

  def test_render_blanks_missing_slot(self):
    assert ErrorType.REFUSED.render() == "Refused: Reason: "

  def test_render_ignores_extra_args(self):
    assert ErrorType.NO_RESPONSE.render("extra") == "No response"

  def test_is_str_enum(self):
    assert ErrorType.SUCCESS == "SUCCESS"


@pytest.mark.unit
class TestSentinelError:
  def test_success(self):
    err = SentinelError.success()
    assert err.is_success
    assert err.message == "Success"
    assert err.retryable is False

  def test_error_renders_message(self):
    err = SentinelError.error(ErrorType.DATA_VALIDATION_FAILURE, "too short")
    assert not err.is_success
    assert err.message == "Model data validation failed. Errors: too short"
    assert err.retryable

  def test_permanent_error_is_not_retryable(self):
    err = SentinelError.permanent_error(ErrorType.DATA_VALIDATION_FAILURE, "too short")
    assert err.error_type.retryable
    assert err.retryable is False
    assert err.message == "Model data validation failed. Errors: too short"
    assert err != SentinelError.error(ErrorType.DATA_VALIDATION_FAILURE, "too short")

  def test_from_exception_uses_root_cause(self):
    try:
      try:
        raise ValueError("inner problem")
      except ValueError as e:
        raise RuntimeError("outer") from e
    except RuntimeError as outer:
      err = SentinelError.from_exception(ErrorType.GENERIC_MODEL_CALL_FAILURE, outer)
    assert err.message == "Model call failed with error: inner problem"

  def test_equality_and_hash(self):
    a = SentinelError.error(ErrorType.NO_RESPONSE)
    b = SentinelError.error(ErrorType.NO_RESPONSE)
    assert a == b
    assert hash(a) == hash(b)
    assert a != SentinelError.success()


@pytest.mark.unit
class TestRootCauseMessage:
  def test_plain_exception(self):
    assert root_cause_message(ValueError("boom")) == "boom"

  def test_empty_message_falls_back_to_type_name(self):
    assert root_cause_message(KeyError()) == "KeyError"

  def test_implicit_context(self):
    try:
      try:
        raise OSError("disk gone")
      except OSError:
        raise RuntimeError("wrapper")
    except RuntimeError as e:
      assert root_cause_message(e) == "disk gone"


class _Payload(BaseModel):
  count: int


@pytest.mark.unit
class TestClassifyException:
  def test_model_call_error_keeps_type(self):
    err = classify_exception(ModelCallError(ErrorType.MODEL_CALL_RATE_LIMIT_EXCEEDED, "slow down"))
    assert err.error_type == ErrorType.MODEL_CALL_RATE_LIMIT_EXCEEDED
    assert err.message == "Rate limit exceeded: slow down"

  def test_json_decode_error(self):
    try:
      json.loads("{not json")
    except json.JSONDecodeError as e:
      assert classify_exception(e).error_type == ErrorType.JSON_ERROR

  def test_pydantic_validation_error(self):
    try:
      _Payload.model_validate({"count": "many"})
    except Exception as e:
      assert classify_exception(e).error_type == ErrorType.DESERIALIZATION_ERROR

  def test_serialization_error(self):
    assert classify_exception(SerializationError("bad")).error_type == ErrorType.SERIALIZATION_ERROR

  def test_cancellation(self):
    assert classify_exception(AgentCancelled("stop")).error_type == ErrorType.MODEL_RUN_TERMINATED
    assert classify_exception(asyncio.CancelledError()).error_type == ErrorType.MODEL_RUN_TERMINATED

  @pytest.mark.parametrize("exc", [TimeoutError("t"), ConnectionError("c"), OSError("o")])
  def test_network_errors(self, exc):
    assert classify_exception(exc).error_type == ErrorType.MODEL_CALL_COMMUNICATION_ERROR

  def test_anything_else_is_generic(self):
    err = classify_exception(RuntimeError("weird"))
    assert err.error_type == ErrorType.GENERIC_MODEL_CALL_FAILURE
    assert "weird" in err.message


@pytest.mark.unit
class TestClassifyFinishReason:
  @pytest.mark.parametrize("reason", [None, "", "stop", "tool_calls", "function_call", "STOP"])
  def test_success(self, reason):
    assert classify_finish_reason(reason).is_success

  def test_length(self):
    assert classify_finish_reason("length").error_type == ErrorType.LENGTH_EXCEEDED

  def test_content_filter(self):
    assert classify_finish_reason("content_filter").error_type == ErrorType.FILTERED

  def test_refusal_carries_detail(self):
    err = classify_finish_reason("refusal", "I can't help with that")
    assert err.error_type == ErrorType.REFUSED
    assert err.message == "Refused: Reason: I can't help with that"

  def test_unknown_reason(self):
    err = classify_finish_reason("mystery")
    assert err.error_type == ErrorType.UNKNOWN_FINISH_REASON
    assert err.message == "Unknown finish reason: mystery"


@pytest.mark.unit
class TestClassifyToolFailure:
  def test_contract_violation_is_permanent(self):
    err = classify_tool_failure("getName", ToolContractViolation("missing user id"))
    assert err.error_type == ErrorType.TOOL_CALL_PERMANENT_FAILURE
    assert err.message == "Tool call failed permanently for tool: getName. Error: missing user id"

  def test_other_exceptions_are_temporary(self):
    err = classify_tool_failure("getName", RuntimeError("upstream 503"))
    assert err.error_type == ErrorType.TOOL_CALL_TEMPORARY_FAILURE
    assert err.retryable
